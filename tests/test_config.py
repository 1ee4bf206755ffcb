"""
Configuration and CLI Tests
===========================

Tests for settings precedence and the command line entry point.
"""

import sys

import pytest
from pydantic import ValidationError

from ledgerstream import main as cli
from ledgerstream.config import Settings, StreamEncoding, load_config


ENV_VARS = [
    "LEDGERSTREAM_PRODUCER_PATH",
    "LEDGERSTREAM_PRODUCER_CONFIG",
    "LEDGERSTREAM_WORKING_DIR",
    "LEDGERSTREAM_ENCODING",
    "LEDGERSTREAM_MAX_FRAME_BYTES",
    "LEDGERSTREAM_MAX_QUEUE_SIZE",
    "LEDGERSTREAM_FORWARD_STDERR",
    "LEDGERSTREAM_LOG_LEVEL",
]


@pytest.fixture(autouse=True)
def clean_env(monkeypatch, tmp_path):
    """Isolate every test from the caller's environment and cwd."""
    for name in ENV_VARS:
        monkeypatch.delenv(name, raising=False)
    monkeypatch.chdir(tmp_path)
    monkeypatch.setattr(cli, "setup_logging", lambda settings: None)


@pytest.fixture
def settings_file(tmp_path):
    path = tmp_path / "ledgerstream.yaml"
    path.write_text(
        "producer:\n"
        "  path: /opt/stellar/bin/stellar-core\n"
        "  config_path: pubnet.cfg\n"
        "stream:\n"
        "  max_frame_bytes: 1048576\n"
        "  max_queue_size: 8\n"
        "logging:\n"
        "  level: WARNING\n"
    )
    return path


class TestLoadConfig:
    """Tests for load_config."""

    def test_defaults(self):
        """Verify defaults without a file or environment."""
        settings = load_config()
        assert settings.producer.path == "stellar-core"
        assert settings.producer.config_path == "stellar-core-testnet.cfg"
        assert settings.stream.encoding is StreamEncoding.RAW
        assert settings.stream.max_frame_bytes == 64 * 1024 * 1024
        assert settings.diagnostics.forward_producer_stderr is False
        assert settings.diagnostics.marker == "stellar-core stderr: "

    def test_yaml_file(self, settings_file):
        """Verify values are read from the YAML file."""
        settings = load_config(str(settings_file))
        assert settings.producer.path == "/opt/stellar/bin/stellar-core"
        assert settings.stream.max_frame_bytes == 1048576
        assert settings.stream.max_queue_size == 8
        assert settings.logging.level == "WARNING"

    def test_file_found_in_cwd(self, settings_file):
        """Verify ledgerstream.yaml in the working directory is picked up."""
        assert load_config().producer.config_path == "pubnet.cfg"

    def test_env_overrides_file(self, settings_file, monkeypatch):
        """Verify environment variables beat file values."""
        monkeypatch.setenv("LEDGERSTREAM_PRODUCER_CONFIG", "testnet.cfg")
        monkeypatch.setenv("LEDGERSTREAM_MAX_FRAME_BYTES", "2048")
        monkeypatch.setenv("LEDGERSTREAM_ENCODING", "base64-lines")
        monkeypatch.setenv("LEDGERSTREAM_FORWARD_STDERR", "yes")

        settings = load_config(str(settings_file))

        assert settings.producer.config_path == "testnet.cfg"
        assert settings.producer.path == "/opt/stellar/bin/stellar-core"
        assert settings.stream.max_frame_bytes == 2048
        assert settings.stream.encoding is StreamEncoding.BASE64_LINES
        assert settings.diagnostics.forward_producer_stderr is True

    def test_invalid_values_rejected(self, monkeypatch):
        """Verify validation errors surface from load_config."""
        monkeypatch.setenv("LEDGERSTREAM_ENCODING", "hex")
        with pytest.raises(ValidationError):
            load_config()


class TestCommandLine:
    """Tests for argument handling and exit codes."""

    def test_cli_overrides(self):
        """Verify flags beat file and environment settings."""
        args = cli.build_parser().parse_args([
            "--producer-path", "/usr/local/bin/stellar-core",
            "--config-path", "local.cfg",
            "--encoding", "base64-lines",
            "--max-frame-bytes", "4096",
            "-v",
        ])
        settings = cli.apply_cli_overrides(Settings(), args)

        assert settings.producer.path == "/usr/local/bin/stellar-core"
        assert settings.producer.config_path == "local.cfg"
        assert settings.stream.encoding is StreamEncoding.BASE64_LINES
        assert settings.stream.max_frame_bytes == 4096
        assert settings.logging.level == "DEBUG"
        assert settings.diagnostics.forward_producer_stderr is True

    def test_producer_arguments(self):
        """Verify the producer is started in metadata mode."""
        settings = Settings.model_validate({
            "producer": {"config_path": "testnet.cfg", "extra_args": ["--in-memory"]},
        })
        assert cli.producer_arguments(settings) == [
            "--conf", "testnet.cfg", "--metadata", "--in-memory",
        ]

    def test_missing_config_file(self, tmp_path):
        """Verify a missing producer configuration is a usage error."""
        code = cli.main(["--config-path", str(tmp_path / "missing.cfg")])
        assert code == cli.EXIT_USAGE

    def test_config_resolved_against_working_dir(self, tmp_path):
        """Verify relative config paths are looked up in the working directory."""
        workdir = tmp_path / "core"
        workdir.mkdir()
        (workdir / "node.cfg").write_text("")

        code = cli.main([
            "--producer-path", str(tmp_path / "no-such-core"),
            "--config-path", "node.cfg",
            "--working-dir", str(workdir),
        ])
        assert code == cli.EXIT_SPAWN_FAILED

    def test_invalid_settings(self):
        """Verify invalid settings exit with a usage error."""
        assert cli.main(["--max-frame-bytes", "0"]) == cli.EXIT_USAGE

    def test_malformed_settings_file(self, tmp_path, capsys):
        """Verify a settings file that is not valid YAML exits with a usage error."""
        broken = tmp_path / "broken.yaml"
        broken.write_text("producer: [unclosed\n")

        assert cli.main(["--settings", str(broken)]) == cli.EXIT_USAGE
        assert "invalid settings" in capsys.readouterr().err

    def test_spawn_failed(self, tmp_path):
        """Verify an unlaunchable producer exits with 127."""
        config = tmp_path / "stellar-core-testnet.cfg"
        config.write_text("")

        code = cli.main(["--producer-path", str(tmp_path / "no-such-core")])
        assert code == cli.EXIT_SPAWN_FAILED

    def test_producer_exit_status_propagated(self, tmp_path, capsys):
        """Verify the producer's own exit status becomes ours."""
        config = tmp_path / "stellar-core-testnet.cfg"
        config.write_text("")

        # The interpreter rejects --conf as an unknown option and exits with 2.
        code = cli.main(["--producer-path", sys.executable])

        assert code == 2
        assert capsys.readouterr().out == ""
