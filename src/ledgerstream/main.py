"""
ledgerstream Main Application
=============================

Command line entry point for the ledger metadata shim.

Runs the producer in metadata mode, writes one JSON document per decoded
ledger to stdout, and exits with the producer's exit status.

Usage:
    ledgerstream --config-path stellar-core-testnet.cfg
    ledgerstream --producer-path /usr/bin/stellar-core -v > ledgers.jsonl
    ledgerstream --settings ledgerstream.yaml --encoding base64-lines

Exit Codes:
    N    producer exit status (128 + signal if it was killed)
    2    invalid settings or missing producer configuration file
    127  producer could not be started
"""

import argparse
import asyncio
import logging
import sys
from pathlib import Path
from typing import List, Optional

import yaml
from pydantic import ValidationError

from ledgerstream import __version__
from ledgerstream.config import Settings, load_config, setup_logging
from ledgerstream.models.state import PipelineResult
from ledgerstream.pipeline import PipelineOrchestrator
from ledgerstream.process import ProcessSupervisor, SpawnFailed, exit_status_code
from ledgerstream.process.supervisor import resolve_executable
from ledgerstream.stream import NullSink, TextStreamSink


logger = logging.getLogger(__name__)

EXIT_USAGE = 2
EXIT_SPAWN_FAILED = 127


# =============================================================================
# Argument Handling
# =============================================================================

def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="ledgerstream",
        description="Process stellar-core XDR metadata output as JSON",
    )
    parser.add_argument(
        "--producer-path",
        type=str,
        default=None,
        help="Path to stellar-core binary (default: stellar-core)",
    )
    parser.add_argument(
        "--config-path",
        type=str,
        default=None,
        help="Path to stellar-core configuration file "
             "(default: stellar-core-testnet.cfg)",
    )
    parser.add_argument(
        "--settings",
        type=str,
        default=None,
        help="Path to ledgerstream.yaml",
    )
    parser.add_argument(
        "--working-dir",
        type=str,
        default=None,
        help="Working directory for the producer",
    )
    parser.add_argument(
        "--encoding",
        choices=["raw", "base64-lines"],
        default=None,
        help="Frame encoding on the producer's stdout (default: raw)",
    )
    parser.add_argument(
        "--max-frame-bytes",
        type=int,
        default=None,
        help="Reject frames larger than this many bytes (default: 64 MiB)",
    )
    parser.add_argument(
        "-v", "--verbose",
        action="store_true",
        help="Enable verbose output and forward producer stderr",
    )
    parser.add_argument(
        "--version",
        action="version",
        version=f"%(prog)s {__version__}",
    )
    return parser


def apply_cli_overrides(settings: Settings, args: argparse.Namespace) -> Settings:
    """Apply command line flags on top of file and environment settings."""
    data = settings.model_dump()

    if args.producer_path:
        data["producer"]["path"] = args.producer_path
    if args.config_path:
        data["producer"]["config_path"] = args.config_path
    if args.working_dir:
        data["producer"]["working_dir"] = args.working_dir
    if args.encoding:
        data["stream"]["encoding"] = args.encoding
    if args.max_frame_bytes is not None:
        data["stream"]["max_frame_bytes"] = args.max_frame_bytes
    if args.verbose:
        data["logging"]["level"] = "DEBUG"
        data["diagnostics"]["forward_producer_stderr"] = True

    return Settings.model_validate(data)


def producer_arguments(settings: Settings) -> List[str]:
    """Arguments that put the producer into metadata streaming mode."""
    return [
        "--conf",
        settings.producer.config_path,
        "--metadata",
        *settings.producer.extra_args,
    ]


# =============================================================================
# Pipeline
# =============================================================================

def build_orchestrator(settings: Settings) -> PipelineOrchestrator:
    supervisor = ProcessSupervisor(
        executable=resolve_executable(settings.producer.path),
        args=producer_arguments(settings),
        working_dir=settings.producer.working_dir,
        stream_limit=settings.stream.line_limit,
    )

    if settings.diagnostics.forward_producer_stderr:
        log_sink = TextStreamSink(
            sys.stderr,
            name="diagnostics",
            marker=settings.diagnostics.marker,
            best_effort=True,
        )
    else:
        log_sink = NullSink("diagnostics")

    return PipelineOrchestrator(
        supervisor=supervisor,
        output_sink=TextStreamSink(sys.stdout, name="output"),
        log_sink=log_sink,
        stream_config=settings.stream,
    )


async def run_pipeline(settings: Settings) -> PipelineResult:
    orchestrator = build_orchestrator(settings)
    return await orchestrator.run()


# =============================================================================
# Main Entry Point
# =============================================================================

def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)

    try:
        settings = apply_cli_overrides(load_config(args.settings), args)
    except (ValidationError, ValueError, yaml.YAMLError) as e:
        print(f"ledgerstream: invalid settings: {e}", file=sys.stderr)
        return EXIT_USAGE

    setup_logging(settings)

    logger.info("Starting stellar-core XDR processor...")
    logger.debug(f"Stellar-core binary: {settings.producer.path}")
    logger.debug(f"Config file: {settings.producer.config_path}")

    # Verify config file exists
    config_path = Path(settings.producer.config_path)
    if settings.producer.working_dir and not config_path.is_absolute():
        config_path = Path(settings.producer.working_dir) / config_path
    if not config_path.exists():
        logger.error(f"Configuration file not found: {config_path}")
        return EXIT_USAGE

    try:
        result = asyncio.run(run_pipeline(settings))
    except SpawnFailed as e:
        logger.error(f"{e.kind.value}: {e}")
        return EXIT_SPAWN_FAILED
    except BrokenPipeError:
        logger.error("Output stream closed by reader, producer terminated")
        return 1
    except KeyboardInterrupt:
        logger.info("Interrupted")
        return 130

    logger.info(
        f"Stellar-core process exited with status: {result.exit_code} "
        f"({result.records_emitted} record(s) emitted, "
        f"{result.total_skipped} skipped)"
    )
    return exit_status_code(result.exit_code)


if __name__ == "__main__":
    sys.exit(main())
