"""
ledgerstream Configuration
==========================

This module handles configuration loading for the ledger metadata shim.

Configuration Sources (in order of precedence):
    1. Environment variables (highest priority)
    2. ledgerstream.yaml file
    3. Default values (lowest priority)

Command line flags are applied on top by main.py.

Environment Variable Mapping:
    LEDGERSTREAM_PRODUCER_PATH    -> producer.path
    LEDGERSTREAM_PRODUCER_CONFIG  -> producer.config_path
    LEDGERSTREAM_WORKING_DIR      -> producer.working_dir
    LEDGERSTREAM_ENCODING         -> stream.encoding
    LEDGERSTREAM_MAX_FRAME_BYTES  -> stream.max_frame_bytes
    LEDGERSTREAM_MAX_QUEUE_SIZE   -> stream.max_queue_size
    LEDGERSTREAM_FORWARD_STDERR   -> diagnostics.forward_producer_stderr
    LEDGERSTREAM_LOG_LEVEL        -> logging.level

Example:
    from ledgerstream.config import load_config

    settings = load_config("ledgerstream.yaml")
    print(settings.producer.path)
    print(settings.stream.max_frame_bytes)
"""

import os
import logging
import sys
from enum import Enum
from pathlib import Path
from typing import List, Optional

import yaml
from pydantic import BaseModel, Field


logger = logging.getLogger(__name__)

# Largest accepted frame payload unless configured otherwise (64 MiB)
DEFAULT_MAX_FRAME_BYTES = 64 * 1024 * 1024


# =============================================================================
# Configuration Models
# =============================================================================

class StreamEncoding(str, Enum):
    """How the producer writes frames to its primary output."""

    RAW = "raw"
    BASE64_LINES = "base64-lines"


class ProducerConfig(BaseModel):
    """Producer process configuration."""

    path: str = Field(
        default="stellar-core",
        description="Path to the producer binary",
    )
    config_path: str = Field(
        default="stellar-core-testnet.cfg",
        description="Producer configuration file, passed as --conf",
    )
    extra_args: List[str] = Field(
        default_factory=list,
        description="Extra arguments appended after --metadata",
    )
    working_dir: Optional[str] = Field(
        default=None,
        description="Working directory for the producer (None = inherit)",
    )


class StreamConfig(BaseModel):
    """Binary channel decoding configuration."""

    encoding: StreamEncoding = Field(
        default=StreamEncoding.RAW,
        description="Frame encoding on the producer's primary output",
    )
    max_frame_bytes: Optional[int] = Field(
        default=DEFAULT_MAX_FRAME_BYTES,
        ge=1,
        description="Largest accepted frame payload in bytes (None = unbounded)",
    )
    read_chunk_size: int = Field(
        default=65536,
        ge=1,
        description="Bytes requested per read from the binary channel",
    )
    max_queue_size: int = Field(
        default=64,
        ge=1,
        description="Maximum chunks buffered between drainer and decoder",
    )
    line_limit: int = Field(
        default=16 * 1024 * 1024,
        ge=1024,
        description="Longest accepted line on a producer channel, in bytes",
    )


class DiagnosticsConfig(BaseModel):
    """Producer diagnostic channel configuration."""

    forward_producer_stderr: bool = Field(
        default=False,
        description="Forward producer stderr lines to our stderr",
    )
    marker: str = Field(
        default="stellar-core stderr: ",
        description="Text prefixed to every forwarded diagnostic line",
    )


class LoggingConfig(BaseModel):
    """Logging configuration."""

    level: str = Field(default="INFO", description="Log level")
    format: str = Field(default="text", description="Log format: json or text")


class Settings(BaseModel):
    """
    Main settings class for ledgerstream.

    Loads configuration from YAML file and environment variables.
    Environment variables take precedence over file values.
    """

    producer: ProducerConfig = Field(default_factory=ProducerConfig)
    stream: StreamConfig = Field(default_factory=StreamConfig)
    diagnostics: DiagnosticsConfig = Field(default_factory=DiagnosticsConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)


# =============================================================================
# Configuration Loading
# =============================================================================

def load_config(config_path: Optional[str] = None) -> Settings:
    """
    Load configuration from YAML file and environment variables.

    Priority (highest to lowest):
        1. Environment variables
        2. YAML config file
        3. Default values

    Args:
        config_path: Path to ledgerstream.yaml. If None, searches common locations.

    Returns:
        Settings: Loaded configuration
    """
    # Find config file
    if config_path is None:
        search_paths = [
            Path("ledgerstream.yaml"),
            Path("ledgerstream.yml"),
        ]
        for path in search_paths:
            if path.exists():
                config_path = str(path)
                break

    # Load from YAML if exists
    config_data = {}
    if config_path and Path(config_path).exists():
        logger.info(f"Loading config from: {config_path}")
        with open(config_path, "r") as f:
            config_data = yaml.safe_load(f) or {}
    else:
        logger.debug("No config file found, using defaults and environment variables")

    # Apply environment variable overrides
    _apply_env_overrides(config_data)

    # Build settings object
    settings = Settings.model_validate(config_data)

    return settings


def _env_flag(value: str) -> bool:
    return value.strip().lower() in ("1", "true", "yes", "on")


def _apply_env_overrides(config_data: dict) -> None:
    """Apply environment variable overrides to config data."""

    # Producer settings
    if env_path := os.environ.get("LEDGERSTREAM_PRODUCER_PATH"):
        config_data.setdefault("producer", {})["path"] = env_path
    if env_conf := os.environ.get("LEDGERSTREAM_PRODUCER_CONFIG"):
        config_data.setdefault("producer", {})["config_path"] = env_conf
    if env_dir := os.environ.get("LEDGERSTREAM_WORKING_DIR"):
        config_data.setdefault("producer", {})["working_dir"] = env_dir

    # Stream settings
    if env_encoding := os.environ.get("LEDGERSTREAM_ENCODING"):
        config_data.setdefault("stream", {})["encoding"] = env_encoding
    if env_max := os.environ.get("LEDGERSTREAM_MAX_FRAME_BYTES"):
        config_data.setdefault("stream", {})["max_frame_bytes"] = int(env_max)
    if env_queue := os.environ.get("LEDGERSTREAM_MAX_QUEUE_SIZE"):
        config_data.setdefault("stream", {})["max_queue_size"] = int(env_queue)

    # Diagnostics settings
    if env_fwd := os.environ.get("LEDGERSTREAM_FORWARD_STDERR"):
        config_data.setdefault("diagnostics", {})["forward_producer_stderr"] = _env_flag(env_fwd)

    # Logging settings
    if env_log := os.environ.get("LEDGERSTREAM_LOG_LEVEL"):
        config_data.setdefault("logging", {})["level"] = env_log


def setup_logging(settings: Settings) -> None:
    """
    Configure logging based on settings.

    Logs always go to stderr; stdout carries only JSON records.
    """
    log_level = getattr(logging, settings.logging.level.upper(), logging.INFO)

    if settings.logging.format == "json":
        log_format = '{"time": "%(asctime)s", "level": "%(levelname)s", "module": "%(name)s", "message": "%(message)s"}'
    else:
        log_format = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"

    logging.basicConfig(
        level=log_level,
        format=log_format,
        datefmt="%Y-%m-%dT%H:%M:%S",
        stream=sys.stderr,
        force=True,
    )
