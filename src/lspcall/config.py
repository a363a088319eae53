"""Configuration loading for lspcall."""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import yaml

from lspcall.errors import ConfigError
from lspcall.transport.framing import DEFAULT_MAX_MESSAGE_SIZE

DEFAULT_CONFIG_NAMES = ("lspcall.yaml", ".lspcall.yaml", "lspcall.yml", ".lspcall.yml")

OUTPUT_FORMATS = ("pretty", "json", "raw")


@dataclass
class ShutdownConfig:
    """Shutdown timeout configuration."""

    request_timeout: float = 5.0
    """Seconds to wait for the reply to the shutdown request."""

    exit_timeout: float = 2.0
    """Seconds to wait for the server to exit on its own after the exit notification."""

    interrupt_timeout: float = 2.0
    """Seconds to wait after sending interrupt (SIGINT/Ctrl+Break)."""

    terminate_timeout: float = 3.0
    """Seconds to wait after sending terminate (SIGTERM)."""


@dataclass
class Config:
    """lspcall configuration."""

    timeout: float = 30.0
    format: str = "pretty"
    verbose: int = 1
    log_file: str | None = None
    max_message_size: int = DEFAULT_MAX_MESSAGE_SIZE

    # Shutdown configuration
    shutdown: ShutdownConfig = field(default_factory=ShutdownConfig)


def load_config(config_path: Path | None = None) -> Config:
    """Load configuration from file, or defaults if there is none.

    Raises:
        ConfigError: If an explicitly named file is missing, or any file is invalid.
    """
    if config_path is None:
        for name in DEFAULT_CONFIG_NAMES:
            if Path(name).exists():
                config_path = Path(name)
                break
        else:
            return Config()
    elif not config_path.exists():
        raise ConfigError(f"Config file not found: {config_path}")

    return _load_yaml_config(config_path)


def _load_yaml_config(path: Path) -> Config:
    """Load config from YAML file."""
    try:
        with open(path, encoding="utf-8") as f:
            data: Any = yaml.safe_load(f) or {}
    except yaml.YAMLError as e:
        raise ConfigError(f"Invalid YAML in {path}: {e}") from e
    except OSError as e:
        raise ConfigError(f"Error reading {path}: {e}") from e

    if not isinstance(data, dict):
        raise ConfigError(f"Config file {path} must contain a mapping")

    defaults = ShutdownConfig()
    shutdown_data = data.get("shutdown") or {}
    if not isinstance(shutdown_data, dict):
        raise ConfigError(f"'shutdown' in {path} must be a mapping")

    try:
        shutdown = ShutdownConfig(
            request_timeout=float(shutdown_data.get("request_timeout", defaults.request_timeout)),
            exit_timeout=float(shutdown_data.get("exit_timeout", defaults.exit_timeout)),
            interrupt_timeout=float(shutdown_data.get("interrupt_timeout", defaults.interrupt_timeout)),
            terminate_timeout=float(shutdown_data.get("terminate_timeout", defaults.terminate_timeout)),
        )
        timeout = float(data.get("timeout", 30.0))
        verbose = int(data.get("verbose", 1))
        max_message_size = int(data.get("max_message_size", DEFAULT_MAX_MESSAGE_SIZE))
    except (TypeError, ValueError) as e:
        raise ConfigError(f"Invalid value in {path}: {e}") from e

    if max_message_size <= 0:
        raise ConfigError(f"max_message_size in {path} must be positive, got {max_message_size}")

    output_format = data.get("format", "pretty")
    if output_format not in OUTPUT_FORMATS:
        raise ConfigError(f"Unknown output format in {path}: {output_format!r}")

    return Config(
        timeout=timeout,
        format=output_format,
        verbose=verbose,
        log_file=data.get("log_file"),
        max_message_size=max_message_size,
        shutdown=shutdown,
    )
