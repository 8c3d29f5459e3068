"""
Configuration loading, validation, and typed models.

Supports:
  - YAML config file (config/config.yaml)
  - Environment variable overrides (NS_MIGRATOR_DATABASE_URL, NS_MIGRATOR_API_TOKEN)
  - Built-in defaults when no config file exists at the default location
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass, field
from pathlib import Path

import yaml

__all__ = [
    "DEFAULT_CONFIG_PATH",
    "PROJECT_ROOT",
    "ConfigError",
    "DatabaseConfig",
    "RemoteConfig",
    "CloneConfig",
    "ServerConfig",
    "AppConfig",
    "load_config",
]

logger = logging.getLogger(__name__)

# Default config path: config/config.yaml under the project root
DEFAULT_CONFIG_PATH = os.path.join(
    os.path.dirname(os.path.dirname(os.path.dirname(os.path.abspath(__file__)))),
    "config",
    "config.yaml",
)

# Project root directory
PROJECT_ROOT = os.path.dirname(os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

# Environment variable names
ENV_DATABASE_URL = "NS_MIGRATOR_DATABASE_URL"
ENV_API_TOKEN = "NS_MIGRATOR_API_TOKEN"

DEFAULT_DATABASE_URL = "sqlite:///" + os.path.join(PROJECT_ROOT, "data", "ns_migrator.db")


# ---------------------------------------------------------------------------
# Typed configuration models
# ---------------------------------------------------------------------------

class ConfigError(Exception):
    """Raised when the configuration file is missing or invalid."""


@dataclass(frozen=True)
class DatabaseConfig:
    url: str = DEFAULT_DATABASE_URL
    echo: bool = False


@dataclass(frozen=True)
class RemoteConfig:
    api_token: str = ""
    connect_timeout: float = 10.0
    read_timeout: float = 60.0
    retries: int = 0

    def __repr__(self) -> str:
        """Redact token in repr to prevent accidental logging."""
        return (
            f"RemoteConfig(api_token='***redacted***', "
            f"connect_timeout={self.connect_timeout}, "
            f"read_timeout={self.read_timeout}, retries={self.retries})"
        )

    @property
    def timeout(self) -> tuple[float, float]:
        return (self.connect_timeout, self.read_timeout)


@dataclass(frozen=True)
class CloneConfig:
    concurrency: int = 5


@dataclass(frozen=True)
class ServerConfig:
    host: str = "127.0.0.1"
    port: int = 8787


@dataclass(frozen=True)
class AppConfig:
    database: DatabaseConfig = field(default_factory=DatabaseConfig)
    remote: RemoteConfig = field(default_factory=RemoteConfig)
    clone: CloneConfig = field(default_factory=CloneConfig)
    server: ServerConfig = field(default_factory=ServerConfig)


# ---------------------------------------------------------------------------
# Loading
# ---------------------------------------------------------------------------

def _section(raw: dict, name: str) -> dict:
    value = raw.get(name) or {}
    if not isinstance(value, dict):
        raise ConfigError(f"'{name}' must be a mapping, got {type(value).__name__}")
    return value


def _positive_number(value, label: str, cast=float):
    try:
        number = cast(value)
    except (TypeError, ValueError) as e:
        raise ConfigError(f"{label} must be a number, got {value!r}") from e
    if number <= 0:
        raise ConfigError(f"{label} must be greater than zero, got {value!r}")
    return number


def load_config(config_path: str | None = None) -> AppConfig:
    """Load and validate the YAML configuration file.

    When *config_path* is omitted the default location is used, and a
    missing file there simply yields the built-in defaults.  An explicitly
    given path must exist.

    Environment variables take precedence over YAML values:
      - NS_MIGRATOR_DATABASE_URL -> database.url
      - NS_MIGRATOR_API_TOKEN    -> remote.api_token

    Raises:
        ConfigError: If the config file is missing or contains invalid values.
    """
    explicit = config_path is not None
    path = Path(config_path or DEFAULT_CONFIG_PATH)

    raw: dict = {}
    if path.exists():
        with open(path, "r") as f:
            raw = yaml.safe_load(f) or {}
        if not isinstance(raw, dict):
            raise ConfigError(
                f"Invalid config file format: expected YAML mapping, got {type(raw).__name__}"
            )
    elif explicit:
        raise ConfigError(
            f"Config file not found: {path}\n"
            "Copy config/config.yaml.example to config/config.yaml and fill in your values."
        )
    else:
        logger.debug("No config file at %s — using defaults", path)

    # --- Database ---
    db_section = _section(raw, "database")
    db_url = os.environ.get(ENV_DATABASE_URL) or db_section.get("url") or DEFAULT_DATABASE_URL
    database = DatabaseConfig(url=db_url, echo=bool(db_section.get("echo", False)))

    # --- Remote admin endpoints ---
    remote_section = _section(raw, "remote")
    api_token = os.environ.get(ENV_API_TOKEN) or remote_section.get("api_token", "") or ""
    retries = remote_section.get("retries", 0) or 0
    if not isinstance(retries, int) or retries < 0:
        raise ConfigError(f"remote.retries must be a non-negative integer, got {retries!r}")
    remote = RemoteConfig(
        api_token=api_token,
        connect_timeout=_positive_number(
            remote_section.get("connect_timeout", 10), "remote.connect_timeout"
        ),
        read_timeout=_positive_number(
            remote_section.get("read_timeout", 60), "remote.read_timeout"
        ),
        retries=retries,
    )

    # --- Clone ---
    clone_section = _section(raw, "clone")
    clone = CloneConfig(
        concurrency=_positive_number(
            clone_section.get("concurrency", 5), "clone.concurrency", int
        ),
    )

    # --- Server ---
    server_section = _section(raw, "server")
    server = ServerConfig(
        host=server_section.get("host", "127.0.0.1") or "127.0.0.1",
        port=_positive_number(server_section.get("port", 8787), "server.port", int),
    )

    config = AppConfig(database=database, remote=remote, clone=clone, server=server)

    logger.debug(
        "Config loaded from %s (database from %s)",
        path if path.exists() else "defaults",
        "env" if os.environ.get(ENV_DATABASE_URL) else "file",
    )
    return config
