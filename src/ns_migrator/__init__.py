"""Namespace instance migrator and deep-clone orchestrator."""

__version__ = "1.0.0"

__all__ = [
    "api",
    "cli",
    "client",
    "config",
    "events",
    "exceptions",
    "jobs",
    "logging_setup",
    "models",
    "mover",
    "services",
    "store",
    "validation",
]
