"""
Logging for ns-migrator commands and the API server.

Every command writes a full DEBUG trace to ``logs/<command>_<timestamp>.log``
so a failed migration or clone can be reconstructed afterwards next to its
job record.  The console only shows warnings unless ``-v`` is given.

When the API is served, uvicorn's request and error logs are routed into
the same handlers, and SQLAlchemy/urllib3/httpx chatter is held at WARNING.
"""

from __future__ import annotations

import logging
import os
import sys
from datetime import datetime

from .config import PROJECT_ROOT

__all__ = ["LOG_DIR", "setup_logging"]

LOG_DIR = os.path.join(PROJECT_ROOT, "logs")

_FILE_FORMAT = "%(asctime)s  %(levelname)-8s  %(name)s  %(message)s"
_CONSOLE_FORMAT = "%(levelname)-8s  %(message)s"

_QUIET_LOGGERS = ("urllib3", "sqlalchemy.engine", "httpx")
_UVICORN_LOGGERS = ("uvicorn", "uvicorn.error", "uvicorn.access")


def setup_logging(
    verbose: bool = False,
    log_prefix: str = "ns_migrator",
    log_dir: str = LOG_DIR,
) -> str:
    """Install the file and console handlers on the root logger.

    Args:
        verbose: Also print DEBUG records (with timestamps and logger
            names) on stderr.
        log_prefix: Command name used in the log file name, e.g.
            ``"migrate"`` or ``"serve"``.
        log_dir: Directory for log files, created if missing.

    Returns:
        Path of the log file for this run.
    """
    os.makedirs(log_dir, exist_ok=True)
    stamp = datetime.now().strftime("%Y-%m-%d-%H%M%S")
    log_path = os.path.join(log_dir, f"{log_prefix}_{stamp}.log")

    root = logging.getLogger()
    root.setLevel(logging.DEBUG)
    root.handlers.clear()

    file_handler = logging.FileHandler(log_path, encoding="utf-8")
    file_handler.setLevel(logging.DEBUG)
    file_handler.setFormatter(logging.Formatter(_FILE_FORMAT, datefmt="%Y-%m-%d %H:%M:%S"))
    root.addHandler(file_handler)

    console = logging.StreamHandler(sys.stderr)
    if verbose:
        console.setLevel(logging.DEBUG)
        console.setFormatter(logging.Formatter(_FILE_FORMAT, datefmt="%H:%M:%S"))
    else:
        console.setLevel(logging.WARNING)
        console.setFormatter(logging.Formatter(_CONSOLE_FORMAT))
    root.addHandler(console)

    for name in _QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)

    # uvicorn installs its own handlers unless run with log_config=None
    for name in _UVICORN_LOGGERS:
        uv_logger = logging.getLogger(name)
        uv_logger.handlers.clear()
        uv_logger.propagate = True

    return log_path
