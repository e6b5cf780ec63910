# OAE Metadata Builder
# Copyright © 2025 OAE Metadata Builder contributors
# Licensed under CC BY-NC-SA 4.0 International
# http://creativecommons.org/licenses/by-nc-sa/4.0/

"""Rotating log files for the CLI.

``oaemeta.log`` receives everything the package logs at DEBUG and above
(10 MB, 5 backups); ``errors.log`` receives ERROR records from any logger
(5 MB, 3 backups).  Library modules only create loggers; nothing here runs
on import.
"""

from __future__ import annotations

import logging
import os
import sys
from logging.handlers import RotatingFileHandler
from pathlib import Path

__all__ = ["setup_logging", "get_log_directory"]

_MB = 1024 * 1024
_OWNED = "_oaemeta_owned"

_FILE_FORMAT = logging.Formatter(
    "%(asctime)s | %(levelname)-8s | %(name)s:%(lineno)d | %(message)s",
    datefmt="%Y-%m-%d %H:%M:%S",
)


def get_log_directory(app_name: str = "OAEMetadata") -> Path:
    """``OAE_LOG_DIR`` if set, else the platform's per-user log location."""

    override = os.environ.get("OAE_LOG_DIR")
    if override:
        return Path(override)
    home = Path.home()
    if sys.platform == "win32":
        return Path(os.environ.get("LOCALAPPDATA", home / "AppData" / "Local")) / app_name / "logs"
    if sys.platform == "darwin":
        return home / "Library" / "Logs" / app_name
    return Path(os.environ.get("XDG_DATA_HOME", home / ".local" / "share")) / app_name / "logs"


def _file_handler(path: Path, level: int, max_mb: int, backups: int) -> RotatingFileHandler:
    handler = RotatingFileHandler(path, maxBytes=max_mb * _MB, backupCount=backups, encoding="utf-8")
    handler.setLevel(level)
    handler.setFormatter(_FILE_FORMAT)
    setattr(handler, _OWNED, True)
    return handler


def _drop_owned_handlers(logger: logging.Logger) -> None:
    for handler in list(logger.handlers):
        if getattr(handler, _OWNED, False):
            logger.removeHandler(handler)
            handler.close()


def setup_logging(app_name: str = "OAEMetadata", console_level: int = logging.INFO) -> Path:
    """Install the file and console handlers and return the log directory.

    Handlers from an earlier call are replaced, so repeated calls do not
    duplicate output.
    """

    log_dir = get_log_directory(app_name)
    log_dir.mkdir(parents=True, exist_ok=True)

    root = logging.getLogger()
    package = logging.getLogger("oaemeta")
    _drop_owned_handlers(root)
    _drop_owned_handlers(package)

    root.setLevel(logging.INFO)
    root.addHandler(_file_handler(log_dir / "errors.log", logging.ERROR, 5, 3))

    package.setLevel(logging.DEBUG)
    package.addHandler(_file_handler(log_dir / "oaemeta.log", logging.DEBUG, 10, 5))
    console = logging.StreamHandler(sys.stderr)
    console.setLevel(console_level)
    console.setFormatter(logging.Formatter("%(levelname)-8s | %(name)s | %(message)s"))
    setattr(console, _OWNED, True)
    package.addHandler(console)

    # Per-field resolution chatter stays out of the package log.
    logging.getLogger("oaemeta.core.linking").setLevel(logging.INFO)

    logging.getLogger(__name__).info("%s logging to %s", app_name, log_dir)
    return log_dir
