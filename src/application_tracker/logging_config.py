"""Logging for the tracker CLI and the daily scan scheduler.

The level comes from ``--log-level``, then ``APPTRACK_LOG_LEVEL``, then
``app.log_level`` in config.yaml. A log file (``--log-file``,
``APPTRACK_LOG_FILE`` or ``app.log_file``) rolls over at midnight, so each
file holds one day's scans.
"""
import logging
import logging.handlers
import os
from pathlib import Path
from typing import Any, Mapping, Optional

LOG_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"
DEFAULT_BACKUP_DAYS = 7

CONSOLE_HANDLER = "apptrack.console"
FILE_HANDLER = "apptrack.file"

# googleapiclient logs every discovery-cache miss at WARNING
NOISY_LOGGERS = {
    "googleapiclient": logging.WARNING,
    "googleapiclient.discovery_cache": logging.ERROR,
    "google_auth_oauthlib": logging.WARNING,
    "urllib3": logging.WARNING,
    "apscheduler": logging.WARNING,
}


def resolve_level(level: Optional[str] = None, app: Optional[Mapping[str, Any]] = None) -> int:
    """Numeric level from the first source that sets one; INFO otherwise."""
    name = level or os.getenv("APPTRACK_LOG_LEVEL") or (app or {}).get("log_level") or "INFO"
    value = logging.getLevelName(str(name).strip().upper())
    if not isinstance(value, int):
        raise ValueError(f"unknown log level {name!r}; use DEBUG, INFO, WARNING or ERROR")
    return value


def _file_handler(path: str, backups: int) -> logging.Handler:
    log_path = Path(path)
    log_path.parent.mkdir(parents=True, exist_ok=True)
    return logging.handlers.TimedRotatingFileHandler(
        log_path, when="midnight", backupCount=backups, encoding="utf-8"
    )


def setup_logging(
    level: Optional[str] = None,
    log_file: Optional[str] = None,
    app: Optional[Mapping[str, Any]] = None,
) -> logging.Logger:
    """Install the console (and optional file) handler on the root logger.

    Handlers are named, so calling this again replaces them instead of
    stacking a second copy; any other root handlers are left alone.
    """
    app = app or {}
    root = logging.getLogger()
    root.setLevel(resolve_level(level, app))

    fmt = logging.Formatter(LOG_FORMAT, datefmt=DATE_FORMAT)
    for handler in [h for h in root.handlers if h.get_name() in (CONSOLE_HANDLER, FILE_HANDLER)]:
        root.removeHandler(handler)
        handler.close()

    console = logging.StreamHandler()
    console.set_name(CONSOLE_HANDLER)
    console.setFormatter(fmt)
    root.addHandler(console)

    path = log_file or os.getenv("APPTRACK_LOG_FILE") or app.get("log_file")
    if path:
        file_handler = _file_handler(path, int(app.get("log_backup_days", DEFAULT_BACKUP_DAYS)))
        file_handler.set_name(FILE_HANDLER)
        file_handler.setFormatter(fmt)
        root.addHandler(file_handler)

    for name, noisy_level in NOISY_LOGGERS.items():
        logging.getLogger(name).setLevel(noisy_level)
    return root
