"""Logging for Paneguard.

Warnings go to stderr at ``PANEGUARD_LOG_LEVEL``. With ``--audit-log`` every
decision, rule change and relay send is also appended to
``<project>/logs/paneguard_<date>.log``, one line per record with the
``extra=`` fields serialized as JSON.
"""

import json
import logging
import os
import sys
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Optional


LOG_LEVEL_ENV_VAR = "PANEGUARD_LOG_LEVEL"
AUDIT_DIR_NAME = "logs"

# Attributes every LogRecord carries; anything else arrived through ``extra=``.
_RECORD_ATTRIBUTES = frozenset(
    vars(logging.LogRecord("", logging.NOTSET, "", 0, "", None, None))
) | {"message", "asctime"}


class AuditFormatter(logging.Formatter):
    """``<UTC timestamp> [LEVEL] message | {extras}``."""

    def __init__(self) -> None:
        super().__init__("%(asctime)s [%(levelname)s] %(message)s")

    def formatTime(self, record: logging.LogRecord, datefmt: Optional[str] = None) -> str:
        timestamp = datetime.fromtimestamp(record.created, tz=timezone.utc)
        return timestamp.isoformat(timespec="milliseconds").replace("+00:00", "Z")

    def format(self, record: logging.LogRecord) -> str:
        line = super().format(record)
        extras = {
            key: value
            for key, value in vars(record).items()
            if key not in _RECORD_ATTRIBUTES and not key.startswith("_")
        }
        if not extras:
            return line
        return f"{line} | {json.dumps(extras, sort_keys=True, default=str)}"


def audit_log_path(project_path: Path, day: Optional[datetime] = None) -> Path:
    """Audit file for ``day`` (default today) under the project."""
    stamp = (day or datetime.now()).strftime("%Y%m%d")
    return Path(project_path) / AUDIT_DIR_NAME / f"paneguard_{stamp}.log"


class PaneguardLogger:
    """Console logger with an optional per-project audit file."""

    def __init__(self, name: str = "paneguard"):
        self.logger = logging.getLogger(name)
        # The audit file takes debug records; the console filters by level.
        self.logger.setLevel(logging.DEBUG)
        self.logger.propagate = False

        if not self.logger.handlers:
            level_name = os.getenv(LOG_LEVEL_ENV_VAR, "WARNING").upper()
            console = logging.StreamHandler(sys.stderr)
            console.setLevel(getattr(logging, level_name, logging.WARNING))
            console.setFormatter(logging.Formatter("%(levelname)s: %(message)s"))
            self.logger.addHandler(console)

        self.audit_file: Optional[Path] = None
        self._audit_handler: Optional[logging.Handler] = None

    def open_audit_file(self, log_file: Path) -> Path:
        """Route records to ``log_file``, replacing any previous audit file."""
        if self._audit_handler is not None and self.audit_file == log_file:
            return log_file
        self.close_audit_file()

        log_file.parent.mkdir(parents=True, exist_ok=True)
        handler = logging.FileHandler(log_file, encoding="utf-8")
        handler.setLevel(logging.DEBUG)
        handler.setFormatter(AuditFormatter())
        self.logger.addHandler(handler)
        self._audit_handler = handler
        self.audit_file = log_file
        return log_file

    def close_audit_file(self) -> None:
        if self._audit_handler is None:
            return
        self.logger.removeHandler(self._audit_handler)
        self._audit_handler.close()
        self._audit_handler = None
        self.audit_file = None

    def debug(self, message: str, *args: Any, **kwargs: Any) -> None:
        self.logger.debug(message, *args, **kwargs)

    def info(self, message: str, *args: Any, **kwargs: Any) -> None:
        self.logger.info(message, *args, **kwargs)

    def warning(self, message: str, *args: Any, **kwargs: Any) -> None:
        self.logger.warning(message, *args, **kwargs)


_logger: Optional[PaneguardLogger] = None


def get_logger() -> PaneguardLogger:
    """Get the global logger instance."""
    global _logger
    if _logger is None:
        _logger = PaneguardLogger()
    return _logger


def enable_audit_file_logging(project_path: Path) -> Path:
    """Append every record to today's audit file under ``project_path``."""
    logger = get_logger()
    log_file = logger.open_audit_file(audit_log_path(project_path))
    logger.debug("[logging] Audit file opened", extra={"log_file": str(log_file)})
    return log_file
