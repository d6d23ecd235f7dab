"""Error types raised by the policy engine.

Decision outcomes (allow, deny, confirm) are returned as values; only
configuration, persistence, and relay failures are exceptions.
"""

from __future__ import annotations

from pathlib import Path
from typing import Optional


class PaneguardError(Exception):
    """Base error with a stable error code."""

    def __init__(self, error_code: str, message: str) -> None:
        super().__init__(message)
        self.error_code = error_code


class ConfigMissing(PaneguardError):
    """No persisted rule document exists."""

    def __init__(self, path: Path) -> None:
        super().__init__("config_missing", f"Settings file not found: {path}")
        self.path = path


class ConfigInvalid(PaneguardError):
    """The persisted rule document could not be parsed or validated."""

    def __init__(self, path: Path, detail: str) -> None:
        super().__init__("config_invalid", f"Invalid settings file {path}: {detail}")
        self.path = path


class PersistenceError(PaneguardError):
    """Writing the rule document failed; the previous file is untouched."""

    def __init__(self, path: Path, detail: str) -> None:
        super().__init__("persistence_error", f"Failed to write {path}: {detail}")
        self.path = path


class InvalidPattern(PaneguardError):
    """A rule pattern was empty or malformed."""

    def __init__(self, pattern: object, reason: str) -> None:
        super().__init__("invalid_pattern", f"Invalid pattern {pattern!r}: {reason}")
        self.pattern = pattern


class InvalidTarget(PaneguardError):
    """A relay target does not name an allowed tmux pane."""

    def __init__(self, target: str, allowed: Optional[str] = None) -> None:
        message = f"Invalid target pane: {target}"
        if allowed:
            message += f" (allowed: {allowed})"
        super().__init__("invalid_target", message)
        self.target = target


class RelayError(PaneguardError):
    """The tmux send primitive failed."""

    def __init__(self, message: str) -> None:
        super().__init__("relay_error", message)


__all__ = [
    "ConfigInvalid",
    "ConfigMissing",
    "InvalidPattern",
    "InvalidTarget",
    "PaneguardError",
    "PersistenceError",
    "RelayError",
]
