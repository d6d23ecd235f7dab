"""Relay of agent messages into tmux panes.

Every message is checked for shell metacharacters and sanitized before it is
handed to the send primitive, regardless of any permission verdict.
"""

from __future__ import annotations

import re
import subprocess
from dataclasses import dataclass
from typing import Optional, Protocol, Sequence

from paneguard.core.errors import InvalidTarget, RelayError
from paneguard.utils.log import get_logger
from paneguard.utils.sanitize import DetectionResult, SanitizationProfile, detect, sanitize

logger = get_logger()

DEFAULT_SESSIONS: tuple[str, ...] = ("shogun", "multiagent")
ACCEPT_KEY = "Enter"
_PREVIEW_LIMIT = 50


class PaneSender(Protocol):
    def has_session(self, session: str) -> bool: ...

    def send_keys(self, target: str, keys: str, *, literal: bool = False) -> None: ...


class TmuxSender:
    """Send primitive backed by the ``tmux`` binary."""

    def __init__(self, tmux_binary: str = "tmux", timeout: float = 5) -> None:
        self.tmux_binary = tmux_binary
        self.timeout = timeout

    def has_session(self, session: str) -> bool:
        try:
            result = subprocess.run(
                [self.tmux_binary, "has-session", "-t", session],
                capture_output=True,
                text=True,
                timeout=self.timeout,
            )
            return result.returncode == 0
        except (subprocess.SubprocessError, FileNotFoundError):
            return False

    def send_keys(self, target: str, keys: str, *, literal: bool = False) -> None:
        args = [self.tmux_binary, "send-keys", "-t", target]
        if literal:
            args.append("-l")
        args.append(keys)
        try:
            result = subprocess.run(args, capture_output=True, text=True, timeout=self.timeout)
        except (subprocess.SubprocessError, FileNotFoundError) as exc:
            raise RelayError(f"tmux send-keys failed: {exc}") from exc
        if result.returncode != 0:
            detail = result.stderr.strip() or f"exit status {result.returncode}"
            raise RelayError(f"tmux send-keys to {target} failed: {detail}")


@dataclass(frozen=True)
class RelayResult:
    target: str
    original: str
    sanitized: str
    detection: DetectionResult
    sent: bool

    @property
    def changed(self) -> bool:
        return self.original != self.sanitized


def preview(text: str, limit: int = _PREVIEW_LIMIT) -> str:
    if len(text) <= limit:
        return text
    return text[:limit] + "..."


def session_of(target: str) -> str:
    return target.split(":", 1)[0]


class SafeRelay:
    """Validate, sanitize and deliver messages to allowed tmux panes."""

    def __init__(
        self,
        sender: Optional[PaneSender] = None,
        allowed_sessions: Sequence[str] = DEFAULT_SESSIONS,
    ) -> None:
        self.sender = sender or TmuxSender()
        self.allowed_sessions = tuple(allowed_sessions)
        self._target_patterns = [
            re.compile(rf"^{re.escape(session)}(:[0-9]+\.[0-9]+)?$")
            for session in self.allowed_sessions
        ]

    def is_valid_target(self, target: str) -> bool:
        return any(pattern.fullmatch(target) for pattern in self._target_patterns)

    def validate_target(self, target: str) -> str:
        if not isinstance(target, str) or not self.is_valid_target(target):
            allowed = ", ".join(f"{s}[:W.P]" for s in self.allowed_sessions)
            raise InvalidTarget(str(target), allowed)
        return target

    def send(
        self,
        target: str,
        message: str,
        *,
        strict: bool = False,
        press_enter: bool = True,
        validate_only: bool = False,
    ) -> RelayResult:
        """Sanitize ``message`` and type it into ``target``.

        Raises:
            InvalidTarget: if ``target`` is not an allowed pane.
            RelayError: if the session is missing or tmux fails.
        """
        self.validate_target(target)

        detection = detect(message)
        if detection.dangerous:
            logger.warning(
                "[relay] Dangerous sequences detected; sanitizing",
                extra={"target": target, "patterns": list(detection.patterns)},
            )

        profile = SanitizationProfile.STRICT if strict else SanitizationProfile.STANDARD
        sanitized = sanitize(message, profile)
        if sanitized != message:
            logger.info(
                "[relay] Message sanitized",
                extra={
                    "target": target,
                    "profile": profile.value,
                    "original": preview(message),
                    "sanitized": preview(sanitized),
                },
            )

        if validate_only:
            return RelayResult(target, message, sanitized, detection, sent=False)

        session = session_of(target)
        if not self.sender.has_session(session):
            raise RelayError(f"tmux session '{session}' does not exist")

        self.sender.send_keys(target, sanitized, literal=True)
        if press_enter:
            self.sender.send_keys(target, ACCEPT_KEY)

        logger.info(
            "[relay] Message sent",
            extra={"target": target, "press_enter": press_enter, "length": len(sanitized)},
        )
        return RelayResult(target, message, sanitized, detection, sent=True)


__all__ = [
    "ACCEPT_KEY",
    "DEFAULT_SESSIONS",
    "PaneSender",
    "RelayResult",
    "SafeRelay",
    "TmuxSender",
    "preview",
    "session_of",
]
