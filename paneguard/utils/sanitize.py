"""Sanitization of agent text before it is relayed into a tmux pane.

The caller wraps the sanitized text in single quotes, so both profiles
escape embedded single quotes as ``'\\''``. Beyond that:

* ``standard`` deletes backticks and escapes ``$(`` / ``${`` with a backslash,
  leaving everything else (including non-ASCII text) untouched.
* ``strict`` deletes backticks, ``$(``, ``${``, ``|``, ``;``, ``&&``, ``||``,
  ``>`` and ``<`` until none remain.

Both profiles delete control characters other than tab, newline and carriage
return. Sanitizing already-sanitized text returns it unchanged, and
sanitization never raises.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from enum import Enum
from typing import Tuple, Union

from paneguard.utils.permissions.rules import DANGEROUS_SEQUENCES, STRICT_REMOVED_SEQUENCES


_CONTROL_CHARS_RE = re.compile(r"[\x00-\x08\x0b\x0c\x0e-\x1f\x7f]")
# ``$`` before ``(`` or ``{`` preceded by an even number of backslashes is live.
_UNESCAPED_EXPANSION_RE = re.compile(r"(?<!\\)((?:\\\\)*)\$(?=[({])")
# An already escaped quote is matched as a unit so it is not escaped twice.
_QUOTE_RE = re.compile(r"'\\''|'")
ESCAPED_QUOTE = "'\\''"


class SanitizationProfile(str, Enum):
    STANDARD = "standard"
    STRICT = "strict"


@dataclass(frozen=True)
class DetectionResult:
    """Which dangerous sequences a text contains."""

    patterns: Tuple[str, ...] = ()
    messages: Tuple[str, ...] = ()

    @property
    def dangerous(self) -> bool:
        return bool(self.patterns)

    @property
    def verdict(self) -> str:
        return "DANGEROUS" if self.dangerous else "SAFE"


def _coerce(text: object) -> str:
    if text is None:
        return ""
    return text if isinstance(text, str) else str(text)


def detect(text: object) -> DetectionResult:
    """Flag shell metacharacters without modifying the text."""
    value = _coerce(text)
    patterns = []
    messages = []
    for sequence, message in DANGEROUS_SEQUENCES:
        if sequence in value:
            patterns.append(sequence)
            messages.append(message)
    return DetectionResult(patterns=tuple(patterns), messages=tuple(messages))


def strip_control_characters(text: str) -> str:
    return _CONTROL_CHARS_RE.sub("", text)


def escape_single_quotes(text: str) -> str:
    return _QUOTE_RE.sub(ESCAPED_QUOTE, text)


def escape_expansions(text: str) -> str:
    """Backslash-escape live ``$(`` and ``${`` sequences."""
    return _UNESCAPED_EXPANSION_RE.sub(lambda m: m.group(1) + "\\$", text)


def remove_strict_sequences(text: str) -> str:
    """Delete every strict-profile sequence, repeating until none remain."""
    previous = None
    while previous != text:
        previous = text
        for sequence in STRICT_REMOVED_SEQUENCES:
            text = text.replace(sequence, "")
    return text


def sanitize(
    text: object, profile: Union[str, SanitizationProfile] = SanitizationProfile.STANDARD
) -> str:
    """Return ``text`` made safe for single-quoted relay into tmux."""
    try:
        selected = SanitizationProfile(profile)
    except ValueError:
        selected = SanitizationProfile.STRICT

    value = strip_control_characters(_coerce(text))
    if selected is SanitizationProfile.STRICT:
        value = remove_strict_sequences(value)
    else:
        value = escape_expansions(value.replace("`", ""))
    return escape_single_quotes(value)


def sanitize_for_tmux(text: object) -> str:
    return sanitize(text, SanitizationProfile.STANDARD)


def sanitize_strict(text: object) -> str:
    return sanitize(text, SanitizationProfile.STRICT)


__all__ = [
    "DetectionResult",
    "SanitizationProfile",
    "detect",
    "escape_expansions",
    "escape_single_quotes",
    "remove_strict_sequences",
    "sanitize",
    "sanitize_for_tmux",
    "sanitize_strict",
    "strip_control_characters",
]
