"""Permission rule syntax parsing and matching helpers.

Rules are persisted as ``Tool(pattern)`` strings, e.g. ``Bash(git status)``,
``Bash(ls:*)`` or ``Write(queue/*)``. A pattern is a literal prefix with an
optional trailing ``*``; commands also accept the legacy ``:*`` suffix. No
shell-word splitting or regular expressions are involved, so a rule matches
by literal prefix only.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from enum import Enum
from typing import Optional, Union

from paneguard.core.errors import InvalidPattern


_TOOL_WITH_SPEC_RE = re.compile(r"^([A-Za-z0-9_-]+)\((.*)\)$", re.DOTALL)
_CONTROL_CHARS_RE = re.compile(r"[\x00-\x1f\x7f]")

WILDCARD = "*"
LEGACY_COMMAND_WILDCARD = ":*"


class RuleCategory(str, Enum):
    """Action categories a rule can govern."""

    COMMAND = "command"
    READ = "read"
    WRITE = "write"
    EDIT = "edit"

    @property
    def tool_name(self) -> str:
        return _CATEGORY_TOOL_NAMES[self]

    @classmethod
    def from_tool_name(cls, tool_name: str) -> Optional["RuleCategory"]:
        for category, name in _CATEGORY_TOOL_NAMES.items():
            if name == tool_name:
                return category
        return None

    @property
    def is_path(self) -> bool:
        return self is not RuleCategory.COMMAND


class Polarity(str, Enum):
    """Whether a rule grants or refuses an action."""

    ALLOW = "allow"
    DENY = "deny"


_CATEGORY_TOOL_NAMES = {
    RuleCategory.COMMAND: "Bash",
    RuleCategory.READ: "Read",
    RuleCategory.WRITE: "Write",
    RuleCategory.EDIT: "Edit",
}


@dataclass(frozen=True)
class ParsedPermissionRule:
    """Parsed form of a permission rule."""

    category: RuleCategory
    pattern: str
    prefix: str
    has_wildcard: bool
    canonical_rule: str
    used_legacy_suffix: bool = False

    def matches(self, action: str) -> bool:
        if self.has_wildcard:
            return action.startswith(self.prefix)
        return action == self.prefix


def split_pattern(pattern: str) -> tuple[str, bool]:
    """Split a pattern at its first ``*`` into ``(prefix, has_wildcard)``."""
    head, star, _ = pattern.partition(WILDCARD)
    return head, bool(star)


def matches(pattern: Union[str, ParsedPermissionRule], action: str) -> bool:
    """Return whether an action string matches a pattern.

    Without a wildcard the action must equal the pattern; with one, the action
    must start with the text before the first ``*``. Case-sensitive.
    """
    if isinstance(pattern, ParsedPermissionRule):
        return pattern.matches(action)
    prefix, has_wildcard = split_pattern(pattern)
    if has_wildcard:
        return action.startswith(prefix)
    return action == prefix


def validate_pattern(pattern: object, category: RuleCategory) -> tuple[str, bool, bool]:
    """Validate a rule pattern and return ``(prefix, has_wildcard, used_legacy)``.

    Raises:
        InvalidPattern: if the pattern is empty, contains control characters,
            or has a wildcard anywhere other than the end.
    """
    if not isinstance(pattern, str):
        raise InvalidPattern(pattern, "pattern must be a string")
    if not pattern.strip():
        raise InvalidPattern(pattern, "pattern is empty")
    if _CONTROL_CHARS_RE.search(pattern):
        raise InvalidPattern(pattern, "pattern contains control characters")

    used_legacy = False
    if category is RuleCategory.COMMAND and pattern.endswith(LEGACY_COMMAND_WILDCARD):
        prefix, has_wildcard, used_legacy = pattern[: -len(LEGACY_COMMAND_WILDCARD)], True, True
    elif pattern.endswith(WILDCARD):
        prefix, has_wildcard = pattern[:-1], True
    else:
        prefix, has_wildcard = pattern, False

    if WILDCARD in prefix:
        raise InvalidPattern(pattern, "a wildcard is only allowed at the end")
    return prefix, has_wildcard, used_legacy


def format_rule(category: RuleCategory, pattern: str) -> str:
    """Render the persisted ``Tool(pattern)`` form."""
    return f"{category.tool_name}({pattern})"


def build_rule(category: RuleCategory, pattern: str) -> ParsedPermissionRule:
    """Validate ``pattern`` and build a rule for ``category``."""
    prefix, has_wildcard, used_legacy = validate_pattern(pattern, category)
    return ParsedPermissionRule(
        category=category,
        pattern=pattern,
        prefix=prefix,
        has_wildcard=has_wildcard,
        canonical_rule=format_rule(category, pattern),
        used_legacy_suffix=used_legacy,
    )


def parse_permission_rule(rule: str) -> ParsedPermissionRule:
    """Parse a persisted rule into its category and pattern.

    Bare values without a ``Tool(...)`` wrapper are treated as command
    patterns, so ``npm test`` and ``Bash(npm test)`` are the same rule.
    """
    if not isinstance(rule, str):
        raise InvalidPattern(rule, "rule must be a string")
    text = rule.strip()
    if not text:
        raise InvalidPattern(rule, "rule is empty")

    match = _TOOL_WITH_SPEC_RE.match(text)
    if match:
        tool_name, inner = match.group(1), match.group(2)
        category = RuleCategory.from_tool_name(tool_name)
        if category is None:
            raise InvalidPattern(rule, f"unknown tool '{tool_name}'")
        return build_rule(category, inner)

    return build_rule(RuleCategory.COMMAND, text)


def normalize_permission_rule(rule: str) -> str:
    """Return the canonical text form of a permission rule."""
    return parse_permission_rule(rule).canonical_rule


__all__ = [
    "LEGACY_COMMAND_WILDCARD",
    "ParsedPermissionRule",
    "Polarity",
    "RuleCategory",
    "WILDCARD",
    "build_rule",
    "format_rule",
    "matches",
    "normalize_permission_rule",
    "parse_permission_rule",
    "split_pattern",
    "validate_pattern",
]
