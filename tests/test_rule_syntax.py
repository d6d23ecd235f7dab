"""Tests for permission rule syntax parsing and matching."""

import pytest

from paneguard.core.errors import InvalidPattern
from paneguard.utils.permissions.rule_syntax import (
    RuleCategory,
    build_rule,
    matches,
    normalize_permission_rule,
    parse_permission_rule,
    split_pattern,
)


def test_exact_pattern_requires_equal_action():
    assert matches("pwd", "pwd")
    assert not matches("pwd", "pwd -P")
    assert not matches("pwd", "pw")


def test_wildcard_matches_by_literal_prefix():
    assert matches("git *", "git status")
    assert matches("git *", "git ")
    assert not matches("git *", "git")
    assert not matches("git *", "gitk")


def test_matching_is_case_sensitive_and_does_not_split_words():
    assert not matches("Git *", "git status")
    assert not matches("git status", "git  status")
    assert not matches("rm -rf *", "rm  -rf /")


def test_split_pattern_uses_first_wildcard():
    assert split_pattern("a*b*") == ("a", True)
    assert split_pattern("plain") == ("plain", False)
    assert matches("a*b*", "a-anything")


def test_parse_tool_wrapped_rules():
    parsed = parse_permission_rule("Write(queue/*)")
    assert parsed.category is RuleCategory.WRITE
    assert parsed.pattern == "queue/*"
    assert parsed.prefix == "queue/"
    assert parsed.has_wildcard
    assert parsed.canonical_rule == "Write(queue/*)"
    assert parsed.matches("queue/tasks/a.yaml")
    assert not parsed.matches("status/a.yaml")


def test_legacy_command_suffix():
    parsed = parse_permission_rule("Bash(ls:*)")
    assert parsed.category is RuleCategory.COMMAND
    assert parsed.prefix == "ls"
    assert parsed.used_legacy_suffix is True
    assert parsed.canonical_rule == "Bash(ls:*)"
    assert parsed.matches("ls -la")
    assert parsed.matches("ls")


def test_legacy_suffix_only_applies_to_commands():
    parsed = parse_permission_rule("Read(notes:*)")
    assert parsed.prefix == "notes:"
    assert parsed.used_legacy_suffix is False
    assert parsed.matches("notes:today")
    assert not parsed.matches("notes")


def test_bare_rule_is_a_command():
    assert normalize_permission_rule("npm test") == "Bash(npm test)"
    assert parse_permission_rule("  npm test  ").category is RuleCategory.COMMAND


@pytest.mark.parametrize(
    "rule",
    ["", "   ", "Bash()", "Bash(git * push)", "Foo(bar)", "Bash(echo\x00hi)"],
)
def test_malformed_rules_are_rejected(rule):
    with pytest.raises(InvalidPattern) as excinfo:
        parse_permission_rule(rule)
    assert excinfo.value.error_code == "invalid_pattern"


def test_build_rule_rejects_non_strings():
    with pytest.raises(InvalidPattern):
        build_rule(RuleCategory.COMMAND, None)  # type: ignore[arg-type]
