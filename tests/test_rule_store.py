"""Tests for the persistent rule store."""

import json
from pathlib import Path

import pytest

from paneguard.core import config as config_module
from paneguard.core.config import (
    DEFAULT_ALLOW_RULES,
    DEFAULT_DENY_RULES,
    default_document,
)
from paneguard.core.errors import ConfigInvalid, ConfigMissing, InvalidPattern, PersistenceError
from paneguard.core.rule_store import RULE_PRESETS, RuleStore
from paneguard.utils.permissions.rule_syntax import Polarity, RuleCategory


def _read_json(path: Path) -> dict:
    return json.loads(path.read_text(encoding="utf-8"))


def test_load_missing_document_raises(settings_path):
    with pytest.raises(ConfigMissing) as excinfo:
        RuleStore.load(settings_path)
    assert excinfo.value.error_code == "config_missing"
    assert not settings_path.exists()


def test_load_or_create_writes_defaults(settings_path):
    store = RuleStore.load_or_create(settings_path)

    data = _read_json(settings_path)
    assert data["permissions"]["allow"] == list(DEFAULT_ALLOW_RULES)
    assert data["permissions"]["deny"] == list(DEFAULT_DENY_RULES)
    assert data["directoryRestrictions"]["enabled"] is True
    assert data["directoryRestrictions"]["allowedDirectories"] == [
        "queue",
        "status",
        "config",
        "memory",
    ]
    assert data["_comment"]["version"] == "1.0.0"
    assert store.raw_rules(Polarity.ALLOW) == list(DEFAULT_ALLOW_RULES)


def test_add_rule_is_idempotent(store, settings_path):
    assert store.add_rule(RuleCategory.COMMAND, Polarity.ALLOW, "npm test") is True
    assert store.add_rule(RuleCategory.COMMAND, Polarity.ALLOW, "npm test") is False

    allow = _read_json(settings_path)["permissions"]["allow"]
    assert allow.count("Bash(npm test)") == 1
    assert allow[-1] == "Bash(npm test)"


def test_add_rule_text_compares_canonical_forms(store):
    assert store.add_rule_text(Polarity.DENY, "npm publish") is True
    assert store.add_rule_text(Polarity.DENY, "Bash(npm publish)") is False
    assert store.raw_rules(Polarity.DENY).count("Bash(npm publish)") == 1


def test_existing_default_rule_is_not_duplicated(store):
    assert store.add_rule(RuleCategory.COMMAND, Polarity.ALLOW, "ls:*") is False


def test_remove_rule(store, settings_path):
    assert store.remove_rule(RuleCategory.COMMAND, Polarity.DENY, "sudo:*") is True
    assert store.remove_rule(RuleCategory.COMMAND, Polarity.DENY, "sudo:*") is False
    assert "Bash(sudo:*)" not in _read_json(settings_path)["permissions"]["deny"]
    remaining = store.find_match(RuleCategory.COMMAND, Polarity.DENY, "sudo ls")
    # "su:*" is a literal prefix of "sudo ls" and still matches.
    assert remaining is not None
    assert remaining.canonical_rule == "Bash(su:*)"
    assert store.find_match(RuleCategory.COMMAND, Polarity.DENY, "chmod 777 x") is not None


def test_reset_then_load_round_trip(store, settings_path):
    store.add_rule(RuleCategory.WRITE, Polarity.ALLOW, "src/*")
    store.remove_rule(RuleCategory.COMMAND, Polarity.ALLOW, "pwd")

    store.reset()
    reloaded = RuleStore.load(settings_path)

    expected = default_document()
    assert reloaded.document.permissions == expected.permissions
    assert reloaded.document.restrictions == expected.restrictions


@pytest.mark.parametrize("pattern", ["", "  ", "git * push"])
def test_invalid_pattern_is_rejected_before_mutation(store, settings_path, pattern):
    before = settings_path.read_bytes()
    with pytest.raises(InvalidPattern):
        store.add_rule(RuleCategory.COMMAND, Polarity.ALLOW, pattern)
    assert settings_path.read_bytes() == before


def test_failed_write_leaves_previous_document(store, settings_path, monkeypatch):
    before = settings_path.read_bytes()

    def _failing_replace(src, dst):
        raise OSError("disk full")

    monkeypatch.setattr(config_module.os, "replace", _failing_replace)

    with pytest.raises(PersistenceError) as excinfo:
        store.add_rule(RuleCategory.COMMAND, Polarity.ALLOW, "make build")

    assert excinfo.value.error_code == "persistence_error"
    assert settings_path.read_bytes() == before
    assert "Bash(make build)" not in store.raw_rules(Polarity.ALLOW)
    leftovers = [p for p in settings_path.parent.iterdir() if p.name.startswith(".settings_")]
    assert leftovers == []


def test_mutation_rereads_document_from_disk(store, settings_path):
    data = _read_json(settings_path)
    data["permissions"]["allow"].append("Bash(make:*)")
    settings_path.write_text(json.dumps(data), encoding="utf-8")

    store.add_rule(RuleCategory.COMMAND, Polarity.ALLOW, "cargo build")

    allow = _read_json(settings_path)["permissions"]["allow"]
    assert "Bash(make:*)" in allow
    assert "Bash(cargo build)" in allow


def test_unknown_keys_are_preserved(settings_path):
    settings_path.parent.mkdir(parents=True)
    settings_path.write_text(
        json.dumps({"permissions": {"allow": [], "deny": []}, "env": {"FOO": "1"}}),
        encoding="utf-8",
    )
    store = RuleStore.load(settings_path)
    store.add_rule(RuleCategory.COMMAND, Polarity.ALLOW, "echo hi")

    data = _read_json(settings_path)
    assert data["env"] == {"FOO": "1"}
    assert data["permissions"]["allow"] == ["Bash(echo hi)"]


def test_missing_restrictions_section_means_enabled(settings_path):
    settings_path.parent.mkdir(parents=True)
    settings_path.write_text(json.dumps({"permissions": {"allow": ["Bash(pwd)"]}}), encoding="utf-8")

    store = RuleStore.load(settings_path)

    assert store.document.directory_restrictions is None
    assert store.document.restrictions.enabled is True


@pytest.mark.parametrize("content", ["{not json", "[1, 2]", '{"permissions": {"allow": "pwd"}}'])
def test_invalid_document_raises_config_invalid(settings_path, content):
    settings_path.parent.mkdir(parents=True)
    settings_path.write_text(content, encoding="utf-8")
    with pytest.raises(ConfigInvalid):
        RuleStore.load(settings_path)


def test_unparseable_persisted_rule_is_skipped_but_kept(settings_path):
    settings_path.parent.mkdir(parents=True)
    settings_path.write_text(
        json.dumps({"permissions": {"allow": ["Unknown(x)", "Bash(pwd)"], "deny": []}}),
        encoding="utf-8",
    )
    store = RuleStore.load(settings_path)

    assert store.raw_rules(Polarity.ALLOW) == ["Unknown(x)", "Bash(pwd)"]
    assert [r.canonical_rule for r in store.rules(RuleCategory.COMMAND, Polarity.ALLOW)] == [
        "Bash(pwd)"
    ]


def test_iter_rules_filters_by_category(store):
    write_rules = [rule.canonical_rule for _, rule in store.iter_rules(RuleCategory.WRITE)]
    assert "Write(queue/*)" in write_rules
    assert "Write(~/.ssh/*)" in write_rules
    assert all(rule.startswith("Write(") for rule in write_rules)


def test_toggle_directory_restrictions(store, settings_path):
    assert store.toggle_directory_restrictions() is False
    assert _read_json(settings_path)["directoryRestrictions"]["enabled"] is False
    assert store.toggle_directory_restrictions() is True
    assert store.document.restrictions.enabled is True


def test_add_allowed_directory_strips_trailing_slash(store, settings_path):
    assert store.add_allowed_directory("docs/") is True
    assert store.add_allowed_directory("docs") is False
    assert _read_json(settings_path)["directoryRestrictions"]["allowedDirectories"][-1] == "docs"


def test_add_allowed_file_rejects_nested_paths(store):
    with pytest.raises(InvalidPattern):
        store.add_allowed_file("docs/notes.md")
    assert store.add_allowed_file("notes.md") is True


def test_add_external_pattern_validation(store, settings_path):
    with pytest.raises(InvalidPattern):
        store.add_external_pattern("relative/dir/*")
    with pytest.raises(InvalidPattern):
        store.add_external_pattern("/opt/*/shared")

    assert store.add_external_pattern("/opt/shared/*") is True
    assert store.add_external_pattern("/opt/shared/*") is False
    data = _read_json(settings_path)
    assert data["directoryRestrictions"]["externalAccess"]["allowedPatterns"] == ["/opt/shared/*"]


def test_apply_preset(store):
    added = store.apply_preset("docker")
    assert added == list(RULE_PRESETS["docker"])
    assert store.apply_preset("docker") == []

    with pytest.raises(KeyError):
        store.apply_preset("nope")
