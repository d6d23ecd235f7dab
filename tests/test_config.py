"""Test configuration management."""

import json
from pathlib import Path

import pytest

from paneguard.core.config import (
    PROJECT_ROOT_ENV_VAR,
    SETTINGS_ENV_VAR,
    DirectoryRestrictions,
    RuleDocument,
    default_document,
    read_document,
    resolve_project_root,
    resolve_settings_path,
    write_document,
)
from paneguard.core.errors import ConfigMissing


def test_settings_path_precedence(tmp_path, monkeypatch):
    explicit = tmp_path / "explicit.json"
    assert resolve_settings_path(tmp_path, explicit) == explicit
    assert resolve_settings_path(tmp_path) == tmp_path / ".claude" / "settings.json"

    monkeypatch.setenv(SETTINGS_ENV_VAR, str(tmp_path / "env.json"))
    assert resolve_settings_path(tmp_path) == tmp_path / "env.json"
    assert resolve_settings_path(tmp_path, explicit) == explicit


def test_project_root_precedence(tmp_path, monkeypatch):
    monkeypatch.chdir(tmp_path)
    assert resolve_project_root() == Path.cwd()

    monkeypatch.setenv(PROJECT_ROOT_ENV_VAR, "/srv/agents")
    assert resolve_project_root() == Path("/srv/agents")
    assert resolve_project_root(tmp_path) == tmp_path


def test_document_uses_camel_case_aliases():
    payload = json.loads(default_document().to_json())
    restrictions = payload["directoryRestrictions"]
    assert set(restrictions) == {"enabled", "allowedDirectories", "allowedFiles", "externalAccess"}
    assert restrictions["externalAccess"] == {"allowedPatterns": []}
    assert payload["_comment"]["description"]


def test_missing_optional_sections_get_defaults():
    document = RuleDocument.model_validate({})
    assert document.permissions.allow == []
    assert document.permissions.deny == []
    assert document.restrictions == DirectoryRestrictions()
    assert "directoryRestrictions" not in json.loads(document.to_json())


def test_duplicate_rules_collapse_on_load():
    document = RuleDocument.model_validate(
        {"permissions": {"allow": ["Bash(pwd)", "Bash(ls:*)", "Bash(pwd)"]}}
    )
    assert document.permissions.allow == ["Bash(pwd)", "Bash(ls:*)"]


def test_write_then_read(tmp_path):
    path = tmp_path / "nested" / "settings.json"
    write_document(path, default_document())

    assert path.read_text(encoding="utf-8").endswith("\n")
    assert read_document(path).permissions == default_document().permissions


def test_read_missing_document(tmp_path):
    with pytest.raises(ConfigMissing):
        read_document(tmp_path / "absent.json")
