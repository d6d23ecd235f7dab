"""Pytest configuration and fixtures for all tests."""

from pathlib import Path

import pytest

from paneguard.core.config import PROJECT_ROOT_ENV_VAR, SETTINGS_ENV_VAR
from paneguard.core.rule_store import RuleStore


@pytest.fixture(autouse=True)
def isolate_environment(monkeypatch):
    """Keep settings resolution independent of the developer's environment."""
    monkeypatch.delenv(SETTINGS_ENV_VAR, raising=False)
    monkeypatch.delenv(PROJECT_ROOT_ENV_VAR, raising=False)
    monkeypatch.delenv("PANEGUARD_LOG_LEVEL", raising=False)


@pytest.fixture
def settings_path(tmp_path: Path) -> Path:
    return tmp_path / ".claude" / "settings.json"


@pytest.fixture
def store(settings_path: Path) -> RuleStore:
    """A rule store backed by a freshly written default document."""
    return RuleStore.load_or_create(settings_path)
