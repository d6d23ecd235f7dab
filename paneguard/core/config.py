"""Configuration management for Paneguard.

The rule document is the project's ``.claude/settings.json``: a
``permissions`` section with ordered ``allow``/``deny`` rule lists and an
optional ``directoryRestrictions`` section. Keys this module does not know
about are preserved on save.
"""

import json
import os
import tempfile
from pathlib import Path
from typing import Any, Dict, Optional

from pydantic import BaseModel, Field, ValidationError, field_validator

from paneguard.core.errors import ConfigInvalid, ConfigMissing, PersistenceError
from paneguard.utils.log import get_logger


logger = get_logger()

SETTINGS_ENV_VAR = "PANEGUARD_SETTINGS"
PROJECT_ROOT_ENV_VAR = "PANEGUARD_PROJECT_ROOT"
SETTINGS_RELATIVE_PATH = Path(".claude") / "settings.json"

DEFAULT_ALLOW_RULES: tuple[str, ...] = (
    "Bash(date:*)",
    "Bash(pwd)",
    "Bash(ls:*)",
    "Bash(cat:*)",
    "Bash(head:*)",
    "Bash(tail:*)",
    "Bash(wc:*)",
    "Bash(tmux send-keys:*)",
    "Bash(tmux capture-pane:*)",
    "Bash(tmux display-message:*)",
    "Bash(tmux list-sessions)",
    "Bash(tmux list-panes:*)",
    "Bash(mkdir -p:*)",
    "Bash(echo:*)",
    "Read(*)",
    "Write(queue/*)",
    "Write(status/*)",
    "Write(config/*)",
    "Write(dashboard.md)",
    "Write(memory/*)",
    "Edit(queue/*)",
    "Edit(status/*)",
    "Edit(config/*)",
    "Edit(dashboard.md)",
)

DEFAULT_DENY_RULES: tuple[str, ...] = (
    "Bash(rm -rf /*)",
    "Bash(rm -rf ~/*)",
    "Bash(chmod 777:*)",
    "Bash(sudo:*)",
    "Bash(su:*)",
    "Write(~/.ssh/*)",
    "Write(~/.aws/*)",
    "Write(~/.config/*)",
    "Read(~/.ssh/*)",
    "Read(~/.aws/*)",
)

DEFAULT_ALLOWED_DIRECTORIES: tuple[str, ...] = ("queue", "status", "config", "memory")
DEFAULT_ALLOWED_FILES: tuple[str, ...] = ("dashboard.md",)


def _unique(values: list[str]) -> list[str]:
    """Drop repeated entries, keeping the first occurrence."""
    seen: set[str] = set()
    unique: list[str] = []
    for value in values:
        if value not in seen:
            seen.add(value)
            unique.append(value)
    return unique


class PermissionsSection(BaseModel):
    """Ordered allow/deny rule lists."""

    allow: list[str] = Field(default_factory=list)
    deny: list[str] = Field(default_factory=list)

    @field_validator("allow", "deny")
    @classmethod
    def _collapse_duplicates(cls, rules: list[str]) -> list[str]:
        return _unique(rules)


class ExternalAccess(BaseModel):
    """Absolute-path prefixes granted as exceptions to the absolute-path denial."""

    model_config = {"populate_by_name": True}

    allowed_patterns: list[str] = Field(default_factory=list, alias="allowedPatterns")

    @field_validator("allowed_patterns")
    @classmethod
    def _collapse_duplicates(cls, patterns: list[str]) -> list[str]:
        return _unique(patterns)


class DirectoryRestrictions(BaseModel):
    """Directory and root-file allow-lists consulted by the path classifier."""

    model_config = {"populate_by_name": True}

    enabled: bool = True
    allowed_directories: list[str] = Field(default_factory=list, alias="allowedDirectories")
    allowed_files: list[str] = Field(default_factory=list, alias="allowedFiles")
    external_access: ExternalAccess = Field(default_factory=ExternalAccess, alias="externalAccess")

    @field_validator("allowed_directories", "allowed_files")
    @classmethod
    def _collapse_duplicates(cls, names: list[str]) -> list[str]:
        return _unique(names)


class RuleDocument(BaseModel):
    """The persisted settings document."""

    model_config = {"populate_by_name": True, "extra": "allow"}

    permissions: PermissionsSection = Field(default_factory=PermissionsSection)
    directory_restrictions: Optional[DirectoryRestrictions] = Field(
        default=None, alias="directoryRestrictions"
    )
    comment: Optional[Dict[str, Any]] = Field(default=None, alias="_comment")

    @property
    def restrictions(self) -> DirectoryRestrictions:
        """Effective restrictions; a missing section means enabled with no extras."""
        return self.directory_restrictions or DirectoryRestrictions()

    def to_json(self) -> str:
        return self.model_dump_json(indent=2, by_alias=True, exclude_none=True)


def default_document() -> RuleDocument:
    """Build a fresh copy of the hard-coded default document."""
    return RuleDocument(
        permissions=PermissionsSection(
            allow=list(DEFAULT_ALLOW_RULES),
            deny=list(DEFAULT_DENY_RULES),
        ),
        directory_restrictions=DirectoryRestrictions(
            enabled=True,
            allowed_directories=list(DEFAULT_ALLOWED_DIRECTORIES),
            allowed_files=list(DEFAULT_ALLOWED_FILES),
        ),
        comment={"description": "paneguard permission settings", "version": "1.0.0"},
    )


def resolve_project_root(project_root: Optional[Path] = None) -> Path:
    """Return the project root: explicit value, then environment, then cwd."""
    if project_root is not None:
        return Path(project_root)
    env_root = os.getenv(PROJECT_ROOT_ENV_VAR)
    if env_root:
        return Path(env_root)
    return Path.cwd()


def resolve_settings_path(
    project_root: Optional[Path] = None, settings_path: Optional[Path] = None
) -> Path:
    """Return the settings document path for a project."""
    if settings_path is not None:
        return Path(settings_path)
    env_path = os.getenv(SETTINGS_ENV_VAR)
    if env_path:
        return Path(env_path)
    return resolve_project_root(project_root) / SETTINGS_RELATIVE_PATH


def read_document(path: Path) -> RuleDocument:
    """Load the settings document from disk.

    Raises:
        ConfigMissing: if the file does not exist.
        ConfigInvalid: if the file cannot be read or fails validation.
    """
    if not path.exists():
        raise ConfigMissing(path)
    try:
        data = json.loads(path.read_text(encoding="utf-8"))
    except (json.JSONDecodeError, OSError, UnicodeDecodeError) as exc:
        logger.warning(
            "Error loading settings: %s: %s",
            type(exc).__name__,
            exc,
            extra={"path": str(path)},
        )
        raise ConfigInvalid(path, str(exc)) from exc
    if not isinstance(data, dict):
        raise ConfigInvalid(path, "root must be an object")
    try:
        document = RuleDocument.model_validate(data)
    except ValidationError as exc:
        raise ConfigInvalid(path, str(exc)) from exc
    logger.debug(
        "[config] Loaded settings",
        extra={
            "path": str(path),
            "allow_count": len(document.permissions.allow),
            "deny_count": len(document.permissions.deny),
        },
    )
    return document


def write_document(path: Path, document: RuleDocument) -> None:
    """Atomically replace the settings document on disk.

    The document is serialized before anything touches the filesystem, then
    written to a temporary file next to ``path`` and moved into place, so a
    failure leaves the previous file intact.

    Raises:
        PersistenceError: on serialization or I/O failure.
    """
    try:
        serialized = document.to_json()
    except (TypeError, ValueError) as exc:
        raise PersistenceError(path, str(exc)) from exc

    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        fd, temp_path = tempfile.mkstemp(dir=str(path.parent), prefix=".settings_", suffix=".tmp")
    except OSError as exc:
        raise PersistenceError(path, str(exc)) from exc

    try:
        with os.fdopen(fd, "w", encoding="utf-8") as handle:
            handle.write(serialized)
            handle.write("\n")
        os.replace(temp_path, path)
    except OSError as exc:
        raise PersistenceError(path, str(exc)) from exc
    finally:
        if os.path.exists(temp_path):
            try:
                os.unlink(temp_path)
            except OSError:
                pass

    logger.debug(
        "[config] Saved settings",
        extra={
            "path": str(path),
            "allow_count": len(document.permissions.allow),
            "deny_count": len(document.permissions.deny),
        },
    )


__all__ = [
    "DEFAULT_ALLOWED_DIRECTORIES",
    "DEFAULT_ALLOWED_FILES",
    "DEFAULT_ALLOW_RULES",
    "DEFAULT_DENY_RULES",
    "DirectoryRestrictions",
    "ExternalAccess",
    "PROJECT_ROOT_ENV_VAR",
    "PermissionsSection",
    "RuleDocument",
    "SETTINGS_ENV_VAR",
    "default_document",
    "read_document",
    "resolve_project_root",
    "resolve_settings_path",
    "write_document",
]
