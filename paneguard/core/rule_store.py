"""Persistent allow/deny rule store.

A :class:`RuleStore` owns one settings document. Every mutation re-reads the
whole document from disk, applies the change to a copy, and replaces the file
atomically; the in-memory state only changes once the write succeeded.
"""

from __future__ import annotations

from pathlib import Path
from typing import Callable, Dict, Iterator, List, Optional, Tuple

from paneguard.core.config import (
    RuleDocument,
    default_document,
    read_document,
    write_document,
)
from paneguard.core.errors import ConfigMissing, InvalidPattern
from paneguard.utils.log import get_logger
from paneguard.utils.permissions.rule_syntax import (
    ParsedPermissionRule,
    Polarity,
    RuleCategory,
    build_rule,
    parse_permission_rule,
)

logger = get_logger()


RULE_PRESETS: Dict[str, Tuple[str, ...]] = {
    "dev": (
        "Bash(npm:*)",
        "Bash(npx:*)",
        "Bash(node:*)",
        "Bash(git:*)",
        "Bash(python:*)",
        "Bash(python3:*)",
        "Bash(pip:*)",
        "Bash(pip3:*)",
    ),
    "files": (
        "Write(src/*)",
        "Write(docs/*)",
        "Write(tests/*)",
        "Edit(src/*)",
        "Edit(docs/*)",
        "Edit(tests/*)",
    ),
    "docker": (
        "Bash(docker:*)",
        "Bash(docker-compose:*)",
    ),
}
RULE_PRESETS["all"] = RULE_PRESETS["dev"] + RULE_PRESETS["files"] + RULE_PRESETS["docker"]


def _canonical_or_raw(rule: str) -> str:
    try:
        return parse_permission_rule(rule).canonical_rule
    except InvalidPattern:
        return rule


def _require_name(value: object, what: str) -> str:
    if not isinstance(value, str) or not value.strip():
        raise InvalidPattern(value, f"{what} is empty")
    if any(ord(ch) < 0x20 or ord(ch) == 0x7F for ch in value):
        raise InvalidPattern(value, f"{what} contains control characters")
    return value.strip()


class RuleStore:
    """Allow/deny rules and directory restrictions backed by one JSON file."""

    def __init__(self, document: RuleDocument, path: Path) -> None:
        self.path = Path(path)
        self._document = document
        self._compiled: Dict[Polarity, List[ParsedPermissionRule]] = {}
        self._compile()

    # ------------------------------------------------------------------
    # Construction
    # ------------------------------------------------------------------

    @classmethod
    def load(cls, path: Path) -> "RuleStore":
        """Load the store from ``path``.

        Raises:
            ConfigMissing: if no document exists at ``path``.
            ConfigInvalid: if the document is unreadable.
        """
        return cls(read_document(Path(path)), path)

    @classmethod
    def load_or_create(cls, path: Path) -> "RuleStore":
        """Load the store, creating the default document when none exists."""
        try:
            return cls.load(path)
        except ConfigMissing:
            logger.info(
                "[rule_store] Settings not found; writing defaults",
                extra={"path": str(path)},
            )
            store = cls(default_document(), path)
            store.save()
            return store

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    @property
    def document(self) -> RuleDocument:
        """A copy of the current document."""
        return self._document.model_copy(deep=True)

    def raw_rules(self, polarity: Polarity) -> List[str]:
        section = self._document.permissions
        return list(section.allow if polarity is Polarity.ALLOW else section.deny)

    def rules(self, category: RuleCategory, polarity: Polarity) -> List[ParsedPermissionRule]:
        """Parsed rules of one (category, polarity) list, in document order."""
        return [rule for rule in self._compiled[polarity] if rule.category is category]

    def iter_rules(
        self, category: Optional[RuleCategory] = None
    ) -> Iterator[Tuple[Polarity, ParsedPermissionRule]]:
        for polarity in (Polarity.ALLOW, Polarity.DENY):
            for rule in self._compiled[polarity]:
                if category is None or rule.category is category:
                    yield polarity, rule

    def find_match(
        self, category: RuleCategory, polarity: Polarity, action: str
    ) -> Optional[ParsedPermissionRule]:
        """Return the first rule of the list that matches ``action``."""
        for rule in self.rules(category, polarity):
            if rule.matches(action):
                return rule
        return None

    # ------------------------------------------------------------------
    # Rule mutations
    # ------------------------------------------------------------------

    def add_rule(self, category: RuleCategory, polarity: Polarity, pattern: str) -> bool:
        """Append a rule unless an identical one exists. Returns True if added."""
        rule = build_rule(category, pattern)
        return self._add_parsed(polarity, rule)

    def remove_rule(self, category: RuleCategory, polarity: Polarity, pattern: str) -> bool:
        """Remove a rule if present. Returns True if removed."""
        rule = build_rule(category, pattern)
        return self._remove_canonical(polarity, rule.canonical_rule)

    def add_rule_text(self, polarity: Polarity, rule_text: str) -> bool:
        """Add a rule given in persisted form, e.g. ``Bash(npm:*)``."""
        return self._add_parsed(polarity, parse_permission_rule(rule_text))

    def remove_rule_text(self, polarity: Polarity, rule_text: str) -> bool:
        """Remove a rule given in persisted form."""
        return self._remove_canonical(polarity, parse_permission_rule(rule_text).canonical_rule)

    def apply_preset(self, name: str) -> List[str]:
        """Add every rule of a named preset to the allow list. Returns the rules added."""
        if name not in RULE_PRESETS:
            raise KeyError(f"Unknown preset '{name}'.")
        parsed = [parse_permission_rule(rule) for rule in RULE_PRESETS[name]]
        added: List[str] = []

        def _apply(document: RuleDocument) -> bool:
            existing = {_canonical_or_raw(r) for r in document.permissions.allow}
            for rule in parsed:
                if rule.canonical_rule not in existing:
                    document.permissions.allow.append(rule.canonical_rule)
                    existing.add(rule.canonical_rule)
                    added.append(rule.canonical_rule)
            return bool(added)

        self._mutate(_apply)
        return added

    def reset(self) -> None:
        """Replace the document with the hard-coded defaults and persist it."""
        document = default_document()
        write_document(self.path, document)
        self._set_document(document)
        logger.info("[rule_store] Settings reset to defaults", extra={"path": str(self.path)})

    def save(self) -> None:
        """Persist the current document."""
        write_document(self.path, self._document)

    # ------------------------------------------------------------------
    # Directory restrictions
    # ------------------------------------------------------------------

    def set_directory_restrictions(self, enabled: bool) -> bool:
        def _apply(document: RuleDocument) -> bool:
            restrictions = document.restrictions
            if document.directory_restrictions is not None and restrictions.enabled == enabled:
                return False
            restrictions.enabled = enabled
            document.directory_restrictions = restrictions
            return True

        return self._mutate(_apply)

    def toggle_directory_restrictions(self) -> bool:
        """Flip the restriction switch. Returns the new state."""
        enabled = not self._read_current().restrictions.enabled
        self.set_directory_restrictions(enabled)
        return enabled

    def add_allowed_directory(self, name: str) -> bool:
        directory = _require_name(name, "directory name").rstrip("/")
        if not directory:
            raise InvalidPattern(name, "directory name is empty")

        def _apply(document: RuleDocument) -> bool:
            restrictions = document.restrictions
            if directory in restrictions.allowed_directories:
                return False
            restrictions.allowed_directories.append(directory)
            document.directory_restrictions = restrictions
            return True

        return self._mutate(_apply)

    def add_allowed_file(self, name: str) -> bool:
        filename = _require_name(name, "file name")
        if "/" in filename:
            raise InvalidPattern(name, "root files cannot contain '/'")

        def _apply(document: RuleDocument) -> bool:
            restrictions = document.restrictions
            if filename in restrictions.allowed_files:
                return False
            restrictions.allowed_files.append(filename)
            document.directory_restrictions = restrictions
            return True

        return self._mutate(_apply)

    def add_external_pattern(self, pattern: str) -> bool:
        """Grant access to an absolute path prefix outside the project."""
        value = _require_name(pattern, "external pattern")
        if not value.startswith("/"):
            raise InvalidPattern(pattern, "external patterns must be absolute paths")
        if "*" in value[:-1]:
            raise InvalidPattern(pattern, "a wildcard is only allowed at the end")

        def _apply(document: RuleDocument) -> bool:
            restrictions = document.restrictions
            patterns = restrictions.external_access.allowed_patterns
            if value in patterns:
                return False
            patterns.append(value)
            document.directory_restrictions = restrictions
            return True

        return self._mutate(_apply)

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _add_parsed(self, polarity: Polarity, rule: ParsedPermissionRule) -> bool:
        def _apply(document: RuleDocument) -> bool:
            rules = self._section_list(document, polarity)
            if rule.canonical_rule in {_canonical_or_raw(r) for r in rules}:
                return False
            rules.append(rule.canonical_rule)
            return True

        added = self._mutate(_apply)
        logger.debug(
            "[rule_store] Add rule",
            extra={"rule": rule.canonical_rule, "polarity": polarity.value, "added": added},
        )
        return added

    def _remove_canonical(self, polarity: Polarity, canonical: str) -> bool:
        def _apply(document: RuleDocument) -> bool:
            rules = self._section_list(document, polarity)
            kept = [r for r in rules if _canonical_or_raw(r) != canonical]
            if len(kept) == len(rules):
                return False
            rules[:] = kept
            return True

        removed = self._mutate(_apply)
        logger.debug(
            "[rule_store] Remove rule",
            extra={"rule": canonical, "polarity": polarity.value, "removed": removed},
        )
        return removed

    @staticmethod
    def _section_list(document: RuleDocument, polarity: Polarity) -> List[str]:
        if polarity is Polarity.ALLOW:
            return document.permissions.allow
        return document.permissions.deny

    def _read_current(self) -> RuleDocument:
        """Fresh copy of the document: from disk when it exists, else in memory."""
        try:
            return read_document(self.path)
        except ConfigMissing:
            return self._document.model_copy(deep=True)

    def _mutate(self, apply: Callable[[RuleDocument], bool]) -> bool:
        document = self._read_current()
        changed = apply(document)
        if changed:
            write_document(self.path, document)
        self._set_document(document)
        return changed

    def _set_document(self, document: RuleDocument) -> None:
        self._document = document
        self._compile()

    def _compile(self) -> None:
        compiled: Dict[Polarity, List[ParsedPermissionRule]] = {}
        for polarity in (Polarity.ALLOW, Polarity.DENY):
            parsed: List[ParsedPermissionRule] = []
            for raw in self.raw_rules(polarity):
                try:
                    parsed.append(parse_permission_rule(raw))
                except InvalidPattern as exc:
                    logger.warning(
                        "[rule_store] Ignoring unparseable rule: %s",
                        exc,
                        extra={"rule": raw, "polarity": polarity.value, "path": str(self.path)},
                    )
            compiled[polarity] = parsed
        self._compiled = compiled


__all__ = ["RULE_PRESETS", "RuleStore"]
