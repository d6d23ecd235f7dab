"""Path classification for file read/write/edit requests.

Classification runs in a fixed order and the first decisive step wins:

1. normalize (strip the project-root prefix and a leading ``./``; ``..`` is
   never resolved, so traversal stays visible),
2. denial patterns (absolute, home, traversal, credential-like names),
3. anything still absolute is outside the project,
4. root-file allow-list (paths without ``/``),
5. directory allow-list on the first path segment,
6. otherwise a human has to confirm.

Steps 4 and 5 only run while directory restrictions are enabled.
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Dict, Iterable, List, Optional, Tuple, Union

from paneguard.core.config import DirectoryRestrictions
from paneguard.utils.log import get_logger
from paneguard.utils.permissions.rule_syntax import RuleCategory, matches
from paneguard.utils.permissions.rules import (
    ABSOLUTE_PATH_PATTERN,
    ALLOWED_EDIT_DIRS,
    ALLOWED_READ_DIRS,
    ALLOWED_ROOT_FILES,
    ALLOWED_WRITE_DIRS,
    ALLOWED_WRITE_ROOT_FILES,
    DENIED_PATH_PATTERNS,
    QUEUE_DOCUMENT_PATTERNS,
)

logger = get_logger()


class PathOperation(str, Enum):
    READ = "read"
    WRITE = "write"
    EDIT = "edit"

    @property
    def category(self) -> RuleCategory:
        return RuleCategory(self.value)


class PathStatus(str, Enum):
    ALLOWED = "allowed"
    DENIED = "denied"
    NEEDS_CONFIRMATION = "needs_confirmation"

    @property
    def exit_code(self) -> int:
        """Process exit code used by the command-line front-end."""
        return {PathStatus.ALLOWED: 0, PathStatus.DENIED: 1, PathStatus.NEEDS_CONFIRMATION: 2}[
            self
        ]


@dataclass(frozen=True)
class PathClassification:
    """Outcome of classifying one path, with the rule that decided it."""

    status: PathStatus
    path: str
    normalized_path: str
    operation: PathOperation
    reason: str
    matched: Optional[str] = None

    @property
    def allowed(self) -> bool:
        return self.status is PathStatus.ALLOWED

    @property
    def denied(self) -> bool:
        return self.status is PathStatus.DENIED


_DIRS_BY_OPERATION = {
    PathOperation.READ: ALLOWED_READ_DIRS,
    PathOperation.WRITE: ALLOWED_WRITE_DIRS,
    PathOperation.EDIT: ALLOWED_EDIT_DIRS,
}

_ROOT_FILES_BY_OPERATION = {
    PathOperation.READ: ALLOWED_ROOT_FILES,
    PathOperation.WRITE: ALLOWED_WRITE_ROOT_FILES,
    PathOperation.EDIT: ALLOWED_WRITE_ROOT_FILES,
}


def _merge(base: Iterable[str], extra: Iterable[str]) -> Tuple[str, ...]:
    merged = list(base)
    for item in extra:
        if item not in merged:
            merged.append(item)
    return tuple(merged)


class PathClassifier:
    """Classify paths relative to one project root."""

    def __init__(
        self,
        project_root: Optional[Union[str, Path]] = None,
        restrictions: Optional[DirectoryRestrictions] = None,
    ) -> None:
        self.project_root = os.path.abspath(str(project_root)) if project_root else None
        self.restrictions = restrictions or DirectoryRestrictions()

    def allowed_directories(self, operation: Union[str, PathOperation]) -> Tuple[str, ...]:
        op = PathOperation(operation)
        return _merge(_DIRS_BY_OPERATION[op], self.restrictions.allowed_directories)

    def allowed_root_files(self, operation: Union[str, PathOperation]) -> Tuple[str, ...]:
        op = PathOperation(operation)
        return _merge(_ROOT_FILES_BY_OPERATION[op], self.restrictions.allowed_files)

    def normalize(self, raw_path: object) -> str:
        """Strip the project-root prefix and any leading ``./``."""
        path = "" if raw_path is None else str(raw_path)
        if self.project_root:
            root_prefix = self.project_root.rstrip("/") + "/"
            # A filesystem-root project keeps absolute paths absolute.
            if root_prefix != "/" and path.startswith(root_prefix):
                path = path[len(root_prefix) :]
        if path.startswith("./"):
            path = path[2:]
        return path

    def classify(
        self, raw_path: object, operation: Union[str, PathOperation] = PathOperation.READ
    ) -> PathClassification:
        op = PathOperation(operation)
        raw = "" if raw_path is None else str(raw_path)
        normalized = self.normalize(raw)

        def _result(status: PathStatus, reason: str, matched: Optional[str] = None) -> PathClassification:
            result = PathClassification(
                status=status,
                path=raw,
                normalized_path=normalized,
                operation=op,
                reason=reason,
                matched=matched,
            )
            logger.debug(
                "[path_validation] %s: %s",
                status.value,
                normalized,
                extra={"operation": op.value, "reason": reason, "matched": matched},
            )
            return result

        if not normalized.strip():
            return _result(PathStatus.DENIED, "Empty paths are not allowed")

        external_grant: Optional[str] = None
        if self.restrictions.enabled and normalized.startswith("/"):
            external_grant = self._match_external(normalized)

        for pattern, label in DENIED_PATH_PATTERNS:
            if external_grant is not None and pattern is ABSOLUTE_PATH_PATTERN:
                continue
            if pattern.search(normalized):
                return _result(
                    PathStatus.DENIED,
                    f"Denied pattern matched: {label} ({pattern.pattern})",
                    pattern.pattern,
                )

        if normalized.startswith("/"):
            if external_grant is not None:
                return _result(
                    PathStatus.ALLOWED,
                    f"External access granted by {external_grant}",
                    external_grant,
                )
            return _result(PathStatus.DENIED, "Absolute path outside the project")

        if not self.restrictions.enabled:
            return _result(
                PathStatus.NEEDS_CONFIRMATION,
                f"Directory restrictions are disabled; confirm {op.value} of {normalized}",
            )

        if "/" not in normalized and normalized in self.allowed_root_files(op):
            return _result(PathStatus.ALLOWED, f"Allowed root file ({op.value})", normalized)

        first_dir = normalized.split("/", 1)[0]
        if first_dir in self.allowed_directories(op):
            return _result(PathStatus.ALLOWED, f"Allowed directory {first_dir}/ ({op.value})", first_dir)

        return _result(
            PathStatus.NEEDS_CONFIRMATION,
            f"{normalized} is not in an allowed location for {op.value}",
        )

    def classify_many(
        self, paths: Iterable[object], operation: Union[str, PathOperation] = PathOperation.READ
    ) -> List[PathClassification]:
        return [self.classify(path, operation) for path in paths]

    def is_queue_document_path(self, raw_path: object) -> bool:
        """Whether a path names a YAML document under queue/, config/ or status/."""
        normalized = self.normalize(raw_path)
        if ".." in normalized:
            return False
        return any(pattern.search(normalized) for pattern in QUEUE_DOCUMENT_PATTERNS)

    def allowed_listing(self) -> Dict[str, Tuple[str, ...]]:
        """Effective allow-lists per operation, for display."""
        listing: Dict[str, Tuple[str, ...]] = {}
        for op in PathOperation:
            listing[f"{op.value}_dirs"] = self.allowed_directories(op)
            listing[f"{op.value}_root_files"] = self.allowed_root_files(op)
        listing["external_patterns"] = tuple(self.restrictions.external_access.allowed_patterns)
        return listing

    def _match_external(self, normalized: str) -> Optional[str]:
        for pattern in self.restrictions.external_access.allowed_patterns:
            if pattern and matches(pattern, normalized):
                return pattern
        return None


def classify_path(
    raw_path: object,
    operation: Union[str, PathOperation] = PathOperation.READ,
    *,
    project_root: Optional[Union[str, Path]] = None,
    restrictions: Optional[DirectoryRestrictions] = None,
) -> PathClassification:
    """Classify a single path without keeping a classifier around."""
    return PathClassifier(project_root, restrictions).classify(raw_path, operation)


__all__ = [
    "PathClassification",
    "PathClassifier",
    "PathOperation",
    "PathStatus",
    "classify_path",
]
