"""Permission utilities."""

from .path_validation_utils import (
    PathClassification,
    PathClassifier,
    PathOperation,
    PathStatus,
    classify_path,
)
from .rule_syntax import (
    ParsedPermissionRule,
    Polarity,
    RuleCategory,
    matches,
    normalize_permission_rule,
    parse_permission_rule,
)

__all__ = [
    "ParsedPermissionRule",
    "PathClassification",
    "PathClassifier",
    "PathOperation",
    "PathStatus",
    "Polarity",
    "RuleCategory",
    "classify_path",
    "matches",
    "normalize_permission_rule",
    "parse_permission_rule",
]
