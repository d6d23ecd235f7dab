"""Rules and regex patterns for permission checks."""

from __future__ import annotations

import re
from typing import List, Tuple

# =============================================================================
# Path denial patterns
# =============================================================================

# Checked in order against the normalized path; the first match denies.
# Credential names match anywhere in the path, not only as whole components.
DENIED_PATH_PATTERNS: List[Tuple[re.Pattern[str], str]] = [
    (re.compile(r"^/"), "absolute path"),
    (re.compile(r"^~"), "home directory path"),
    (re.compile(r"\.\."), "directory traversal"),
    (re.compile(r"\.env"), "environment file"),
    (re.compile(r"credentials"), "credentials file"),
    (re.compile(r"secrets"), "secrets file"),
    (re.compile(r"\.ssh"), "SSH directory"),
    (re.compile(r"\.aws"), "AWS credentials"),
    (re.compile(r"\.gnupg"), "GPG keyring"),
    (re.compile(r"\.npmrc"), "npm credentials"),
    (re.compile(r"\.pypirc"), "PyPI credentials"),
    (re.compile(r"\.netrc"), "network credentials"),
    (re.compile(r"id_rsa"), "SSH private key"),
    (re.compile(r"id_ed25519"), "SSH private key"),
    (re.compile(r"\.pem$"), "certificate file"),
    (re.compile(r"\.key$"), "private key file"),
]

# The rule an external-access grant waives for an absolute path.
ABSOLUTE_PATH_PATTERN = DENIED_PATH_PATTERNS[0][0]

# =============================================================================
# Per-operation allow-lists
# =============================================================================

ALLOWED_READ_DIRS: Tuple[str, ...] = (
    "queue",
    "status",
    "config",
    "memory",
    "instructions",
    "context",
    "templates",
    "scripts",
    "docs",
    "skills",
    "logs",
    "demo_output",
    ".claude",
)

ALLOWED_WRITE_DIRS: Tuple[str, ...] = (
    "queue",
    "status",
    "config",
    "memory",
    "logs",
    "demo_output",
)

ALLOWED_EDIT_DIRS: Tuple[str, ...] = (
    "queue",
    "status",
    "config",
    "memory",
)

ALLOWED_ROOT_FILES: Tuple[str, ...] = (
    "dashboard.md",
    "CLAUDE.md",
    "README.md",
    "README_ja.md",
    ".gitignore",
)

ALLOWED_WRITE_ROOT_FILES: Tuple[str, ...] = ("dashboard.md",)

# YAML documents agents exchange through the shared queue.
QUEUE_DOCUMENT_PATTERNS: List[re.Pattern[str]] = [
    re.compile(r"^queue/.*\.yaml$"),
    re.compile(r"^config/.*\.yaml$"),
    re.compile(r"^status/.*\.yaml$"),
]

# =============================================================================
# Dangerous text patterns for the relay channel
# =============================================================================

DANGEROUS_SEQUENCES: List[Tuple[str, str]] = [
    ("`", "Text contains backticks (`) for command substitution"),
    ("$(", "Text contains $() command substitution"),
    ("${", "Text contains ${} parameter expansion"),
    ("|", "Text contains a pipe (|)"),
    (";", "Text contains a command separator (;)"),
    ("&&", "Text contains a logical AND (&&)"),
    ("||", "Text contains a logical OR (||)"),
    (">", "Text contains output redirection (>)"),
    ("<", "Text contains input redirection (<)"),
]

# Removed outright by the strict profile, longest sequences first.
STRICT_REMOVED_SEQUENCES: Tuple[str, ...] = ("$(", "${", "&&", "||", "`", "|", ";", ">", "<")


__all__ = [
    "ABSOLUTE_PATH_PATTERN",
    "ALLOWED_EDIT_DIRS",
    "ALLOWED_READ_DIRS",
    "ALLOWED_ROOT_FILES",
    "ALLOWED_WRITE_DIRS",
    "ALLOWED_WRITE_ROOT_FILES",
    "DANGEROUS_SEQUENCES",
    "DENIED_PATH_PATTERNS",
    "QUEUE_DOCUMENT_PATTERNS",
    "STRICT_REMOVED_SEQUENCES",
]
