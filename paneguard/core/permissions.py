"""Permission decisions for agent-initiated actions.

Commands are checked against the rule store, deny list first. Path requests
(read/write/edit) are decided by the path classifier alone. A ``confirm``
verdict goes back to the caller, which asks a human and reports the choice
through :meth:`DecisionEngine.resolve`.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Optional, Union

from paneguard.core.errors import InvalidPattern
from paneguard.core.rule_store import RuleStore
from paneguard.utils.log import get_logger
from paneguard.utils.permissions.path_validation_utils import (
    PathClassification,
    PathClassifier,
    PathOperation,
    PathStatus,
)
from paneguard.utils.permissions.rule_syntax import WILDCARD, Polarity, RuleCategory

logger = get_logger()


class Verdict(str, Enum):
    ALLOW = "allow"
    DENY = "deny"
    CONFIRM = "confirm"

    @property
    def exit_code(self) -> int:
        return {Verdict.ALLOW: 0, Verdict.DENY: 1, Verdict.CONFIRM: 2}[self]


class ConfirmationChoice(str, Enum):
    """Answers a human can give to a ``confirm`` verdict."""

    ALLOW_ONCE = "allow_once"
    DENY_ONCE = "deny_once"
    ALWAYS_ALLOW = "always_allow"
    ALWAYS_DENY = "always_deny"

    @property
    def persists(self) -> bool:
        return self in (ConfirmationChoice.ALWAYS_ALLOW, ConfirmationChoice.ALWAYS_DENY)

    @property
    def allows(self) -> bool:
        return self in (ConfirmationChoice.ALLOW_ONCE, ConfirmationChoice.ALWAYS_ALLOW)


_STATUS_VERDICTS = {
    PathStatus.ALLOWED: Verdict.ALLOW,
    PathStatus.DENIED: Verdict.DENY,
    PathStatus.NEEDS_CONFIRMATION: Verdict.CONFIRM,
}


@dataclass(frozen=True)
class ActionDescriptor:
    """One attempted action: a category and its literal string."""

    category: RuleCategory
    action: str

    @classmethod
    def command(cls, command: str) -> "ActionDescriptor":
        return cls(RuleCategory.COMMAND, command)

    @classmethod
    def path(cls, operation: Union[str, PathOperation], path: str) -> "ActionDescriptor":
        return cls(PathOperation(operation).category, path)

    def preview(self) -> str:
        if self.category is RuleCategory.COMMAND:
            return f"Command: {self.action}"
        return f"{self.category.tool_name}: {self.action}"


@dataclass(frozen=True)
class Decision:
    """Verdict for one action, with the rule or reason that produced it."""

    verdict: Verdict
    descriptor: ActionDescriptor
    reason: str
    rule: Optional[str] = None
    classification: Optional[PathClassification] = None

    @property
    def exit_code(self) -> int:
        return self.verdict.exit_code


class DecisionEngine:
    """Route action descriptors to the rule matcher or the path classifier."""

    def __init__(self, store: RuleStore, project_root: Optional[Path] = None) -> None:
        self.store = store
        self.project_root = project_root

    @property
    def classifier(self) -> PathClassifier:
        return PathClassifier(self.project_root, self.store.document.restrictions)

    def decide(self, descriptor: ActionDescriptor) -> Decision:
        if descriptor.category is RuleCategory.COMMAND:
            decision = self._decide_command(descriptor)
        else:
            decision = self._decide_path(descriptor)
        logger.info(
            "[permissions] %s %s",
            decision.verdict.value,
            descriptor.action,
            extra={
                "category": descriptor.category.value,
                "reason": decision.reason,
                "rule": decision.rule,
            },
        )
        return decision

    def resolve(self, descriptor: ActionDescriptor, choice: ConfirmationChoice) -> Decision:
        """Apply a human answer to a ``confirm`` verdict.

        "Always" answers persist the literal action string as a new rule; the
        action is never generalized into a wildcard.

        Raises:
            InvalidPattern: if an "always" answer is given for an action that
                cannot be stored verbatim (empty, or containing ``*``).
            PersistenceError: if the rule document cannot be written.
        """
        choice = ConfirmationChoice(choice)
        verdict = Verdict.ALLOW if choice.allows else Verdict.DENY
        rule_text: Optional[str] = None

        if choice.persists:
            if WILDCARD in descriptor.action:
                raise InvalidPattern(
                    descriptor.action, "actions containing '*' cannot be stored as literal rules"
                )
            polarity = Polarity.ALLOW if choice.allows else Polarity.DENY
            self.store.add_rule(descriptor.category, polarity, descriptor.action)
            rule_text = f"{descriptor.category.tool_name}({descriptor.action})"
            reason = f"Always {verdict.value} saved as {rule_text}"
        else:
            reason = f"{verdict.value.capitalize()} once by user"

        logger.info(
            "[permissions] User resolved confirmation",
            extra={"choice": choice.value, "action": descriptor.action, "rule": rule_text},
        )
        return Decision(verdict=verdict, descriptor=descriptor, reason=reason, rule=rule_text)

    def _decide_command(self, descriptor: ActionDescriptor) -> Decision:
        command = descriptor.action
        denied = self.store.find_match(RuleCategory.COMMAND, Polarity.DENY, command)
        if denied is not None:
            return Decision(
                verdict=Verdict.DENY,
                descriptor=descriptor,
                reason=f"Permission to run '{command}' has been denied by {denied.canonical_rule}.",
                rule=denied.canonical_rule,
            )
        allowed = self.store.find_match(RuleCategory.COMMAND, Polarity.ALLOW, command)
        if allowed is not None:
            return Decision(
                verdict=Verdict.ALLOW,
                descriptor=descriptor,
                reason=f"Command approved by {allowed.canonical_rule}.",
                rule=allowed.canonical_rule,
            )
        return Decision(
            verdict=Verdict.CONFIRM,
            descriptor=descriptor,
            reason=f"No rule matches '{command}'; confirmation required.",
        )

    def _decide_path(self, descriptor: ActionDescriptor) -> Decision:
        result = self.classifier.classify(descriptor.action, PathOperation(descriptor.category.value))
        return Decision(
            verdict=_STATUS_VERDICTS[result.status],
            descriptor=descriptor,
            reason=result.reason,
            rule=result.matched,
            classification=result,
        )


__all__ = [
    "ActionDescriptor",
    "ConfirmationChoice",
    "Decision",
    "DecisionEngine",
    "Verdict",
]
