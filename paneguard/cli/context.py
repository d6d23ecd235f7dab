"""State shared by the CLI commands."""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Callable, Optional, TypeVar

import click
from rich.console import Console

from paneguard.cli.ui.choice import PromptFn
from paneguard.core.config import default_document
from paneguard.core.errors import ConfigMissing, PaneguardError
from paneguard.core.permissions import DecisionEngine
from paneguard.core.relay import PaneSender, SafeRelay
from paneguard.core.rule_store import RuleStore
from paneguard.utils.log import get_logger

logger = get_logger()

T = TypeVar("T")

ERROR_EXIT_CODES = {
    "config_missing": 3,
    "config_invalid": 3,
    "persistence_error": 4,
}


class PaneguardCliError(click.ClickException):
    """ClickException carrying the exit code of the underlying error."""

    def __init__(self, error: PaneguardError) -> None:
        super().__init__(str(error))
        self.exit_code = ERROR_EXIT_CODES.get(error.error_code, 1)


@dataclass
class CliContext:
    project_root: Path
    settings_path: Path
    console: Console
    prompt_fn: Optional[PromptFn] = None
    sender: Optional[PaneSender] = None

    def open_store(self, create: bool = False) -> RuleStore:
        """Load the rule store.

        With ``create`` a missing document is written with defaults; without
        it the defaults are used in memory and nothing is written.
        """
        if create:
            return RuleStore.load_or_create(self.settings_path)
        try:
            return RuleStore.load(self.settings_path)
        except ConfigMissing:
            logger.info(
                "[cli] No settings document; using built-in defaults",
                extra={"path": str(self.settings_path)},
            )
            return RuleStore(default_document(), self.settings_path)

    def engine(self) -> DecisionEngine:
        return DecisionEngine(self.open_store(), self.project_root)

    def relay(self) -> SafeRelay:
        return SafeRelay(self.sender)


def run_guarded(action: Callable[[], T]) -> T:
    """Run ``action`` and convert library errors into click errors."""
    try:
        return action()
    except PaneguardError as exc:
        logger.warning(
            "[cli] %s: %s",
            type(exc).__name__,
            exc,
            extra={"error_code": exc.error_code},
        )
        raise PaneguardCliError(exc) from exc


pass_cli_context = click.make_pass_decorator(CliContext)


__all__ = [
    "CliContext",
    "ERROR_EXIT_CODES",
    "PaneguardCliError",
    "pass_cli_context",
    "run_guarded",
]
