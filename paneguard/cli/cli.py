"""Main CLI entry point for Paneguard.

Exit codes for the check commands: 0 allowed, 1 denied, 2 confirmation
needed. Configuration errors exit with 3, persistence errors with 4.
"""

from __future__ import annotations

import sys
from pathlib import Path
from typing import Optional

import click
from rich.console import Console
from rich.markup import escape
from rich.table import Table

from paneguard import __version__
from paneguard.cli.context import CliContext, pass_cli_context, run_guarded
from paneguard.cli.permissions_cli import permissions_group
from paneguard.cli.ui.choice import prompt_confirmation_choice
from paneguard.core.config import resolve_project_root, resolve_settings_path
from paneguard.core.permissions import ActionDescriptor, Verdict
from paneguard.core.relay import preview
from paneguard.utils.log import enable_audit_file_logging, get_logger
from paneguard.utils.permissions.path_validation_utils import (
    PathClassification,
    PathClassifier,
    PathStatus,
)
from paneguard.utils.sanitize import SanitizationProfile, detect, sanitize

logger = get_logger()

_STATUS_STYLES = {
    PathStatus.ALLOWED: "green",
    PathStatus.DENIED: "red",
    PathStatus.NEEDS_CONFIRMATION: "yellow",
}


@click.group(invoke_without_command=True)
@click.version_option(version=__version__)
@click.option(
    "--project-root",
    type=click.Path(file_okay=False, path_type=Path),
    help="Project root (default: $PANEGUARD_PROJECT_ROOT or the working directory)",
)
@click.option(
    "--settings",
    "settings_path",
    type=click.Path(dir_okay=False, path_type=Path),
    help="Settings document (default: <project>/.claude/settings.json)",
)
@click.option("--audit-log", is_flag=True, help="Append decisions to <project>/logs/")
@click.pass_context
def cli(
    ctx: click.Context,
    project_root: Optional[Path],
    settings_path: Optional[Path],
    audit_log: bool,
) -> None:
    """Paneguard - action authorization for multi-agent tmux sessions"""
    root = resolve_project_root(project_root)
    settings = resolve_settings_path(root, settings_path)
    if ctx.obj is None:
        ctx.obj = CliContext(project_root=root, settings_path=settings, console=Console())
    else:
        ctx.obj.project_root = root
        ctx.obj.settings_path = settings

    if audit_log:
        log_file = enable_audit_file_logging(root)
        logger.debug("[cli] Audit logging enabled", extra={"log_file": str(log_file)})

    logger.debug(
        "[cli] Starting CLI invocation",
        extra={"project_root": str(root), "settings_path": str(settings)},
    )

    if ctx.invoked_subcommand is None:
        click.echo(ctx.get_help())


def _render_classification(console: Console, result: PathClassification) -> None:
    style = _STATUS_STYLES[result.status]
    label = result.status.value.upper()
    console.print(
        f"[{style}]{label}[/{style}] {escape(result.normalized_path or result.path)}"
        f" [dim]({escape(result.reason)})[/dim]",
        soft_wrap=True,
    )


def _render_allowed_listing(console: Console, classifier: PathClassifier) -> None:
    listing = classifier.allowed_listing()
    table = Table(title="Allowed locations", show_header=True, header_style="bold cyan")
    table.add_column("List", style="bold")
    table.add_column("Entries")
    for key, entries in listing.items():
        table.add_row(key.replace("_", " "), escape(", ".join(entries)) or "[dim](none)[/dim]")
    console.print(table)
    state = "enabled" if classifier.restrictions.enabled else "disabled"
    console.print(f"[dim]Directory restrictions: {state}[/dim]")


def _batch_exit_code(results: list[PathClassification]) -> int:
    if any(r.status is PathStatus.DENIED for r in results):
        return PathStatus.DENIED.exit_code
    if any(r.status is PathStatus.NEEDS_CONFIRMATION for r in results):
        return PathStatus.NEEDS_CONFIRMATION.exit_code
    return PathStatus.ALLOWED.exit_code


@cli.command(name="check-path")
@click.argument("paths", nargs=-1)
@click.option("--read", "operation", flag_value="read", default=True, help="Check read access")
@click.option("--write", "operation", flag_value="write", help="Check write access")
@click.option("--edit", "operation", flag_value="edit", help="Check edit access")
@click.option("--batch", is_flag=True, help="Validate every path and print a summary")
@click.option("--list", "show_list", is_flag=True, help="Show the allowed directories and files")
@pass_cli_context
@click.pass_context
def check_path_cmd(
    ctx: click.Context,
    obj: CliContext,
    paths: tuple[str, ...],
    operation: str,
    batch: bool,
    show_list: bool,
) -> None:
    """Classify file paths for a read, write or edit operation."""
    store = run_guarded(obj.open_store)
    classifier = PathClassifier(obj.project_root, store.document.restrictions)

    if show_list:
        _render_allowed_listing(obj.console, classifier)
        return
    if not paths:
        raise click.UsageError("At least one path is required.")

    results = classifier.classify_many(paths, operation)
    for result in results:
        _render_classification(obj.console, result)

    if batch or len(results) > 1:
        allowed = sum(1 for r in results if r.allowed)
        obj.console.print(f"[dim]{allowed}/{len(results)} paths allowed for {operation}[/dim]")
        ctx.exit(_batch_exit_code(results))
    ctx.exit(results[0].status.exit_code)


@cli.command(name="check-document")
@click.argument("path")
@pass_cli_context
@click.pass_context
def check_document_cmd(ctx: click.Context, obj: CliContext, path: str) -> None:
    """Check that a path names a YAML document under queue/, config/ or status/."""
    valid = PathClassifier(obj.project_root).is_queue_document_path(path)
    click.echo("VALID" if valid else "INVALID")
    ctx.exit(0 if valid else 1)


@cli.command(name="check-command")
@click.argument("command")
@click.option("--interactive", is_flag=True, help="Ask how to resolve a confirmation verdict")
@pass_cli_context
@click.pass_context
def check_command_cmd(ctx: click.Context, obj: CliContext, command: str, interactive: bool) -> None:
    """Decide whether a shell command may run."""
    engine = run_guarded(obj.engine)
    descriptor = ActionDescriptor.command(command)
    decision = engine.decide(descriptor)

    if decision.verdict is Verdict.CONFIRM and interactive:
        choice = prompt_confirmation_choice(
            descriptor.preview(), decision.reason, prompt_fn=obj.prompt_fn
        )
        decision = run_guarded(lambda: engine.resolve(descriptor, choice))

    style = {"allow": "green", "deny": "red", "confirm": "yellow"}[decision.verdict.value]
    obj.console.print(
        f"[{style}]{decision.verdict.value.upper()}[/{style}] {escape(command)}"
        f" [dim]({escape(decision.reason)})[/dim]",
        soft_wrap=True,
    )
    ctx.exit(decision.exit_code)


@cli.command(name="detect")
@click.argument("text")
@click.pass_context
def detect_cmd(ctx: click.Context, text: str) -> None:
    """Report shell metacharacters in TEXT (exit 1 when dangerous)."""
    result = detect(text)
    click.echo(result.verdict)
    for message in result.messages:
        click.echo(f"  - {message}", err=True)
    ctx.exit(1 if result.dangerous else 0)


@cli.command(name="sanitize")
@click.argument("text")
@click.option("--strict", is_flag=True, help="Remove metacharacters instead of escaping them")
def sanitize_cmd(text: str, strict: bool) -> None:
    """Print TEXT sanitized for relay into a tmux pane."""
    profile = SanitizationProfile.STRICT if strict else SanitizationProfile.STANDARD
    click.echo(sanitize(text, profile))


@cli.command(name="send")
@click.argument("target")
@click.argument("message")
@click.option("--strict", is_flag=True, help="Use the strict sanitization profile")
@click.option("--no-enter", is_flag=True, help="Do not press Enter after the message")
@click.option("--validate", "validate_only", is_flag=True, help="Validate only; do not send")
@click.option("--verbose", is_flag=True, help="Show the message before and after sanitization")
@pass_cli_context
def send_cmd(
    obj: CliContext,
    target: str,
    message: str,
    strict: bool,
    no_enter: bool,
    validate_only: bool,
    verbose: bool,
) -> None:
    """Sanitize MESSAGE and send it to a tmux pane."""
    relay = obj.relay()
    result = run_guarded(
        lambda: relay.send(
            target,
            message,
            strict=strict,
            press_enter=not no_enter,
            validate_only=validate_only,
        )
    )
    console = obj.console
    if result.detection.dangerous:
        console.print("[yellow]Dangerous sequences detected; message sanitized.[/yellow]")
    if verbose and result.changed:
        console.print(f"[dim]original:  {escape(preview(result.original))}[/dim]", soft_wrap=True)
        console.print(f"[dim]sanitized: {escape(preview(result.sanitized))}[/dim]", soft_wrap=True)
    if result.sent:
        console.print(f"[green]Sent to {escape(target)}[/green]")
    else:
        console.print("[cyan]Validation only: nothing was sent[/cyan]")
        console.print(f"Target: {escape(target)}")
        console.print(f"Message: {escape(result.sanitized)}", soft_wrap=True)


cli.add_command(permissions_group)


def main() -> None:
    """Main entry point."""
    try:
        cli()
    except KeyboardInterrupt:
        click.echo("\nInterrupted", err=True)
        sys.exit(130)


if __name__ == "__main__":
    main()
