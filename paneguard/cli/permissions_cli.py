"""`paneguard permissions` command group: manage the settings document."""

from __future__ import annotations

from pathlib import Path

import click
from rich.markup import escape
from rich.panel import Panel
from rich.table import Table

from paneguard.cli.context import CliContext, pass_cli_context, run_guarded
from paneguard.cli.ui.choice import prompt_yes_no
from paneguard.core.config import default_document
from paneguard.core.rule_store import RULE_PRESETS, RuleStore
from paneguard.utils.permissions.rule_syntax import WILDCARD, Polarity


def _rule_text(parts: tuple[str, ...]) -> str:
    rule = " ".join(parts).strip()
    if not rule:
        raise click.UsageError("A rule is required, e.g. 'Bash(npm:*)'.")
    return rule


def _polarity_markup(polarity: Polarity) -> str:
    color = "green" if polarity is Polarity.ALLOW else "red"
    return f"[{color}]{polarity.value}[/{color}]"


def _open(obj: CliContext) -> RuleStore:
    return run_guarded(lambda: obj.open_store(create=True))


def _render_rules(obj: CliContext, store: RuleStore) -> None:
    table = Table(title="Permission Rules", show_header=True, header_style="bold cyan")
    table.add_column("Type", style="dim")
    table.add_column("Rule")

    has_rules = False
    for polarity in (Polarity.ALLOW, Polarity.DENY):
        for rule in store.raw_rules(polarity):
            table.add_row(_polarity_markup(polarity), escape(rule))
            has_rules = True

    console = obj.console
    if has_rules:
        console.print(table)
    else:
        console.print("[yellow]No permission rules configured yet.[/yellow]")
    console.print("[dim]Anything not matched by a rule requires confirmation.[/dim]")
    console.print(f"[dim]Settings file: {escape(str(store.path))}[/dim]")


def _add(obj: CliContext, polarity: Polarity, parts: tuple[str, ...]) -> None:
    rule = _rule_text(parts)
    store = _open(obj)
    if run_guarded(lambda: store.add_rule_text(polarity, rule)):
        obj.console.print(
            Panel(
                f"Added {_polarity_markup(polarity)} rule:\n{escape(rule)}",
                title="permissions",
            )
        )
    else:
        obj.console.print(f"[yellow]Rule already exists in the {polarity.value} list.[/yellow]")


def _remove(obj: CliContext, polarity: Polarity, parts: tuple[str, ...]) -> None:
    rule = _rule_text(parts)
    store = _open(obj)
    if run_guarded(lambda: store.remove_rule_text(polarity, rule)):
        obj.console.print(
            Panel(
                f"Removed {_polarity_markup(polarity)} rule:\n{escape(rule)}",
                title="permissions",
            )
        )
    else:
        obj.console.print(f"[yellow]Rule not found in the {polarity.value} list.[/yellow]")


@click.group(name="permissions", invoke_without_command=True, help="Manage permission rules.")
@click.pass_context
def permissions_group(ctx: click.Context) -> None:
    if ctx.invoked_subcommand is None:
        ctx.invoke(list_rules)


@permissions_group.command(name="list")
@pass_cli_context
def list_rules(obj: CliContext) -> None:
    """Show the allow and deny rules."""
    _render_rules(obj, _open(obj))


@permissions_group.command(name="add-allow")
@click.argument("rule", nargs=-1)
@pass_cli_context
def add_allow(obj: CliContext, rule: tuple[str, ...]) -> None:
    """Add an allow rule, e.g. 'Bash(npm:*)'."""
    _add(obj, Polarity.ALLOW, rule)


@permissions_group.command(name="add-deny")
@click.argument("rule", nargs=-1)
@pass_cli_context
def add_deny(obj: CliContext, rule: tuple[str, ...]) -> None:
    """Add a deny rule, e.g. 'Bash(sudo:*)'."""
    _add(obj, Polarity.DENY, rule)


@permissions_group.command(name="remove-allow")
@click.argument("rule", nargs=-1)
@pass_cli_context
def remove_allow(obj: CliContext, rule: tuple[str, ...]) -> None:
    """Remove an allow rule."""
    _remove(obj, Polarity.ALLOW, rule)


@permissions_group.command(name="remove-deny")
@click.argument("rule", nargs=-1)
@pass_cli_context
def remove_deny(obj: CliContext, rule: tuple[str, ...]) -> None:
    """Remove a deny rule."""
    _remove(obj, Polarity.DENY, rule)


@permissions_group.command(name="reset")
@click.option("--yes", "assume_yes", is_flag=True, help="Do not ask for confirmation.")
@pass_cli_context
def reset_rules(obj: CliContext, assume_yes: bool) -> None:
    """Replace the settings document with the defaults."""
    if not assume_yes and not prompt_yes_no(
        "Reset permission settings to the defaults?", prompt_fn=obj.prompt_fn
    ):
        obj.console.print("[dim]Cancelled.[/dim]")
        return
    store = RuleStore(default_document(), obj.settings_path)
    run_guarded(store.reset)
    obj.console.print(f"[green]Settings reset to defaults:[/green] {escape(str(store.path))}")


@permissions_group.command(name="preset")
@click.argument("name", type=click.Choice(sorted(RULE_PRESETS)))
@pass_cli_context
def apply_preset(obj: CliContext, name: str) -> None:
    """Add a bundle of allow rules (dev, files, docker or all)."""
    store = _open(obj)
    added = run_guarded(lambda: store.apply_preset(name))
    if not added:
        obj.console.print(f"[yellow]Every rule of preset '{name}' is already allowed.[/yellow]")
        return
    body = "\n".join(escape(rule) for rule in added)
    obj.console.print(Panel(body, title=f"preset {name}: {len(added)} rule(s) added"))


@permissions_group.command(name="show-dirs")
@pass_cli_context
def show_dirs(obj: CliContext) -> None:
    """Show directory restrictions from the settings document."""
    restrictions = _open(obj).document.restrictions
    console = obj.console

    state = "[green]enabled[/green]" if restrictions.enabled else "[yellow]disabled[/yellow]"
    console.print(f"Directory restrictions: {state}")

    table = Table(show_header=True, header_style="bold cyan")
    table.add_column("Kind", style="dim")
    table.add_column("Entry")
    for directory in restrictions.allowed_directories:
        table.add_row("directory", escape(f"{directory}/"))
    for filename in restrictions.allowed_files:
        table.add_row("root file", escape(filename))
    for pattern in restrictions.external_access.allowed_patterns:
        table.add_row("external", escape(pattern))
    if table.row_count:
        console.print(table)
    else:
        console.print("[dim](no entries)[/dim]")


@permissions_group.command(name="toggle-dirs")
@pass_cli_context
def toggle_dirs(obj: CliContext) -> None:
    """Enable or disable directory restrictions."""
    store = _open(obj)
    enabled = run_guarded(store.toggle_directory_restrictions)
    if enabled:
        obj.console.print("[green]Directory restrictions enabled.[/green]")
    else:
        obj.console.print("[yellow]Directory restrictions disabled.[/yellow]")


@permissions_group.command(name="add-dir")
@click.argument("name")
@pass_cli_context
def add_dir(obj: CliContext, name: str) -> None:
    """Allow a top-level project directory for every operation."""
    store = _open(obj)
    if run_guarded(lambda: store.add_allowed_directory(name)):
        obj.console.print(f"[green]Allowed directory added:[/green] {escape(name.rstrip('/'))}/")
    else:
        obj.console.print("[yellow]Directory is already allowed.[/yellow]")


@permissions_group.command(name="add-file")
@click.argument("name")
@pass_cli_context
def add_file(obj: CliContext, name: str) -> None:
    """Allow a root-level project file for every operation."""
    store = _open(obj)
    if run_guarded(lambda: store.add_allowed_file(name)):
        obj.console.print(f"[green]Allowed root file added:[/green] {escape(name)}")
    else:
        obj.console.print("[yellow]File is already allowed.[/yellow]")


def _external_pattern(value: str) -> str:
    """Turn an existing directory into ``<absolute dir>/*``; pass patterns through."""
    if value.endswith(WILDCARD):
        return value
    candidate = Path(value).expanduser()
    if candidate.is_dir():
        return f"{candidate.resolve()}/{WILDCARD}"
    return value


@permissions_group.command(name="add-external")
@click.argument("path")
@pass_cli_context
def add_external(obj: CliContext, path: str) -> None:
    """Grant access to a directory outside the project."""
    pattern = _external_pattern(path)
    store = _open(obj)
    if run_guarded(lambda: store.add_external_pattern(pattern)):
        obj.console.print(f"[green]External access pattern added:[/green] {escape(pattern)}")
    else:
        obj.console.print("[yellow]External access pattern already exists.[/yellow]")


@permissions_group.command(name="init")
@click.option("--force", is_flag=True, help="Overwrite an existing settings document.")
@pass_cli_context
def init_settings(obj: CliContext, force: bool) -> None:
    """Write the default settings document."""
    path = obj.settings_path
    if path.exists() and not force:
        obj.console.print(f"[yellow]Settings already exist:[/yellow] {escape(str(path))}")
        return
    store = RuleStore(default_document(), path)
    run_guarded(store.save)
    obj.console.print(f"[green]Default settings written:[/green] {escape(str(path))}")


__all__ = ["permissions_group"]
