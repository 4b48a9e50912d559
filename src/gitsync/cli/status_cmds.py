"""Inspection commands: status, config, prune."""

from __future__ import annotations

from pathlib import Path
from typing import Optional

import typer
from rich.console import Console
from rich.table import Table

from . import app

console = Console()

_MASKED_KEYS = {"password"}


def _load_target(repo: Optional[str], root: Optional[str], dest: Optional[str], config_file: Optional[Path]):
    from ..core.config import ConfigError, build_target, load_config

    overrides = {"sync": {"repo": repo, "root": root, "dest": dest}}
    try:
        config = load_config(config_file, overrides=overrides)
        return build_target(config, check_git=False)
    except ConfigError as e:
        console.print(f"[red]Error:[/red] {e}")
        raise typer.Exit(1)


@app.command("status")
def status(
    repo: Optional[str] = typer.Option(None, "--repo", help="The git repository (used to default --dest)"),
    root: Optional[str] = typer.Option(None, "--root", help="The root directory for git operations"),
    dest: Optional[str] = typer.Option(None, "--dest", help="The published name under --root"),
    config_file: Optional[Path] = typer.Option(None, "--config", help="TOML config file"),
):
    """Show what is currently published under --root/--dest."""
    from ..core.command import CommandRunner
    from ..sync import PublishError, SyncEngine
    from ..sync.models import WORKTREE_PREFIX

    target = _load_target(repo, root, dest, config_file)
    engine = SyncEngine(target, runner=CommandRunner())
    publisher = engine.publisher

    try:
        state = engine.state()
        current = publisher.current()
    except PublishError as e:
        console.print(f"[red]Error:[/red] {e}")
        raise typer.Exit(1)

    table = Table(title="git-sync status")
    table.add_column("Field")
    table.add_column("Value")
    table.add_row("Root", target.root)
    table.add_row("Pointer", str(target.pointer_path))
    table.add_row("State", state.value)
    table.add_row("Worktree", str(current) if current else "[dim]none[/dim]")
    table.add_row("Revision", publisher.current_revision() or "[dim]none[/dim]")

    root_path = target.root_path
    orphans = []
    if root_path.is_dir():
        orphans = [
            p.name
            for p in sorted(root_path.iterdir())
            if p.name.startswith(WORKTREE_PREFIX) and p.is_dir() and not p.is_symlink() and p.resolve() != current
        ]
    table.add_row("Orphaned worktrees", ", ".join(orphans) if orphans else "[dim]none[/dim]")
    console.print(table)


@app.command("config")
def show_config(
    config_file: Optional[Path] = typer.Option(None, "--config", help="TOML config file"),
):
    """Print the merged configuration (defaults, file, environment)."""
    from ..core.config import ConfigError, load_config

    try:
        config = load_config(config_file)
    except ConfigError as e:
        console.print(f"[red]Error:[/red] {e}")
        raise typer.Exit(1)

    table = Table(title="git-sync configuration")
    table.add_column("Key")
    table.add_column("Value")
    for section, values in config.items():
        if not isinstance(values, dict):
            continue
        for key, value in values.items():
            if key in _MASKED_KEYS and value:
                value = "********"
            table.add_row(f"{section}.{key}", repr(value))
    console.print(table)


@app.command("prune")
def prune(
    repo: Optional[str] = typer.Option(None, "--repo", help="The git repository (used to default --dest)"),
    root: Optional[str] = typer.Option(None, "--root", help="The root directory for git operations"),
    dest: Optional[str] = typer.Option(None, "--dest", help="The published name under --root"),
    config_file: Optional[Path] = typer.Option(None, "--config", help="TOML config file"),
):
    """Remove worktrees left behind by interrupted syncs."""
    from ..core.command import CommandRunner
    from ..sync import PublishError, PublishSwapper

    target = _load_target(repo, root, dest, config_file)
    try:
        removed = PublishSwapper(target, CommandRunner()).prune_orphans()
    except PublishError as e:
        console.print(f"[red]Error:[/red] {e}")
        raise typer.Exit(1)

    if not removed:
        console.print("[dim]No orphaned worktrees.[/dim]")
        return
    for path in removed:
        console.print(f"  Removed {path.name}")
    console.print(f"[green]Pruned {len(removed)} worktree(s).[/green]")
