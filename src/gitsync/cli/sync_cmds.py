"""Sync command: the long-running poller."""

from __future__ import annotations

from pathlib import Path
from typing import Optional

import typer
from rich.console import Console

from . import app

console = Console()


@app.command("run")
def run(
    repo: Optional[str] = typer.Option(None, "--repo", help="The git repository to clone"),
    branch: Optional[str] = typer.Option(None, "--branch", help="The git branch to check out"),
    rev: Optional[str] = typer.Option(None, "--rev", help="The git revision (tag or hash) to check out"),
    depth: Optional[int] = typer.Option(
        None, "--depth", help="Use a shallow clone with history truncated to this many commits"
    ),
    root: Optional[str] = typer.Option(None, "--root", help="The root directory for git operations"),
    dest: Optional[str] = typer.Option(
        None, "--dest", help="The name at which to publish the checked-out files under --root"
    ),
    wait: Optional[float] = typer.Option(None, "--wait", help="The number of seconds between syncs"),
    one_time: Optional[bool] = typer.Option(None, "--one-time/--no-one-time", help="Exit after the initial checkout"),
    max_sync_failures: Optional[int] = typer.Option(
        None, "--max-sync-failures", help="Consecutive failures allowed before aborting (the first sync must succeed)"
    ),
    permissions: Optional[str] = typer.Option(
        None, "--change-permissions", help="Octal file mode to apply to the checked-out files"
    ),
    username: Optional[str] = typer.Option(None, "--username", help="The username to use"),
    password: Optional[str] = typer.Option(None, "--password", help="The password to use"),
    ssh: Optional[bool] = typer.Option(None, "--ssh/--no-ssh", help="Use SSH for git operations"),
    config_file: Optional[Path] = typer.Option(None, "--config", help="TOML config file"),
    verbose: int = typer.Option(0, "--verbose", "-v", count=True, help="Increase log verbosity"),
    log_json: bool = typer.Option(False, "--log-json", help="Write logs as JSON lines"),
):
    """Poll the repository and publish each new revision under --root/--dest."""
    import logging

    from ..core.auth import AuthError, provision_credentials
    from ..core.command import CommandRunner
    from ..core.config import ConfigError, build_target, load_config, parse_mode
    from ..core.log_setup import setup_logging
    from ..sync import SyncEngine
    from ..sync.driver import PollDriver, park_forever

    overrides = {
        "sync": {
            "repo": repo,
            "branch": branch,
            "rev": rev,
            "depth": depth,
            "root": root,
            "dest": dest,
            "wait": wait,
            "one_time": one_time,
            "max_sync_failures": max_sync_failures,
        },
        "auth": {"username": username, "password": password, "ssh": ssh},
    }
    try:
        if permissions is not None:
            overrides["sync"]["permissions"] = parse_mode(permissions)
        config = load_config(config_file, overrides=overrides)
        target = build_target(config)
    except (ConfigError, ValueError) as e:
        console.print(f"[red]ERROR:[/red] {e}")
        raise typer.Exit(1)

    setup_logging(
        verbosity=verbose or config["logging"].get("verbosity", 0),
        json_output=log_json or config["logging"].get("json", False),
    )
    log = logging.getLogger("gitsync")
    log.info(
        "starting up: repo=%s branch=%s rev=%s root=%s dest=%s",
        target.repo,
        target.branch,
        target.rev,
        target.root,
        target.dest,
    )

    runner = CommandRunner()
    try:
        provision_credentials(config, runner)
    except AuthError as e:
        console.print(f"[red]ERROR:[/red] can't configure credentials: {e}")
        raise typer.Exit(1)

    sync_conf = config["sync"]
    driver = PollDriver(
        SyncEngine(target, runner=runner, logger=log),
        interval=sync_conf["wait"],
        one_time=sync_conf["one_time"],
        max_failures=sync_conf["max_sync_failures"],
        park=park_forever,
        logger=log,
    )
    raise typer.Exit(driver.run())
