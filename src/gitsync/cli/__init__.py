"""CLI interface using Typer."""

import typer

app = typer.Typer(name="git-sync", help="git-sync: keep a directory in sync with a git branch")

# Import subcommand modules to register them
from . import sync_cmds  # noqa: F401, E402
from . import status_cmds  # noqa: F401, E402
