"""Credential provisioning: runs before the first remote operation."""

from __future__ import annotations

import logging
import os
import stat
from pathlib import Path

from .command import CommandError, CommandRunner

logger = logging.getLogger(__name__)

DEFAULT_SSH_KEY_PATH = "/etc/git-secret/ssh"


class AuthError(Exception):
    """Raised when credentials cannot be put in place."""


def setup_git_auth(runner: CommandRunner, username: str, password: str, git_url: str) -> None:
    """Store username/password in git's credential cache for ``git_url``."""
    logger.info("setting up the git credential cache")
    try:
        runner.run(["git", "config", "--global", "credential.helper", "cache"])
        creds = f"url={git_url}\nusername={username}\npassword={password}\n"
        runner.run(["git", "credential", "approve"], input=creds)
    except CommandError as e:
        # The output may echo the credential; report the command only.
        raise AuthError(f"error setting up git credentials: {' '.join(e.cmd)} failed") from e


def setup_git_ssh(key_path: str | Path = DEFAULT_SSH_KEY_PATH) -> dict[str, str]:
    """Check the SSH key and return the env overlay that makes git use it."""
    logger.info("setting up git SSH credentials")
    try:
        mode = stat.S_IMODE(os.stat(key_path).st_mode)
    except OSError as e:
        raise AuthError(f"could not find SSH key secret: {e}") from e

    if mode != 0o400:
        raise AuthError(
            f"permissions {oct(mode)} for SSH key {key_path} are too open. "
            "It is recommended to mount the secret volume with `defaultMode: 256` (octal 0400)."
        )

    return {
        "GIT_SSH_COMMAND": f"ssh -q -o UserKnownHostsFile=/dev/null -o StrictHostKeyChecking=no -i {key_path}",
    }


def provision_credentials(config: dict, runner: CommandRunner) -> None:
    """Apply the ``[auth]`` section: credential cache and/or SSH env overlay."""
    auth = config.get("auth", {})
    repo = config.get("sync", {}).get("repo", "")

    if auth.get("username") and auth.get("password"):
        setup_git_auth(runner, auth["username"], auth["password"], repo)

    if auth.get("ssh"):
        runner.env.update(setup_git_ssh(auth.get("ssh_key_path") or DEFAULT_SSH_KEY_PATH))
