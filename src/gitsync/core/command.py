"""Command executor used for every git invocation."""

from __future__ import annotations

import logging
import os
import subprocess
from dataclasses import dataclass

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT = 300


class CommandError(Exception):
    """Raised when a command cannot be run or exits non-zero."""

    def __init__(self, args: list[str], cwd: str | None, returncode: int | None, output: str, reason: str = ""):
        self.cmd = list(args)
        self.cwd = cwd
        self.returncode = returncode
        self.output = output
        detail = reason or f"exit status {returncode}"
        super().__init__(f"error running {cmd_for_log(args)} in {cwd or '.'!r}: {detail}: {output.strip()!r}")


@dataclass
class CommandResult:
    args: list[str]
    cwd: str | None
    returncode: int
    output: str

    @property
    def ok(self) -> bool:
        return self.returncode == 0


def cmd_for_log(args: list[str]) -> str:
    """Render a command line for logs, quoting arguments with whitespace."""
    return " ".join(f'"{a}"' if any(c in a for c in " \t\n") else a for a in args)


class CommandRunner:
    """Run external commands with combined output and an optional env overlay.

    The overlay is how credential setup (e.g. ``GIT_SSH_COMMAND``) reaches git
    without touching ``os.environ``.
    """

    def __init__(self, env: dict[str, str] | None = None, timeout: float = DEFAULT_TIMEOUT):
        self.env = dict(env or {})
        self.timeout = timeout

    def _environ(self) -> dict[str, str] | None:
        if not self.env:
            return None
        return {**os.environ, **self.env}

    def run(
        self,
        args: list[str],
        cwd: str | os.PathLike | None = None,
        check: bool = True,
        input: str | None = None,
    ) -> CommandResult:
        cwd_str = str(cwd) if cwd is not None else None
        logger.debug("run(%r): %s", cwd_str or "", cmd_for_log(args))
        try:
            proc = subprocess.run(
                args,
                cwd=cwd_str,
                input=input,
                stdout=subprocess.PIPE,
                stderr=subprocess.STDOUT,
                text=True,
                timeout=self.timeout,
                env=self._environ(),
            )
        except OSError as e:
            raise CommandError(args, cwd_str, None, "", reason=str(e)) from e
        except subprocess.TimeoutExpired as e:
            output = e.output if isinstance(e.output, str) else ""
            raise CommandError(args, cwd_str, None, output, reason=f"timed out after {self.timeout}s") from e

        result = CommandResult(args=list(args), cwd=cwd_str, returncode=proc.returncode, output=proc.stdout or "")
        if check and not result.ok:
            raise CommandError(args, cwd_str, proc.returncode, result.output)
        return result

    def git(self, *args: str, cwd: str | os.PathLike | None = None, check: bool = True) -> CommandResult:
        return self.run(["git", *args], cwd=cwd, check=check)
