"""Revision resolution against the local copy and the remote."""

from __future__ import annotations

import logging
from pathlib import Path

from ..core.command import CommandError, CommandRunner
from .errors import NetworkError, RemoteError, ResolutionError
from .models import SyncTarget

# Substrings git prints when the transport, not the ref, is the problem.
_NETWORK_MARKERS = (
    "could not resolve host",
    "unable to access",
    "could not read from remote repository",
    "connection refused",
    "connection timed out",
    "operation timed out",
    "network is unreachable",
    "timed out after",
)


def _is_network_failure(output: str) -> bool:
    lowered = output.lower()
    return any(marker in lowered for marker in _NETWORK_MARKERS)


class RevisionResolver:
    def __init__(self, target: SyncTarget, runner: CommandRunner, logger: logging.Logger | None = None):
        self.target = target
        self.runner = runner
        self.log = logger or logging.getLogger(__name__)

    def resolve(self, local_root: str | Path, rev: str) -> str:
        """Return the commit hash ``rev`` names in the copy at ``local_root``."""
        try:
            result = self.runner.git("rev-list", "-n1", rev, cwd=local_root)
        except CommandError as e:
            raise ResolutionError(f"cannot resolve {rev!r} in {local_root}: {e}") from e
        resolved = result.output.strip()
        if not resolved:
            raise ResolutionError(f"cannot resolve {rev!r} in {local_root}: no commit")
        return resolved

    def tracking_ref(self) -> str:
        """Remote ref to poll: the branch head, or the tag named by rev."""
        if self.target.tracks_branch_head:
            return f"refs/heads/{self.target.branch}"
        return f"refs/tags/{self.target.rev}"

    def remote_head(self, git_root: str | Path, ref: str) -> str:
        """Ask origin what ``ref`` points to.

        Annotated tags are listed twice by ls-remote; the peeled ``^{}`` entry
        names the commit and wins over the tag object.
        """
        peeled = f"{ref}^{{}}"
        try:
            result = self.runner.git("ls-remote", "-q", "origin", ref, peeled, cwd=git_root)
        except CommandError as e:
            if _is_network_failure(e.output) or _is_network_failure(str(e)):
                raise NetworkError(f"remote unreachable resolving {ref} from {git_root}: {e}") from e
            raise RemoteError(f"cannot resolve {ref} on remote from {git_root}: {e}") from e

        refs: dict[str, str] = {}
        for line in result.output.splitlines():
            parts = line.strip().split("\t")
            if len(parts) == 2:
                refs[parts[1]] = parts[0]

        remote = refs.get(peeled) or refs.get(ref)
        if not remote:
            raise RemoteError(f"ref {ref} not found on remote {self.target.repo}")
        return remote

    def is_immutable(self, local_root: str | Path, rev: str) -> bool:
        # rev-list echoes a hash back unchanged, so a rev that prefixes its own
        # resolution is a (possibly abbreviated) commit id.
        return self.resolve(local_root, rev).startswith(rev)
