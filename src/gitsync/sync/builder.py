"""Worktree builder: clone once, then one detached worktree per revision."""

from __future__ import annotations

import logging
import os
from pathlib import Path

from ..core.command import CommandError, CommandRunner
from .errors import BuildError, CloneError
from .models import SyncTarget, Worktree
from .publisher import remove_tree


class WorktreeBuilder:
    """Materializes fully checked-out worktrees under the sync root.

    Every worktree lives at ``<root>/rev-<hash>`` and shares the object store
    in ``<root>/.git``. Nothing built here is visible to readers until the
    publisher swaps the pointer.
    """

    def __init__(self, target: SyncTarget, runner: CommandRunner, logger: logging.Logger | None = None):
        self.target = target
        self.runner = runner
        self.log = logger or logging.getLogger(__name__)

    @property
    def git_dir(self) -> Path:
        return self.target.root_path / ".git"

    def is_cloned(self) -> bool:
        return self.git_dir.exists()

    def clone(self) -> None:
        args = ["clone", "--no-checkout", "-b", self.target.branch]
        if self.target.depth:
            args += ["--depth", str(self.target.depth)]
        args += [self.target.repo, self.target.root]
        try:
            self.runner.git(*args)
        except CommandError as e:
            raise CloneError(f"cannot clone {self.target.repo} into {self.target.root}: {e}") from e
        self.log.info("cloned %s", self.target.repo)

    def fetch(self) -> None:
        # --force lets moved tags overwrite the local copy of the tag.
        self.runner.git("fetch", "--tags", "--force", "origin", self.target.branch, cwd=self.target.root)

    def build(self, revision: str) -> Worktree:
        """Build a worktree checked out at exactly ``revision``.

        Raises BuildError on any failure; the half-built directory is left
        for the next build of the same revision to clear away.
        """
        root = self.target.root
        path = self.target.worktree_path(revision)
        self.log.info("syncing to %s (%s)", self.target.rev, revision)
        try:
            self.fetch()
            self._clear_stale(path)

            self.runner.git("worktree", "add", "--detach", str(path), revision, cwd=root)
            self.log.info("added worktree %s for %s", path, revision)

            self._relativize_gitdir(path)

            self.runner.git("reset", "--hard", revision, cwd=path)
            self.log.info("reset worktree %s to %s", path, revision)

            if self.target.chmod is not None:
                apply_mode(path, self.target.chmod)
                self.log.debug("changed permissions of %s to %o", path, self.target.chmod)
        except (CommandError, OSError) as e:
            raise BuildError(f"cannot build worktree for {revision} in {root}: {e}") from e

        return Worktree(path=path, revision=revision)

    def _clear_stale(self, path: Path) -> None:
        """Remove leftovers of an aborted build at ``path``."""
        if not path.exists() and not path.is_symlink():
            return
        self.log.warning("removing stale worktree %s", path)
        if path.is_dir() and not path.is_symlink():
            remove_tree(path)
        else:
            path.unlink()
        self.runner.git("worktree", "prune", cwd=self.target.root)

    def _relativize_gitdir(self, path: Path) -> None:
        # git writes an absolute gitdir; readers may mount the root elsewhere.
        rel = os.path.relpath(path, self.target.root)
        (path / ".git").write_text(f"gitdir: {Path('..', '.git', 'worktrees', rel).as_posix()}\n", encoding="utf-8")


def apply_mode(path: str | Path, mode: int) -> None:
    """chmod -R: apply ``mode`` to ``path`` and everything below it, skipping symlinks."""
    for dirpath, dirnames, filenames in os.walk(path, topdown=False):
        for name in dirnames + filenames:
            full = os.path.join(dirpath, name)
            if not os.path.islink(full):
                os.chmod(full, mode)
    os.chmod(path, mode)
