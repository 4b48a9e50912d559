"""Publish swapper: atomic symlink swap followed by retirement of the old worktree."""

from __future__ import annotations

import logging
import os
import shutil
import stat
from pathlib import Path
from uuid import uuid4

from ..core.command import CommandError, CommandRunner
from .errors import CleanupError, PublishError
from .models import WORKTREE_PREFIX, SyncTarget, Worktree, revision_from_worktree_name


class PublishSwapper:
    """Owns the publication pointer ``<root>/<dest>``.

    The pointer is a relative symlink to a ``rev-<hash>`` worktree. It is only
    ever changed by renaming a freshly made link over it, so readers see the
    old tree or the new one and nothing in between.
    """

    def __init__(self, target: SyncTarget, runner: CommandRunner, logger: logging.Logger | None = None):
        self.target = target
        self.runner = runner
        self.log = logger or logging.getLogger(__name__)

    @property
    def pointer(self) -> Path:
        return self.target.pointer_path

    def current(self) -> Path | None:
        """Return the worktree the pointer references, or None if unpublished."""
        link = self.pointer
        if not link.is_symlink():
            if link.exists():
                raise PublishError(f"{link} exists and is not a symlink")
            return None
        try:
            return link.resolve(strict=True)
        except FileNotFoundError:
            # Dangling pointer: the referenced tree is already gone.
            self.log.warning("publication pointer %s is dangling", link)
            return None
        except OSError as e:
            raise PublishError(f"error accessing symlink {link}: {e}") from e

    def current_revision(self) -> str | None:
        """Revision recorded in the name of the published worktree."""
        if not self.pointer.is_symlink():
            return None
        return revision_from_worktree_name(Path(os.readlink(self.pointer)).name)

    def publish(self, worktree: Worktree) -> CleanupError | None:
        """Point the pointer at ``worktree`` and retire the previous tree.

        Returns the cleanup failure, if any; the swap itself has succeeded by
        then and is not undone.
        """
        root = self.target.root_path
        previous = self.current()

        # Volumes may be mounted elsewhere in other containers; keep it relative.
        relative = os.path.relpath(worktree.path, root)
        tmp_link = root / f".{self.target.dest}-{uuid4().hex}.tmp"
        try:
            os.symlink(relative, tmp_link)
            self.log.debug("created symlink %s -> %s", tmp_link.name, relative)
            os.replace(tmp_link, self.pointer)
        except OSError as e:
            _discard(tmp_link)
            raise PublishError(f"cannot point {self.pointer} at {relative}: {e}") from e
        self.log.info("published %s as %s", worktree.name, self.pointer)

        if previous is None or previous == worktree.path.resolve():
            return None
        return self._retire(previous)

    def _retire(self, previous: Path) -> CleanupError | None:
        if previous.parent != self.target.root_path.resolve() or not previous.name.startswith(WORKTREE_PREFIX):
            error = CleanupError(f"refusing to remove {previous}: not a worktree under {self.target.root}")
            self.log.error("cleanup of previous worktree failed: %s", error)
            return error
        try:
            remove_tree(previous)
            self.log.info("removed %s", previous)
            self.runner.git("worktree", "prune", cwd=self.target.root)
            self.log.debug("pruned old worktrees")
        except (OSError, CommandError) as e:
            error = CleanupError(f"cannot retire {previous}: {e}")
            self.log.error("cleanup of previous worktree failed: %s", error)
            return error
        return None

    def prune_orphans(self) -> list[Path]:
        """Remove ``rev-*`` trees nothing points at, e.g. from failed publishes.

        Best-effort: failures are logged and skipped.
        """
        root = self.target.root_path
        if not root.is_dir():
            return []
        published = self.current()
        removed: list[Path] = []
        for entry in sorted(root.iterdir()):
            if not entry.name.startswith(WORKTREE_PREFIX) or entry.is_symlink() or not entry.is_dir():
                continue
            if published is not None and entry.resolve() == published:
                continue
            try:
                remove_tree(entry)
            except OSError as e:
                self.log.warning("cannot remove orphaned worktree %s: %s", entry, e)
                continue
            self.log.info("removed orphaned worktree %s", entry)
            removed.append(entry)
        for entry in root.glob(f".{self.target.dest}-*.tmp"):
            _discard(entry)
        if removed:
            try:
                self.runner.git("worktree", "prune", cwd=root)
            except CommandError as e:
                self.log.warning("git worktree prune failed: %s", e)
        return removed


def remove_tree(path: Path) -> None:
    """rm -rf that also copes with trees made read-only by a permission mask."""
    _ensure_owner_access(path)
    for dirpath, dirnames, _filenames in os.walk(path):
        for name in dirnames:
            full = os.path.join(dirpath, name)
            if not os.path.islink(full):
                _ensure_owner_access(full)
    shutil.rmtree(path)


def _ensure_owner_access(path: str | Path) -> None:
    mode = os.stat(path).st_mode
    if mode & stat.S_IRWXU != stat.S_IRWXU:
        os.chmod(path, mode | stat.S_IRWXU)


def _discard(link: Path) -> None:
    try:
        link.unlink()
    except FileNotFoundError:
        pass
