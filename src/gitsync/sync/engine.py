"""Sync engine: one pass of detect, resolve, build, publish."""

from __future__ import annotations

import logging
import time
from enum import Enum
from pathlib import Path

from ..core.command import CommandRunner
from .builder import WorktreeBuilder
from .errors import GitSyncError
from .models import SyncOutcome, SyncTarget
from .publisher import PublishSwapper
from .resolver import RevisionResolver


class SyncState(Enum):
    UNINITIALIZED = "uninitialized"  # no clone under root
    CLONED = "cloned"  # clone present, nothing published yet
    SYNCED = "synced"  # pointer references a worktree


class SyncEngine:
    """Converges ``<root>/<dest>`` onto the target revision.

    The engine keeps no state between passes; every call to :meth:`sync`
    re-derives where it stands from the filesystem, so it is safe to call
    again after any failure. Retries and pacing belong to the caller.
    """

    def __init__(
        self,
        target: SyncTarget,
        runner: CommandRunner | None = None,
        logger: logging.Logger | None = None,
        resolver: RevisionResolver | None = None,
        builder: WorktreeBuilder | None = None,
        publisher: PublishSwapper | None = None,
    ):
        self.target = target
        self.runner = runner or CommandRunner()
        self.log = logger or logging.getLogger(__name__)
        self.resolver = resolver or RevisionResolver(target, self.runner, self.log)
        self.builder = builder or WorktreeBuilder(target, self.runner, self.log)
        self.publisher = publisher or PublishSwapper(target, self.runner, self.log)

    def state(self) -> SyncState:
        if not self.builder.is_cloned():
            return SyncState.UNINITIALIZED
        if self.publisher.current() is None:
            return SyncState.CLONED
        return SyncState.SYNCED

    def local_root(self) -> Path:
        """Where local resolution happens: the published tree once there is one."""
        if self.publisher.current() is not None:
            return self.target.pointer_path
        return self.target.root_path

    def sync(self) -> SyncOutcome:
        """Run one pass. Never raises for sync failures; they come back as FAILED."""
        start = time.monotonic()
        try:
            outcome = self._sync()
        except GitSyncError as e:
            outcome = SyncOutcome.failed(e)
        outcome.duration_ms = int((time.monotonic() - start) * 1000)
        return outcome

    def _sync(self) -> SyncOutcome:
        state = self.state()
        rev = self.target.rev

        if state is SyncState.UNINITIALIZED:
            self.builder.clone()
            revision = self.resolver.resolve(self.target.root, rev)
        elif state is SyncState.CLONED:
            self.log.info("found clone in %s with nothing published", self.target.root)
            revision = self._wanted_revision(self.target.root)
        else:
            # Tag refs are shared by every worktree and move on fetch; compare
            # against the commit the published tree was built from.
            published = self.publisher.current_revision() or self.resolver.resolve(self.target.pointer_path, "HEAD")
            local = self.resolver.resolve(self.target.pointer_path, rev)
            if local.startswith(rev):
                # A commit id cannot move; the remote has nothing to tell us.
                if local == published:
                    self.log.debug("no update required")
                    return SyncOutcome.no_update(local)
                revision = local
            else:
                remote = self.resolver.remote_head(self.target.root, self.resolver.tracking_ref())
                self.log.debug("published hash: %s", published)
                self.log.debug("remote hash:    %s", remote)
                if remote == published:
                    self.log.debug("no update required")
                    return SyncOutcome.no_update(remote)
                self.log.info("update required")
                revision = remote

        worktree = self.builder.build(revision)
        cleanup_error = self.publisher.publish(worktree)
        return SyncOutcome.updated(revision, cleanup_error=cleanup_error)

    def _wanted_revision(self, git_root: str | Path) -> str:
        """Commit to build from an existing clone whose refs may be out of date."""
        local = self.resolver.resolve(git_root, self.target.rev)
        if local.startswith(self.target.rev):
            return local
        return self.resolver.remote_head(git_root, self.resolver.tracking_ref())

    def is_immutable(self) -> bool:
        """True when the target rev names a fixed commit, so polling can stop."""
        return self.resolver.is_immutable(self.local_root(), self.target.rev)
