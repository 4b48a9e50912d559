"""Data types shared by the sync components."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path

WORKTREE_PREFIX = "rev-"


@dataclass(frozen=True)
class SyncTarget:
    """What to sync and where. Fixed for the lifetime of the process."""

    repo: str
    root: str = "/git"
    dest: str = ""
    branch: str = "master"
    rev: str = "HEAD"
    depth: int = 0
    chmod: int | None = None

    @property
    def root_path(self) -> Path:
        return Path(self.root)

    @property
    def pointer_path(self) -> Path:
        return self.root_path / self.dest

    @property
    def tracks_branch_head(self) -> bool:
        return self.rev == "HEAD"

    def worktree_path(self, revision: str) -> Path:
        return self.root_path / f"{WORKTREE_PREFIX}{revision}"


@dataclass(frozen=True)
class Worktree:
    path: Path
    revision: str

    @property
    def name(self) -> str:
        return self.path.name


def revision_from_worktree_name(name: str) -> str | None:
    """Return the revision a ``rev-<hash>`` directory was built for."""
    if name.startswith(WORKTREE_PREFIX) and len(name) > len(WORKTREE_PREFIX):
        return name[len(WORKTREE_PREFIX) :]
    return None


class SyncStatus(Enum):
    NO_UPDATE = "no-update-needed"
    UPDATED = "updated"
    FAILED = "failed"


@dataclass
class SyncOutcome:
    """Result of one engine pass."""

    status: SyncStatus
    revision: str | None = None
    error: Exception | None = None
    cleanup_error: Exception | None = None
    duration_ms: int = field(default=0, compare=False)

    @property
    def ok(self) -> bool:
        return self.status is not SyncStatus.FAILED

    @classmethod
    def no_update(cls, revision: str | None = None) -> SyncOutcome:
        return cls(SyncStatus.NO_UPDATE, revision=revision)

    @classmethod
    def updated(cls, revision: str, cleanup_error: Exception | None = None) -> SyncOutcome:
        return cls(SyncStatus.UPDATED, revision=revision, cleanup_error=cleanup_error)

    @classmethod
    def failed(cls, error: Exception) -> SyncOutcome:
        return cls(SyncStatus.FAILED, error=error)
