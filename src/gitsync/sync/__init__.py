"""Sync engine: resolve, build, publish."""

from .builder import WorktreeBuilder
from .driver import PollDriver, park_forever
from .engine import SyncEngine, SyncState
from .errors import (
    BuildError,
    CleanupError,
    CloneError,
    GitSyncError,
    NetworkError,
    PublishError,
    RemoteError,
    ResolutionError,
)
from .models import SyncOutcome, SyncStatus, SyncTarget, Worktree
from .publisher import PublishSwapper
from .resolver import RevisionResolver

__all__ = [
    "SyncEngine",
    "SyncState",
    "PollDriver",
    "park_forever",
    "RevisionResolver",
    "WorktreeBuilder",
    "PublishSwapper",
    "SyncTarget",
    "SyncOutcome",
    "SyncStatus",
    "Worktree",
    "GitSyncError",
    "CloneError",
    "ResolutionError",
    "RemoteError",
    "NetworkError",
    "BuildError",
    "PublishError",
    "CleanupError",
]
