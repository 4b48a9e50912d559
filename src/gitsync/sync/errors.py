"""Error taxonomy for the sync engine."""

from __future__ import annotations


class GitSyncError(Exception):
    """Base class for every failure the engine reports."""


class CloneError(GitSyncError):
    """Initial clone of the remote failed."""


class ResolutionError(GitSyncError):
    """A revision could not be mapped to a commit in the local copy."""


class RemoteError(GitSyncError):
    """The remote could not resolve a ref."""


class NetworkError(RemoteError):
    """The remote was unreachable."""


class BuildError(GitSyncError):
    """A worktree could not be fully materialized."""


class PublishError(GitSyncError):
    """The publication pointer could not be swapped. Previous state is intact."""


class CleanupError(GitSyncError):
    """A retired worktree could not be reclaimed. Never fatal."""
