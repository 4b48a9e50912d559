"""Tests for the sync engine state machine, against a real origin repository."""

from __future__ import annotations

import os
from unittest.mock import patch

from conftest import RecordingRunner, commit_file, git

from gitsync.core.command import CommandRunner
from gitsync.sync.engine import SyncEngine, SyncState
from gitsync.sync.errors import BuildError, CleanupError, CloneError, PublishError, RemoteError
from gitsync.sync.models import SyncStatus


def _snapshot(root):
    """Names and mtimes of everything directly under root, pointer target included."""
    entries = {}
    for p in root.iterdir():
        st = os.lstat(p)
        entries[p.name] = (st.st_mtime_ns, os.readlink(p) if p.is_symlink() else None)
    return entries


class TestFirstSync:
    def test_clone_build_publish(self, target, origin, sync_root):
        engine = SyncEngine(target)
        assert engine.state() is SyncState.UNINITIALIZED

        outcome = engine.sync()

        head = git(origin, "rev-parse", "HEAD")
        assert outcome.status is SyncStatus.UPDATED
        assert outcome.revision == head
        assert outcome.ok
        assert engine.state() is SyncState.SYNCED
        assert os.readlink(sync_root / "app") == f"rev-{head}"
        assert (sync_root / "app" / "README.md").read_text() == "v1\n"

    def test_clone_failure(self, make_target, tmp_path):
        engine = SyncEngine(make_target(repo=str(tmp_path / "missing")))
        outcome = engine.sync()
        assert outcome.status is SyncStatus.FAILED
        assert isinstance(outcome.error, CloneError)

    def test_resumes_after_crash_between_clone_and_publish(self, target, origin, sync_root):
        engine = SyncEngine(target)
        engine.builder.clone()
        assert engine.state() is SyncState.CLONED

        outcome = engine.sync()

        assert outcome.status is SyncStatus.UPDATED
        assert outcome.revision == git(origin, "rev-parse", "HEAD")

    def test_resume_from_clone_picks_up_newer_remote_commit(self, target, origin, sync_root):
        engine = SyncEngine(target)
        engine.builder.clone()
        new_head = commit_file(origin, "README.md", "v2\n")

        outcome = engine.sync()

        assert outcome.status is SyncStatus.UPDATED
        assert outcome.revision == new_head
        assert (sync_root / "app" / "README.md").read_text() == "v2\n"


class TestSteadyState:
    def test_three_cycles(self, target, origin, sync_root):
        engine = SyncEngine(target)

        first = engine.sync()
        assert first.status is SyncStatus.UPDATED
        assert first.revision == git(origin, "rev-parse", "main")

        second = engine.sync()
        assert second.status is SyncStatus.NO_UPDATE

        new_head = commit_file(origin, "README.md", "v2\n")
        third = engine.sync()
        assert third.status is SyncStatus.UPDATED
        assert third.revision == new_head
        assert third.cleanup_error is None
        assert not (sync_root / f"rev-{first.revision}").exists()
        assert (sync_root / "app" / "README.md").read_text() == "v2\n"

    def test_no_update_performs_no_mutation(self, target, sync_root):
        engine = SyncEngine(target)
        engine.sync()
        before = _snapshot(sync_root)

        outcome = engine.sync()

        assert outcome.status is SyncStatus.NO_UPDATE
        assert _snapshot(sync_root) == before

    def test_only_latest_worktree_remains(self, target, origin, sync_root):
        engine = SyncEngine(target)
        engine.sync()
        for i in range(3):
            commit_file(origin, "README.md", f"v{i + 2}\n")
            assert engine.sync().status is SyncStatus.UPDATED

        worktrees = [p.name for p in sync_root.iterdir() if p.name.startswith("rev-")]
        assert worktrees == [f"rev-{git(origin, 'rev-parse', 'HEAD')}"]
        listed = git(sync_root, "worktree", "list", "--porcelain")
        assert listed.count("worktree ") == 2  # main clone + published tree

    def test_remote_failure_leaves_published_tree(self, target, origin, sync_root):
        engine = SyncEngine(target)
        first = engine.sync()
        git(sync_root, "remote", "set-url", "origin", str(origin) + "-gone")

        outcome = engine.sync()

        assert outcome.status is SyncStatus.FAILED
        assert isinstance(outcome.error, RemoteError)
        assert os.readlink(sync_root / "app") == f"rev-{first.revision}"

    def test_reentrant_after_failure(self, target, origin, sync_root):
        engine = SyncEngine(target)
        engine.sync()
        new_head = commit_file(origin, "README.md", "v2\n")

        with patch.object(engine.builder, "build", side_effect=BuildError("interrupted")):
            assert engine.sync().status is SyncStatus.FAILED

        outcome = engine.sync()
        assert outcome.status is SyncStatus.UPDATED
        assert outcome.revision == new_head

    def test_orphan_from_failed_publish_does_not_block(self, target, origin, sync_root):
        engine = SyncEngine(target)
        first = engine.sync()
        new_head = commit_file(origin, "README.md", "v2\n")

        with patch("gitsync.sync.publisher.os.replace", side_effect=OSError("nope")):
            failed = engine.sync()
        assert isinstance(failed.error, PublishError)
        assert (sync_root / f"rev-{new_head}").exists()
        assert os.readlink(sync_root / "app") == f"rev-{first.revision}"

        outcome = engine.sync()
        assert outcome.status is SyncStatus.UPDATED
        assert (sync_root / "app" / "README.md").read_text() == "v2\n"

    def test_fault_between_swap_and_cleanup(self, target, origin, sync_root):
        engine = SyncEngine(target)
        first = engine.sync()
        new_head = commit_file(origin, "README.md", "v2\n")

        with patch("gitsync.sync.publisher.remove_tree", side_effect=OSError("busy")):
            outcome = engine.sync()

        assert outcome.status is SyncStatus.UPDATED
        assert isinstance(outcome.cleanup_error, CleanupError)
        assert os.readlink(sync_root / "app") == f"rev-{new_head}"
        assert (sync_root / f"rev-{first.revision}").exists()


class TestTags:
    def test_tracks_moving_tag(self, make_target, origin, sync_root):
        git(origin, "tag", "-a", "stable", "-m", "stable")
        engine = SyncEngine(make_target(rev="stable"))

        first = engine.sync()
        assert first.revision == git(origin, "rev-parse", "HEAD")
        assert engine.sync().status is SyncStatus.NO_UPDATE
        assert engine.is_immutable() is False

        new_head = commit_file(origin, "README.md", "v2\n")
        git(origin, "tag", "-f", "-a", "stable", "-m", "stable again")

        outcome = engine.sync()
        assert outcome.status is SyncStatus.UPDATED
        assert outcome.revision == new_head
        assert engine.sync().status is SyncStatus.NO_UPDATE

    def test_moved_tag_retried_after_failed_publish(self, make_target, origin, sync_root):
        git(origin, "tag", "-a", "stable", "-m", "stable")
        engine = SyncEngine(make_target(rev="stable"))
        first = engine.sync()
        new_head = commit_file(origin, "README.md", "v2\n")
        git(origin, "tag", "-f", "-a", "stable", "-m", "stable again")

        with patch("gitsync.sync.publisher.os.replace", side_effect=OSError("nope")):
            assert engine.sync().status is SyncStatus.FAILED
        assert os.readlink(sync_root / "app") == f"rev-{first.revision}"

        outcome = engine.sync()

        assert outcome.status is SyncStatus.UPDATED
        assert outcome.revision == new_head
        assert os.readlink(sync_root / "app") == f"rev-{new_head}"
        assert engine.sync().status is SyncStatus.NO_UPDATE


class TestImmutableRevision:
    def test_pinned_hash(self, make_target, origin, sync_root):
        pinned = git(origin, "rev-parse", "HEAD")
        commit_file(origin, "README.md", "v2\n")
        runner = RecordingRunner(CommandRunner())
        engine = SyncEngine(make_target(rev=pinned), runner=runner)

        outcome = engine.sync()

        assert outcome.revision == pinned
        assert (sync_root / "app" / "README.md").read_text() == "v1\n"
        assert engine.is_immutable() is True

        runner.calls.clear()
        commit_file(origin, "README.md", "v3\n")
        assert engine.sync().status is SyncStatus.NO_UPDATE
        assert "ls-remote" not in runner.git_subcommands()
        assert "fetch" not in runner.git_subcommands()

    def test_hash_prefix(self, make_target, origin):
        pinned = git(origin, "rev-parse", "HEAD")
        engine = SyncEngine(make_target(rev=pinned[:10]))
        outcome = engine.sync()
        assert outcome.revision == pinned
        assert engine.is_immutable() is True

    def test_branch_head_is_not_immutable(self, target):
        engine = SyncEngine(target)
        engine.sync()
        assert engine.is_immutable() is False


def test_sync_reports_duration(target):
    outcome = SyncEngine(target).sync()
    assert outcome.duration_ms >= 0
