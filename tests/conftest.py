"""Shared fixtures: a real origin repository and a sync root beside it."""

from __future__ import annotations

import subprocess

import pytest

from gitsync.sync.models import SyncTarget


def git(repo, *args: str) -> str:
    result = subprocess.run(
        ["git", "-C", str(repo), *args],
        check=True,
        capture_output=True,
        text=True,
    )
    return result.stdout.strip()


def commit_file(repo, name: str, content: str, message: str | None = None) -> str:
    """Write a file in ``repo``, commit it, and return the new commit hash."""
    path = repo / name
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(content, encoding="utf-8")
    git(repo, "add", name)
    git(repo, "commit", "-m", message or f"update {name}")
    return git(repo, "rev-parse", "HEAD")


@pytest.fixture(autouse=True)
def clean_sync_env(monkeypatch):
    """Keep GIT_SYNC_* from the developer's shell out of tests."""
    import os

    for var in list(os.environ):
        if var.startswith("GIT_SYNC_"):
            monkeypatch.delenv(var)


@pytest.fixture
def origin(tmp_path):
    """A git repo on branch ``main`` with one commit, used as the remote."""
    repo = tmp_path / "origin"
    repo.mkdir()
    subprocess.run(["git", "init", str(repo)], check=True, capture_output=True)
    git(repo, "symbolic-ref", "HEAD", "refs/heads/main")
    git(repo, "config", "user.email", "test@test.com")
    git(repo, "config", "user.name", "Test")
    git(repo, "config", "tag.gpgSign", "false")
    git(repo, "config", "commit.gpgSign", "false")
    commit_file(repo, "README.md", "v1\n", "init")
    return repo


@pytest.fixture
def sync_root(tmp_path):
    return tmp_path / "git"


@pytest.fixture
def make_target(origin, sync_root):
    """Factory for SyncTargets pointing at the origin fixture."""

    def _make(**kwargs) -> SyncTarget:
        params = {"repo": str(origin), "root": str(sync_root), "dest": "app", "branch": "main"}
        params.update(kwargs)
        return SyncTarget(**params)

    return _make


@pytest.fixture
def target(make_target):
    return make_target()


class RecordingRunner:
    """CommandRunner wrapper that records every command line it runs."""

    def __init__(self, runner=None):
        from gitsync.core.command import CommandRunner

        self.inner = runner or CommandRunner()
        self.calls: list[list[str]] = []

    @property
    def env(self):
        return self.inner.env

    def run(self, args, cwd=None, check=True, input=None):
        self.calls.append(list(args))
        return self.inner.run(args, cwd=cwd, check=check, input=input)

    def git(self, *args, cwd=None, check=True):
        return self.run(["git", *args], cwd=cwd, check=check)

    def git_subcommands(self) -> list[str]:
        return [c[1] for c in self.calls if c and c[0] == "git" and len(c) > 1]


@pytest.fixture
def recording_runner():
    return RecordingRunner()
