"""Pytest configuration and fixtures for porter tests."""

import itertools
import os
import subprocess
import sys
import tempfile
from pathlib import Path

import pytest

from porter.core.log import ConsoleSink, setup_logger


@pytest.fixture(autouse=True, scope="session")
def configure_logging():
    """Configure logging for console-only mode during tests."""
    test_log_root = Path(tempfile.gettempdir()) / "porter-tests"
    setup_logger(
        log_root=test_log_root,
        run_name="test",
        console=ConsoleSink(level="debug"),
    )


@pytest.fixture(autouse=True)
def git_identity(monkeypatch, tmp_path):
    """Give git a fixed identity and no user or system config."""
    monkeypatch.setenv("GIT_AUTHOR_NAME", "Porter Tests")
    monkeypatch.setenv("GIT_AUTHOR_EMAIL", "porter@example.com")
    monkeypatch.setenv("GIT_COMMITTER_NAME", "Porter Tests")
    monkeypatch.setenv("GIT_COMMITTER_EMAIL", "porter@example.com")
    monkeypatch.setenv("GIT_CONFIG_NOSYSTEM", "1")
    monkeypatch.setenv("GIT_CONFIG_GLOBAL", str(tmp_path / "gitconfig"))
    monkeypatch.setenv("GIT_EDITOR", "true")


@pytest.fixture
def mock_argv():
    """Save and restore sys.argv."""
    original = sys.argv.copy()
    sys.argv = ["porter"]
    yield
    sys.argv = original


def git(path, *args, env=None) -> str:
    """Run git in path and return its stdout."""
    result = subprocess.run(
        ["git", *args],
        cwd=path,
        check=True,
        capture_output=True,
        text=True,
        env={**os.environ, **env} if env else None,
    )
    return result.stdout.strip()


class GitRepo:
    """Throwaway repository driven straight through subprocess.

    Every commit gets its own timestamp, one second after the last,
    so ordering by commit date is deterministic.
    """

    _clock = itertools.count(1_700_000_000)

    def __init__(self, path: Path):
        self.path = path

    def git(self, *args) -> str:
        return git(self.path, *args)

    def commit(self, filename: str, content: str, message: str) -> str:
        """Write one file, commit it and return the full hash."""
        target = self.path / filename
        target.parent.mkdir(parents=True, exist_ok=True)
        target.write_text(content)
        self.git("add", filename)
        stamp = f"{next(self._clock)} +0000"
        git(
            self.path, "commit", "-q", "-m", message,
            env={"GIT_AUTHOR_DATE": stamp, "GIT_COMMITTER_DATE": stamp},
        )
        return self.head()

    def head(self, ref: str = "HEAD") -> str:
        return self.git("rev-parse", ref)

    def subjects(self, revision_range: str) -> list[str]:
        """Commit subjects in a range, oldest first."""
        output = self.git("log", "--reverse", "--format=%s", revision_range)
        return output.splitlines()

    def remotes(self) -> list[str]:
        return self.git("remote").splitlines()


@pytest.fixture
def make_repo(tmp_path):
    """Factory for a repository with one base commit on a branch."""
    def _make(name: str = "source", branch: str = "feature/port") -> GitRepo:
        path = tmp_path / name
        path.mkdir()
        git(path, "init", "-q")
        repo = GitRepo(path)
        repo.commit("shared.txt", "base\n", "base")
        repo.git("checkout", "-q", "-b", branch)
        return repo
    return _make


@pytest.fixture
def source_repo(make_repo):
    """Source repository whose feature/port branch has c1, c2, c3.

    The base commit is reachable as repo.base; the three commits as
    repo.commits, oldest first. c2 rewrites shared.txt.
    """
    repo = make_repo("source")
    repo.base = repo.head()
    repo.commits = [
        repo.commit("one.txt", "one\n", "c1"),
        repo.commit("shared.txt", "from source\n", "c2"),
        repo.commit("three.txt", "three\n", "c3"),
    ]
    return repo


@pytest.fixture
def target_repo(tmp_path):
    """Cross-repository target sharing only the base commit.

    A clone of the source reset to the base commit, with the three
    source commits pruned so they are unknown to it until fetched.
    """
    def _make(source: GitRepo, name: str = "target",
              branch: str = "port-b") -> GitRepo:
        path = tmp_path / name
        git(tmp_path, "clone", "-q", str(source.path), str(path))
        clone = GitRepo(path)
        clone.git("checkout", "-q", "-b", branch, source.base)
        clone.git("remote", "remove", "origin")
        # Forget the source commits cloned along with the branch.
        for ref in clone.git(
            "for-each-ref", "--format=%(refname)", "refs/heads"
        ).splitlines():
            if ref != f"refs/heads/{branch}":
                clone.git("update-ref", "-d", ref)
        clone.git("reflog", "expire", "--expire=now", "--all")
        clone.git("gc", "-q", "--prune=now")
        return clone
    return _make
