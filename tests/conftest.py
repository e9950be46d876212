"""Global pytest configuration and git repository fixtures."""

from __future__ import annotations

import os
import subprocess
from pathlib import Path

import pytest


def pytest_sessionstart(session):  # noqa: ARG001
    # No real backoff sleeps when tests exercise retries.
    os.environ.setdefault("PATCHY_RETRY_BACKOFF_SECONDS", "0")


@pytest.fixture(autouse=True)
def _hermetic_env(monkeypatch):
    for var in (
        "GITHUB_TOKEN",
        "PATCHY_GITHUB_TOKEN",
        "PATCHY_GITHUB_API_URL",
        "PATCHY_TELEMETRY",
        "PATCHY_TELEMETRY_PATH",
    ):
        monkeypatch.delenv(var, raising=False)


def _git(repo: Path, *args: str) -> str:
    res = subprocess.run(["git", *args], cwd=repo, check=True, capture_output=True, text=True)
    return res.stdout.strip()


def _configure(repo: Path) -> None:
    _git(repo, "config", "user.email", "test@example.com")
    _git(repo, "config", "user.name", "Test User")
    _git(repo, "config", "commit.gpgsign", "false")


def _commit(repo: Path, files: dict[str, str | bytes], message: str) -> str:
    for name, content in files.items():
        path = repo / name
        path.parent.mkdir(parents=True, exist_ok=True)
        if isinstance(content, bytes):
            path.write_bytes(content)
        else:
            path.write_text(content)
    _git(repo, "add", "--", *files)
    _git(repo, "commit", "-m", message)
    return _git(repo, "rev-parse", "HEAD")


@pytest.fixture
def git():
    """Run a git command in a repository and return stripped stdout."""
    return _git


@pytest.fixture
def commit():
    """Write files, stage them, and commit; returns the new commit sha."""
    return _commit


@pytest.fixture
def make_repo():
    """Create a repository on `main` with one initial commit."""

    def _make(path: Path, files: dict[str, str] | None = None) -> Path:
        path.mkdir(parents=True, exist_ok=True)
        _git(path, "init", "-b", "main")
        _configure(path)
        _commit(path, files or {"README.md": "base\n", "a.txt": "a\n"}, "Initial commit")
        return path

    return _make


@pytest.fixture
def clone_repo():
    """Clone `source` into `dest` with a test identity configured."""

    def _clone(source: Path, dest: Path) -> Path:
        subprocess.run(["git", "clone", str(source), str(dest)], check=True, capture_output=True)
        _configure(dest)
        return dest

    return _clone


@pytest.fixture
def git_repo(tmp_path, make_repo):
    """A temporary git repository with README.md and a.txt committed on main."""
    return make_repo(tmp_path / "repo")
