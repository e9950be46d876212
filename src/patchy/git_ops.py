"""Thin wrappers around the git executable.

Every git call in patchy goes through a `Git` instance bound to one
repository root, so the working tree and index are only ever touched
through a single handle.
"""

from __future__ import annotations

import subprocess
from pathlib import Path


class GitCommandError(RuntimeError):
    """A git invocation exited with a non-zero status."""

    def __init__(self, args: list[str], stdout: str, stderr: str, returncode: int) -> None:
        self.args_list = list(args)
        self.stdout = stdout
        self.stderr = stderr
        self.returncode = returncode
        super().__init__(
            "Git command failed.\n"
            f"Command: git {' '.join(self.args_list)}\n"
            f"Stdout: {stdout.strip()}\n"
            f"Stderr: {stderr.strip()}"
        )


def _decode(data: bytes) -> str:
    # git output can quote file content in any encoding.
    return data.decode("utf-8", errors="replace")


def _run_bytes(root: Path, args: list[str]) -> subprocess.CompletedProcess[bytes]:
    return subprocess.run(["git", *args], cwd=str(root), capture_output=True)


def _run(root: Path, args: list[str]) -> subprocess.CompletedProcess[str]:
    res = _run_bytes(root, args)
    return subprocess.CompletedProcess(res.args, res.returncode, _decode(res.stdout), _decode(res.stderr))


class Git:
    """Run git commands against a fixed working directory."""

    def __init__(self, root: Path | str) -> None:
        self.root = Path(root)

    def __call__(self, *args: str) -> str:
        res = _run(self.root, list(args))
        if res.returncode != 0:
            raise GitCommandError(list(args), res.stdout, res.stderr, res.returncode)
        return res.stdout.rstrip()

    def run_bytes(self, *args: str) -> bytes:
        """Run git and return stdout untouched (no decoding, no newline translation)."""
        res = _run_bytes(self.root, list(args))
        if res.returncode != 0:
            raise GitCommandError(list(args), _decode(res.stdout), _decode(res.stderr), res.returncode)
        return res.stdout

    def current_branch(self) -> str:
        return self("rev-parse", "--abbrev-ref", "HEAD")

    def remotes(self) -> list[str]:
        return [ln for ln in self("remote").splitlines() if ln.strip()]

    def branches(self) -> list[str]:
        out = self("branch", "--list", "--format=%(refname:short)")
        return [ln.strip() for ln in out.splitlines() if ln.strip()]

    def last_commit_subject(self) -> str:
        message = self("log", "-1", "--format=%B")
        return message.splitlines()[0] if message else ""


def git_root(path: Path | str) -> Path:
    """Return the top-level directory of the repository containing `path`."""
    res = _run(Path(path), ["rev-parse", "--show-toplevel"])
    if res.returncode != 0:
        raise GitCommandError(["rev-parse", "--show-toplevel"], res.stdout, res.stderr, res.returncode)
    return Path(res.stdout.strip())


def git_status_porcelain(git: Git) -> list[str]:
    """Return `git status --porcelain` lines (empty list means clean)."""
    return [ln for ln in git("status", "--porcelain").splitlines() if ln.strip()]


def git_has_tracked_changes(git: Git) -> bool:
    """True if any tracked file is modified, staged, or in conflict."""
    return any(not ln.startswith("?? ") for ln in git_status_porcelain(git))


def git_has_staged_changes(git: Git) -> bool:
    """True if index has changes (`git diff --cached --quiet` is non-zero)."""
    res = _run(git.root, ["diff", "--cached", "--quiet"])
    # 0 = no changes, 1 = changes, other = error
    if res.returncode == 0:
        return False
    if res.returncode == 1:
        return True
    raise GitCommandError(["diff", "--cached", "--quiet"], res.stdout, res.stderr, res.returncode)


def git_ref_exists(git: Git, ref: str) -> bool:
    return _run(git.root, ["rev-parse", "--quiet", "--verify", ref]).returncode == 0


def git_path_exists(git: Git, name: str) -> bool:
    """True if `name` exists inside the repository's git directory."""
    return (git.root / git("rev-parse", "--git-path", name)).exists()
