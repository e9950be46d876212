"""Ephemeral remotes and branches used while building the merged branch."""

from __future__ import annotations

import re
import uuid
from collections.abc import Iterator
from contextlib import contextmanager
from dataclasses import dataclass, field

from . import console
from .git_ops import Git, GitCommandError
from .merge import abort_merge


class StagingError(RuntimeError):
    """Creating or checking out an ephemeral branch failed."""


@dataclass
class StagedBranch:
    """A remote/branch pair created by `stage`, checked out in the work tree."""

    remote: str
    branch: str
    previous_branch: str
    # Result branch created on top of the staged one, removed on rollback.
    temporary_branch: str | None = None
    released: bool = False
    rollback_errors: list[GitCommandError] = field(default_factory=list)


def slugify(text: str) -> str:
    """Normalize text for branch/remote/file naming."""
    cleaned = re.sub(r"[^a-zA-Z0-9._-]+", "-", text.strip().lower())
    cleaned = re.sub(r"-+", "-", cleaned).strip("-._")
    return cleaned[:48] or "patchy"


def with_uuid(name: str) -> str:
    """Append a random suffix so repeated runs never collide."""
    return f"{slugify(name)}-{uuid.uuid4().hex[:12]}"


def _branch_name(fetch_ref: str) -> str:
    parts = fetch_ref.strip("/").split("/")
    if len(parts) == 4 and parts[:2] == ["refs", "pull"]:
        return f"pr-{parts[2]}"
    return parts[-1]


def _fetch_refspec(fetch_ref: str, branch: str) -> str:
    return f"{fetch_ref}:refs/heads/{branch}"


def stage(git: Git, repo: str, fetch_ref: str, *, remote_url: str) -> StagedBranch:
    """Fetch `fetch_ref` from `remote_url` into a fresh branch and check it out.

    On failure every remote or branch created here has been removed again
    before StagingError is raised.
    """
    remote = with_uuid(repo)
    branch = with_uuid(_branch_name(fetch_ref))

    try:
        git("remote", "add", remote, remote_url)
    except GitCommandError as e:
        raise StagingError(f"Could not add remote {remote_url}: {e}") from e

    try:
        git("fetch", remote, _fetch_refspec(fetch_ref, branch))
    except GitCommandError as e:
        git("remote", "remove", remote)
        raise StagingError(f"Could not fetch {fetch_ref} from {remote_url}: {e}") from e

    try:
        previous_branch = git.current_branch()
        git("checkout", branch)
    except GitCommandError as e:
        git("branch", "--delete", "--force", branch)
        git("remote", "remove", remote)
        raise StagingError(f"Could not checkout branch {branch}, which belongs to remote {remote}: {e}") from e

    return StagedBranch(remote=remote, branch=branch, previous_branch=previous_branch)


def release(git: Git, staged: StagedBranch) -> None:
    """Remove the staged remote and branch. The branch must not be checked out."""
    if staged.released:
        return
    git("remote", "remove", staged.remote)
    git("branch", "--delete", "--force", staged.branch)
    staged.released = True


def rollback(git: Git, staged: StagedBranch) -> list[GitCommandError]:
    """Return to the previous branch and drop the staged objects.

    Every step is attempted even if an earlier one fails. Failures are
    recorded on `staged.rollback_errors` and returned.
    """
    if staged.released:
        return staged.rollback_errors
    steps = [
        lambda: abort_merge(git),
        lambda: git("checkout", "--force", staged.previous_branch),
        lambda: git("remote", "remove", staged.remote),
        lambda: git("branch", "--delete", "--force", staged.branch),
    ]
    if staged.temporary_branch:
        steps.append(lambda: git("branch", "--delete", "--force", staged.temporary_branch))
    for step in steps:
        try:
            step()
        except GitCommandError as e:
            staged.rollback_errors.append(e)
    staged.released = True
    return staged.rollback_errors


@contextmanager
def staging_area(git: Git, repo: str, fetch_ref: str, *, remote_url: str) -> Iterator[StagedBranch]:
    """Stage a branch for the duration of a block.

    On an exception the work tree is rolled back to the previous branch and
    the staged objects are removed before the exception propagates. On
    normal exit the remote and branch are released unless the block already
    did so.
    """
    staged = stage(git, repo, fetch_ref, remote_url=remote_url)
    try:
        yield staged
    except Exception:
        rollback(git, staged)
        raise
    release(git, staged)


@contextmanager
def ephemeral_branch(git: Git, remote: str, fetch_ref: str) -> Iterator[str]:
    """Fetch `fetch_ref` through `remote` into a uniquely named branch.

    The branch is force-deleted when the block exits, whatever the outcome.
    """
    branch = with_uuid(_branch_name(fetch_ref))
    git("fetch", remote, _fetch_refspec(fetch_ref, branch))
    try:
        yield branch
    except Exception:
        try:
            git("branch", "--delete", "--force", branch)
        except GitCommandError as cleanup_error:
            console.fail(f"Could not delete branch {branch}, clean up manually:\n\n{cleanup_error}\n")
        raise
    git("branch", "--delete", "--force", branch)
