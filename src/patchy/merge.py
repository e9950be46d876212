"""Merge a staged branch into the current branch.

Conflicts confined to Markdown files are resolved by keeping the current
branch's version. Any other conflict aborts the merge and leaves the
repository exactly as it was before the attempt.
"""

from __future__ import annotations

from .git_ops import Git, GitCommandError, git_ref_exists
from .types import MergeOutcome

# Only conflicts in these files are resolved without asking.
DOCUMENTATION_SUFFIX = ".md"


class MergeError(RuntimeError):
    """A branch could not be merged."""


class NothingToMerge(MergeError):
    """The branch is already contained in the current branch."""


class ConflictUnresolved(MergeError):
    """The merge hit conflicts outside documentation files and was aborted."""

    def __init__(self, branch: str, paths: list[str]) -> None:
        self.branch = branch
        self.paths = list(paths)
        super().__init__(f"Unresolved conflict merging {branch} in: {', '.join(self.paths)}")


def is_auto_resolvable(path: str) -> bool:
    return path.endswith(DOCUMENTATION_SUFFIX)


def conflicted_paths(git: Git) -> list[str]:
    out = git("diff", "--name-only", "--diff-filter=U")
    return [ln for ln in out.splitlines() if ln.strip()]


def merge_branch(git: Git, branch: str) -> MergeOutcome:
    """Merge `branch` into HEAD without committing.

    Returns CLEAN or AUTO_RESOLVED; in both cases the merge still has to be
    committed (see `commit_merge`).
    """
    try:
        out = git("merge", branch, "--no-commit", "--no-ff")
    except GitCommandError as merge_error:
        paths = conflicted_paths(git)
        if not paths:
            # git refused before touching the tree (e.g. untracked files in the way).
            raise

        unresolvable = [p for p in paths if not is_auto_resolvable(p)]
        if unresolvable:
            git("merge", "--abort")
            raise ConflictUnresolved(branch, unresolvable) from merge_error

        for path in paths:
            try:
                git("checkout", "--ours", "--", path)
                git("add", "--", path)
            except GitCommandError as e:
                # Delete/modify conflicts have no "ours" blob to check out.
                git("merge", "--abort")
                raise ConflictUnresolved(branch, [path]) from e
        return MergeOutcome.AUTO_RESOLVED

    if "Already up to date" in out or "Already up-to-date" in out:
        raise NothingToMerge(f"{branch} is already merged")
    return MergeOutcome.CLEAN


def commit_merge(git: Git, subject: str, body: str = "") -> None:
    args = ["commit", "--message", subject]
    if body:
        args += ["--message", body]
    git(*args)


def merge_in_progress(git: Git) -> bool:
    return git_ref_exists(git, "MERGE_HEAD")


def abort_merge(git: Git) -> None:
    """Abort a pending merge, if there is one."""
    if merge_in_progress(git):
        git("merge", "--abort")
