"""Generate mailbox patch files for `patches:` from local commits."""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path

from .backup import PATCH_SUFFIX
from .git_ops import Git, GitCommandError
from .staging import slugify


@dataclass
class GeneratedPatch:
    commit: str
    ok: bool
    path: Path | None = None
    error: str = ""


def patch_name_for(git: Git, commit: str) -> str:
    """Name a patch after the commit subject, falling back to the hash."""
    try:
        message = git("log", "--format=%B", "--max-count=1", commit)
    except GitCommandError:
        return commit
    subject = message.splitlines()[0] if message else ""
    name = slugify(subject) if subject.strip() else ""
    return name if name and name != "patchy" else commit


def generate_patch(git: Git, config_dir: Path, commit: str, name: str | None = None) -> GeneratedPatch:
    """Write `git format-patch` output for `commit` to `<config_dir>/<name>.patch`."""
    try:
        contents = git.run_bytes("format-patch", "-1", "--stdout", commit)
    except GitCommandError as e:
        return GeneratedPatch(commit=commit, ok=False, error=str(e))

    config_dir.mkdir(parents=True, exist_ok=True)
    path = config_dir / f"{name or patch_name_for(git, commit)}{PATCH_SUFFIX}"
    path.write_bytes(contents)
    return GeneratedPatch(commit=commit, ok=True, path=path)
