"""Snapshot and restore the flat `.patchy` configuration directory.

Checking out the upstream branch removes files that only exist on the
user's branch, so the directory is read into memory first and written
back once the merged branch is in place.
"""

from __future__ import annotations

from pathlib import Path

from .types import BackupEntry

PATCH_SUFFIX = ".patch"


def logical_name_for(file_name: str) -> str | None:
    """Return the patch name for `<name>.patch` files, otherwise None."""
    if file_name.endswith(PATCH_SUFFIX) and len(file_name) > len(PATCH_SUFFIX):
        return file_name[: -len(PATCH_SUFFIX)]
    return None


def snapshot(directory: Path | str) -> list[BackupEntry]:
    """Read every regular file directly inside `directory`.

    Subdirectories are skipped. Raises FileNotFoundError if the directory
    does not exist.
    """
    directory = Path(directory)
    entries: list[BackupEntry] = []
    for path in sorted(directory.iterdir()):
        if not path.is_file():
            continue
        entries.append(
            BackupEntry(
                file_name=path.name,
                contents=path.read_bytes(),
                logical_name=logical_name_for(path.name),
            )
        )
    return entries


def restore(entries: list[BackupEntry], destination: Path | str) -> list[Path]:
    """Write `entries` back under `destination`, creating it if needed."""
    destination = Path(destination)
    destination.mkdir(parents=True, exist_ok=True)
    written: list[Path] = []
    for entry in entries:
        target = destination / entry.file_name
        target.write_bytes(entry.contents)
        written.append(target)
    return written
