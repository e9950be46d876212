"""Core data types for patchy."""

from __future__ import annotations

import enum
from dataclasses import dataclass, field


@dataclass(frozen=True)
class Contribution:
    """A pull request resolved against the GitHub API."""

    source_repo: str  # "owner/name"
    identifier: str  # pull request number
    fetch_ref: str  # e.g. "refs/pull/101/head"
    display_title: str
    source_url: str
    source_branch: str = ""

    @property
    def label(self) -> str:
        return f"#{self.identifier} {self.display_title}"


@dataclass(frozen=True)
class BackupEntry:
    """One file read out of the configuration directory."""

    file_name: str
    contents: bytes
    logical_name: str | None = None  # set for "<name>.patch" files


class MergeOutcome(enum.Enum):
    """Successful results of merging one branch."""

    CLEAN = "clean"
    AUTO_RESOLVED = "auto_resolved"


@dataclass
class ContributionResult:
    """What happened to one configured pull request."""

    identifier: str
    ok: bool
    contribution: Contribution | None = None
    outcome: MergeOutcome | None = None
    error: str = ""


@dataclass
class PatchResult:
    """What happened to one configured local patch."""

    name: str
    ok: bool
    subject: str = ""
    error: str = ""


@dataclass
class RunResult:
    """Result of a complete `patchy run`."""

    run_id: str
    temporary_branch: str
    target_branch: str
    confirmed: bool
    contributions: list[ContributionResult] = field(default_factory=list)
    patches: list[PatchResult] = field(default_factory=list)

    @property
    def manual_command(self) -> str:
        """The rename that finishes the run by hand."""
        return f"git branch --move --force {self.temporary_branch} {self.target_branch}"

    @property
    def merged(self) -> list[ContributionResult]:
        return [c for c in self.contributions if c.ok]

    @property
    def failed(self) -> list[ContributionResult]:
        return [c for c in self.contributions if not c.ok]
