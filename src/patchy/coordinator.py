"""Patchy coordinator - builds the merged branch for one run.

The coordinator manages the full lifecycle:
1. Snapshot the .patchy configuration directory
2. Stage the upstream branch on an ephemeral remote/branch pair
3. Merge every configured pull request, in order, skipping failures
4. Restore the configuration directory and apply local patches
5. Commit the configuration and move the result to a fresh branch
6. Drop the ephemeral objects
7. Overwrite the target branch once the user confirms
"""

from __future__ import annotations

import uuid
from pathlib import Path

from . import console
from .approval import ConfirmationHandler
from .backup import restore, snapshot
from .config import CONFIG_ROOT, PatchyConfig
from .git_ops import Git, GitCommandError, git_has_staged_changes, git_has_tracked_changes, git_path_exists
from .github import FetchError, GitHubClient
from .merge import MergeError, abort_merge, commit_merge, merge_branch
from .staging import StagedBranch, ephemeral_branch, release, staging_area, with_uuid
from .telemetry import TelemetrySink
from .types import BackupEntry, Contribution, ContributionResult, MergeOutcome, PatchResult, RunResult

APP_NAME = "patchy"


class DirtyWorkingTree(RuntimeError):
    """Tracked files have uncommitted changes."""


class StateInvariantViolation(RuntimeError):
    """The run cannot continue without leaving the repository inconsistent."""


class PatchyCoordinator:
    """
    Orchestrates one patchy run against a repository.

    All git commands go through `self.git`, strictly one at a time.
    """

    def __init__(
        self,
        repo_path: Path,
        config: PatchyConfig,
        confirmation_handler: ConfirmationHandler | None = None,
        github_client: GitHubClient | None = None,
    ):
        self.repo_path = Path(repo_path)
        self.config = config
        self.git = Git(self.repo_path)
        self.telemetry = TelemetrySink.for_repo(self.repo_path, self.config.telemetry)
        self.github = github_client or GitHubClient(self.config.github)
        self.confirmation_handler = confirmation_handler or ConfirmationHandler(interactive=True)

    @property
    def config_dir(self) -> Path:
        return self.repo_path / CONFIG_ROOT

    async def run(self) -> RunResult:
        """
        Build the merged branch and, if confirmed, move it onto the target branch.

        Raises:
            DirtyWorkingTree: tracked files have local changes
            StagingError: the upstream branch could not be staged
            StateInvariantViolation: restoring the configuration failed
        """
        run_id = str(uuid.uuid4())[:8]
        self.telemetry.log(
            run_id,
            "run_started",
            {"repo": self.config.repo, "pull_requests": self.config.pull_requests},
        )

        if git_has_tracked_changes(self.git):
            raise DirtyWorkingTree("Commit or stash your changes before running patchy")

        backups = snapshot(self.config_dir) if self.config_dir.is_dir() else []

        prefetched: list[Contribution | FetchError] = []
        if self.config.pull_requests:
            prefetched = await self.github.fetch_many(self.config.repo, self.config.pull_requests)

        remote_url = self.config.github.clone_url(self.config.repo)
        staged: StagedBranch | None = None
        try:
            with staging_area(
                self.git, self.config.repo, self.config.remote_branch, remote_url=remote_url
            ) as staged:
                self.telemetry.log(run_id, "staged", {"remote": staged.remote, "branch": staged.branch})
                console.info(
                    f"Staged {self.config.repo} {self.config.remote_branch} as {staged.branch}"
                )

                contributions = [
                    self._merge_contribution(run_id, staged, number, fetched)
                    for number, fetched in zip(self.config.pull_requests, prefetched)
                ]
                patches = self._restore_configuration(run_id, backups)
                self._commit_configuration()

                temporary_branch = with_uuid(APP_NAME)
                self.git("switch", "--create", temporary_branch)
                staged.temporary_branch = temporary_branch
                release(self.git, staged)
        except Exception as e:
            if staged is not None:
                for rollback_error in staged.rollback_errors:
                    console.fail(f"Rollback step failed, clean up manually:\n\n{rollback_error}\n")
            self.telemetry.log(run_id, "run_completed", {"status": "error", "error": str(e)})
            raise

        result = RunResult(
            run_id=run_id,
            temporary_branch=temporary_branch,
            target_branch=self.config.local_branch,
            confirmed=False,
            contributions=contributions,
            patches=patches,
        )

        if self.confirmation_handler.confirm_overwrite(temporary_branch, self.config.local_branch):
            # Destructive: replaces the user's branch with the merged branch.
            self.git("branch", "--move", "--force", temporary_branch, self.config.local_branch)
            result.confirmed = True

        self.telemetry.log(
            run_id,
            "run_completed",
            {
                "status": "confirmed" if result.confirmed else "declined",
                "branch": self.config.local_branch if result.confirmed else temporary_branch,
                "merged_count": len(result.merged),
                "failed_count": len(result.failed),
            },
        )
        return result

    def _merge_contribution(
        self,
        run_id: str,
        staged: StagedBranch,
        number: str,
        fetched: Contribution | FetchError,
    ) -> ContributionResult:
        if isinstance(fetched, FetchError):
            console.fail(f"Could not fetch pull request #{number}: {fetched}")
            self.telemetry.log(
                run_id,
                "contribution_failed",
                {"pull_request": number, "stage": "fetch", "error": str(fetched)},
            )
            return ContributionResult(identifier=number, ok=False, error=str(fetched))

        contribution = fetched
        try:
            with ephemeral_branch(self.git, staged.remote, contribution.fetch_ref) as branch:
                outcome = merge_branch(self.git, branch)
                try:
                    commit_merge(
                        self.git,
                        f"{APP_NAME}: Merge #{number} {contribution.display_title}",
                        contribution.source_url,
                    )
                except GitCommandError:
                    abort_merge(self.git)
                    raise
        except (MergeError, GitCommandError) as e:
            console.fail(f"Could not merge pull request #{number}\n\n{e}\n")
            self.telemetry.log(
                run_id,
                "contribution_failed",
                {"pull_request": number, "stage": "merge", "error": str(e)},
            )
            return ContributionResult(identifier=number, ok=False, contribution=contribution, error=str(e))

        suffix = " (documentation conflicts kept ours)" if outcome is MergeOutcome.AUTO_RESOLVED else ""
        console.success(
            f"Merged pull request {console.link(contribution.label, contribution.source_url)}{suffix}"
        )
        self.telemetry.log(
            run_id,
            "contribution_merged",
            {"pull_request": number, "outcome": outcome.value, "url": contribution.source_url},
        )
        return ContributionResult(identifier=number, ok=True, contribution=contribution, outcome=outcome)

    def _restore_configuration(self, run_id: str, backups: list[BackupEntry]) -> list[PatchResult]:
        try:
            restore(backups, self.config_dir)
        except OSError as e:
            raise StateInvariantViolation(f"Could not restore {CONFIG_ROOT}: {e}") from e

        results: list[PatchResult] = []
        available = {entry.logical_name for entry in backups if entry.logical_name}
        for name in sorted(self.config.patches - available):
            console.fail(f"Could not find patch {name}.patch in {CONFIG_ROOT}, skipping")
            results.append(PatchResult(name=name, ok=False, error="patch file not found"))

        for entry in backups:
            if entry.logical_name is None or entry.logical_name not in self.config.patches:
                continue
            results.append(self._apply_patch(run_id, entry.logical_name, self.config_dir / entry.file_name))
        return results

    def _apply_patch(self, run_id: str, name: str, path: Path) -> PatchResult:
        try:
            self.git("am", "--keep-cr", "--signoff", str(path))
        except GitCommandError as e:
            if git_path_exists(self.git, "rebase-apply"):
                self.git("am", "--abort")
            console.fail(f"Could not apply patch {name}, skipping\n\n{e}\n")
            self.telemetry.log(run_id, "patch_failed", {"patch": name, "error": str(e)})
            return PatchResult(name=name, ok=False, error=str(e))

        subject = self.git.last_commit_subject()
        console.success(f"Applied patch {name} {console.italic(subject)}")
        self.telemetry.log(run_id, "patch_applied", {"patch": name, "subject": subject})
        return PatchResult(name=name, ok=True, subject=subject)

    def _commit_configuration(self) -> None:
        if not any(self.config_dir.iterdir()):
            return
        self.git("add", "--", CONFIG_ROOT)
        if git_has_staged_changes(self.git):
            self.git("commit", "--message", f"{APP_NAME}: Restore configuration files")