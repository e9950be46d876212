"""Unit tests for staging.py - ephemeral remotes and branches."""

import pytest

from patchy import staging
from patchy.git_ops import Git, GitCommandError
from patchy.staging import (
    StagingError,
    ephemeral_branch,
    release,
    rollback,
    slugify,
    stage,
    staging_area,
    with_uuid,
)


@pytest.fixture
def upstream(tmp_path, make_repo, commit, git):
    repo = make_repo(tmp_path / "upstream")
    git(repo, "checkout", "-b", "feature")
    commit(repo, {"feature.txt": "feature\n"}, "Add feature")
    git(repo, "update-ref", "refs/pull/7/head", "feature")
    git(repo, "checkout", "main")
    return repo


@pytest.fixture
def local(tmp_path, upstream, clone_repo):
    return clone_repo(upstream, tmp_path / "local")


def _state(g: Git) -> tuple[list[str], list[str], str]:
    return sorted(g.remotes()), sorted(g.branches()), g.current_branch()


def test_slugify_sanitizes_text():
    assert slugify(" Owner/Repo Name ") == "owner-repo-name"
    assert slugify("!!!") == "patchy"


def test_with_uuid_is_unique():
    names = {with_uuid("owner/repo") for _ in range(50)}

    assert len(names) == 50
    assert all(n.startswith("owner-repo-") for n in names)


class TestStage:
    def test_success_adds_one_remote_and_one_branch(self, local, upstream):
        g = Git(local)
        remotes_before, branches_before, _ = _state(g)

        staged = stage(g, "owner/repo", "feature", remote_url=str(upstream))

        assert sorted(g.remotes()) == sorted(remotes_before + [staged.remote])
        assert sorted(g.branches()) == sorted(branches_before + [staged.branch])
        assert g.current_branch() == staged.branch
        assert staged.previous_branch == "main"
        assert (local / "feature.txt").exists()

    def test_add_remote_failure_leaves_nothing(self, local, upstream, monkeypatch):
        g = Git(local)
        before = _state(g)
        # Collide with the existing "origin" remote so `remote add` fails.
        monkeypatch.setattr(staging, "with_uuid", lambda name: "origin")

        with pytest.raises(StagingError, match="Could not add remote"):
            stage(g, "owner/repo", "feature", remote_url=str(upstream))

        assert _state(g) == before

    def test_fetch_failure_removes_remote(self, local, upstream):
        g = Git(local)
        before = _state(g)

        with pytest.raises(StagingError, match="Could not fetch"):
            stage(g, "owner/repo", "no-such-branch", remote_url=str(upstream))

        assert _state(g) == before

    def test_checkout_failure_removes_branch_and_remote(self, local, upstream):
        g = Git(local)
        # An untracked file that the staged branch would overwrite blocks checkout.
        (local / "feature.txt").write_text("local untracked\n")
        before = _state(g)

        with pytest.raises(StagingError, match="Could not checkout"):
            stage(g, "owner/repo", "feature", remote_url=str(upstream))

        assert _state(g) == before
        assert (local / "feature.txt").read_text() == "local untracked\n"

    def test_release_removes_objects(self, local, upstream):
        g = Git(local)
        before = _state(g)
        staged = stage(g, "owner/repo", "feature", remote_url=str(upstream))

        g("checkout", "main")
        release(g, staged)
        release(g, staged)  # second call is a no-op

        assert _state(g) == before


    def test_rollback_deletes_result_branch(self, local, upstream):
        g = Git(local)
        before = _state(g)
        staged = stage(g, "owner/repo", "feature", remote_url=str(upstream))
        g("switch", "--create", "patchy-result")
        staged.temporary_branch = "patchy-result"

        errors = rollback(g, staged)

        assert errors == []
        assert _state(g) == before


class TestStagingArea:
    def test_normal_exit_releases(self, local, upstream):
        g = Git(local)
        before = _state(g)

        with staging_area(g, "owner/repo", "feature", remote_url=str(upstream)) as staged:
            assert g.current_branch() == staged.branch
            g("switch", "--create", "result")

        assert sorted(g.remotes()) == before[0]
        assert sorted(g.branches()) == sorted(before[1] + ["result"])

    def test_exception_rolls_back(self, local, upstream):
        g = Git(local)
        before = _state(g)

        with pytest.raises(RuntimeError, match="boom"):
            with staging_area(g, "owner/repo", "feature", remote_url=str(upstream)):
                (local / "a.txt").write_text("half-finished\n")
                raise RuntimeError("boom")

        assert _state(g) == before
        assert (local / "a.txt").read_text() == "a\n"


class TestEphemeralBranch:
    def test_pull_request_ref_fetched_and_deleted(self, local, upstream, git):
        g = Git(local)
        git(local, "remote", "add", "up", str(upstream))

        with ephemeral_branch(g, "up", "refs/pull/7/head") as branch:
            assert branch.startswith("pr-7-")
            assert branch in g.branches()
            assert "feature.txt" in g("ls-tree", "--name-only", branch)

        assert branch not in g.branches()

    def test_deleted_on_exception(self, local, upstream, git):
        g = Git(local)
        git(local, "remote", "add", "up", str(upstream))

        with pytest.raises(ValueError):
            with ephemeral_branch(g, "up", "refs/pull/7/head") as branch:
                raise ValueError("merge failed")

        assert branch not in g.branches()

    def test_cleanup_failure_keeps_original_error(self, local, upstream, git, capsys):
        g = Git(local)
        git(local, "remote", "add", "up", str(upstream))

        with pytest.raises(ValueError, match="merge failed"):
            with ephemeral_branch(g, "up", "refs/pull/7/head") as branch:
                g("branch", "--delete", "--force", branch)
                raise ValueError("merge failed")

        assert f"Could not delete branch {branch}" in capsys.readouterr().err

    def test_missing_ref_raises(self, local, upstream, git):
        g = Git(local)
        git(local, "remote", "add", "up", str(upstream))
        branches_before = sorted(g.branches())

        with pytest.raises(GitCommandError):
            with ephemeral_branch(g, "up", "refs/pull/999/head"):
                pass

        assert sorted(g.branches()) == branches_before
