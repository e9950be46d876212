"""Unit tests for the click command-line interface."""

from click.testing import CliRunner

from patchy import __version__
from patchy.cli import cli
from patchy.config import CONFIG_FILE, CONFIG_ROOT, DEFAULT_CONFIG


def test_version():
    result = CliRunner().invoke(cli, ["--version"])

    assert result.exit_code == 0
    assert __version__ in result.output


def test_init_creates_config(git_repo):
    result = CliRunner().invoke(cli, ["init", str(git_repo)])

    assert result.exit_code == 0
    assert (git_repo / CONFIG_ROOT / CONFIG_FILE).read_text() == DEFAULT_CONFIG


def test_init_keeps_existing_config_when_declined(git_repo):
    path = git_repo / CONFIG_ROOT / CONFIG_FILE
    path.parent.mkdir()
    path.write_text("repo: mine/mine\n")

    result = CliRunner().invoke(cli, ["init", str(git_repo)], input="n\n")

    assert result.exit_code == 0
    assert path.read_text() == "repo: mine/mine\n"


def test_run_without_config_fails(git_repo):
    result = CliRunner().invoke(cli, ["run", str(git_repo)])

    assert result.exit_code == 1
    assert "patchy init" in result.output


def test_run_with_invalid_config_fails(git_repo):
    path = git_repo / CONFIG_ROOT / CONFIG_FILE
    path.parent.mkdir()
    path.write_text("repo: not-a-repo\nremote_branch: main\nlocal_branch: main\n")

    result = CliRunner().invoke(cli, ["run", str(git_repo)])

    assert result.exit_code == 1
    assert "Invalid repo" in result.output


def test_run_outside_repository(tmp_path):
    result = CliRunner().invoke(cli, ["run", str(tmp_path)])

    assert result.exit_code == 1
    assert "Not a git repository" in result.output


def test_gen_patch(git_repo, commit):
    first = commit(git_repo, {"x.txt": "x\n"}, "Add x")
    second = commit(git_repo, {"y.txt": "y\n"}, "Add y")

    result = CliRunner().invoke(
        cli, ["gen-patch", first, second, "-n", "custom", "--repo-path", str(git_repo)]
    )

    assert result.exit_code == 0, result.output
    assert (git_repo / CONFIG_ROOT / "custom.patch").exists()
    assert (git_repo / CONFIG_ROOT / "add-y.patch").exists()


def test_gen_patch_bad_commit_exits_nonzero(git_repo):
    result = CliRunner().invoke(cli, ["gen-patch", "nope", "--repo-path", str(git_repo)])

    assert result.exit_code == 1
    assert "Could not get patch output for nope" in result.output


def test_gen_patch_too_many_names(git_repo):
    result = CliRunner().invoke(
        cli, ["gen-patch", "HEAD", "-n", "a", "-n", "b", "--repo-path", str(git_repo)]
    )

    assert result.exit_code == 2
    assert "more --patch-filename values than commits" in result.output
