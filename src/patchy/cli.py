"""Command-line interface for patchy.

Commands:
- patchy init [repo_path]: Create .patchy/config.yml
- patchy run [repo_path]: Merge pull requests and patches into a new branch
- patchy gen-patch <commit>...: Turn commits into .patchy/*.patch files
"""

from __future__ import annotations

import asyncio
import sys
from pathlib import Path

import click
from pydantic import ValidationError

from . import __version__, console
from .approval import AlwaysConfirmHandler, ConfirmationHandler
from .config import CONFIG_FILE, CONFIG_ROOT, DEFAULT_CONFIG, PatchyConfig, load_config
from .coordinator import DirtyWorkingTree, PatchyCoordinator, StateInvariantViolation
from .git_ops import Git, GitCommandError, git_root
from .patches import generate_patch
from .staging import StagingError


def _resolve_root(repo_path: str) -> Path:
    try:
        return git_root(Path(repo_path).resolve())
    except GitCommandError as e:
        raise click.ClickException(f"Not a git repository: {repo_path}") from e


@click.group()
@click.version_option(version=__version__, prog_name="patchy")
def cli() -> None:
    """patchy - merge pull requests and local patches onto a fresh branch."""
    pass


@cli.command()
@click.argument("repo_path", default=".", type=click.Path(exists=True, file_okay=False))
@click.option("--force", is_flag=True, help="Overwrite an existing configuration")
def init(repo_path: str, force: bool) -> None:
    """Initialize patchy configuration in repository.

    Example:
        patchy init
    """
    root = _resolve_root(repo_path)
    config_path = root / CONFIG_ROOT / CONFIG_FILE

    if config_path.exists() and not force:
        click.echo(f"Configuration already exists: {config_path}")
        if not click.confirm("Overwrite?"):
            return

    config_path.parent.mkdir(parents=True, exist_ok=True)
    config_path.write_text(DEFAULT_CONFIG, encoding="utf-8")
    click.echo(f"✓ Created configuration: {config_path}")
    click.echo()
    click.echo("Next steps:")
    click.echo(f"1. Edit {CONFIG_ROOT}/{CONFIG_FILE} to list pull requests and patches")
    click.echo("2. Run: patchy run")


@cli.command()
@click.argument("repo_path", default=".", type=click.Path(exists=True, file_okay=False))
@click.option("--config", "-c", type=click.Path(exists=True, dir_okay=False), help="Config file path")
@click.option("--yes", "-y", is_flag=True, help="Overwrite the local branch without asking")
def run(repo_path: str, config: str | None, yes: bool) -> None:
    """Merge the configured pull requests and patches.

    Builds a new branch from the upstream branch, merges each pull request,
    applies patches, and then offers to overwrite the local branch.

    Example:
        patchy run
        patchy run --yes
    """
    root = _resolve_root(repo_path)

    try:
        patchy_config = PatchyConfig.load_from_file(config) if config else load_config(root)
    except FileNotFoundError as e:
        raise click.ClickException(
            f"Could not find `{CONFIG_ROOT}/{CONFIG_FILE}` configuration file. Run `patchy init` first."
        ) from e
    except (ValidationError, ValueError) as e:
        raise click.ClickException(f"Could not parse `{CONFIG_ROOT}/{CONFIG_FILE}` configuration file\n{e}") from e

    handler: ConfirmationHandler = AlwaysConfirmHandler() if yes else ConfirmationHandler(interactive=True)
    coordinator = PatchyCoordinator(root, patchy_config, handler)

    click.echo()
    try:
        result = asyncio.run(coordinator.run())
    except (DirtyWorkingTree, StagingError, StateInvariantViolation, GitCommandError) as e:
        raise click.ClickException(str(e)) from e

    click.echo()
    click.echo(f"Merged: {len(result.merged)}/{len(result.contributions)} pull requests")
    if result.patches:
        applied = sum(1 for p in result.patches if p.ok)
        click.echo(f"Applied: {applied}/{len(result.patches)} patches")

    if result.confirmed:
        click.echo()
        click.secho(f"{console.INDENT}  Success!", fg="green", bold=True)
        return

    click.echo()
    click.echo(
        f"{console.INDENT}  You can still manually overwrite "
        f"{click.style(result.target_branch, fg='cyan')} with the following command:"
    )
    click.echo()
    click.secho(f"{console.INDENT}  {result.manual_command}", fg="magenta")
    click.echo()
    sys.exit(1)


@cli.command("gen-patch")
@click.argument("commits", nargs=-1, required=True)
@click.option(
    "--patch-filename",
    "-n",
    "names",
    multiple=True,
    help="Filename (without .patch) for the commit at the same position; repeatable",
)
@click.option("--repo-path", default=".", type=click.Path(exists=True, file_okay=False), show_default=True)
def gen_patch(commits: tuple[str, ...], names: tuple[str, ...], repo_path: str) -> None:
    """Generate .patch files from commits.

    Example:
        patchy gen-patch 1a2b3c4
        patchy gen-patch 1a2b3c4 5d6e7f8 -n fix-ci -n bump-deps
    """
    if len(names) > len(commits):
        raise click.BadParameter("more --patch-filename values than commits", param_hint="--patch-filename")
    for name in names:
        if not name or "/" in name or name.startswith("."):
            raise click.BadParameter(f"invalid patch filename: {name!r}", param_hint="--patch-filename")

    root = _resolve_root(repo_path)
    git = Git(root)
    config_dir = root / CONFIG_ROOT
    if not config_dir.exists():
        console.info(f"Config directory {config_dir} does not exist, creating it...")

    failed = 0
    for i, commit in enumerate(commits):
        name = names[i] if i < len(names) else None
        generated = generate_patch(git, config_dir, commit, name)
        if generated.ok:
            console.success(f"Created patch file at {generated.path}")
        else:
            failed += 1
            console.fail(f"Could not get patch output for {commit}\n\n{generated.error}\n")

    sys.exit(1 if failed else 0)


def main() -> None:
    """Entry point for CLI."""
    cli()


if __name__ == "__main__":
    main()
