"""Terminal output helpers."""

from __future__ import annotations

import click

INDENT = "  "


def success(message: str) -> None:
    click.echo(f"{INDENT}{click.style('✓', fg='green')} {message}")


def fail(message: str) -> None:
    click.echo(f"{INDENT}{click.style('✗', fg='red')} {message}", err=True)


def info(message: str) -> None:
    click.echo(f"{INDENT}{click.style('»', fg='bright_black')} {message}")


def link(text: str, url: str) -> str:
    """Render `text` as an OSC 8 terminal hyperlink."""
    return f"\x1b]8;;{url}\x1b\\{text}\x1b]8;;\x1b\\"


def italic(text: str) -> str:
    return click.style(text, fg="blue", italic=True)
