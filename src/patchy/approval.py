"""Confirmation for the final, destructive branch overwrite."""

from __future__ import annotations

import click


class ConfirmationHandler:
    """Asks whether the freshly built branch may replace the target branch."""

    def __init__(self, interactive: bool = True):
        """
        Initialize confirmation handler.

        Args:
            interactive: If True, prompt on the terminal; if False, decline
        """
        self.interactive = interactive

    def confirm_overwrite(self, temporary_branch: str, target_branch: str) -> bool:
        """
        Ask whether `target_branch` may be overwritten.

        Returns:
            True if confirmed, False if declined
        """
        if not self.interactive:
            return False
        return self._cli_prompt(temporary_branch, target_branch)

    def _cli_prompt(self, temporary_branch: str, target_branch: str) -> bool:
        click.echo()
        return click.confirm(
            f"  » Overwrite branch {click.style(target_branch, fg='cyan')} "
            f"with {temporary_branch}? This is irreversible.",
            default=False,
        )


class AlwaysConfirmHandler(ConfirmationHandler):
    """Confirms without prompting (--yes)."""

    def __init__(self) -> None:
        super().__init__(interactive=False)

    def confirm_overwrite(self, temporary_branch: str, target_branch: str) -> bool:
        return True


class AlwaysDeclineHandler(ConfirmationHandler):
    """Declines without prompting, leaving the temporary branch in place."""

    def __init__(self) -> None:
        super().__init__(interactive=False)

    def confirm_overwrite(self, temporary_branch: str, target_branch: str) -> bool:
        return False
