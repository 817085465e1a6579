"""Operator-facing terminal output for the interactive flows.

Everything goes to stderr so stdout stays clean for the token itself.
"""

from __future__ import annotations

import sys
from contextlib import AbstractContextManager, nullcontext

from rich.console import Console
from rich.panel import Panel
from rich.text import Text


class OperatorConsole:
    """Prints sign-in instructions and progress, or nothing when quiet."""

    def __init__(self, quiet: bool = False, console: Console | None = None):
        self.quiet = quiet
        self._console = console or Console(file=sys.stderr)

    def show_device_code(self, verification_uri: str, user_code: str) -> None:
        if self.quiet:
            return
        body = Text()
        body.append("1. ", style="bold")
        body.append("Open this URL in your browser:\n")
        body.append(f"   {verification_uri}\n\n", style="underline")
        body.append("2. ", style="bold")
        body.append("Enter this code:\n")
        body.append(f"   {user_code}", style="bold yellow")
        self._console.print()
        self._console.print(
            Panel(body, title="[*] Azure Authentication Required", border_style="cyan")
        )
        self._console.print()

    def show_authorization_url(self, url: str) -> None:
        if self.quiet:
            return
        self._console.print()
        self._console.print(
            "[cyan][*][/cyan] [bold]Opening browser for Azure authentication...[/bold]"
        )
        self._console.print("  If the browser doesn't open, visit this URL:")
        self._console.print(f"  {url}", style="underline", soft_wrap=True)
        self._console.print()

    def waiting(self, message: str) -> AbstractContextManager[object]:
        """Spinner shown while blocked on the operator."""
        if self.quiet:
            return nullcontext()
        return self._console.status(message, spinner="dots")

    def info(self, message: str) -> None:
        if not self.quiet:
            self._console.print(f"  [cyan][*][/cyan] {message}")

    def success(self, message: str) -> None:
        if not self.quiet:
            self._console.print(f"  [green][+][/green] [bold green]{message}[/bold green]")
