#!/usr/bin/env python3
"""
distsign CLI Helpers

Shared console output for all commands.
"""

import logging
import os
from pathlib import Path

from rich.console import Console
from rich.markup import escape

# Single shared Console instance for the entire CLI
console = Console()


def print_success(message: str) -> None:
    """Print a success message with green checkmark."""
    console.print(f"[green]✓[/green] {escape(message)}")


def print_warning(message: str) -> None:
    """Print a warning message with yellow triangle."""
    console.print(f"[yellow]⚠[/yellow]  {escape(message)}")


def print_error(message: str, fix_hint: str = "") -> None:
    """Print an error message with red X and optional fix hint."""
    console.print(f"[red]✗[/red] {escape(message)}", highlight=False)
    if fix_hint:
        console.print(f"  [white]Hint: {escape(fix_hint)}[/white]")


def configure_logging(verbose: bool) -> None:
    """Send debug records to stderr when verbose.

    Otherwise logging is left unconfigured, so warnings (security events
    included) still reach stderr through the last-resort handler.
    """
    if verbose:
        logging.basicConfig(
            level=logging.DEBUG,
            format="%(asctime)s %(levelname)s %(name)s: %(message)s",
        )


def write_private_file(path: Path, data: bytes) -> None:
    """Write *data* to a file readable only by the owner."""
    path.parent.mkdir(parents=True, exist_ok=True)
    fd = os.open(path, os.O_WRONLY | os.O_CREAT | os.O_TRUNC, 0o600)
    with os.fdopen(fd, "wb") as f:
        f.write(data)
    path.chmod(0o600)
