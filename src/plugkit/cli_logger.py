"""CLI output utilities for consistent messaging."""

from rich.console import Console
from rich.markup import escape

from plugkit.validation import ValidationIssue

_console = Console()


def success(message: str) -> None:
    """Print a success message with green checkmark."""
    _console.print(f"[green]✓[/green] {message}")


def error(message: str) -> None:
    """Print an error message with red X."""
    _console.print(f"[red]✗[/red] {message}")


def warning(message: str) -> None:
    """Print a warning message with yellow exclamation."""
    _console.print(f"[yellow]![/yellow] {message}")


def info(message: str) -> None:
    """Print an info message (no prefix)."""
    _console.print(message)


def dim(message: str) -> None:
    """Print a dimmed message (for secondary info)."""
    _console.print(f"[dim]{message}[/dim]")


def issue(item: ValidationIssue) -> None:
    """Print one validation issue as ``kind  location: message``."""
    location = escape(item.location or "<root>")
    _console.print(
        f"  [red]{item.kind.value}[/red] [bold]{location}[/bold]: {escape(item.message)}"
    )
