"""CLI formatters — console construction, banner and connection summary."""

from __future__ import annotations

from rich.console import Console
from rich.text import Text

from namo.connection import ConnectionConfig

_BANNER = (
    "███    ██  █████  ███    ███  ██████ ",
    "████   ██ ██   ██ ████  ████ ██    ██",
    "██ ██  ██ ███████ ██ ████ ██ ██    ██",
    "██  ██ ██ ██   ██ ██  ██  ██ ██    ██",
    "██   ████ ██   ██ ██      ██  ██████ ",
)


def get_console(no_color: bool = False, *, stderr: bool = False) -> Console:
    """Get a Rich Console, optionally with color disabled."""
    return Console(no_color=no_color, stderr=stderr)


def print_banner(console: Console) -> None:
    console.print("\n")
    for line in _BANNER:
        console.print(Text("\t" + line), soft_wrap=True)
    console.print()


def print_connection(console: Console, connection: ConnectionConfig) -> None:
    """Print the "Using:" block describing where queries will go."""
    console.print(Text("Using:", style="bold green"))
    for label, value in connection.describe():
        line = Text(f"    {label}: ", style="green")
        line.append(value, style="yellow")
        console.print(line, soft_wrap=True)
    console.print()
