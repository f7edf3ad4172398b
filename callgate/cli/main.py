"""callgate CLI — Entry point.

Usage:
    callgate policy show <file.yaml>
    callgate policy lint <file.yaml>
    callgate policy permissions <file.yaml> <role>
"""

from __future__ import annotations

import sys

import typer
from rich.console import Console

from callgate.cli.commands import policy
from callgate.logging import configure_logging

app = typer.Typer(
    name="callgate",
    help="callgate — request validation and authorization policies for typed remote methods.",
    no_args_is_help=True,
    pretty_exceptions_enable=False,
)

console = Console()

app.add_typer(policy.app, name="policy")


@app.callback()
def main_callback(
    log_level: str = typer.Option("warning", help="Log level (logs go to stderr)."),
) -> None:
    configure_logging(level=log_level, stream=sys.stderr)


@app.command("version")
def version() -> None:
    """Print the installed callgate version."""
    from callgate import __version__

    console.print(f"callgate {__version__}")


if __name__ == "__main__":
    app()
