"""Command-line interface for the game server route controller."""

from __future__ import annotations

import click
import uvicorn
from safir.click import display_help

__all__ = ["help", "main", "run"]


@click.group(context_settings={"help_option_names": ["-h", "--help"]})
@click.version_option(message="%(version)s")
def main() -> None:
    """Command-line interface for gameroute."""


@main.command()
@click.argument("topic", default=None, required=False, nargs=1)
@click.argument("subtopic", default=None, required=False, nargs=1)
@click.pass_context
def help(ctx: click.Context, topic: str | None, subtopic: str | None) -> None:
    """Show help for any command."""
    display_help(main, ctx, topic, subtopic)


@main.command()
@click.option(
    "--host",
    default="0.0.0.0",
    show_default=True,
    help="Address on which to listen",
)
@click.option(
    "--port",
    default=8080,
    type=int,
    show_default=True,
    help="Port on which to listen",
)
def run(host: str, port: int) -> None:
    """Start the game server route controller."""
    uvicorn.run(
        "gameroute.main:create_app", factory=True, host=host, port=port
    )
