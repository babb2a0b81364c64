"""CLI entry point for timepilot (tp command)."""

import logging

import click

from timepilot import __version__
from timepilot.cli.ask_cmd import ask_cmd
from timepilot.cli.doc_cmd import add_cmd, show_cmd, timer_group
from timepilot.cli.serve_cmd import serve_cmd


@click.group()
@click.version_option(version=__version__, prog_name="timepilot")
@click.option("--verbose", "-v", count=True, help="Increase log output (-v info, -vv debug).")
def cli(verbose: int) -> None:
    """timepilot — time tracking state with an AI patch channel."""
    level = logging.WARNING
    if verbose == 1:
        level = logging.INFO
    elif verbose > 1:
        level = logging.DEBUG
    logging.basicConfig(
        level=level,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    )


cli.add_command(serve_cmd)
cli.add_command(show_cmd)
cli.add_command(timer_group)
cli.add_command(add_cmd)
cli.add_command(ask_cmd)


if __name__ == "__main__":
    cli()
