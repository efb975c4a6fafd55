"""Main CLI entry point for the function emulator."""

import click

from .commands.clean import clean
from .commands.run import run
from .helpers import setup_logging


@click.group()
@click.option('--verbose', '-v', is_flag=True, help='Show debug logging')
def cli(verbose):
    """Func Emulator - Run cloud functions locally in their runtime containers"""
    setup_logging(verbose)


# Register commands
cli.add_command(run)
cli.add_command(clean)


if __name__ == '__main__':
    cli()
