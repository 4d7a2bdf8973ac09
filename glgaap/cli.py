"""
Command-line interface for GLGAAP.

Provides CLI commands for validation, journal entry lifecycle and reporting.
"""

import logging

import click

from . import __version__
from .config import setup_logging
from .commands.db import db_group
from .commands.journal import journal_group
from .commands.report import report_group

logger = logging.getLogger(__name__)


@click.group()
@click.version_option(version=__version__, prog_name="glgaap")
@click.option(
    "--verbose",
    "-v",
    is_flag=True,
    help="Enable verbose (DEBUG level) logging."
)
@click.pass_context
def main(ctx, verbose):
    """
    GLGAAP - General Ledger GAAP Reporting.

    A command-line tool for validating a company's chart of accounts and
    journal, and generating GAAP-style financial statements with strict
    accounting equation enforcement.
    """
    setup_logging(verbose)

    ctx.ensure_object(dict)
    ctx.obj["verbose"] = verbose

    logger.debug(f"GLGAAP version {__version__}")


main.add_command(report_group)
main.add_command(db_group)
main.add_command(journal_group)


if __name__ == "__main__":
    main()
