"""
Database command group for glgaap.

Commands: validate
"""

import logging
import sys
import warnings

import click

from ..config import GLGAAPConfig
from ..service import ReportingService
from ._options import (
    company_option,
    format_option,
    ledger_file_option,
    open_ledger_source,
    tolerance_option,
)

logger = logging.getLogger(__name__)


@click.group(name="db")
def db_group():
    """Ledger validation commands."""


@db_group.command()
@ledger_file_option
@company_option
@tolerance_option
@format_option(("text", "json"))
@click.option(
    "--quiet",
    "-q",
    is_flag=True,
    help="Suppress log messages, show only formatted output.",
)
def validate(ledger_file, company_id, tolerance, format, quiet):
    """
    Validate a company's chart of accounts and ledger.

    Performs validation checks including:
    - Account number ranges, normal balances and intercompany partners
    - Hierarchy integrity (missing parents, type mismatches, cycles)
    - Journal entry double-entry balancing
    - References to unknown accounts

    Use --format json for machine-readable output.
    Use --quiet to suppress log messages.

    Returns exit code 0 if validation passes (no errors),
    non-zero if errors are found.
    """
    warnings.filterwarnings("ignore", category=Warning)

    if quiet:
        logging.getLogger().setLevel(logging.CRITICAL)
        logging.getLogger("glgaap").setLevel(logging.CRITICAL)
        logging.getLogger("piecash").setLevel(logging.CRITICAL)
    else:
        logger.info("=== GLGAAP Validation ===")

    try:
        config = GLGAAPConfig(numeric_tolerance=tolerance)

        with open_ledger_source(ledger_file, company_id) as source:
            result = ReportingService(source, config).validate(company_id)

        if not quiet:
            result.log_summary()

        if format.lower() == "json":
            output = result.format_as_json()
        else:
            output = result.format_as_text()

        click.echo(output)

        sys.exit(1 if result.has_errors else 0)

    except FileNotFoundError as e:
        if not quiet:
            logger.error(f"File not found: {e}")
        click.echo(f"ERROR: File not found: {e}")
        sys.exit(1)
    except Exception as e:
        if not quiet:
            logger.error(f"Error during validation: {e}", exc_info=True)
        click.echo(f"ERROR: {e}")
        sys.exit(1)
