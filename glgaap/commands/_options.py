"""
Shared Click option decorators for glgaap command groups.

Each decorator factory wraps a single Click option so it can be reused
across multiple commands without repeating the option definition.
"""

import logging
from contextlib import contextmanager
from decimal import Decimal, InvalidOperation
from pathlib import Path

import click

from ..ledger_source import GnuCashLedgerSource, JsonLedgerSource

logger = logging.getLogger(__name__)


def ledger_file_option(func):
    """--file/-f: required path to a ledger snapshot (.json) or GnuCash book."""
    return click.option(
        "--file",
        "-f",
        "ledger_file",
        type=click.Path(exists=True, path_type=Path),
        required=True,
        help="Path to the ledger snapshot (.json) or GnuCash book (.gnucash).",
    )(func)


def company_option(func):
    """--company/-c: id of the company to report on."""
    return click.option(
        "--company",
        "-c",
        "company_id",
        type=str,
        required=True,
        help="Company id (GnuCash books are exposed as 'gnucash').",
    )(func)


def as_of_option(required: bool = False):
    """--as-of: balance sheet date in YYYY-MM-DD format."""
    def decorator(func):
        return click.option(
            "--as-of",
            type=str,
            required=required,
            default=None,
            help="Date in YYYY-MM-DD format.",
        )(func)
    return decorator


def period_options(func):
    """--from/--to: inclusive reporting period in YYYY-MM-DD format."""
    func = click.option(
        "--to",
        "period_end",
        type=str,
        required=True,
        help="Last day of the period (YYYY-MM-DD).",
    )(func)
    return click.option(
        "--from",
        "period_start",
        type=str,
        required=True,
        help="First day of the period (YYYY-MM-DD).",
    )(func)


def format_option(choices: tuple = ("text", "json", "csv")):
    """--format: output format selector."""
    def decorator(func):
        return click.option(
            "--format",
            type=click.Choice(list(choices), case_sensitive=False),
            default=choices[0],
            help=f"Output format (default: {choices[0]}).",
        )(func)
    return decorator


def strict_option(func):
    """--strict: refuse to report on a ledger that fails validation."""
    return click.option(
        "--strict",
        is_flag=True,
        help="Run strict validation first and fail on any validation error.",
    )(func)


def _parse_tolerance(ctx, param, value):
    try:
        tolerance = Decimal(value)
    except InvalidOperation:
        raise click.BadParameter(f"'{value}' is not a decimal number.")
    if tolerance < 0:
        raise click.BadParameter("Tolerance must be >= 0.")
    return tolerance


def tolerance_option(func):
    """--tolerance/-t: numeric tolerance for accounting identity checks."""
    return click.option(
        "--tolerance",
        "-t",
        type=str,
        default="0",
        callback=_parse_tolerance,
        help="Numeric tolerance for balance checks (default: 0).",
    )(func)


def output_file_option(required: bool = False, default=None):
    """--output/-o: output file path."""
    def decorator(func):
        return click.option(
            "--output",
            "-o",
            "output_file",
            type=click.Path(path_type=Path),
            required=required,
            default=default,
            help="Output file path.",
        )(func)
    return decorator


@contextmanager
def open_ledger_source(ledger_file: Path, company_id: str = "gnucash"):
    """
    Open the ledger source for a file.

    JSON snapshots are loaded into memory; anything else is opened as a
    GnuCash book for the duration of the with block.

    Yields:
        JsonLedgerSource or an open GnuCashLedgerSource.
    """
    if ledger_file.suffix.lower() == ".json":
        yield JsonLedgerSource.load(ledger_file)
        return
    logger.debug(f"Treating {ledger_file} as a GnuCash book")
    with GnuCashLedgerSource(ledger_file, company_id=company_id) as source:
        yield source


def write_output(output: str, output_file) -> None:
    """Echo report output, or write it to output_file when one is given."""
    if output_file:
        with open(output_file, "w", encoding="utf-8") as f:
            f.write(output)
        click.echo(f"Report saved to: {output_file}")
    else:
        click.echo()
        click.echo(output)
