"""
Report command group for glgaap.

Commands: balance-sheet, income-statement, cash-flow, equity, trial-balance
"""

import logging
import sys

import click

from ..config import GLGAAPConfig
from ..models import parse_date
from ..reports import balance_sheet as bs_report
from ..reports import cash_flow as cf_report
from ..reports import equity_statement as eq_report
from ..reports import income_statement as is_report
from ..reports import trial_balance as tb_report
from ..service import ReportingService
from ._options import (
    as_of_option,
    company_option,
    format_option,
    ledger_file_option,
    open_ledger_source,
    output_file_option,
    period_options,
    strict_option,
    tolerance_option,
    write_output,
)

logger = logging.getLogger(__name__)


def _fail(e: Exception) -> None:
    """Report a failed report run in the shared error format and exit 1."""
    if isinstance(e, RuntimeError):
        logger.error(f"Validation failed: {e}")
        click.echo(f"\n[FAIL] VALIDATION FAILED: {e}")
        click.echo("\nFix validation errors before generating reports.")
        click.echo("Use 'glgaap db validate' to see detailed validation results.")
    elif isinstance(e, (ValueError, LookupError)):
        logger.error(f"Report generation failed: {e}")
        click.echo(f"\n[ERROR] {e}")
    elif isinstance(e, FileNotFoundError):
        logger.error(f"File not found: {e}")
        click.echo(f"\n[ERROR] File not found: {e}")
    else:
        logger.error(f"Error generating report: {e}", exc_info=True)
        click.echo(f"\n[ERROR] {e}")
    sys.exit(1)


@click.group(name="report")
def report_group():
    """Financial report generation commands."""


@report_group.command(name="balance-sheet")
@ledger_file_option
@company_option
@as_of_option(required=True)
@click.option(
    "--comparative-date",
    type=str,
    default=None,
    help="Optional prior date to show alongside the report (YYYY-MM-DD).",
)
@click.option(
    "--include-zero",
    is_flag=True,
    help="Include accounts with a zero balance.",
)
@strict_option
@tolerance_option
@format_option(("text", "csv", "json"))
@output_file_option()
def balance_sheet(
    ledger_file, company_id, as_of, comparative_date, include_zero, strict, tolerance, format, output_file
):
    """
    Generate a GAAP-style Balance Sheet.

    The report fails if Assets != Liabilities + Equity (within the
    tolerance). With --strict the chart of accounts and the ledger are
    validated first and any validation error stops the report.
    """
    logger.info("=== GLGAAP Balance Sheet Report ===")

    try:
        as_of_date = parse_date(as_of)
        comparative = parse_date(comparative_date) if comparative_date else None
        config = GLGAAPConfig(numeric_tolerance=tolerance)

        with open_ledger_source(ledger_file, company_id) as source:
            service = ReportingService(source, config, strict=strict)
            report = service.generate_balance_sheet(
                company_id,
                as_of_date,
                include_zero_balances=include_zero,
                comparative_date=comparative,
            )

        if format.lower() == "csv":
            output = bs_report.format_as_csv(report)
        elif format.lower() == "json":
            output = bs_report.format_as_json(report)
        else:
            output = bs_report.format_as_text(report)

        write_output(output, output_file)
        sys.exit(0)

    except Exception as e:
        _fail(e)


@report_group.command(name="income-statement")
@ledger_file_option
@company_option
@period_options
@strict_option
@format_option(("text", "csv", "json"))
@output_file_option()
def income_statement(ledger_file, company_id, period_start, period_end, strict, format, output_file):
    """
    Generate an Income Statement for a period.

    Closing entries are excluded so that revenue and expense show their
    activity for the period even after the books are closed.
    """
    logger.info("=== GLGAAP Income Statement Report ===")

    try:
        start = parse_date(period_start)
        end = parse_date(period_end)

        with open_ledger_source(ledger_file, company_id) as source:
            service = ReportingService(source, strict=strict)
            report = service.generate_income_statement(company_id, start, end)

        if format.lower() == "csv":
            output = is_report.format_as_csv(report)
        elif format.lower() == "json":
            output = is_report.format_as_json(report)
        else:
            output = is_report.format_as_text(report)

        write_output(output, output_file)
        sys.exit(0)

    except Exception as e:
        _fail(e)


@report_group.command(name="cash-flow")
@ledger_file_option
@company_option
@period_options
@click.option(
    "--require-reconciled",
    is_flag=True,
    help="Fail if beginning cash + net change != ending cash.",
)
@strict_option
@tolerance_option
@format_option(("text", "json"))
@output_file_option()
def cash_flow(
    ledger_file, company_id, period_start, period_end, require_reconciled, strict, tolerance, format, output_file
):
    """
    Generate a Cash Flow Statement (indirect method).

    Starts from net income, adds back depreciation and amortization and
    adjusts for working capital changes, then adds investing and financing
    activity. Reconciliation against the cash accounts is reported; use
    --require-reconciled to turn a mismatch into a failure.
    """
    logger.info("=== GLGAAP Cash Flow Statement ===")

    try:
        start = parse_date(period_start)
        end = parse_date(period_end)
        config = GLGAAPConfig(numeric_tolerance=tolerance)

        with open_ledger_source(ledger_file, company_id) as source:
            service = ReportingService(source, config, strict=strict)
            statement = service.generate_cash_flow_statement(company_id, start, end)

        if require_reconciled:
            cf_report.ensure_reconciled(statement, config.numeric_tolerance)

        if format.lower() == "json":
            output = cf_report.format_as_json(statement)
        else:
            output = cf_report.format_as_text(statement)

        write_output(output, output_file)
        sys.exit(0)

    except Exception as e:
        _fail(e)


@report_group.command(name="equity")
@ledger_file_option
@company_option
@period_options
@click.option(
    "--consolidated",
    is_flag=True,
    help="Mark the statement as consolidated.",
)
@strict_option
@format_option(("text", "json"))
@output_file_option()
def equity(ledger_file, company_id, period_start, period_end, consolidated, strict, format, output_file):
    """
    Generate a Statement of Changes in Equity.

    Shows opening balance, movements (net income, dividends, share
    issuance, repurchases, other comprehensive income) and closing balance
    for each equity component.
    """
    logger.info("=== GLGAAP Statement of Changes in Equity ===")

    try:
        start = parse_date(period_start)
        end = parse_date(period_end)

        with open_ledger_source(ledger_file, company_id) as source:
            service = ReportingService(source, strict=strict)
            statement = service.generate_equity_statement(
                company_id, start, end, is_consolidated=consolidated
            )

        if format.lower() == "json":
            output = eq_report.format_as_json(statement)
        else:
            output = eq_report.format_as_text(statement)

        write_output(output, output_file)
        sys.exit(0)

    except Exception as e:
        _fail(e)


@report_group.command(name="trial-balance")
@ledger_file_option
@company_option
@as_of_option(required=True)
@click.option(
    "--include-zero",
    is_flag=True,
    help="Include accounts with a zero balance.",
)
@strict_option
@format_option(("text", "csv", "json"))
@output_file_option()
def trial_balance(ledger_file, company_id, as_of, include_zero, strict, format, output_file):
    """
    Generate a Trial Balance.

    Lists every postable account's balance in a debit or credit column.
    Exits with status 1 if total debits do not equal total credits.
    """
    logger.info("=== GLGAAP Trial Balance ===")

    try:
        as_of_date = parse_date(as_of)

        with open_ledger_source(ledger_file, company_id) as source:
            service = ReportingService(source, strict=strict)
            report = service.generate_trial_balance(
                company_id, as_of_date, include_zero_balances=include_zero
            )

        if format.lower() == "csv":
            output = tb_report.format_as_csv(report)
        elif format.lower() == "json":
            output = tb_report.format_as_json(report)
        else:
            output = tb_report.format_as_text(report)

        write_output(output, output_file)
        sys.exit(0 if report.is_balanced() else 1)

    except Exception as e:
        _fail(e)
