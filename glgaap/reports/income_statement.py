"""
Income Statement report generation.

Generates a multi-step Income Statement for a period: revenue and expense
activity grouped by account category, with gross profit, operating income,
income before tax and net income.
"""

import csv
import json
import logging
from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal
from io import StringIO
from typing import Optional, Sequence

from ..balances import calculate_period_balance
from ..config import GLGAAPConfig
from ..models import (
    Account,
    AccountCategory,
    AccountId,
    AccountType,
    CompanyId,
    LedgerEntry,
    canonical_normal_balance,
)
from ._common import check_period, money, without_closing_entries

logger = logging.getLogger(__name__)

# Category -> section title, in statement order.
SECTION_TITLES = {
    AccountCategory.OPERATING_REVENUE: "Operating Revenue",
    AccountCategory.COST_OF_GOODS_SOLD: "Cost of Goods Sold",
    AccountCategory.OPERATING_EXPENSE: "Operating Expenses",
    AccountCategory.DEPRECIATION_AMORTIZATION: "Depreciation and Amortization",
    AccountCategory.OTHER_REVENUE: "Other Revenue",
    AccountCategory.INTEREST_EXPENSE: "Interest Expense",
    AccountCategory.OTHER_EXPENSE: "Other Expenses",
    AccountCategory.TAX_EXPENSE: "Income Tax Expense",
}


# ---------------------------------------------------------------------------
# Data classes
# ---------------------------------------------------------------------------


@dataclass
class IncomeStatementLine:
    """
    A single account line in the Income Statement.

    Attributes:
        account_id: Account id.
        account_number: Account number.
        account_name: Account name.
        balance: Period activity on the account type's normal side.
        level: Display indentation level (0 = top-level within section).
    """

    account_id: AccountId
    account_number: str
    account_name: str
    balance: Decimal
    level: int = 0


@dataclass
class IncomeStatementSection:
    category: AccountCategory
    title: str
    lines: list[IncomeStatementLine] = field(default_factory=list)

    @property
    def subtotal(self) -> Decimal:
        return sum((line.balance for line in self.lines), Decimal("0"))


def _empty_sections() -> dict[AccountCategory, IncomeStatementSection]:
    return {
        category: IncomeStatementSection(category, title)
        for category, title in SECTION_TITLES.items()
    }


@dataclass
class IncomeStatement:
    """
    Multi-step Income Statement.

    Attributes:
        company_id: Company the report covers.
        period_start: Start of reporting period.
        period_end: End of reporting period.
        sections: Category -> section, always all eight categories.
        currency: Functional currency.
    """

    company_id: CompanyId
    period_start: date
    period_end: date
    sections: dict[AccountCategory, IncomeStatementSection] = field(default_factory=_empty_sections)
    currency: str = "USD"

    def _subtotal(self, category: AccountCategory) -> Decimal:
        return self.sections[category].subtotal

    @property
    def total_revenue(self) -> Decimal:
        return (
            self._subtotal(AccountCategory.OPERATING_REVENUE)
            + self._subtotal(AccountCategory.OTHER_REVENUE)
        )

    @property
    def total_expenses(self) -> Decimal:
        return sum(
            (section.subtotal for category, section in self.sections.items()
             if category not in (AccountCategory.OPERATING_REVENUE, AccountCategory.OTHER_REVENUE)),
            Decimal("0"),
        )

    @property
    def gross_profit(self) -> Decimal:
        """Operating revenue minus cost of goods sold."""
        return (
            self._subtotal(AccountCategory.OPERATING_REVENUE)
            - self._subtotal(AccountCategory.COST_OF_GOODS_SOLD)
        )

    @property
    def operating_income(self) -> Decimal:
        """Gross profit minus operating expenses and depreciation."""
        return (
            self.gross_profit
            - self._subtotal(AccountCategory.OPERATING_EXPENSE)
            - self._subtotal(AccountCategory.DEPRECIATION_AMORTIZATION)
        )

    @property
    def income_before_tax(self) -> Decimal:
        return (
            self.operating_income
            + self._subtotal(AccountCategory.OTHER_REVENUE)
            - self._subtotal(AccountCategory.INTEREST_EXPENSE)
            - self._subtotal(AccountCategory.OTHER_EXPENSE)
        )

    @property
    def net_income(self) -> Decimal:
        """Revenue minus expenses."""
        return self.income_before_tax - self._subtotal(AccountCategory.TAX_EXPENSE)

    @property
    def net_income_label(self) -> str:
        return "Net Income" if self.net_income >= 0 else "Net Loss"


# ---------------------------------------------------------------------------
# Core generation function
# ---------------------------------------------------------------------------


def generate_income_statement(
    company_id: CompanyId,
    accounts: Sequence[Account],
    entries: Sequence[LedgerEntry],
    period_start: date,
    period_end: date,
    currency: str,
    config: Optional[GLGAAPConfig] = None,
) -> IncomeStatement:
    """
    Generate an Income Statement for a date range.

    Computes revenue and expense activity for entries posted between
    period_start and period_end (inclusive). Closing entries are ignored so
    the statement reads the same before and after year-end close.

    Args:
        company_id: Company the report covers.
        accounts: The company's accounts.
        entries: The company's posted journal entries with lines.
        period_start: First day of the period.
        period_end: Last day of the period.
        currency: Functional currency.
        config: Optional configuration; uses default if not provided.

    Returns:
        IncomeStatement instance.

    Raises:
        InvalidPeriodError: If period_start is after period_end.
    """
    if config is None:
        from ..config import default_config
        config = default_config

    check_period(period_start, period_end)

    logger.info(
        f"Generating Income Statement for {company_id}: {period_start} to {period_end}"
    )

    statement = IncomeStatement(
        company_id=company_id,
        period_start=period_start,
        period_end=period_end,
        currency=currency,
    )
    period_entries = without_closing_entries(entries)

    for account in sorted(accounts, key=lambda a: a.account_number):
        if not account.is_postable:
            continue
        if account.account_type not in (AccountType.REVENUE, AccountType.EXPENSE):
            continue

        balance = calculate_period_balance(
            account.id,
            canonical_normal_balance(account.account_type),
            period_entries,
            period_start,
            period_end,
            currency,
        ).amount
        if config.is_zero(balance):
            continue

        statement.sections[account.account_category].lines.append(IncomeStatementLine(
            account_id=account.id,
            account_number=account.account_number,
            account_name=account.name,
            balance=balance,
            level=account.hierarchy_level - 1,
        ))

    logger.info(
        f"Revenue: {statement.total_revenue:,.2f} | Expenses: {statement.total_expenses:,.2f} | "
        f"Net: {statement.net_income:,.2f}"
    )

    return statement


# ---------------------------------------------------------------------------
# Formatters
# ---------------------------------------------------------------------------


def format_as_text(income_statement: IncomeStatement) -> str:
    """
    Format an Income Statement as human-readable text.

    Args:
        income_statement: IncomeStatement to format.

    Returns:
        Formatted text string.
    """
    out = StringIO()
    sep = "=" * 80
    thin = "-" * 80

    out.write(sep + "\n")
    out.write("INCOME STATEMENT\n")
    out.write(f"{income_statement.company_id}\n")
    out.write(
        f"For the period {income_statement.period_start.strftime('%B %d, %Y')} "
        f"to {income_statement.period_end.strftime('%B %d, %Y')}\n"
    )
    out.write(f"Currency: {income_statement.currency}\n")
    out.write(sep + "\n")

    # Subtotal printed after the section with this category
    step_totals = {
        AccountCategory.COST_OF_GOODS_SOLD: ("GROSS PROFIT", income_statement.gross_profit),
        AccountCategory.DEPRECIATION_AMORTIZATION: ("OPERATING INCOME", income_statement.operating_income),
        AccountCategory.OTHER_EXPENSE: ("INCOME BEFORE TAX", income_statement.income_before_tax),
    }

    for category, section in income_statement.sections.items():
        if section.lines:
            out.write(f"\n{section.title.upper()}\n")
            out.write(thin + "\n")
            for line in section.lines:
                indent = "  " * (line.level + 1)
                name = f"{indent}{line.account_number} {line.account_name}"
                out.write(f"{name:<60} {line.balance:>15,.2f}\n")
            out.write(f"{'Total ' + section.title:<60} {section.subtotal:>15,.2f}\n")
        if category in step_totals:
            label, amount = step_totals[category]
            out.write(thin + "\n")
            out.write(f"{label:<60} {amount:>15,.2f}\n")

    out.write("\n" + sep + "\n")
    out.write(f"{income_statement.net_income_label.upper():<60} {income_statement.net_income:>15,.2f}\n")
    out.write(sep + "\n")

    return out.getvalue()


def format_as_csv(income_statement: IncomeStatement) -> str:
    """
    Format an Income Statement as CSV.

    Args:
        income_statement: IncomeStatement to format.

    Returns:
        CSV string.
    """
    out = StringIO()
    writer = csv.writer(out)

    writer.writerow(["Income Statement"])
    writer.writerow([income_statement.company_id])
    writer.writerow([
        f"{income_statement.period_start.strftime('%Y-%m-%d')} to "
        f"{income_statement.period_end.strftime('%Y-%m-%d')}"
    ])
    writer.writerow([])
    writer.writerow(["Section", "Account Number", "Account", "Level", "Balance"])

    for section in income_statement.sections.values():
        for line in section.lines:
            writer.writerow([
                section.title, line.account_number, line.account_name, line.level, money(line.balance),
            ])
        if section.lines:
            writer.writerow([section.title, "", f"Total {section.title}", "", money(section.subtotal)])

    writer.writerow([])
    writer.writerow(["SUMMARY", "", "Total Revenue", "", money(income_statement.total_revenue)])
    writer.writerow(["SUMMARY", "", "Total Expenses", "", money(income_statement.total_expenses)])
    writer.writerow(["SUMMARY", "", "Gross Profit", "", money(income_statement.gross_profit)])
    writer.writerow(["SUMMARY", "", "Operating Income", "", money(income_statement.operating_income)])
    writer.writerow(["SUMMARY", "", income_statement.net_income_label, "", money(income_statement.net_income)])

    return out.getvalue()


def format_as_json(income_statement: IncomeStatement) -> str:
    """
    Format an Income Statement as JSON.

    Args:
        income_statement: IncomeStatement to format.

    Returns:
        JSON string.
    """
    data = {
        "income_statement": {
            "company_id": income_statement.company_id,
            "period_start": income_statement.period_start.isoformat(),
            "period_end": income_statement.period_end.isoformat(),
            "currency": income_statement.currency,
            "sections": {
                category.value: {
                    "title": section.title,
                    "line_items": [
                        {
                            "account_id": line.account_id,
                            "account_number": line.account_number,
                            "account_name": line.account_name,
                            "balance": money(line.balance),
                            "level": line.level,
                        }
                        for line in section.lines
                    ],
                    "subtotal": money(section.subtotal),
                }
                for category, section in income_statement.sections.items()
            },
            "summary": {
                "total_revenue": money(income_statement.total_revenue),
                "total_expenses": money(income_statement.total_expenses),
                "gross_profit": money(income_statement.gross_profit),
                "operating_income": money(income_statement.operating_income),
                "income_before_tax": money(income_statement.income_before_tax),
                "net_income": money(income_statement.net_income),
                "net_income_label": income_statement.net_income_label,
            },
        }
    }

    return json.dumps(data, indent=2)
