"""
Balance Sheet report generation.

Generates GAAP-style Balance Sheets with strict accounting equation
enforcement (Assets = Liabilities + Equity).
"""

import csv
import json
import logging
from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal
from io import StringIO
from typing import Optional, Sequence

from ..balances import calculate_balance
from ..config import GLGAAPConfig
from ..errors import BalanceSheetNotBalancedError
from ..models import (
    Account,
    AccountCategory,
    AccountId,
    AccountType,
    CompanyId,
    LedgerEntry,
    canonical_normal_balance,
)
from ._common import money, optional_money, percentage_change

logger = logging.getLogger(__name__)


# Balance sheet section key -> display title, in report order
SECTION_TITLES = {
    "current_assets": "Current Assets",
    "non_current_assets": "Non-Current Assets",
    "current_liabilities": "Current Liabilities",
    "non_current_liabilities": "Non-Current Liabilities",
    "equity": "Equity",
}

SECTION_BY_CATEGORY = {
    AccountCategory.CURRENT_ASSET: "current_assets",
    AccountCategory.NON_CURRENT_ASSET: "non_current_assets",
    AccountCategory.FIXED_ASSET: "non_current_assets",
    AccountCategory.INTANGIBLE_ASSET: "non_current_assets",
    AccountCategory.CURRENT_LIABILITY: "current_liabilities",
    AccountCategory.NON_CURRENT_LIABILITY: "non_current_liabilities",
    AccountCategory.CONTRIBUTED_CAPITAL: "equity",
    AccountCategory.RETAINED_EARNINGS: "equity",
    AccountCategory.OTHER_COMPREHENSIVE_INCOME: "equity",
    AccountCategory.TREASURY_STOCK: "equity",
}

UNCLOSED_EARNINGS_ID = AccountId("UNCLOSED_EARNINGS")
UNCLOSED_EARNINGS_NAME = "Retained Earnings (Net Income, Unclosed)"


def classify_balance_sheet_section(account: Account) -> Optional[str]:
    """
    Return the balance sheet section key for an account.
    
    Args:
        account: Account to classify.
        
    Returns:
        One of the SECTION_TITLES keys, or None for revenue and expense
        accounts, which are not balance sheet accounts.
    """
    return SECTION_BY_CATEGORY.get(account.account_category)


@dataclass
class BalanceSheetLine:
    """
    A single line item in a Balance Sheet.
    
    Attributes:
        account_id: Account id.
        account_number: Account number ("" for synthetic lines).
        account_name: Account name.
        balance: Balance as of the report date (canonical sign for the type).
        comparative_balance: Balance as of the comparative date, if requested.
        level: Indentation level for display (0 = top-level).
    """
    
    account_id: AccountId
    account_number: str
    account_name: str
    balance: Decimal
    comparative_balance: Optional[Decimal] = None
    level: int = 0
    
    @property
    def variance(self) -> Optional[Decimal]:
        """Current minus comparative balance."""
        if self.comparative_balance is None:
            return None
        return self.balance - self.comparative_balance
    
    @property
    def variance_percentage(self) -> Optional[Decimal]:
        """Variance as a percentage of the comparative balance (None if that is zero)."""
        if self.comparative_balance is None:
            return None
        return percentage_change(self.variance, self.comparative_balance)


@dataclass
class BalanceSheetSection:
    """
    One of the five balance sheet sections.
    
    Attributes:
        key: Section key (see SECTION_TITLES).
        title: Display title.
        lines: Line items sorted by account number.
    """
    
    key: str
    title: str
    lines: list[BalanceSheetLine] = field(default_factory=list)
    
    @property
    def subtotal(self) -> Decimal:
        return sum((line.balance for line in self.lines), Decimal("0"))
    
    @property
    def comparative_subtotal(self) -> Optional[Decimal]:
        if not any(line.comparative_balance is not None for line in self.lines):
            return None
        return sum(
            (line.comparative_balance or Decimal("0") for line in self.lines), Decimal("0")
        )
    
    @property
    def has_items(self) -> bool:
        return bool(self.lines)


def _empty_sections() -> dict[str, BalanceSheetSection]:
    return {key: BalanceSheetSection(key, title) for key, title in SECTION_TITLES.items()}


@dataclass
class BalanceSheet:
    """
    GAAP-style Balance Sheet representation.
    
    Attributes:
        company_id: Company the report covers.
        as_of_date: Balance sheet date.
        currency: Functional currency.
        comparative_date: Optional comparative date.
        sections: Section key -> BalanceSheetSection.
    """
    
    company_id: CompanyId
    as_of_date: date
    currency: str = "USD"
    comparative_date: Optional[date] = None
    sections: dict[str, BalanceSheetSection] = field(default_factory=_empty_sections)
    
    @property
    def current_assets(self) -> BalanceSheetSection:
        return self.sections["current_assets"]
    
    @property
    def non_current_assets(self) -> BalanceSheetSection:
        return self.sections["non_current_assets"]
    
    @property
    def current_liabilities(self) -> BalanceSheetSection:
        return self.sections["current_liabilities"]
    
    @property
    def non_current_liabilities(self) -> BalanceSheetSection:
        return self.sections["non_current_liabilities"]
    
    @property
    def equity(self) -> BalanceSheetSection:
        return self.sections["equity"]
    
    @property
    def total_assets(self) -> Decimal:
        """Sum of current and non-current assets."""
        return self.current_assets.subtotal + self.non_current_assets.subtotal
    
    @property
    def total_liabilities(self) -> Decimal:
        """Sum of current and non-current liabilities."""
        return self.current_liabilities.subtotal + self.non_current_liabilities.subtotal
    
    @property
    def total_equity(self) -> Decimal:
        """Sum of all equity balances."""
        return self.equity.subtotal
    
    @property
    def total_liabilities_and_equity(self) -> Decimal:
        """Sum of liabilities and equity."""
        return self.total_liabilities + self.total_equity
    
    def _comparative(self, *keys: str) -> Optional[Decimal]:
        if self.comparative_date is None:
            return None
        return sum(
            (self.sections[k].comparative_subtotal or Decimal("0") for k in keys), Decimal("0")
        )
    
    @property
    def comparative_total_assets(self) -> Optional[Decimal]:
        return self._comparative("current_assets", "non_current_assets")
    
    @property
    def comparative_total_liabilities(self) -> Optional[Decimal]:
        return self._comparative("current_liabilities", "non_current_liabilities")
    
    @property
    def comparative_total_equity(self) -> Optional[Decimal]:
        return self._comparative("equity")
    
    @property
    def comparative_total_liabilities_and_equity(self) -> Optional[Decimal]:
        return self._comparative("current_liabilities", "non_current_liabilities", "equity")
    
    @property
    def account_count(self) -> int:
        """Number of real (non-synthetic) account lines."""
        return sum(
            1 for section in self.sections.values() for line in section.lines
            if line.account_id != UNCLOSED_EARNINGS_ID
        )
    
    def check_balance(self, tolerance: Decimal = Decimal("0")) -> tuple[bool, Decimal]:
        """
        Check if the accounting equation holds: Assets = Liabilities + Equity.
        
        Args:
            tolerance: Numeric tolerance for balance check.
            
        Returns:
            Tuple of (is_balanced, delta) where delta = Assets - (Liabilities + Equity).
        """
        delta = self.total_assets - self.total_liabilities_and_equity
        is_balanced = abs(delta) <= tolerance
        return is_balanced, delta
    
    @property
    def is_balanced(self) -> bool:
        return self.check_balance()[0]


def generate_balance_sheet(
    company_id: CompanyId,
    accounts: Sequence[Account],
    entries: Sequence[LedgerEntry],
    as_of_date: date,
    currency: str,
    include_zero_balances: bool = False,
    comparative_date: Optional[date] = None,
    config: Optional[GLGAAPConfig] = None,
) -> BalanceSheet:
    """
    Generate a GAAP-compliant Balance Sheet.
    
    Postable asset, liability and equity accounts are grouped into five
    sections by category; each balance is the cumulative balance as of the
    report date, signed on the canonical side for the account type (so a
    contra account reduces its section). Revenue minus expense not yet
    closed to retained earnings is carried as a separate equity line when
    config.include_unclosed_earnings is set.
    
    Args:
        company_id: Company the report covers.
        accounts: The company's accounts.
        entries: The company's posted journal entries with lines.
        as_of_date: Balance sheet date.
        currency: Functional currency.
        include_zero_balances: Keep accounts whose balance is zero.
        comparative_date: Optional second date for variance columns.
        config: Optional configuration; uses default if not provided.
        
    Returns:
        BalanceSheet instance.
        
    Raises:
        BalanceSheetNotBalancedError: If Assets != Liabilities + Equity.
    """
    if config is None:
        from ..config import default_config
        config = default_config
    
    logger.info(f"Generating Balance Sheet for {company_id} as of {as_of_date}")
    if comparative_date:
        logger.info(f"Comparative date: {comparative_date}")
    
    balance_sheet = BalanceSheet(
        company_id=company_id,
        as_of_date=as_of_date,
        currency=currency,
        comparative_date=comparative_date,
    )
    
    # STEP 1: Calculate balances for postable balance sheet accounts
    logger.info("Step 1: Calculating account balances")
    unclosed = Decimal("0")
    unclosed_comparative = Decimal("0")
    
    for account in sorted(accounts, key=lambda a: a.account_number):
        if not account.is_postable:
            continue
        
        normal_balance = canonical_normal_balance(account.account_type)
        balance = calculate_balance(account.id, normal_balance, entries, as_of_date, currency).amount
        comparative = None
        if comparative_date is not None:
            comparative = calculate_balance(
                account.id, normal_balance, entries, comparative_date, currency
            ).amount
        
        section_key = classify_balance_sheet_section(account)
        if section_key is None:
            # Revenue and expense feed the unclosed earnings line
            sign = 1 if account.account_type is AccountType.REVENUE else -1
            unclosed += sign * balance
            if comparative is not None:
                unclosed_comparative += sign * comparative
            continue
        
        if balance == 0 and not include_zero_balances and not comparative:
            continue
        
        balance_sheet.sections[section_key].lines.append(BalanceSheetLine(
            account_id=account.id,
            account_number=account.account_number,
            account_name=account.name,
            balance=balance,
            comparative_balance=comparative,
            level=account.hierarchy_level - 1,
        ))
    
    # STEP 2: Unclosed earnings
    if config.include_unclosed_earnings and (
        unclosed != 0 or unclosed_comparative != 0 or include_zero_balances
    ):
        balance_sheet.equity.lines.append(BalanceSheetLine(
            account_id=UNCLOSED_EARNINGS_ID,
            account_number="",
            account_name=UNCLOSED_EARNINGS_NAME,
            balance=unclosed,
            comparative_balance=unclosed_comparative if comparative_date is not None else None,
        ))
        logger.info(f"Added unclosed earnings: {unclosed:,.2f}")
    
    logger.info(
        f"Classified: {len(balance_sheet.current_assets.lines) + len(balance_sheet.non_current_assets.lines)} assets, "
        f"{len(balance_sheet.current_liabilities.lines) + len(balance_sheet.non_current_liabilities.lines)} liabilities, "
        f"{len(balance_sheet.equity.lines)} equity lines"
    )
    
    # STEP 3: Verify accounting equation
    logger.info("Step 3: Verifying accounting equation (Assets = Liabilities + Equity)")
    is_balanced, delta = balance_sheet.check_balance(config.numeric_tolerance)
    
    if not is_balanced:
        error = BalanceSheetNotBalancedError(
            company_id,
            as_of_date,
            balance_sheet.total_assets,
            balance_sheet.total_liabilities,
            balance_sheet.total_equity,
        )
        logger.error(str(error))
        raise error
    
    logger.info("[OK] Accounting equation verified")
    logger.info(f"Total Assets: {balance_sheet.total_assets:,.2f}")
    logger.info(f"Total Liabilities: {balance_sheet.total_liabilities:,.2f}")
    logger.info(f"Total Equity: {balance_sheet.total_equity:,.2f}")
    
    return balance_sheet


def format_as_text(balance_sheet: BalanceSheet) -> str:
    """
    Format a Balance Sheet as human-readable text.
    
    Args:
        balance_sheet: BalanceSheet to format.
        
    Returns:
        Formatted text string.
    """
    output = StringIO()
    comparative = balance_sheet.comparative_date is not None
    
    def amount_cols(current: Decimal, prior: Optional[Decimal]) -> str:
        text = f"{current:>15,.2f}"
        if comparative:
            text += f" {(prior or Decimal('0')):>15,.2f}"
        return text
    
    output.write("=" * 80 + "\n")
    output.write("BALANCE SHEET\n")
    output.write(f"{balance_sheet.company_id}\n")
    output.write(f"As of {balance_sheet.as_of_date.strftime('%B %d, %Y')}\n")
    if comparative:
        output.write(f"Compared with {balance_sheet.comparative_date.strftime('%B %d, %Y')}\n")
    output.write(f"Currency: {balance_sheet.currency}\n")
    output.write("=" * 80 + "\n")
    
    groups = [
        ("ASSETS", ["current_assets", "non_current_assets"], "TOTAL ASSETS",
         balance_sheet.total_assets, balance_sheet.comparative_total_assets),
        ("LIABILITIES", ["current_liabilities", "non_current_liabilities"], "TOTAL LIABILITIES",
         balance_sheet.total_liabilities, balance_sheet.comparative_total_liabilities),
        ("EQUITY", ["equity"], "TOTAL EQUITY",
         balance_sheet.total_equity, balance_sheet.comparative_total_equity),
    ]
    
    for heading, keys, total_label, total, comparative_total in groups:
        output.write(f"\n{heading}\n")
        output.write("-" * 80 + "\n")
        for key in keys:
            section = balance_sheet.sections[key]
            if len(keys) > 1:
                output.write(f"{section.title}\n")
            for line in section.lines:
                indent = "  " * (line.level + 1)
                label = f"{line.account_number} {line.account_name}".strip()
                output.write(f"{indent}{label:<{58 - len(indent)}} "
                             f"{amount_cols(line.balance, line.comparative_balance)}\n")
            if len(keys) > 1:
                output.write(f"  {'Total ' + section.title:<56} "
                             f"{amount_cols(section.subtotal, section.comparative_subtotal)}\n")
        output.write("-" * 80 + "\n")
        output.write(f"{total_label:<58} {amount_cols(total, comparative_total)}\n")
    
    output.write("\n" + "=" * 80 + "\n")
    output.write(f"{'TOTAL LIABILITIES AND EQUITY':<58} "
                 f"{amount_cols(balance_sheet.total_liabilities_and_equity, balance_sheet.comparative_total_liabilities_and_equity)}\n")
    output.write("=" * 80 + "\n")
    
    is_balanced, delta = balance_sheet.check_balance()
    if is_balanced:
        output.write("\n[OK] ACCOUNTING EQUATION VERIFIED: Assets = Liabilities + Equity\n")
    else:
        output.write(f"\n[X] WARNING: Imbalance of {delta:,.2f}\n")
    
    return output.getvalue()


def format_as_csv(balance_sheet: BalanceSheet) -> str:
    """
    Format a Balance Sheet as CSV.
    
    Args:
        balance_sheet: BalanceSheet to format.
        
    Returns:
        CSV string.
    """
    output = StringIO()
    writer = csv.writer(output)
    
    writer.writerow(["Balance Sheet"])
    writer.writerow([balance_sheet.company_id])
    writer.writerow([f"As of {balance_sheet.as_of_date.strftime('%Y-%m-%d')}"])
    writer.writerow([])
    
    writer.writerow([
        "Section", "Account Number", "Account", "Balance",
        "Comparative Balance", "Variance", "Variance %",
    ])
    
    for section in balance_sheet.sections.values():
        for line in section.lines:
            writer.writerow([
                section.title,
                line.account_number,
                line.account_name,
                money(line.balance),
                optional_money(line.comparative_balance) or "",
                optional_money(line.variance) or "",
                optional_money(line.variance_percentage) or "",
            ])
        writer.writerow([
            section.title, "", f"Total {section.title}", money(section.subtotal),
            optional_money(section.comparative_subtotal) or "", "", "",
        ])
    
    writer.writerow([])
    writer.writerow(["SUMMARY", "", "Total Assets", money(balance_sheet.total_assets)])
    writer.writerow(["SUMMARY", "", "Total Liabilities", money(balance_sheet.total_liabilities)])
    writer.writerow(["SUMMARY", "", "Total Equity", money(balance_sheet.total_equity)])
    writer.writerow([
        "SUMMARY", "", "Total Liabilities and Equity",
        money(balance_sheet.total_liabilities_and_equity),
    ])
    
    return output.getvalue()


def format_as_json(balance_sheet: BalanceSheet) -> str:
    """
    Format a Balance Sheet as JSON.
    
    Amounts are rendered as decimal strings with two places.
    
    Args:
        balance_sheet: BalanceSheet to format.
        
    Returns:
        JSON string.
    """
    def line_to_dict(line: BalanceSheetLine) -> dict:
        return {
            "account_id": line.account_id,
            "account_number": line.account_number,
            "account_name": line.account_name,
            "balance": money(line.balance),
            "comparative_balance": optional_money(line.comparative_balance),
            "variance": optional_money(line.variance),
            "variance_percentage": optional_money(line.variance_percentage),
            "level": line.level,
        }
    
    is_balanced, delta = balance_sheet.check_balance()
    
    data = {
        "balance_sheet": {
            "company_id": balance_sheet.company_id,
            "as_of_date": balance_sheet.as_of_date.isoformat(),
            "comparative_date": (
                balance_sheet.comparative_date.isoformat() if balance_sheet.comparative_date else None
            ),
            "currency": balance_sheet.currency,
            "sections": {
                key: {
                    "title": section.title,
                    "lines": [line_to_dict(line) for line in section.lines],
                    "subtotal": money(section.subtotal),
                    "comparative_subtotal": optional_money(section.comparative_subtotal),
                }
                for key, section in balance_sheet.sections.items()
            },
            "totals": {
                "total_assets": money(balance_sheet.total_assets),
                "total_liabilities": money(balance_sheet.total_liabilities),
                "total_equity": money(balance_sheet.total_equity),
                "total_liabilities_and_equity": money(balance_sheet.total_liabilities_and_equity),
                "comparative_total_assets": optional_money(balance_sheet.comparative_total_assets),
                "comparative_total_liabilities_and_equity": optional_money(
                    balance_sheet.comparative_total_liabilities_and_equity
                ),
            },
            "metadata": {
                "account_count": balance_sheet.account_count,
                "is_balanced": is_balanced,
                "imbalance": money(delta),
            },
        }
    }
    
    return json.dumps(data, indent=2)
