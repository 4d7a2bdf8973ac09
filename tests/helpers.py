"""
Shared test helpers for GLGAAP unit tests.

Provides factory functions for accounts, journal entries and lines, plus a
small chart of accounts used by the statement tests.
"""

from __future__ import annotations

from datetime import date
from decimal import Decimal

from glgaap.models import (
    Account,
    AccountCategory,
    AccountRole,
    CashFlowCategory,
    EntryStatus,
    EntryType,
    FiscalPeriodRef,
    JournalEntry,
    JournalEntryLine,
    LedgerEntry,
    MonetaryAmount,
    NormalBalance,
    canonical_normal_balance,
    type_for_category,
)

COMPANY = "acme"
USD = "USD"


# ---------------------------------------------------------------------------
# Factory helpers
# ---------------------------------------------------------------------------


def make_account(
    account_id: str,
    number: str,
    name: str,
    category: AccountCategory,
    normal_balance: NormalBalance | None = None,
    parent_id: str | None = None,
    level: int = 1,
    is_postable: bool = True,
    role: AccountRole | None = None,
    cash_flow_category: CashFlowCategory | None = None,
    company_id: str = COMPANY,
    **kwargs,
) -> Account:
    """Create an Account; the type is derived from the category."""
    account_type = type_for_category(category)
    return Account(
        id=account_id,
        company_id=company_id,
        account_number=number,
        name=name,
        account_type=account_type,
        account_category=category,
        normal_balance=normal_balance or canonical_normal_balance(account_type),
        parent_account_id=parent_id,
        hierarchy_level=level,
        is_postable=is_postable,
        role=role,
        cash_flow_category=cash_flow_category,
        **kwargs,
    )


def usd(value) -> MonetaryAmount:
    return MonetaryAmount(Decimal(str(value)), USD)


def make_line(
    entry_id: str,
    line_number: int,
    account_id: str,
    debit=None,
    credit=None,
    currency: str = USD,
) -> JournalEntryLine:
    """Create a single-sided line; pass exactly one of debit / credit."""
    return JournalEntryLine(
        id=f"{entry_id}-L{line_number}",
        journal_entry_id=entry_id,
        line_number=line_number,
        account_id=account_id,
        debit_amount=MonetaryAmount(Decimal(str(debit)), currency) if debit is not None else None,
        credit_amount=MonetaryAmount(Decimal(str(credit)), currency) if credit is not None else None,
    )


def make_entry(
    entry_id: str,
    on: date,
    lines: list[tuple],
    status: EntryStatus = EntryStatus.POSTED,
    entry_type: EntryType = EntryType.STANDARD,
    entry_number: str | None = None,
    company_id: str = COMPANY,
    posted: bool = True,
) -> LedgerEntry:
    """
    Create a LedgerEntry from (account_id, debit, credit) tuples.

    Posted entries get a posting date equal to the transaction date unless
    posted=False.
    """
    entry = JournalEntry(
        id=entry_id,
        company_id=company_id,
        transaction_date=on,
        fiscal_period=FiscalPeriodRef(on.year, on.month),
        description=f"Entry {entry_id}",
        entry_number=entry_number,
        posting_date=on if posted and status in (EntryStatus.POSTED, EntryStatus.REVERSED) else None,
        entry_type=entry_type,
        status=status,
    )
    journal_lines = [
        make_line(entry_id, number, account_id, debit, credit)
        for number, (account_id, debit, credit) in enumerate(lines, start=1)
    ]
    return LedgerEntry(entry, journal_lines)


def dr(account_id: str, amount) -> tuple:
    return (account_id, amount, None)


def cr(account_id: str, amount) -> tuple:
    return (account_id, None, amount)


# ---------------------------------------------------------------------------
# Standard chart of accounts
# ---------------------------------------------------------------------------


def standard_accounts() -> list[Account]:
    """
    A small trading company:

        1000 Cash                         CurrentAsset
        1100 Accounts Receivable          CurrentAsset
        1200 Inventory                    CurrentAsset
        1500 Equipment                    FixedAsset
        1510 Accumulated Depreciation     FixedAsset (contra, credit normal)
        2000 Accounts Payable             CurrentLiability
        2500 Notes Payable                NonCurrentLiability
        3000 Common Stock                 ContributedCapital
        3100 Retained Earnings            RetainedEarnings
        4000 Sales Revenue                OperatingRevenue
        5000 Salaries Expense             OperatingExpense
        5100 Depreciation Expense         DepreciationAmortization
        6000 Interest Expense             InterestExpense
        7000 Income Tax Expense           TaxExpense
    """
    return [
        make_account("cash", "1000", "Cash", AccountCategory.CURRENT_ASSET),
        make_account("ar", "1100", "Accounts Receivable", AccountCategory.CURRENT_ASSET),
        make_account("inventory", "1200", "Inventory", AccountCategory.CURRENT_ASSET),
        make_account("equipment", "1500", "Equipment", AccountCategory.FIXED_ASSET),
        make_account(
            "accum-dep", "1510", "Accumulated Depreciation", AccountCategory.FIXED_ASSET,
            normal_balance=NormalBalance.CREDIT,
        ),
        make_account("ap", "2000", "Accounts Payable", AccountCategory.CURRENT_LIABILITY),
        make_account("notes", "2500", "Notes Payable", AccountCategory.NON_CURRENT_LIABILITY),
        make_account("common", "3000", "Common Stock", AccountCategory.CONTRIBUTED_CAPITAL),
        make_account(
            "retained", "3100", "Retained Earnings", AccountCategory.RETAINED_EARNINGS,
            is_retained_earnings=True,
        ),
        make_account("sales", "4000", "Sales Revenue", AccountCategory.OPERATING_REVENUE),
        make_account("salaries", "5000", "Salaries Expense", AccountCategory.OPERATING_EXPENSE),
        make_account(
            "depreciation", "5100", "Depreciation Expense", AccountCategory.DEPRECIATION_AMORTIZATION
        ),
        make_account("interest", "6000", "Interest Expense", AccountCategory.INTEREST_EXPENSE),
        make_account("tax", "7000", "Income Tax Expense", AccountCategory.TAX_EXPENSE),
    ]
