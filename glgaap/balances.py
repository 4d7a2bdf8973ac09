"""
Ledger balance calculator.

Pure functions that turn a ledger (journal entries paired with their lines)
into a signed balance for one account, either cumulative as of a date or as
activity over a period. Amounts are summed in the functional currency using
Decimal arithmetic.

Only ledger-effective entries count: the entry must carry a posting date and
must have reached the Posted state (status Posted, or Reversed, since a
reversed entry keeps its original effect and is offset by its reversal).
Drafts and entries without a posting date are excluded regardless of status.
"""

import logging
from dataclasses import dataclass
from datetime import date, timedelta
from decimal import Decimal
from typing import Callable, Iterable

from .models import (
    AccountId,
    EntryStatus,
    JournalEntry,
    JournalEntryLine,
    LedgerEntry,
    MonetaryAmount,
    NormalBalance,
)

logger = logging.getLogger(__name__)

# A Reversed entry keeps its own effect; its reversal entry posts the offset.
LEDGER_EFFECTIVE_STATUSES = frozenset({EntryStatus.POSTED, EntryStatus.REVERSED})


def is_ledger_effective(entry: JournalEntry) -> bool:
    """
    Check whether an entry affects ledger balances.
    
    Args:
        entry: Journal entry header.
        
    Returns:
        True if the entry has a posting date and was posted.
    """
    return entry.posting_date is not None and entry.status in LEDGER_EFFECTIVE_STATUSES


def previous_day(day: date) -> date:
    """Return the calendar day before *day* (month, year and leap-day aware)."""
    return day - timedelta(days=1)


def fiscal_year_start(as_of_date: date, start_month: int = 1) -> date:
    """
    Return the first day of the fiscal year containing *as_of_date*.
    
    Args:
        as_of_date: Any date inside the fiscal year.
        start_month: Calendar month the fiscal year starts in (1-12).
        
    Returns:
        The fiscal year start date.
    """
    if as_of_date.month >= start_month:
        return date(as_of_date.year, start_month, 1)
    return date(as_of_date.year - 1, start_month, 1)


def entry_totals(lines: Iterable[JournalEntryLine]) -> tuple[Decimal, Decimal]:
    """
    Sum the functional-currency debits and credits of a set of lines.
    
    Returns:
        Tuple of (total_debits, total_credits).
    """
    total_debits = Decimal("0")
    total_credits = Decimal("0")
    for line in lines:
        total_debits += line.functional_debit
        total_credits += line.functional_credit
    return total_debits, total_credits


def _sum_account_lines(
    account_id: AccountId,
    entries: Iterable[LedgerEntry],
    include_date: Callable[[date], bool],
) -> tuple[Decimal, Decimal]:
    """Sum one account's functional debits and credits over matching entries."""
    total_debits = Decimal("0")
    total_credits = Decimal("0")
    
    for ledger_entry in entries:
        entry = ledger_entry.entry
        if not is_ledger_effective(entry) or not include_date(entry.posting_date):
            continue
        for line in ledger_entry.lines:
            if line.account_id != account_id:
                continue
            total_debits += line.functional_debit
            total_credits += line.functional_credit
    
    return total_debits, total_credits


def _signed_balance(
    total_debits: Decimal,
    total_credits: Decimal,
    normal_balance: NormalBalance,
) -> Decimal:
    if normal_balance is NormalBalance.DEBIT:
        return total_debits - total_credits
    return total_credits - total_debits


def calculate_balance(
    account_id: AccountId,
    normal_balance: NormalBalance,
    entries: Iterable[LedgerEntry],
    as_of_date: date,
    currency: str,
) -> MonetaryAmount:
    """
    Calculate an account's cumulative balance as of a date (inclusive).
    
    Args:
        account_id: Account to calculate.
        normal_balance: Side on which the account increases; the result is
                        debits - credits for Debit, credits - debits for Credit.
        entries: Ledger entries with their lines.
        as_of_date: Last posting date included.
        currency: Functional currency of the result.
        
    Returns:
        Signed balance as a MonetaryAmount.
    """
    debits, credits = _sum_account_lines(
        account_id, entries, lambda posted: posted <= as_of_date
    )
    return MonetaryAmount(_signed_balance(debits, credits, normal_balance), currency)


def calculate_period_balance(
    account_id: AccountId,
    normal_balance: NormalBalance,
    entries: Iterable[LedgerEntry],
    period_start: date,
    period_end: date,
    currency: str,
) -> MonetaryAmount:
    """
    Calculate an account's activity over a period (both ends inclusive).
    
    This is the net movement in the period, not a cumulative balance.
    
    Args:
        account_id: Account to calculate.
        normal_balance: Side on which the account increases.
        entries: Ledger entries with their lines.
        period_start: First posting date included.
        period_end: Last posting date included.
        currency: Functional currency of the result.
        
    Returns:
        Signed period activity as a MonetaryAmount.
    """
    debits, credits = _sum_account_lines(
        account_id, entries, lambda posted: period_start <= posted <= period_end
    )
    return MonetaryAmount(_signed_balance(debits, credits, normal_balance), currency)


def calculate_ytd_balance(
    account_id: AccountId,
    normal_balance: NormalBalance,
    entries: Iterable[LedgerEntry],
    fiscal_year_start_date: date,
    as_of_date: date,
    currency: str,
) -> MonetaryAmount:
    """Year-to-date activity: period balance from fiscal year start to as_of_date."""
    return calculate_period_balance(
        account_id, normal_balance, entries, fiscal_year_start_date, as_of_date, currency
    )


def calculate_beginning_balance(
    account_id: AccountId,
    normal_balance: NormalBalance,
    entries: Iterable[LedgerEntry],
    period_start: date,
    currency: str,
) -> MonetaryAmount:
    """Cumulative balance strictly before *period_start* (as of the day before)."""
    return calculate_balance(
        account_id, normal_balance, entries, previous_day(period_start), currency
    )


@dataclass(frozen=True)
class DebitCreditTotals:
    """
    Raw debit and credit totals for one account.
    
    Attributes:
        total_debits: Sum of functional debits.
        total_credits: Sum of functional credits.
    """
    
    total_debits: MonetaryAmount
    total_credits: MonetaryAmount
    
    @property
    def net_debit(self) -> MonetaryAmount:
        """Debits minus credits."""
        return self.total_debits.subtract(self.total_credits)


def calculate_debit_credit_totals(
    account_id: AccountId,
    entries: Iterable[LedgerEntry],
    as_of_date: date,
    currency: str,
) -> DebitCreditTotals:
    """Cumulative debit and credit totals for an account as of a date."""
    debits, credits = _sum_account_lines(
        account_id, entries, lambda posted: posted <= as_of_date
    )
    return DebitCreditTotals(MonetaryAmount(debits, currency), MonetaryAmount(credits, currency))


def calculate_period_debit_credit_totals(
    account_id: AccountId,
    entries: Iterable[LedgerEntry],
    period_start: date,
    period_end: date,
    currency: str,
) -> DebitCreditTotals:
    """Debit and credit totals for an account over a period (inclusive)."""
    debits, credits = _sum_account_lines(
        account_id, entries, lambda posted: period_start <= posted <= period_end
    )
    return DebitCreditTotals(MonetaryAmount(debits, currency), MonetaryAmount(credits, currency))
