"""
Helpers shared by the report generators.
"""

from datetime import date
from decimal import ROUND_HALF_UP, Decimal
from typing import Optional, Sequence

from ..balances import calculate_period_balance
from ..errors import InvalidPeriodError
from ..models import (
    Account,
    AccountRole,
    AccountType,
    EntryType,
    LedgerEntry,
    canonical_normal_balance,
)

CENT = Decimal("0.01")


def money(value: Decimal) -> str:
    """Render an amount with two decimal places for CSV/JSON output."""
    return str(value.quantize(CENT, rounding=ROUND_HALF_UP))


def optional_money(value: Optional[Decimal]) -> Optional[str]:
    return money(value) if value is not None else None


def percentage_change(variance: Decimal, base: Decimal) -> Optional[Decimal]:
    """
    variance * 100 / base, rounded half away from zero to 2 places.
    
    Returns:
        The percentage, or None when the base is zero.
    """
    if base == 0:
        return None
    return (variance * 100 / base).quantize(CENT, rounding=ROUND_HALF_UP)


def check_period(period_start: date, period_end: date) -> None:
    """
    Raises:
        InvalidPeriodError: If period_start is after period_end.
    """
    if period_start > period_end:
        raise InvalidPeriodError(period_start, period_end)


def without_closing_entries(entries: Sequence[LedgerEntry]) -> list[LedgerEntry]:
    """Drop year-end closing entries, which move earnings into retained earnings."""
    return [e for e in entries if e.entry.entry_type is not EntryType.CLOSING]


def period_total(
    accounts: Sequence[Account],
    entries: Sequence[LedgerEntry],
    period_start: date,
    period_end: date,
    currency: str,
) -> Decimal:
    """Sum of the accounts' period activity, each on its type's normal side."""
    total = Decimal("0")
    for account in accounts:
        total += calculate_period_balance(
            account.id,
            canonical_normal_balance(account.account_type),
            entries,
            period_start,
            period_end,
            currency,
        ).amount
    return total


def calculate_net_income(
    accounts: Sequence[Account],
    entries: Sequence[LedgerEntry],
    period_start: date,
    period_end: date,
    currency: str,
) -> Decimal:
    """
    Period revenue minus period expenses over postable accounts.
    
    Closing entries are ignored so the figure is the same before and after
    the period's books are closed.
    """
    entries = without_closing_entries(entries)
    postable = [a for a in accounts if a.is_postable]
    revenue = period_total(
        [a for a in postable if a.account_type is AccountType.REVENUE],
        entries, period_start, period_end, currency,
    )
    expenses = period_total(
        [a for a in postable if a.account_type is AccountType.EXPENSE],
        entries, period_start, period_end, currency,
    )
    return revenue - expenses


def name_contains(account: Account, *words: str) -> bool:
    """Case-insensitive check for any of *words* in the account name."""
    name = account.name.lower()
    return any(word in name for word in words)


def is_dividend_account(account: Account) -> bool:
    """Dividend role, or "dividend" in the name when no role is set."""
    if account.role is not None:
        return account.role is AccountRole.DIVIDEND
    return name_contains(account, "dividend")
