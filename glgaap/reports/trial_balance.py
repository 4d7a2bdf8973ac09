"""
Trial Balance report generation.

Lists every postable account with its cumulative balance as of a date in the
debit or credit column. Total debits must equal total credits for a ledger
in balance.
"""

import csv
import json
import logging
from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal
from io import StringIO
from typing import Optional, Sequence

from ..balances import calculate_debit_credit_totals
from ..config import GLGAAPConfig
from ..models import Account, AccountId, AccountType, CompanyId, LedgerEntry
from ._common import money

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Data classes
# ---------------------------------------------------------------------------


@dataclass
class TrialBalanceLine:
    """
    A single account line in a Trial Balance.

    Attributes:
        account_id: Account id.
        account_number: Account number.
        account_name: Account name.
        account_type: Account type.
        debit: Amount in the debit column (0 if none).
        credit: Amount in the credit column (0 if none).
        level: Indentation level for display.
    """

    account_id: AccountId
    account_number: str
    account_name: str
    account_type: AccountType
    debit: Decimal
    credit: Decimal
    level: int = 0


@dataclass
class TrialBalance:
    """
    Trial Balance representation.

    Attributes:
        company_id: Company the report covers.
        as_of_date: Balance date.
        lines: Account lines sorted by account number.
        currency: Functional currency.
    """

    company_id: CompanyId
    as_of_date: date
    lines: list[TrialBalanceLine] = field(default_factory=list)
    currency: str = "USD"

    @property
    def total_debits(self) -> Decimal:
        """Sum of all debit amounts."""
        return sum((line.debit for line in self.lines), Decimal("0"))

    @property
    def total_credits(self) -> Decimal:
        """Sum of all credit amounts."""
        return sum((line.credit for line in self.lines), Decimal("0"))

    def is_balanced(self, tolerance: Decimal = Decimal("0")) -> bool:
        """
        Check whether total debits equal total credits.

        Args:
            tolerance: Maximum acceptable difference.

        Returns:
            True if abs(total_debits - total_credits) <= tolerance.
        """
        return abs(self.imbalance()) <= tolerance

    def imbalance(self) -> Decimal:
        """Debits minus credits; zero for a balanced trial balance."""
        return self.total_debits - self.total_credits


def assign_debit_credit(net_debit: Decimal) -> tuple[Decimal, Decimal]:
    """
    Place a net balance in the debit or credit column.

    Args:
        net_debit: Debits minus credits for the account.

    Returns:
        Tuple of (debit, credit); at most one is non-zero.
    """
    if net_debit >= 0:
        return net_debit, Decimal("0")
    return Decimal("0"), -net_debit


# ---------------------------------------------------------------------------
# Core generation function
# ---------------------------------------------------------------------------


def generate_trial_balance(
    company_id: CompanyId,
    accounts: Sequence[Account],
    entries: Sequence[LedgerEntry],
    as_of_date: date,
    currency: str,
    include_zero_balances: bool = False,
    config: Optional[GLGAAPConfig] = None,
) -> TrialBalance:
    """
    Generate a Trial Balance as of a specific date.

    Args:
        company_id: Company the report covers.
        accounts: The company's accounts.
        entries: The company's posted journal entries with lines.
        as_of_date: Balance date.
        currency: Functional currency.
        include_zero_balances: Keep accounts whose balance is zero.
        config: Optional configuration; uses default if not provided.

    Returns:
        TrialBalance instance. An imbalance is logged, not raised.
    """
    if config is None:
        from ..config import default_config
        config = default_config

    logger.info(f"Generating Trial Balance for {company_id} as of {as_of_date}")

    lines: list[TrialBalanceLine] = []
    for account in sorted(accounts, key=lambda a: a.account_number):
        if not account.is_postable:
            continue

        totals = calculate_debit_credit_totals(account.id, entries, as_of_date, currency)
        net_debit = totals.net_debit.amount

        # Skip accounts with no balance.
        if config.is_zero(net_debit) and not include_zero_balances:
            continue

        debit, credit = assign_debit_credit(net_debit)
        lines.append(TrialBalanceLine(
            account_id=account.id,
            account_number=account.account_number,
            account_name=account.name,
            account_type=account.account_type,
            debit=debit,
            credit=credit,
            level=account.hierarchy_level - 1,
        ))

    trial_balance = TrialBalance(
        company_id=company_id,
        as_of_date=as_of_date,
        lines=lines,
        currency=currency,
    )

    logger.info(
        f"Trial Balance: {len(lines)} accounts | "
        f"Debits: {trial_balance.total_debits:,.2f} | "
        f"Credits: {trial_balance.total_credits:,.2f}"
    )

    if trial_balance.is_balanced(config.numeric_tolerance):
        logger.info("[OK] Trial Balance is balanced (Debits = Credits)")
    else:
        logger.warning(f"[!] Trial Balance imbalance: {trial_balance.imbalance():,.2f}")

    return trial_balance


# ---------------------------------------------------------------------------
# Formatters
# ---------------------------------------------------------------------------


def format_as_text(trial_balance: TrialBalance) -> str:
    """
    Format a Trial Balance as human-readable text.

    Args:
        trial_balance: TrialBalance to format.

    Returns:
        Formatted text string.
    """
    out = StringIO()
    sep = "=" * 100
    thin = "-" * 100

    out.write(sep + "\n")
    out.write("TRIAL BALANCE\n")
    out.write(f"{trial_balance.company_id}\n")
    out.write(f"As of {trial_balance.as_of_date.strftime('%B %d, %Y')}\n")
    out.write(f"Currency: {trial_balance.currency}\n")
    out.write(sep + "\n\n")

    out.write(f"{'Account':<65} {'Type':<12} {'Debit':>15} {'Credit':>15}\n")
    out.write(thin + "\n")

    for line in trial_balance.lines:
        indent = "  " * line.level
        name = f"{indent}{line.account_number} {line.account_name}"
        debit_str = f"{line.debit:>15,.2f}" if line.debit else ""
        credit_str = f"{line.credit:>15,.2f}" if line.credit else ""
        out.write(f"{name:<65} {line.account_type.value:<12} {debit_str:>15} {credit_str:>15}\n")

    out.write(thin + "\n")
    out.write(
        f"{'TOTALS':<65} {'':<12} "
        f"{trial_balance.total_debits:>15,.2f} "
        f"{trial_balance.total_credits:>15,.2f}\n"
    )
    out.write(sep + "\n")

    if trial_balance.is_balanced():
        out.write("\n[OK] TRIAL BALANCE IS BALANCED (Debits = Credits)\n")
    else:
        out.write(f"\n[X] IMBALANCE: {trial_balance.imbalance():,.2f}\n")

    return out.getvalue()


def format_as_csv(trial_balance: TrialBalance) -> str:
    """
    Format a Trial Balance as CSV.

    Args:
        trial_balance: TrialBalance to format.

    Returns:
        CSV string.
    """
    out = StringIO()
    writer = csv.writer(out)

    writer.writerow(["Trial Balance"])
    writer.writerow([trial_balance.company_id])
    writer.writerow([f"As of {trial_balance.as_of_date.strftime('%Y-%m-%d')}"])
    writer.writerow([])
    writer.writerow(["Account Number", "Account", "Account Type", "Level", "Debit", "Credit"])

    for line in trial_balance.lines:
        writer.writerow([
            line.account_number,
            line.account_name,
            line.account_type.value,
            line.level,
            money(line.debit) if line.debit else "",
            money(line.credit) if line.credit else "",
        ])

    writer.writerow([])
    writer.writerow([
        "TOTALS", "", "", "",
        money(trial_balance.total_debits),
        money(trial_balance.total_credits),
    ])

    return out.getvalue()


def format_as_json(trial_balance: TrialBalance) -> str:
    """
    Format a Trial Balance as JSON.

    Args:
        trial_balance: TrialBalance to format.

    Returns:
        JSON string.
    """
    def line_to_dict(line: TrialBalanceLine) -> dict:
        return {
            "account_id": line.account_id,
            "account_number": line.account_number,
            "account_name": line.account_name,
            "account_type": line.account_type.value,
            "debit": money(line.debit),
            "credit": money(line.credit),
            "level": line.level,
        }

    data = {
        "trial_balance": {
            "company_id": trial_balance.company_id,
            "as_of_date": trial_balance.as_of_date.isoformat(),
            "currency": trial_balance.currency,
            "accounts": [line_to_dict(l) for l in trial_balance.lines],
            "summary": {
                "total_debits": money(trial_balance.total_debits),
                "total_credits": money(trial_balance.total_credits),
                "is_balanced": trial_balance.is_balanced(),
                "imbalance": money(trial_balance.imbalance()),
            },
        }
    }

    return json.dumps(data, indent=2)
