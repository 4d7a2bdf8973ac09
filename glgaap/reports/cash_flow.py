"""
Cash Flow Statement report generation (indirect method).

Starts from period net income, adds back non-cash charges, adjusts for
working-capital movements, then lists investing and financing cash flows
derived from balance sheet deltas. Beginning and ending cash are read
independently from the ledger so the statement can be checked against it.
"""

import json
import logging
from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal
from io import StringIO
from typing import Optional, Sequence

from ..balances import calculate_balance, previous_day
from ..config import GLGAAPConfig
from ..errors import CashFlowReconciliationError
from ..models import (
    Account,
    AccountCategory,
    AccountId,
    AccountRole,
    AccountType,
    CashFlowCategory,
    CompanyId,
    LedgerEntry,
    canonical_normal_balance,
)
from ._common import (
    calculate_net_income,
    check_period,
    is_dividend_account,
    money,
    name_contains,
    optional_money,
    period_total,
    without_closing_entries,
)

logger = logging.getLogger(__name__)


SECTION_DISPLAY_NAMES = {
    CashFlowCategory.OPERATING: "Cash Flows from Operating Activities",
    CashFlowCategory.INVESTING: "Cash Flows from Investing Activities",
    CashFlowCategory.FINANCING: "Cash Flows from Financing Activities",
}

INVESTING_CATEGORIES = frozenset({
    AccountCategory.NON_CURRENT_ASSET,
    AccountCategory.FIXED_ASSET,
    AccountCategory.INTANGIBLE_ASSET,
})

FINANCING_EQUITY_CATEGORIES = frozenset({
    AccountCategory.CONTRIBUTED_CAPITAL,
    AccountCategory.TREASURY_STOCK,
})


def get_section_display_name(section_type: CashFlowCategory) -> str:
    """Return the statement heading for a cash flow section."""
    return SECTION_DISPLAY_NAMES[section_type]


# ---------------------------------------------------------------------------
# Account classification
# ---------------------------------------------------------------------------


def is_cash_account(account: Account) -> bool:
    """Cash and cash equivalents: role Cash, or a current asset named like cash."""
    if account.role is not None:
        return account.role is AccountRole.CASH
    return (
        account.account_category is AccountCategory.CURRENT_ASSET
        and name_contains(account, "cash")
    )


def is_loan_account(account: Account) -> bool:
    if account.role is not None:
        return account.role is AccountRole.LOAN
    return name_contains(account, "loan")


def classify_cash_flow_account(account: Account) -> Optional[CashFlowCategory]:
    """
    Decide which cash flow section a balance sheet account's movement feeds.
    
    Cash accounts themselves are not classified (they are the subject of the
    statement). An explicit cash_flow_category on the account wins over the
    category rules below.
    
    Rules:
        - other current assets and current liabilities: Operating (working capital)
        - current liabilities with the Loan role (or "loan" in the name): Financing
        - non-current, fixed and intangible assets: Investing, except contra
          accounts such as accumulated depreciation, which the depreciation
          add-back already covers
        - non-current liabilities: Financing
        - contributed capital and treasury stock: Financing
        - dividend accounts under retained earnings: Financing
    
    Args:
        account: Account to classify.
        
    Returns:
        The section, or None if the account does not appear on the statement.
    """
    if account.account_type not in (AccountType.ASSET, AccountType.LIABILITY, AccountType.EQUITY):
        return None
    if is_cash_account(account):
        return None
    
    if account.cash_flow_category is not None:
        if account.cash_flow_category is CashFlowCategory.NON_CASH:
            return None
        return account.cash_flow_category
    
    category = account.account_category
    
    if category is AccountCategory.CURRENT_ASSET:
        return CashFlowCategory.OPERATING
    if category in INVESTING_CATEGORIES:
        return None if account.is_contra else CashFlowCategory.INVESTING
    if category is AccountCategory.CURRENT_LIABILITY:
        return CashFlowCategory.FINANCING if is_loan_account(account) else CashFlowCategory.OPERATING
    if category is AccountCategory.NON_CURRENT_LIABILITY:
        return CashFlowCategory.FINANCING
    if category in FINANCING_EQUITY_CATEGORIES:
        return CashFlowCategory.FINANCING
    if category is AccountCategory.RETAINED_EARNINGS and is_dividend_account(account):
        return CashFlowCategory.FINANCING
    
    # Retained earnings (covered by net income) and AOCI
    return None


# ---------------------------------------------------------------------------
# Report structures
# ---------------------------------------------------------------------------


@dataclass
class CashFlowLineItem:
    """
    A single line on the cash flow statement.
    
    Positive amounts are cash inflows, negative amounts outflows.
    """
    
    description: str
    amount: Decimal
    account_id: Optional[AccountId] = None
    account_number: Optional[str] = None
    is_subtotal: bool = False
    indent_level: int = 1
    
    @property
    def is_account_line(self) -> bool:
        return self.account_id is not None
    
    @property
    def is_cash_inflow(self) -> bool:
        return self.amount > 0
    
    @property
    def is_cash_outflow(self) -> bool:
        return self.amount < 0


@dataclass
class OperatingActivityAdjustment:
    """An add-back or working-capital line in the operating section."""
    
    description: str
    amount: Decimal
    is_non_cash_adjustment: bool
    account_id: Optional[AccountId] = None


@dataclass
class OperatingActivities:
    """
    Operating section of the indirect-method statement.
    
    Attributes:
        net_income: Period revenue minus period expenses.
        non_cash_adjustments: Depreciation and amortization add-backs.
        working_capital_changes: Cash effect of current asset/liability movements.
    """
    
    net_income: Decimal = Decimal("0")
    non_cash_adjustments: list[OperatingActivityAdjustment] = field(default_factory=list)
    working_capital_changes: list[OperatingActivityAdjustment] = field(default_factory=list)
    
    @property
    def non_cash_adjustments_subtotal(self) -> Decimal:
        return sum((adj.amount for adj in self.non_cash_adjustments), Decimal("0"))
    
    @property
    def working_capital_changes_subtotal(self) -> Decimal:
        return sum((adj.amount for adj in self.working_capital_changes), Decimal("0"))
    
    @property
    def net_cash_from_operating(self) -> Decimal:
        return (
            self.net_income
            + self.non_cash_adjustments_subtotal
            + self.working_capital_changes_subtotal
        )
    
    @property
    def line_items(self) -> list[CashFlowLineItem]:
        """Display lines: net income, adjustment groups, then the section total."""
        items = [CashFlowLineItem("Net Income", self.net_income, indent_level=1)]
        groups = [
            ("Adjustments for non-cash items:", self.non_cash_adjustments),
            ("Changes in working capital:", self.working_capital_changes),
        ]
        for heading, adjustments in groups:
            if not adjustments:
                continue
            items.append(CashFlowLineItem(heading, Decimal("0"), indent_level=1))
            for adj in adjustments:
                items.append(CashFlowLineItem(
                    adj.description, adj.amount, account_id=adj.account_id, indent_level=2
                ))
        items.append(CashFlowLineItem(
            "Net Cash from Operating Activities",
            self.net_cash_from_operating,
            is_subtotal=True,
            indent_level=0,
        ))
        return items


@dataclass
class CashFlowSection:
    """Investing or financing section: a list of account lines and a subtotal."""
    
    section_type: CashFlowCategory
    line_items: list[CashFlowLineItem] = field(default_factory=list)
    
    @property
    def display_name(self) -> str:
        return get_section_display_name(self.section_type)
    
    @property
    def subtotal(self) -> Decimal:
        return sum((item.amount for item in self.line_items), Decimal("0"))
    
    @property
    def item_count(self) -> int:
        return len(self.line_items)
    
    @property
    def has_items(self) -> bool:
        return bool(self.line_items)
    
    @property
    def is_net_inflow(self) -> bool:
        return self.subtotal > 0
    
    @property
    def is_net_outflow(self) -> bool:
        return self.subtotal < 0


@dataclass
class SupplementalDisclosures:
    interest_paid: Decimal = Decimal("0")
    income_taxes_paid: Decimal = Decimal("0")
    non_cash_activities: list[str] = field(default_factory=list)


@dataclass
class CashFlowStatement:
    """
    Indirect-method Cash Flow Statement.
    
    Attributes:
        company_id: Company the report covers.
        period_start: First day of the period.
        period_end: Last day of the period.
        currency: Functional currency.
        operating_activities: Operating section.
        investing_activities: Investing section.
        financing_activities: Financing section.
        exchange_rate_effect: Effect of rate changes on cash (zero for
                              single-currency ledgers).
        beginning_cash: Cash balance as of the day before period_start.
        ending_cash: Cash balance as of period_end.
        supplemental_disclosures: Interest and income taxes for the period.
    """
    
    company_id: CompanyId
    period_start: date
    period_end: date
    currency: str = "USD"
    operating_activities: OperatingActivities = field(default_factory=OperatingActivities)
    investing_activities: CashFlowSection = field(
        default_factory=lambda: CashFlowSection(CashFlowCategory.INVESTING)
    )
    financing_activities: CashFlowSection = field(
        default_factory=lambda: CashFlowSection(CashFlowCategory.FINANCING)
    )
    exchange_rate_effect: Decimal = Decimal("0")
    beginning_cash: Decimal = Decimal("0")
    ending_cash: Decimal = Decimal("0")
    supplemental_disclosures: SupplementalDisclosures = field(default_factory=SupplementalDisclosures)
    method: str = "Indirect"
    
    @property
    def net_change_in_cash(self) -> Decimal:
        """Operating + investing + financing + exchange rate effect."""
        return (
            self.operating_activities.net_cash_from_operating
            + self.investing_activities.subtotal
            + self.financing_activities.subtotal
            + self.exchange_rate_effect
        )
    
    def check_reconciliation(self, tolerance: Decimal = Decimal("0")) -> tuple[bool, Decimal]:
        """
        Check beginning cash + net change against ledger ending cash.
        
        Returns:
            Tuple of (is_reconciled, delta) where
            delta = ending_cash - (beginning_cash + net_change_in_cash).
        """
        delta = self.ending_cash - (self.beginning_cash + self.net_change_in_cash)
        return abs(delta) <= tolerance, delta
    
    @property
    def is_reconciled(self) -> bool:
        return self.check_reconciliation()[0]
    
    @property
    def sections_reconcile(self) -> bool:
        """True if the section totals explain the ledger change in cash."""
        return self.net_change_in_cash == self.ending_cash - self.beginning_cash
    
    @property
    def cash_increased(self) -> bool:
        return self.net_change_in_cash > 0
    
    @property
    def cash_decreased(self) -> bool:
        return self.net_change_in_cash < 0


# ---------------------------------------------------------------------------
# Generation
# ---------------------------------------------------------------------------


def _balance_delta(
    account: Account,
    entries: Sequence[LedgerEntry],
    beginning_date: date,
    period_end: date,
    currency: str,
) -> Decimal:
    normal_balance = canonical_normal_balance(account.account_type)
    beginning = calculate_balance(account.id, normal_balance, entries, beginning_date, currency).amount
    ending = calculate_balance(account.id, normal_balance, entries, period_end, currency).amount
    return ending - beginning


def _cash_effect(account: Account, delta: Decimal) -> Decimal:
    # Asset increase consumes cash; liability or equity increase provides it
    if account.account_type is AccountType.ASSET:
        return -delta
    return delta


def generate_cash_flow_statement(
    company_id: CompanyId,
    accounts: Sequence[Account],
    entries: Sequence[LedgerEntry],
    period_start: date,
    period_end: date,
    currency: str,
    config: Optional[GLGAAPConfig] = None,
) -> CashFlowStatement:
    """
    Generate an indirect-method Cash Flow Statement.
    
    Args:
        company_id: Company the report covers.
        accounts: The company's accounts.
        entries: The company's posted journal entries with lines.
        period_start: First day of the period.
        period_end: Last day of the period.
        currency: Functional currency.
        config: Optional configuration; uses default if not provided.
        
    Returns:
        CashFlowStatement instance. Reconciliation against ledger cash is
        reported through is_reconciled; use ensure_reconciled() to enforce it.
        
    Raises:
        InvalidPeriodError: If period_start is after period_end.
    """
    if config is None:
        from ..config import default_config
        config = default_config
    
    check_period(period_start, period_end)
    
    logger.info(
        f"Generating Cash Flow Statement for {company_id}: {period_start} to {period_end}"
    )
    
    statement = CashFlowStatement(
        company_id=company_id,
        period_start=period_start,
        period_end=period_end,
        currency=currency,
    )
    postable = sorted((a for a in accounts if a.is_postable), key=lambda a: a.account_number)
    operating_entries = without_closing_entries(entries)
    beginning_date = previous_day(period_start)
    
    # STEP 1: Net income
    logger.info("Step 1: Calculating net income")
    operating = statement.operating_activities
    operating.net_income = calculate_net_income(
        postable, entries, period_start, period_end, currency
    )
    logger.debug(f"Net income: {operating.net_income:,.2f}")
    
    # STEP 2: Non-cash add-backs
    logger.info("Step 2: Adding back non-cash expenses")
    for account in postable:
        if account.account_category is not AccountCategory.DEPRECIATION_AMORTIZATION:
            continue
        amount = period_total([account], operating_entries, period_start, period_end, currency)
        if amount != 0:
            operating.non_cash_adjustments.append(OperatingActivityAdjustment(
                description=account.name,
                amount=amount,
                is_non_cash_adjustment=True,
                account_id=account.id,
            ))
    
    # STEP 3: Balance sheet deltas by section
    logger.info("Step 3: Calculating balance sheet changes")
    for account in postable:
        section = classify_cash_flow_account(account)
        if section is None:
            continue
        
        effect = _cash_effect(
            account, _balance_delta(account, operating_entries, beginning_date, period_end, currency)
        )
        if effect == 0:
            continue
        
        if section is CashFlowCategory.OPERATING:
            operating.working_capital_changes.append(OperatingActivityAdjustment(
                description=f"Change in {account.name}",
                amount=effect,
                is_non_cash_adjustment=False,
                account_id=account.id,
            ))
        else:
            target = (
                statement.investing_activities
                if section is CashFlowCategory.INVESTING
                else statement.financing_activities
            )
            target.line_items.append(CashFlowLineItem(
                description=account.name,
                amount=effect,
                account_id=account.id,
                account_number=account.account_number,
            ))
    
    logger.info(
        f"Classified: {len(operating.working_capital_changes)} working capital, "
        f"{statement.investing_activities.item_count} investing, "
        f"{statement.financing_activities.item_count} financing items"
    )
    
    # STEP 4: Supplemental disclosures
    logger.info("Step 4: Calculating supplemental disclosures")
    statement.supplemental_disclosures = SupplementalDisclosures(
        interest_paid=period_total(
            [a for a in postable if a.account_category is AccountCategory.INTEREST_EXPENSE],
            operating_entries, period_start, period_end, currency,
        ),
        income_taxes_paid=period_total(
            [a for a in postable if a.account_category is AccountCategory.TAX_EXPENSE],
            operating_entries, period_start, period_end, currency,
        ),
    )
    
    # STEP 5: Cash balances from the ledger
    logger.info("Step 5: Reading beginning and ending cash from the ledger")
    cash_accounts = [a for a in postable if is_cash_account(a)]
    for account in cash_accounts:
        normal_balance = canonical_normal_balance(account.account_type)
        statement.beginning_cash += calculate_balance(
            account.id, normal_balance, entries, beginning_date, currency
        ).amount
        statement.ending_cash += calculate_balance(
            account.id, normal_balance, entries, period_end, currency
        ).amount
    
    is_reconciled, delta = statement.check_reconciliation(config.numeric_tolerance)
    if is_reconciled:
        logger.info("[OK] Cash flow reconciles to ledger cash")
    else:
        logger.warning(
            f"Cash flow does not reconcile: beginning {statement.beginning_cash:,.2f} "
            f"+ net change {statement.net_change_in_cash:,.2f} "
            f"!= ending {statement.ending_cash:,.2f} (difference {delta:,.2f})"
        )
    
    logger.info(f"Net cash from operating: {operating.net_cash_from_operating:,.2f}")
    logger.info(f"Net cash from investing: {statement.investing_activities.subtotal:,.2f}")
    logger.info(f"Net cash from financing: {statement.financing_activities.subtotal:,.2f}")
    
    return statement


def ensure_reconciled(
    statement: CashFlowStatement,
    tolerance: Decimal = Decimal("0"),
) -> CashFlowStatement:
    """
    Enforce that the statement reconciles to ledger cash.
    
    Returns:
        The same statement, for chaining.
        
    Raises:
        CashFlowReconciliationError: If beginning cash + net change != ending cash.
    """
    is_reconciled, _ = statement.check_reconciliation(tolerance)
    if not is_reconciled:
        raise CashFlowReconciliationError(
            statement.company_id,
            statement.beginning_cash,
            statement.net_change_in_cash,
            statement.ending_cash,
        )
    return statement


# ---------------------------------------------------------------------------
# Formatting
# ---------------------------------------------------------------------------


def format_as_text(statement: CashFlowStatement) -> str:
    """
    Format a Cash Flow Statement as human-readable text.
    
    Args:
        statement: CashFlowStatement to format.
        
    Returns:
        Formatted text string.
    """
    output = StringIO()
    
    output.write("=" * 80 + "\n")
    output.write("STATEMENT OF CASH FLOWS (INDIRECT METHOD)\n")
    output.write(f"{statement.company_id}\n")
    output.write(
        f"For the period {statement.period_start.strftime('%B %d, %Y')} "
        f"to {statement.period_end.strftime('%B %d, %Y')}\n"
    )
    output.write(f"Currency: {statement.currency}\n")
    output.write("=" * 80 + "\n")
    
    output.write(f"\n{get_section_display_name(CashFlowCategory.OPERATING).upper()}\n")
    output.write("-" * 80 + "\n")
    for item in statement.operating_activities.line_items:
        if item.is_subtotal:
            output.write("-" * 80 + "\n")
            output.write(f"{item.description:<60} {item.amount:>15,.2f}\n")
        elif item.account_id is None and item.amount == 0 and item.description.endswith(":"):
            output.write(f"  {item.description}\n")
        else:
            indent = "  " * item.indent_level
            output.write(f"{indent}{item.description:<{60 - len(indent)}} {item.amount:>15,.2f}\n")
    
    for section in (statement.investing_activities, statement.financing_activities):
        output.write(f"\n{section.display_name.upper()}\n")
        output.write("-" * 80 + "\n")
        if not section.has_items:
            output.write("  (none)\n")
        for item in section.line_items:
            label = f"{item.account_number or ''} {item.description}".strip()
            output.write(f"  {label:<58} {item.amount:>15,.2f}\n")
        output.write("-" * 80 + "\n")
        short_name = section.display_name.replace("Cash Flows from ", "")
        output.write(f"{'Net Cash from ' + short_name:<60} {section.subtotal:>15,.2f}\n")
    
    output.write("\n" + "=" * 80 + "\n")
    if statement.exchange_rate_effect != 0:
        output.write(f"{'Effect of Exchange Rate Changes':<60} {statement.exchange_rate_effect:>15,.2f}\n")
    output.write(f"{'NET CHANGE IN CASH':<60} {statement.net_change_in_cash:>15,.2f}\n")
    output.write(f"{'Cash at Beginning of Period':<60} {statement.beginning_cash:>15,.2f}\n")
    output.write(f"{'Cash at End of Period':<60} {statement.ending_cash:>15,.2f}\n")
    output.write("=" * 80 + "\n")
    
    disclosures = statement.supplemental_disclosures
    output.write("\nSUPPLEMENTAL DISCLOSURES\n")
    output.write("-" * 80 + "\n")
    output.write(f"  {'Interest paid':<58} {disclosures.interest_paid:>15,.2f}\n")
    output.write(f"  {'Income taxes paid':<58} {disclosures.income_taxes_paid:>15,.2f}\n")
    for activity in disclosures.non_cash_activities:
        output.write(f"  {activity}\n")
    
    is_reconciled, delta = statement.check_reconciliation()
    if is_reconciled:
        output.write("\n[OK] RECONCILED: Beginning Cash + Net Change = Ending Cash\n")
    else:
        output.write(f"\n[X] WARNING: Cash does not reconcile (difference {delta:,.2f})\n")
    
    return output.getvalue()


def format_as_json(statement: CashFlowStatement) -> str:
    """
    Format a Cash Flow Statement as JSON.
    
    Args:
        statement: CashFlowStatement to format.
        
    Returns:
        JSON string.
    """
    def adjustment_to_dict(adj: OperatingActivityAdjustment) -> dict:
        return {
            "description": adj.description,
            "amount": money(adj.amount),
            "account_id": adj.account_id,
            "is_non_cash_adjustment": adj.is_non_cash_adjustment,
        }
    
    def section_to_dict(section: CashFlowSection) -> dict:
        return {
            "title": section.display_name,
            "line_items": [
                {
                    "description": item.description,
                    "account_id": item.account_id,
                    "account_number": item.account_number,
                    "amount": money(item.amount),
                }
                for item in section.line_items
            ],
            "subtotal": money(section.subtotal),
        }
    
    operating = statement.operating_activities
    disclosures = statement.supplemental_disclosures
    
    data = {
        "cash_flow_statement": {
            "company_id": statement.company_id,
            "period_start": statement.period_start.isoformat(),
            "period_end": statement.period_end.isoformat(),
            "currency": statement.currency,
            "operating_activities": {
                "net_income": money(operating.net_income),
                "non_cash_adjustments": [adjustment_to_dict(a) for a in operating.non_cash_adjustments],
                "non_cash_adjustments_subtotal": money(operating.non_cash_adjustments_subtotal),
                "working_capital_changes": [adjustment_to_dict(a) for a in operating.working_capital_changes],
                "working_capital_changes_subtotal": money(operating.working_capital_changes_subtotal),
                "net_cash_from_operating": money(operating.net_cash_from_operating),
            },
            "investing_activities": section_to_dict(statement.investing_activities),
            "financing_activities": section_to_dict(statement.financing_activities),
            "exchange_rate_effect": money(statement.exchange_rate_effect),
            "net_change_in_cash": money(statement.net_change_in_cash),
            "beginning_cash": money(statement.beginning_cash),
            "ending_cash": money(statement.ending_cash),
            "supplemental_disclosures": {
                "interest_paid": money(disclosures.interest_paid),
                "income_taxes_paid": money(disclosures.income_taxes_paid),
                "non_cash_activities": list(disclosures.non_cash_activities),
            },
            "metadata": {
                "method": statement.method,
                "is_reconciled": statement.is_reconciled,
                "difference": optional_money(statement.check_reconciliation()[1]),
            },
        }
    }
    
    return json.dumps(data, indent=2)
