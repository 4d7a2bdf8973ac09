"""
Statement of Changes in Equity report generation.

Pivots equity accounts into six components (columns) and eight movement
rows, from the opening balance at the day before the period through net
income, other comprehensive income, dividends and share transactions to
the closing balance.
"""

import json
import logging
from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal
from enum import Enum
from io import StringIO
from typing import Optional, Sequence

from ..balances import calculate_balance, previous_day
from ..config import GLGAAPConfig
from ..models import (
    Account,
    AccountCategory,
    AccountRole,
    AccountType,
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
    without_closing_entries,
)

logger = logging.getLogger(__name__)


class EquityComponent(Enum):
    COMMON_STOCK = "CommonStock"
    APIC = "APIC"
    RETAINED_EARNINGS = "RetainedEarnings"
    TREASURY_STOCK = "TreasuryStock"
    AOCI = "AOCI"
    NCI = "NCI"


class EquityMovement(Enum):
    OPENING_BALANCE = "OpeningBalance"
    NET_INCOME = "NetIncome"
    OCI = "OCI"
    DIVIDENDS = "Dividends"
    STOCK_ISSUANCE = "StockIssuance"
    STOCK_REPURCHASE = "StockRepurchase"
    OTHER_ADJUSTMENTS = "OtherAdjustments"
    CLOSING_BALANCE = "ClosingBalance"


COMPONENT_DISPLAY_NAMES = {
    EquityComponent.COMMON_STOCK: "Common Stock",
    EquityComponent.APIC: "Additional Paid-In Capital",
    EquityComponent.RETAINED_EARNINGS: "Retained Earnings",
    EquityComponent.TREASURY_STOCK: "Treasury Stock",
    EquityComponent.AOCI: "Accumulated Other Comprehensive Income",
    EquityComponent.NCI: "Non-Controlling Interest",
}

MOVEMENT_DISPLAY_NAMES = {
    EquityMovement.OPENING_BALANCE: "Opening Balance",
    EquityMovement.NET_INCOME: "Net Income",
    EquityMovement.OCI: "Other Comprehensive Income",
    EquityMovement.DIVIDENDS: "Dividends Declared",
    EquityMovement.STOCK_ISSUANCE: "Stock Issuance",
    EquityMovement.STOCK_REPURCHASE: "Stock Repurchase",
    EquityMovement.OTHER_ADJUSTMENTS: "Other Adjustments",
    EquityMovement.CLOSING_BALANCE: "Closing Balance",
}

BALANCE_MOVEMENTS = frozenset({EquityMovement.OPENING_BALANCE, EquityMovement.CLOSING_BALANCE})

# Short column headers for the text layout
COMPONENT_SHORT_NAMES = {
    EquityComponent.COMMON_STOCK: "Common",
    EquityComponent.APIC: "APIC",
    EquityComponent.RETAINED_EARNINGS: "Retained",
    EquityComponent.TREASURY_STOCK: "Treasury",
    EquityComponent.AOCI: "AOCI",
    EquityComponent.NCI: "NCI",
}


def get_component_display_name(component: EquityComponent) -> str:
    return COMPONENT_DISPLAY_NAMES[component]


def get_movement_display_name(movement: EquityMovement) -> str:
    return MOVEMENT_DISPLAY_NAMES[movement]


def classify_equity_component(account: Account) -> Optional[EquityComponent]:
    """
    Map an equity account to its statement column.
    
    Contributed capital is split by role, falling back to the account name:
    "additional paid" goes to APIC, "non-controlling" to NCI, and anything
    else to Common Stock.
    
    Args:
        account: Account to classify.
        
    Returns:
        The component, or None for non-equity accounts.
    """
    if account.account_type is not AccountType.EQUITY:
        return None
    
    category = account.account_category
    if category is AccountCategory.RETAINED_EARNINGS:
        return EquityComponent.RETAINED_EARNINGS
    if category is AccountCategory.TREASURY_STOCK:
        return EquityComponent.TREASURY_STOCK
    if category is AccountCategory.OTHER_COMPREHENSIVE_INCOME:
        return EquityComponent.AOCI
    
    if account.role is AccountRole.ADDITIONAL_PAID_IN_CAPITAL:
        return EquityComponent.APIC
    if account.role is AccountRole.NON_CONTROLLING_INTEREST:
        return EquityComponent.NCI
    if account.role is AccountRole.COMMON_STOCK:
        return EquityComponent.COMMON_STOCK
    if name_contains(account, "additional paid"):
        return EquityComponent.APIC
    if name_contains(account, "non-controlling", "noncontrolling"):
        return EquityComponent.NCI
    return EquityComponent.COMMON_STOCK


@dataclass
class EquityComponentColumn:
    """
    One equity component and its movements over the period.
    
    All amounts are signed on the equity (credit) side, so treasury stock
    purchases and dividends appear as negative numbers.
    """
    
    component: EquityComponent
    opening_balance: Decimal = Decimal("0")
    net_income: Decimal = Decimal("0")
    oci: Decimal = Decimal("0")
    dividends: Decimal = Decimal("0")
    stock_issuance: Decimal = Decimal("0")
    stock_repurchase: Decimal = Decimal("0")
    other_adjustments: Decimal = Decimal("0")
    
    @property
    def display_name(self) -> str:
        return get_component_display_name(self.component)
    
    @property
    def sum_of_movements(self) -> Decimal:
        return (
            self.net_income
            + self.oci
            + self.dividends
            + self.stock_issuance
            + self.stock_repurchase
            + self.other_adjustments
        )
    
    @property
    def closing_balance(self) -> Decimal:
        """Opening balance plus all movements."""
        return self.opening_balance + self.sum_of_movements
    
    @property
    def total_change(self) -> Decimal:
        return self.closing_balance - self.opening_balance
    
    @property
    def has_movement(self) -> bool:
        return self.sum_of_movements != 0
    
    def amount_for(self, movement: EquityMovement) -> Decimal:
        """Return this column's amount for a statement row."""
        return {
            EquityMovement.OPENING_BALANCE: self.opening_balance,
            EquityMovement.NET_INCOME: self.net_income,
            EquityMovement.OCI: self.oci,
            EquityMovement.DIVIDENDS: self.dividends,
            EquityMovement.STOCK_ISSUANCE: self.stock_issuance,
            EquityMovement.STOCK_REPURCHASE: self.stock_repurchase,
            EquityMovement.OTHER_ADJUSTMENTS: self.other_adjustments,
            EquityMovement.CLOSING_BALANCE: self.closing_balance,
        }[movement]


@dataclass
class EquityMovementRow:
    """One row of the statement: a movement read across every column."""
    
    movement: EquityMovement
    amounts: dict[EquityComponent, Decimal] = field(default_factory=dict)
    
    @property
    def display_name(self) -> str:
        return get_movement_display_name(self.movement)
    
    @property
    def row_total(self) -> Decimal:
        return sum(self.amounts.values(), Decimal("0"))
    
    @property
    def is_balance_row(self) -> bool:
        return self.movement in BALANCE_MOVEMENTS
    
    @property
    def is_movement_row(self) -> bool:
        return not self.is_balance_row
    
    @property
    def has_amounts(self) -> bool:
        return any(amount != 0 for amount in self.amounts.values())


def _empty_columns() -> dict[EquityComponent, EquityComponentColumn]:
    return {component: EquityComponentColumn(component) for component in EquityComponent}


@dataclass
class EquityStatement:
    """
    Statement of Changes in Equity.
    
    Attributes:
        company_id: Company the report covers.
        period_start: First day of the period.
        period_end: Last day of the period.
        currency: Functional currency.
        columns: Component -> column, always all six components.
        is_consolidated: Marks a consolidated statement (NCI is meaningful).
    """
    
    company_id: CompanyId
    period_start: date
    period_end: date
    currency: str = "USD"
    columns: dict[EquityComponent, EquityComponentColumn] = field(default_factory=_empty_columns)
    is_consolidated: bool = False
    
    @property
    def all_columns(self) -> list[EquityComponentColumn]:
        return [self.columns[component] for component in EquityComponent]
    
    @property
    def rows(self) -> list[EquityMovementRow]:
        """All eight rows, opening balance first and closing balance last."""
        return [
            EquityMovementRow(
                movement,
                {column.component: column.amount_for(movement) for column in self.all_columns},
            )
            for movement in EquityMovement
        ]
    
    @property
    def movement_rows(self) -> list[EquityMovementRow]:
        return [row for row in self.rows if row.is_movement_row]
    
    def get_row(self, movement: EquityMovement) -> EquityMovementRow:
        for row in self.rows:
            if row.movement is movement:
                return row
        raise KeyError(movement)
    
    @property
    def net_income(self) -> Decimal:
        return self.columns[EquityComponent.RETAINED_EARNINGS].net_income
    
    @property
    def dividends(self) -> Decimal:
        return self.columns[EquityComponent.RETAINED_EARNINGS].dividends
    
    @property
    def total_opening_equity(self) -> Decimal:
        return sum((c.opening_balance for c in self.all_columns), Decimal("0"))
    
    @property
    def total_closing_equity(self) -> Decimal:
        return sum((c.closing_balance for c in self.all_columns), Decimal("0"))
    
    @property
    def total_change_in_equity(self) -> Decimal:
        return self.total_closing_equity - self.total_opening_equity
    
    @property
    def equity_increased(self) -> bool:
        return self.total_change_in_equity > 0
    
    @property
    def equity_decreased(self) -> bool:
        return self.total_change_in_equity < 0


def generate_equity_statement(
    company_id: CompanyId,
    accounts: Sequence[Account],
    entries: Sequence[LedgerEntry],
    period_start: date,
    period_end: date,
    currency: str,
    is_consolidated: bool = False,
    config: Optional[GLGAAPConfig] = None,
) -> EquityStatement:
    """
    Generate a Statement of Changes in Equity.
    
    Opening balances are cumulative as of the day before period_start.
    Period net income is credited to retained earnings whether or not the
    period has been closed, so the closing balance is opening plus movements.
    Movements in share capital are issuance when the component grew and
    repurchase when it shrank.
    
    When config.include_unclosed_earnings is set, opening retained earnings
    also includes earlier revenue and expense not yet closed to retained
    earnings, matching the balance sheet.
    
    Args:
        company_id: Company the report covers.
        accounts: The company's accounts.
        entries: The company's posted journal entries with lines.
        period_start: First day of the period.
        period_end: Last day of the period.
        currency: Functional currency.
        is_consolidated: Mark the statement as consolidated.
        config: Optional configuration; uses default if not provided.
        
    Returns:
        EquityStatement instance.
        
    Raises:
        InvalidPeriodError: If period_start is after period_end.
    """
    if config is None:
        from ..config import default_config
        config = default_config
    
    check_period(period_start, period_end)
    
    logger.info(
        f"Generating Equity Statement for {company_id}: {period_start} to {period_end}"
    )
    
    statement = EquityStatement(
        company_id=company_id,
        period_start=period_start,
        period_end=period_end,
        currency=currency,
        is_consolidated=is_consolidated,
    )
    postable = sorted((a for a in accounts if a.is_postable), key=lambda a: a.account_number)
    opening_date = previous_day(period_start)
    movement_entries = without_closing_entries(entries)
    
    # STEP 1: Opening balances and period movements per equity account
    logger.info("Step 1: Calculating opening balances and movements")
    for account in postable:
        component = classify_equity_component(account)
        if component is None:
            continue
        
        column = statement.columns[component]
        normal_balance = canonical_normal_balance(account.account_type)
        opening = calculate_balance(account.id, normal_balance, entries, opening_date, currency).amount
        column.opening_balance += opening
        
        opening_excl_closing = calculate_balance(
            account.id, normal_balance, movement_entries, opening_date, currency
        ).amount
        closing_excl_closing = calculate_balance(
            account.id, normal_balance, movement_entries, period_end, currency
        ).amount
        delta = closing_excl_closing - opening_excl_closing
        if delta == 0:
            continue
        
        if component is EquityComponent.RETAINED_EARNINGS:
            if is_dividend_account(account):
                column.dividends += delta
            else:
                column.other_adjustments += delta
        elif component is EquityComponent.AOCI:
            column.oci += delta
        elif delta > 0:
            column.stock_issuance += delta
        else:
            column.stock_repurchase += delta
    
    retained = statement.columns[EquityComponent.RETAINED_EARNINGS]
    
    # STEP 2: Earnings not yet closed before the period
    if config.include_unclosed_earnings:
        prior_unclosed = Decimal("0")
        for account in postable:
            if account.account_type not in (AccountType.REVENUE, AccountType.EXPENSE):
                continue
            balance = calculate_balance(
                account.id,
                canonical_normal_balance(account.account_type),
                entries,
                opening_date,
                currency,
            ).amount
            prior_unclosed += balance if account.account_type is AccountType.REVENUE else -balance
        if prior_unclosed != 0:
            logger.info(f"Step 2: Adding unclosed prior earnings to opening: {prior_unclosed:,.2f}")
            retained.opening_balance += prior_unclosed
    
    # STEP 3: Net income for the period
    logger.info("Step 3: Calculating net income")
    retained.net_income = calculate_net_income(
        postable, entries, period_start, period_end, currency
    )
    
    logger.info(f"Total opening equity: {statement.total_opening_equity:,.2f}")
    logger.info(f"Net income: {statement.net_income:,.2f}")
    logger.info(f"Total closing equity: {statement.total_closing_equity:,.2f}")
    
    return statement


def format_as_text(statement: EquityStatement) -> str:
    """
    Format an Equity Statement as a text table (one column per component).
    
    Args:
        statement: EquityStatement to format.
        
    Returns:
        Formatted text string.
    """
    output = StringIO()
    width = 28 + 15 * (len(EquityComponent) + 1)
    
    output.write("=" * width + "\n")
    output.write("STATEMENT OF CHANGES IN EQUITY\n")
    output.write(f"{statement.company_id}\n")
    output.write(
        f"For the period {statement.period_start.strftime('%B %d, %Y')} "
        f"to {statement.period_end.strftime('%B %d, %Y')}\n"
    )
    output.write(f"Currency: {statement.currency}\n")
    if statement.is_consolidated:
        output.write("Consolidated\n")
    output.write("=" * width + "\n")
    
    header = f"{'':<28}"
    for component in EquityComponent:
        header += f"{COMPONENT_SHORT_NAMES[component]:>15}"
    header += f"{'Total':>15}"
    output.write(header + "\n")
    output.write("-" * width + "\n")
    
    for row in statement.rows:
        if row.movement is EquityMovement.CLOSING_BALANCE:
            output.write("-" * width + "\n")
        line = f"{row.display_name:<28}"
        for component in EquityComponent:
            line += f"{row.amounts[component]:>15,.2f}"
        line += f"{row.row_total:>15,.2f}"
        output.write(line + "\n")
    
    output.write("=" * width + "\n")
    output.write(f"\n{'Total change in equity':<28}{statement.total_change_in_equity:>15,.2f}\n")
    
    return output.getvalue()


def format_as_json(statement: EquityStatement) -> str:
    """
    Format an Equity Statement as JSON.
    
    Args:
        statement: EquityStatement to format.
        
    Returns:
        JSON string.
    """
    data = {
        "equity_statement": {
            "company_id": statement.company_id,
            "period_start": statement.period_start.isoformat(),
            "period_end": statement.period_end.isoformat(),
            "currency": statement.currency,
            "columns": [
                {
                    "component": column.component.value,
                    "display_name": column.display_name,
                    "opening_balance": money(column.opening_balance),
                    "net_income": money(column.net_income),
                    "oci": money(column.oci),
                    "dividends": money(column.dividends),
                    "stock_issuance": money(column.stock_issuance),
                    "stock_repurchase": money(column.stock_repurchase),
                    "other_adjustments": money(column.other_adjustments),
                    "closing_balance": money(column.closing_balance),
                }
                for column in statement.all_columns
            ],
            "rows": [
                {
                    "movement": row.movement.value,
                    "display_name": row.display_name,
                    "amounts": {c.value: money(a) for c, a in row.amounts.items()},
                    "row_total": money(row.row_total),
                }
                for row in statement.rows
            ],
            "totals": {
                "total_opening_equity": money(statement.total_opening_equity),
                "total_change_in_equity": money(statement.total_change_in_equity),
                "total_closing_equity": money(statement.total_closing_equity),
            },
            "metadata": {
                "is_consolidated": statement.is_consolidated,
            },
        }
    }
    
    return json.dumps(data, indent=2)
