"""
Ledger value types for GLGAAP.

Immutable records for the chart of accounts and the journal: accounts,
journal entries and their lines, monetary amounts and fiscal period
references, plus the account-type rules (canonical normal balance, legal
categories, number ranges) the rest of the engine relies on.
"""

import logging
from dataclasses import dataclass, field
from datetime import date, datetime
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from enum import Enum
from typing import Iterable, NewType, Optional, Union

from .errors import CurrencyMismatchError, InvalidLineAmountError

logger = logging.getLogger(__name__)


AccountId = NewType("AccountId", str)
CompanyId = NewType("CompanyId", str)
JournalEntryId = NewType("JournalEntryId", str)
JournalEntryLineId = NewType("JournalEntryLineId", str)
UserId = NewType("UserId", str)


# ---------------------------------------------------------------------------
# Enumerations
# ---------------------------------------------------------------------------


class AccountType(Enum):
    ASSET = "Asset"
    LIABILITY = "Liability"
    EQUITY = "Equity"
    REVENUE = "Revenue"
    EXPENSE = "Expense"


class AccountCategory(Enum):
    CURRENT_ASSET = "CurrentAsset"
    NON_CURRENT_ASSET = "NonCurrentAsset"
    FIXED_ASSET = "FixedAsset"
    INTANGIBLE_ASSET = "IntangibleAsset"
    CURRENT_LIABILITY = "CurrentLiability"
    NON_CURRENT_LIABILITY = "NonCurrentLiability"
    CONTRIBUTED_CAPITAL = "ContributedCapital"
    RETAINED_EARNINGS = "RetainedEarnings"
    OTHER_COMPREHENSIVE_INCOME = "OtherComprehensiveIncome"
    TREASURY_STOCK = "TreasuryStock"
    OPERATING_REVENUE = "OperatingRevenue"
    OTHER_REVENUE = "OtherRevenue"
    COST_OF_GOODS_SOLD = "CostOfGoodsSold"
    OPERATING_EXPENSE = "OperatingExpense"
    DEPRECIATION_AMORTIZATION = "DepreciationAmortization"
    INTEREST_EXPENSE = "InterestExpense"
    TAX_EXPENSE = "TaxExpense"
    OTHER_EXPENSE = "OtherExpense"


class NormalBalance(Enum):
    DEBIT = "Debit"
    CREDIT = "Credit"


class CashFlowCategory(Enum):
    OPERATING = "Operating"
    INVESTING = "Investing"
    FINANCING = "Financing"
    NON_CASH = "NonCash"


class EntryStatus(Enum):
    DRAFT = "Draft"
    PENDING_APPROVAL = "PendingApproval"
    APPROVED = "Approved"
    POSTED = "Posted"
    REVERSED = "Reversed"


class EntryType(Enum):
    STANDARD = "Standard"
    ADJUSTING = "Adjusting"
    CLOSING = "Closing"
    OPENING = "Opening"
    REVERSING = "Reversing"
    RECURRING = "Recurring"
    INTERCOMPANY = "Intercompany"
    REVALUATION = "Revaluation"
    ELIMINATION = "Elimination"
    SYSTEM = "System"


class AccountRole(Enum):
    """
    Explicit reporting role set when the chart of accounts is authored.

    Statement generators consult the role first and fall back to matching
    words in the account name only when no role is set.
    """

    CASH = "Cash"
    LOAN = "Loan"
    DIVIDEND = "Dividend"
    COMMON_STOCK = "CommonStock"
    ADDITIONAL_PAID_IN_CAPITAL = "AdditionalPaidInCapital"
    NON_CONTROLLING_INTEREST = "NonControllingInterest"


# ---------------------------------------------------------------------------
# Account type rules
# ---------------------------------------------------------------------------


CANONICAL_NORMAL_BALANCE = {
    AccountType.ASSET: NormalBalance.DEBIT,
    AccountType.LIABILITY: NormalBalance.CREDIT,
    AccountType.EQUITY: NormalBalance.CREDIT,
    AccountType.REVENUE: NormalBalance.CREDIT,
    AccountType.EXPENSE: NormalBalance.DEBIT,
}

CATEGORIES_BY_TYPE = {
    AccountType.ASSET: frozenset({
        AccountCategory.CURRENT_ASSET,
        AccountCategory.NON_CURRENT_ASSET,
        AccountCategory.FIXED_ASSET,
        AccountCategory.INTANGIBLE_ASSET,
    }),
    AccountType.LIABILITY: frozenset({
        AccountCategory.CURRENT_LIABILITY,
        AccountCategory.NON_CURRENT_LIABILITY,
    }),
    AccountType.EQUITY: frozenset({
        AccountCategory.CONTRIBUTED_CAPITAL,
        AccountCategory.RETAINED_EARNINGS,
        AccountCategory.OTHER_COMPREHENSIVE_INCOME,
        AccountCategory.TREASURY_STOCK,
    }),
    AccountType.REVENUE: frozenset({
        AccountCategory.OPERATING_REVENUE,
        AccountCategory.OTHER_REVENUE,
    }),
    AccountType.EXPENSE: frozenset({
        AccountCategory.COST_OF_GOODS_SOLD,
        AccountCategory.OPERATING_EXPENSE,
        AccountCategory.DEPRECIATION_AMORTIZATION,
        AccountCategory.INTEREST_EXPENSE,
        AccountCategory.TAX_EXPENSE,
        AccountCategory.OTHER_EXPENSE,
    }),
}

# Leading digit of the account number -> implied type. 8xxx and 9xxx
# are free ranges and accept any type.
NUMBER_RANGE_TYPES = {
    "1": AccountType.ASSET,
    "2": AccountType.LIABILITY,
    "3": AccountType.EQUITY,
    "4": AccountType.REVENUE,
    "5": AccountType.EXPENSE,
    "6": AccountType.EXPENSE,
    "7": AccountType.EXPENSE,
}

BALANCE_SHEET_TYPES = frozenset({AccountType.ASSET, AccountType.LIABILITY, AccountType.EQUITY})


def canonical_normal_balance(account_type: AccountType) -> NormalBalance:
    """Return the side on which accounts of this type naturally increase."""
    return CANONICAL_NORMAL_BALANCE[account_type]


def categories_for_type(account_type: AccountType) -> frozenset:
    """Return the categories that are legal for an account type."""
    return CATEGORIES_BY_TYPE[account_type]


def type_for_category(category: AccountCategory) -> AccountType:
    """Return the account type a category belongs to."""
    for account_type, categories in CATEGORIES_BY_TYPE.items():
        if category in categories:
            return account_type
    raise ValueError(f"Unknown account category: {category}")


def is_valid_account_number(account_number: str) -> bool:
    """Check that an account number is a 4-digit string from 1000 to 9999."""
    return (
        len(account_number) == 4
        and account_number.isdigit()
        and account_number[0] != "0"
    )


def account_type_for_number(account_number: str) -> Optional[AccountType]:
    """
    Return the account type implied by an account number's leading digit.
    
    Args:
        account_number: 4-digit account number.
        
    Returns:
        The implied AccountType, or None for the 8xxx/9xxx ranges where
        any type is legal.
        
    Raises:
        ValueError: If the account number is not a 4-digit string 1000-9999.
    """
    if not is_valid_account_number(account_number):
        raise ValueError(
            f"Invalid account number: '{account_number}'. Expected 4 digits, 1000-9999."
        )
    return NUMBER_RANGE_TYPES.get(account_number[0])


def is_balance_sheet_type(account_type: AccountType) -> bool:
    """True for Asset, Liability and Equity accounts."""
    return account_type in BALANCE_SHEET_TYPES


# ---------------------------------------------------------------------------
# Monetary amounts
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class MonetaryAmount:
    """
    An arbitrary-precision decimal amount in a currency.
    
    Amounts are stored as Decimal. Floats are rejected at construction
    because binary floating point drifts when thousands of lines are summed.
    
    Attributes:
        amount: Decimal amount (may be negative).
        currency: ISO currency code (e.g., "USD").
    """
    
    amount: Decimal
    currency: str
    
    def __post_init__(self):
        """Coerce int/str amounts to Decimal and reject floats."""
        if isinstance(self.amount, float):
            raise TypeError(
                f"MonetaryAmount does not accept float ({self.amount!r}); use Decimal or str"
            )
        if not isinstance(self.amount, Decimal):
            try:
                object.__setattr__(self, "amount", Decimal(self.amount))
            except (InvalidOperation, TypeError) as e:
                raise ValueError(f"Invalid monetary amount: {self.amount!r}") from e
        if not self.amount.is_finite():
            raise ValueError(f"Invalid monetary amount: {self.amount!r}")
    
    @classmethod
    def zero(cls, currency: str) -> "MonetaryAmount":
        return cls(Decimal("0"), currency)
    
    @classmethod
    def from_string(cls, value: str, currency: str) -> "MonetaryAmount":
        """
        Parse an amount from its decimal string form.
        
        Raises:
            ValueError: If value is not a decimal number.
        """
        try:
            return cls(Decimal(value.strip()), currency)
        except InvalidOperation as e:
            raise ValueError(f"Invalid monetary amount: '{value}'") from e
    
    @property
    def is_zero(self) -> bool:
        return self.amount == 0
    
    @property
    def is_positive(self) -> bool:
        return self.amount > 0
    
    @property
    def is_negative(self) -> bool:
        return self.amount < 0
    
    def _check_currency(self, other: "MonetaryAmount") -> None:
        if self.currency != other.currency:
            raise CurrencyMismatchError(self.currency, other.currency)
    
    def add(self, other: "MonetaryAmount") -> "MonetaryAmount":
        """
        Add two amounts of the same currency.
        
        Raises:
            CurrencyMismatchError: If the currencies differ.
        """
        self._check_currency(other)
        return MonetaryAmount(self.amount + other.amount, self.currency)
    
    def subtract(self, other: "MonetaryAmount") -> "MonetaryAmount":
        """
        Subtract an amount of the same currency.
        
        Raises:
            CurrencyMismatchError: If the currencies differ.
        """
        self._check_currency(other)
        return MonetaryAmount(self.amount - other.amount, self.currency)
    
    def multiply(self, factor: Union[Decimal, int, str]) -> "MonetaryAmount":
        """Multiply by a scalar (Decimal, int or decimal string)."""
        if isinstance(factor, float):
            raise TypeError("MonetaryAmount.multiply does not accept float; use Decimal or str")
        return MonetaryAmount(self.amount * Decimal(factor), self.currency)
    
    def negate(self) -> "MonetaryAmount":
        return MonetaryAmount(-self.amount, self.currency)
    
    def abs(self) -> "MonetaryAmount":
        return MonetaryAmount(abs(self.amount), self.currency)
    
    def round(self, places: int = 2) -> "MonetaryAmount":
        """Round half away from zero to the given number of decimal places."""
        quantum = Decimal(1).scaleb(-places)
        return MonetaryAmount(self.amount.quantize(quantum, rounding=ROUND_HALF_UP), self.currency)
    
    def format(self) -> str:
        return f"{self.amount:,.2f}"
    
    __add__ = add
    __sub__ = subtract
    __neg__ = negate
    
    def __str__(self) -> str:
        return f"{self.amount} {self.currency}"


def sum_amounts(amounts: Iterable[MonetaryAmount], currency: str) -> MonetaryAmount:
    """
    Sum amounts that all share one currency.
    
    Args:
        amounts: Amounts to add up.
        currency: Currency of the result (returned as zero if empty).
        
    Returns:
        The total as a MonetaryAmount.
        
    Raises:
        CurrencyMismatchError: If any amount is in another currency.
    """
    total = MonetaryAmount.zero(currency)
    for amount in amounts:
        total = total.add(amount)
    return total


# ---------------------------------------------------------------------------
# Dates and fiscal periods
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class FiscalPeriodRef:
    """
    A (year, period) pair identifying an accounting sub-period.
    
    Period 13 is allowed for year-end adjustment periods.
    """
    
    year: int
    period: int
    
    def __post_init__(self):
        if not 1 <= self.period <= 13:
            raise ValueError(f"Invalid fiscal period: {self.period}. Must be between 1 and 13.")
    
    def __str__(self) -> str:
        return f"FY{self.year}-P{self.period:02d}"


def parse_date(date_str: str) -> date:
    """
    Parse a date string in YYYY-MM-DD format.
    
    Args:
        date_str: Date string in YYYY-MM-DD format.
        
    Returns:
        date object.
        
    Raises:
        ValueError: If date_str is not in correct format.
    """
    try:
        return datetime.strptime(date_str, "%Y-%m-%d").date()
    except ValueError as e:
        raise ValueError(
            f"Invalid date format: '{date_str}'. Expected YYYY-MM-DD."
        ) from e


# ---------------------------------------------------------------------------
# Accounts
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class Account:
    """
    A chart-of-accounts entry.
    
    Attributes:
        id: Unique account identifier.
        company_id: Owning company.
        account_number: 4-digit account number (1000-9999).
        name: Display name.
        account_type: Asset, Liability, Equity, Revenue or Expense.
        account_category: Finer category; must be legal for account_type.
        normal_balance: Side on which the balance increases. Differs from
                        the canonical side only for contra accounts.
        parent_account_id: Parent account in the same company, if any.
        hierarchy_level: Depth in the chart (1 = top level).
        is_postable: False for summary accounts that only aggregate children.
        is_cash_flow_relevant: Account participates in the cash flow statement.
        cash_flow_category: Optional explicit cash flow section.
        is_intercompany: Account tracks balances with a partner company.
        intercompany_partner_id: Partner company id (required iff intercompany).
        currency_restriction: Optional single currency the account accepts.
        is_active: Inactive accounts reject new postings.
        is_retained_earnings: Marks the company's retained earnings account.
        role: Optional explicit reporting role (cash, loan, dividend, ...).
    """
    
    id: AccountId
    company_id: CompanyId
    account_number: str
    name: str
    account_type: AccountType
    account_category: AccountCategory
    normal_balance: NormalBalance
    parent_account_id: Optional[AccountId] = None
    hierarchy_level: int = 1
    is_postable: bool = True
    is_cash_flow_relevant: bool = False
    cash_flow_category: Optional[CashFlowCategory] = None
    is_intercompany: bool = False
    intercompany_partner_id: Optional[CompanyId] = None
    currency_restriction: Optional[str] = None
    is_active: bool = True
    is_retained_earnings: bool = False
    role: Optional[AccountRole] = None
    description: Optional[str] = None
    
    def __post_init__(self):
        """Enforce that the category belongs to the account type."""
        if self.account_category not in CATEGORIES_BY_TYPE[self.account_type]:
            raise ValueError(
                f"Account {self.id}: category {self.account_category.value} is not "
                f"legal for type {self.account_type.value}"
            )
        if self.hierarchy_level < 1:
            raise ValueError(
                f"Account {self.id}: hierarchy level must be >= 1, got {self.hierarchy_level}"
            )
    
    @property
    def is_contra(self) -> bool:
        """True if the normal balance is opposite to the type's canonical side."""
        return self.normal_balance != CANONICAL_NORMAL_BALANCE[self.account_type]
    
    @property
    def display_name(self) -> str:
        return f"{self.account_number} {self.name}"


# ---------------------------------------------------------------------------
# Journal entries
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class JournalEntry:
    """
    Journal entry header.
    
    Status changes are made only by glgaap.lifecycle, which returns new
    JournalEntry values via dataclasses.replace().
    """
    
    id: JournalEntryId
    company_id: CompanyId
    transaction_date: date
    fiscal_period: FiscalPeriodRef
    description: str = ""
    entry_number: Optional[str] = None
    reference_number: Optional[str] = None
    posting_date: Optional[date] = None
    document_date: Optional[date] = None
    entry_type: EntryType = EntryType.STANDARD
    source_module: str = "GeneralLedger"
    status: EntryStatus = EntryStatus.DRAFT
    is_reversing: bool = False
    reversed_entry_id: Optional[JournalEntryId] = None
    reversing_entry_id: Optional[JournalEntryId] = None
    created_by: Optional[UserId] = None
    created_at: Optional[datetime] = None
    posted_by: Optional[UserId] = None
    posted_at: Optional[datetime] = None


@dataclass(frozen=True)
class JournalEntryLine:
    """
    One debit or credit line of a journal entry.
    
    Exactly one of debit_amount / credit_amount is populated. The
    functional-currency equivalents follow the same side; when neither is
    supplied they default to the transaction amount (single-currency books).
    """
    
    id: JournalEntryLineId
    journal_entry_id: JournalEntryId
    line_number: int
    account_id: AccountId
    debit_amount: Optional[MonetaryAmount] = None
    credit_amount: Optional[MonetaryAmount] = None
    functional_debit_amount: Optional[MonetaryAmount] = None
    functional_credit_amount: Optional[MonetaryAmount] = None
    exchange_rate: Decimal = Decimal("1")
    memo: Optional[str] = None
    
    def __post_init__(self):
        """Check the single-sided line invariant and fill functional amounts."""
        if (self.debit_amount is None) == (self.credit_amount is None):
            raise InvalidLineAmountError(
                self.id, "exactly one of debit amount or credit amount must be set"
            )
        for amount in (self.debit_amount, self.credit_amount):
            if amount is not None and amount.is_negative:
                raise InvalidLineAmountError(self.id, f"amount must not be negative ({amount})")
        
        if self.functional_debit_amount is None and self.functional_credit_amount is None:
            object.__setattr__(self, "functional_debit_amount", self.debit_amount)
            object.__setattr__(self, "functional_credit_amount", self.credit_amount)
        elif (self.functional_debit_amount is None) != (self.debit_amount is None):
            raise InvalidLineAmountError(
                self.id, "functional currency amount must be on the same side as the line"
            )
    
    @property
    def is_debit(self) -> bool:
        return self.debit_amount is not None
    
    @property
    def functional_debit(self) -> Decimal:
        """Functional-currency debit as a Decimal (0 for credit lines)."""
        if self.functional_debit_amount is None:
            return Decimal("0")
        return self.functional_debit_amount.amount
    
    @property
    def functional_credit(self) -> Decimal:
        """Functional-currency credit as a Decimal (0 for debit lines)."""
        if self.functional_credit_amount is None:
            return Decimal("0")
        return self.functional_credit_amount.amount


@dataclass(frozen=True)
class LedgerEntry:
    """A journal entry paired with its lines."""
    
    entry: JournalEntry
    lines: tuple[JournalEntryLine, ...] = field(default_factory=tuple)
    
    def __post_init__(self):
        if not isinstance(self.lines, tuple):
            object.__setattr__(self, "lines", tuple(self.lines))
