"""
Typed errors raised and collected by GLGAAP.

Every error carries the data that identifies the problem (ids, statuses,
totals) as attributes, and renders a readable message. Errors that signal
a financial-integrity or data problem during report generation also
subclass ValueError, and not-found errors subclass LookupError, so command
handlers can catch them in broad groups.
"""

from datetime import date
from decimal import Decimal
from typing import Optional, Sequence


class GLGAAPError(Exception):
    """Base class for all GLGAAP errors."""


# ---------------------------------------------------------------------------
# Not found
# ---------------------------------------------------------------------------


class CompanyNotFoundError(GLGAAPError, LookupError):
    def __init__(self, company_id: str):
        self.company_id = company_id
        super().__init__(f"Company not found: {company_id}")


class AccountNotFoundError(GLGAAPError, LookupError):
    def __init__(self, account_id: str, entry_id: Optional[str] = None):
        self.account_id = account_id
        self.entry_id = entry_id
        where = f" (referenced by journal entry {entry_id})" if entry_id else ""
        super().__init__(f"Account not found: {account_id}{where}")


class JournalEntryNotFoundError(GLGAAPError, LookupError):
    def __init__(self, entry_id: str):
        self.entry_id = entry_id
        super().__init__(f"Journal entry not found: {entry_id}")


# ---------------------------------------------------------------------------
# Hierarchy integrity
# ---------------------------------------------------------------------------


class ParentAccountNotFoundError(GLGAAPError):
    def __init__(self, account_id: str, parent_account_id: str):
        self.account_id = account_id
        self.parent_account_id = parent_account_id
        super().__init__(
            f"Account {account_id} references parent {parent_account_id}, "
            f"which does not exist"
        )


class AccountTypeMismatchError(GLGAAPError):
    def __init__(self, account_id: str, account_type, parent_account_id: str, parent_account_type):
        self.account_id = account_id
        self.account_type = account_type
        self.parent_account_id = parent_account_id
        self.parent_account_type = parent_account_type
        super().__init__(
            f"Account {account_id} has type {account_type.value} but its parent "
            f"{parent_account_id} has type {parent_account_type.value}"
        )


class CircularReferenceError(GLGAAPError):
    """
    A parent chain that loops back on itself.

    Attributes:
        account_id: Account where the walk started.
        chain: Account ids visited by the walk, ending with the id that
               repeated.
    """

    def __init__(self, account_id: str, chain: Sequence[str]):
        self.account_id = account_id
        self.chain = tuple(chain)
        super().__init__(
            f"Circular parent reference detected: {' -> '.join(self.chain)}"
        )


# ---------------------------------------------------------------------------
# Account validation
# ---------------------------------------------------------------------------


class AccountNumberRangeError(GLGAAPError):
    """
    Account number range does not match the declared account type.

    Attributes:
        expected_type: Account type implied by the leading digit, or None
                       for the 8xxx/9xxx ranges that allow any type.
    """

    def __init__(self, account_id: str, account_number: str, account_type, expected_type=None):
        self.account_id = account_id
        self.account_number = account_number
        self.account_type = account_type
        self.expected_type = expected_type
        if expected_type is not None:
            message = (
                f"Account number {account_number} implies type {expected_type.value} "
                f"but account type is {account_type.value}"
            )
        else:
            message = (
                f"Account number {account_number} is not in a typed range "
                f"(special range 8xxx or 9xxx, or not a 4-digit number); "
                f"account type is {account_type.value}"
            )
        super().__init__(message)


class NormalBalanceError(GLGAAPError):
    def __init__(self, account_id: str, account_type, normal_balance, expected_normal_balance):
        self.account_id = account_id
        self.account_type = account_type
        self.normal_balance = normal_balance
        self.expected_normal_balance = expected_normal_balance
        super().__init__(
            f"Account {account_id} of type {account_type.value} has normal balance "
            f"{normal_balance.value}; expected {expected_normal_balance.value} "
            f"(contra accounts must be reviewed)"
        )


class IntercompanyPartnerMissingError(GLGAAPError):
    def __init__(self, account_id: str):
        self.account_id = account_id
        super().__init__(
            f"Account {account_id} is marked intercompany but has no partner company"
        )


class UnexpectedIntercompanyPartnerError(GLGAAPError):
    def __init__(self, account_id: str, partner_company_id: str):
        self.account_id = account_id
        self.partner_company_id = partner_company_id
        super().__init__(
            f"Account {account_id} is not intercompany but names partner "
            f"company {partner_company_id}"
        )


class CashFlowCategoryOnIncomeStatementError(GLGAAPError):
    def __init__(self, account_id: str, account_type, cash_flow_category):
        self.account_id = account_id
        self.account_type = account_type
        self.cash_flow_category = cash_flow_category
        super().__init__(
            f"Account {account_id} of type {account_type.value} cannot carry "
            f"cash flow category {cash_flow_category.value}"
        )


# ---------------------------------------------------------------------------
# Periods and reconciliation
# ---------------------------------------------------------------------------


class InvalidPeriodError(GLGAAPError, ValueError):
    def __init__(self, period_start: date, period_end: date):
        self.period_start = period_start
        self.period_end = period_end
        super().__init__(
            f"Invalid period: start date {period_start.isoformat()} "
            f"is after end date {period_end.isoformat()}"
        )


class BalanceSheetNotBalancedError(GLGAAPError, ValueError):
    """
    Assets do not equal liabilities plus equity.

    Attributes:
        company_id: Company the report was generated for.
        as_of_date: Balance sheet date.
        total_assets: Sum of all asset sections.
        total_liabilities: Sum of all liability sections.
        total_equity: Sum of the equity section.
    """

    def __init__(
        self,
        company_id: str,
        as_of_date: date,
        total_assets: Decimal,
        total_liabilities: Decimal,
        total_equity: Decimal,
    ):
        self.company_id = company_id
        self.as_of_date = as_of_date
        self.total_assets = total_assets
        self.total_liabilities = total_liabilities
        self.total_equity = total_equity
        super().__init__(
            f"ACCOUNTING EQUATION VIOLATION: Balance sheet not balanced for company "
            f"{company_id} as of {as_of_date.isoformat()}: "
            f"Assets {total_assets:,.2f} != Liabilities {total_liabilities:,.2f} "
            f"+ Equity {total_equity:,.2f} (difference {self.difference:,.2f})"
        )

    @property
    def difference(self) -> Decimal:
        """Assets minus (liabilities + equity)."""
        return self.total_assets - (self.total_liabilities + self.total_equity)


class CashFlowReconciliationError(GLGAAPError, ValueError):
    def __init__(
        self,
        company_id: str,
        beginning_cash: Decimal,
        net_change_in_cash: Decimal,
        ending_cash: Decimal,
    ):
        self.company_id = company_id
        self.beginning_cash = beginning_cash
        self.net_change_in_cash = net_change_in_cash
        self.ending_cash = ending_cash
        super().__init__(
            f"Cash flow statement does not reconcile for company {company_id}: "
            f"beginning cash {beginning_cash:,.2f} + net change {net_change_in_cash:,.2f} "
            f"!= ending cash {ending_cash:,.2f}"
        )


# ---------------------------------------------------------------------------
# Journal entry lifecycle
# ---------------------------------------------------------------------------


class InvalidStatusTransitionError(GLGAAPError, ValueError):
    """
    A lifecycle operation was attempted from the wrong status.

    Attributes:
        entry_id: Journal entry id.
        action: Name of the attempted operation (e.g. "post").
        current_status: Status the entry is in.
        required_status: Status the operation requires.
    """

    def __init__(self, entry_id: str, action: str, current_status, required_status):
        self.entry_id = entry_id
        self.action = action
        self.current_status = current_status
        self.required_status = required_status
        super().__init__(
            f"Cannot {action} journal entry {entry_id}: status is "
            f"{current_status.value}, must be {required_status.value}"
        )


class EntryNotPostedError(InvalidStatusTransitionError):
    def __init__(self, entry_id: str, current_status):
        from .models import EntryStatus
        super().__init__(entry_id, "reverse", current_status, EntryStatus.POSTED)


class EntryNotEditableError(InvalidStatusTransitionError):
    def __init__(self, entry_id: str, action: str, current_status):
        from .models import EntryStatus
        super().__init__(entry_id, action, current_status, EntryStatus.DRAFT)


class EntryAlreadyReversedError(GLGAAPError, ValueError):
    def __init__(self, entry_id: str, reversing_entry_id: str):
        self.entry_id = entry_id
        self.reversing_entry_id = reversing_entry_id
        super().__init__(
            f"Journal entry {entry_id} has already been reversed by {reversing_entry_id}"
        )


class UnbalancedEntryError(GLGAAPError, ValueError):
    def __init__(self, entry_id: str, total_debits: Decimal, total_credits: Decimal):
        self.entry_id = entry_id
        self.total_debits = total_debits
        self.total_credits = total_credits
        super().__init__(
            f"Journal entry {entry_id} is not balanced: debits {total_debits:,.2f} "
            f"!= credits {total_credits:,.2f}"
        )


class EmptyJournalEntryError(GLGAAPError, ValueError):
    def __init__(self, entry_id: str):
        self.entry_id = entry_id
        super().__init__(f"Journal entry {entry_id} has no lines")


class DuplicateLineNumberError(GLGAAPError, ValueError):
    def __init__(self, entry_id: str, line_number: int):
        self.entry_id = entry_id
        self.line_number = line_number
        super().__init__(
            f"Journal entry {entry_id} uses line number {line_number} more than once"
        )


class AccountNotPostableError(GLGAAPError, ValueError):
    def __init__(self, account_id: str):
        self.account_id = account_id
        super().__init__(f"Account {account_id} is a summary account and cannot be posted to")


class AccountNotActiveError(GLGAAPError, ValueError):
    def __init__(self, account_id: str):
        self.account_id = account_id
        super().__init__(f"Account {account_id} is inactive")


class ConcurrentModificationError(GLGAAPError, RuntimeError):
    def __init__(self, entry_id: str, expected_status, actual_status):
        self.entry_id = entry_id
        self.expected_status = expected_status
        self.actual_status = actual_status
        super().__init__(
            f"Journal entry {entry_id} changed while being updated: expected status "
            f"{expected_status.value}, found {actual_status.value}"
        )


class DuplicateEntryNumberError(GLGAAPError, ValueError):
    def __init__(self, entry_id: str, company_id: str, entry_number: str):
        self.entry_id = entry_id
        self.company_id = company_id
        self.entry_number = entry_number
        super().__init__(
            f"Journal entry {entry_id}: entry number {entry_number} is already used "
            f"in company {company_id}"
        )


# ---------------------------------------------------------------------------
# Strict validation
# ---------------------------------------------------------------------------


class ValidationFailedError(GLGAAPError, RuntimeError):
    """
    Strict validation found errors, so reports must not be generated.

    Attributes:
        result: The ValidationResult holding every problem found; its
                errors property gives the typed errors.
    """

    def __init__(self, result):
        self.result = result
        super().__init__(
            f"Strict validation FAILED with {result.error_count} error(s). "
            f"Cannot generate financial statements until all errors are resolved."
        )

    @property
    def errors(self) -> list:
        return self.result.errors


# ---------------------------------------------------------------------------
# Values
# ---------------------------------------------------------------------------


class CurrencyMismatchError(GLGAAPError, ValueError):
    def __init__(self, left_currency: str, right_currency: str):
        self.left_currency = left_currency
        self.right_currency = right_currency
        super().__init__(
            f"Currency mismatch: cannot combine {left_currency} with {right_currency}"
        )


class InvalidLineAmountError(GLGAAPError, ValueError):
    def __init__(self, line_id: str, reason: str):
        self.line_id = line_id
        self.reason = reason
        super().__init__(f"Journal entry line {line_id}: {reason}")
