"""
Validation engine for GLGAAP.

Implements validation rules for a company's chart of accounts and ledger:
- Account-level checks (number range, normal balance, intercompany partner,
  cash flow category)
- Hierarchy integrity (missing parents, type mismatches, parent cycles)
- Journal entry double-entry balancing and account references

Every check runs to completion and all problems are collected; nothing
stops at the first failure. Report commands call validate_for_reporting()
first so statements are never produced from a broken chart or ledger.
"""

import json
import logging
from collections import Counter
from dataclasses import dataclass, field
from typing import Iterable, Optional, Sequence

from .balances import LEDGER_EFFECTIVE_STATUSES, entry_totals, is_ledger_effective
from .config import GLGAAPConfig
from .errors import (
    AccountNotFoundError,
    AccountNumberRangeError,
    CashFlowCategoryOnIncomeStatementError,
    EmptyJournalEntryError,
    GLGAAPError,
    IntercompanyPartnerMissingError,
    NormalBalanceError,
    UnbalancedEntryError,
    UnexpectedIntercompanyPartnerError,
    ValidationFailedError,
)
from .hierarchy import AccountIndex, validate_hierarchy
from .models import (
    Account,
    AccountId,
    LedgerEntry,
    NUMBER_RANGE_TYPES,
    canonical_normal_balance,
    is_balance_sheet_type,
    is_valid_account_number,
)

logger = logging.getLogger(__name__)


@dataclass
class ValidationProblem:
    """
    Represents a single validation issue.
    
    Attributes:
        severity: "error" or "warning".
        message: Human-readable description of the problem.
        context: Optional additional context (e.g., account or entry id).
        error: The typed error behind the problem, when there is one.
    """
    
    severity: str  # "error" or "warning"
    message: str
    context: Optional[str] = None
    error: Optional[GLGAAPError] = None
    
    def __post_init__(self):
        """Validate severity value."""
        if self.severity not in ("error", "warning"):
            raise ValueError(
                f"Invalid severity: {self.severity}. Must be 'error' or 'warning'."
            )
    
    def __str__(self) -> str:
        """Format problem for display."""
        severity_upper = self.severity.upper()
        if self.context:
            return f"[{severity_upper}] {self.message} (Context: {self.context})"
        else:
            return f"[{severity_upper}] {self.message}"
    
    def to_dict(self) -> dict:
        return {
            "severity": self.severity,
            "type": type(self.error).__name__ if self.error is not None else None,
            "message": self.message,
            "context": self.context,
        }


@dataclass
class ValidationResult:
    """
    Results from validating a chart of accounts and ledger.
    
    Attributes:
        problems: List of all validation problems found.
    """
    
    problems: list[ValidationProblem] = field(default_factory=list)
    
    @property
    def has_errors(self) -> bool:
        """
        Check if any errors were found.
        
        Returns:
            True if at least one problem has severity "error".
        """
        return any(p.severity == "error" for p in self.problems)
    
    @property
    def has_warnings(self) -> bool:
        """
        Check if any warnings were found.
        
        Returns:
            True if at least one problem has severity "warning".
        """
        return any(p.severity == "warning" for p in self.problems)
    
    @property
    def error_count(self) -> int:
        """Count of errors."""
        return sum(1 for p in self.problems if p.severity == "error")
    
    @property
    def warning_count(self) -> int:
        """Count of warnings."""
        return sum(1 for p in self.problems if p.severity == "warning")
    
    @property
    def errors(self) -> list[GLGAAPError]:
        """Typed errors behind the error-severity problems."""
        return [
            p.error for p in self.problems
            if p.severity == "error" and p.error is not None
        ]
    
    def add_error(
        self,
        message: str,
        context: Optional[str] = None,
        error: Optional[GLGAAPError] = None,
    ) -> None:
        """
        Add an error to the validation results.
        
        Args:
            message: Error message.
            context: Optional context information.
            error: Optional typed error the message was built from.
        """
        self.problems.append(ValidationProblem("error", message, context, error))
    
    def add_warning(
        self,
        message: str,
        context: Optional[str] = None,
        error: Optional[GLGAAPError] = None,
    ) -> None:
        """
        Add a warning to the validation results.
        
        Args:
            message: Warning message.
            context: Optional context information.
            error: Optional typed error the message was built from.
        """
        self.problems.append(ValidationProblem("warning", message, context, error))
    
    def extend(self, other: "ValidationResult") -> None:
        self.problems.extend(other.problems)
    
    def log_summary(self) -> None:
        """
        Log a summary of validation results.
        
        Logs all problems and provides counts.
        """
        if not self.problems:
            logger.info("✓ Validation passed with no issues")
            return
        
        logger.info(f"Validation completed: {self.error_count} error(s), {self.warning_count} warning(s)")
        
        for problem in self.problems:
            if problem.severity == "error":
                logger.error(str(problem))
            else:
                logger.warning(str(problem))
        
        if self.has_errors:
            logger.error(f"✗ Validation FAILED with {self.error_count} error(s)")
        else:
            logger.info(f"✓ Validation passed (with {self.warning_count} warning(s))")

    @property
    def status(self) -> str:
        """Overall outcome: failed, passed_with_warnings or passed."""
        if self.has_errors:
            return "failed"
        if self.has_warnings:
            return "passed_with_warnings"
        return "passed"

    def format_as_text(self) -> str:
        """Render the problems as a plain-text report."""
        lines = ["=" * 80, "VALIDATION RESULTS", "=" * 80]
        for problem in self.problems:
            lines.append(str(problem))
        if self.problems:
            lines.append("-" * 80)
        lines.append(f"Errors: {self.error_count}  Warnings: {self.warning_count}")
        if self.has_errors:
            lines.append("[FAIL] VALIDATION FAILED")
        else:
            lines.append("[OK] VALIDATION PASSED")
        return "\n".join(lines) + "\n"

    def format_as_json(self) -> str:
        """Render the problems as JSON."""
        data = {
            "status": self.status,
            "error_count": self.error_count,
            "warning_count": self.warning_count,
            "problems": [p.to_dict() for p in self.problems],
        }
        return json.dumps(data, indent=2)


# ---------------------------------------------------------------------------
# Account-level checks
# ---------------------------------------------------------------------------


def validate_account(account: Account) -> list[GLGAAPError]:
    """
    Run the four account-level checks and collect every failure.
    
    Checks:
    - Number range: the leading digit implies a type (1=Asset, 2=Liability,
      3=Equity, 4=Revenue, 5-7=Expense); 8xxx/9xxx accept any type.
    - Normal balance: must equal the canonical side for the type. Contra
      accounts fail this check on purpose; callers whitelist them.
    - Intercompany: is_intercompany must agree with the presence of a
      partner company id.
    - Cash flow category: only legal on Asset/Liability/Equity accounts.
    
    Args:
        account: Account to check.
        
    Returns:
        List of errors; empty when the account is valid.
    """
    errors: list[GLGAAPError] = []
    
    if not is_valid_account_number(account.account_number):
        errors.append(AccountNumberRangeError(
            account.id, account.account_number, account.account_type, None
        ))
    else:
        expected_type = NUMBER_RANGE_TYPES.get(account.account_number[0])
        if expected_type is not None and expected_type is not account.account_type:
            errors.append(AccountNumberRangeError(
                account.id, account.account_number, account.account_type, expected_type
            ))
    
    expected_balance = canonical_normal_balance(account.account_type)
    if account.normal_balance is not expected_balance:
        errors.append(NormalBalanceError(
            account.id, account.account_type, account.normal_balance, expected_balance
        ))
    
    if account.is_intercompany and account.intercompany_partner_id is None:
        errors.append(IntercompanyPartnerMissingError(account.id))
    elif not account.is_intercompany and account.intercompany_partner_id is not None:
        errors.append(UnexpectedIntercompanyPartnerError(
            account.id, account.intercompany_partner_id
        ))
    
    if account.cash_flow_category is not None and not is_balance_sheet_type(account.account_type):
        errors.append(CashFlowCategoryOnIncomeStatementError(
            account.id, account.account_type, account.cash_flow_category
        ))
    
    return errors


def validate_chart(
    accounts: Sequence[Account],
    contra_account_ids: Iterable[AccountId] = (),
) -> ValidationResult:
    """
    Validate a full chart of accounts.
    
    Collects account-level errors for every account, duplicate account
    numbers, and hierarchy errors. Normal-balance errors on accounts listed
    in *contra_account_ids* are downgraded to warnings.
    
    Args:
        accounts: The company's accounts.
        contra_account_ids: Accounts that are intentional contra accounts.
        
    Returns:
        ValidationResult with all problems found.
    """
    logger.debug("Validating chart of accounts")
    result = ValidationResult()
    contra_ids = set(contra_account_ids)
    
    for account in accounts:
        for error in validate_account(account):
            if isinstance(error, NormalBalanceError) and account.id in contra_ids:
                result.add_warning(str(error), context=f"Account: {account.display_name}", error=error)
            else:
                result.add_error(str(error), context=f"Account: {account.display_name}", error=error)
    
    number_counts = Counter(a.account_number for a in accounts)
    for number, count in sorted(number_counts.items()):
        if count > 1:
            result.add_error(f"Account number {number} is used by {count} accounts")
    
    for error in validate_hierarchy(AccountIndex(accounts)):
        result.add_error(str(error), error=error)
    
    logger.info(f"Processed {len(accounts)} accounts")
    return result


# ---------------------------------------------------------------------------
# Ledger checks
# ---------------------------------------------------------------------------


def validate_ledger(
    accounts: Sequence[Account],
    entries: Sequence[LedgerEntry],
    config: Optional[GLGAAPConfig] = None,
) -> ValidationResult:
    """
    Validate journal entries against the chart of accounts.
    
    Checks that every ledger-effective entry has lines, balances in the
    functional currency, and references only known accounts. Entries
    marked Posted without a posting date are reported as warnings because
    they are excluded from every balance.
    
    Args:
        accounts: The company's accounts.
        entries: Journal entries with their lines.
        config: Optional configuration; uses default if not provided.
        
    Returns:
        ValidationResult with all problems found.
    """
    if config is None:
        from .config import default_config
        config = default_config
    
    logger.debug("Validating journal entries")
    result = ValidationResult()
    known_ids = {a.id for a in accounts}
    unbalanced_count = 0
    
    for ledger_entry in entries:
        entry = ledger_entry.entry
        label = entry.entry_number or entry.id
        
        if entry.posting_date is None and entry.status in LEDGER_EFFECTIVE_STATUSES:
            result.add_warning(
                f"Journal entry {label} is {entry.status.value} but has no posting date; "
                f"it is excluded from balances",
                context=f"Entry: {entry.id}",
            )
        
        if not ledger_entry.lines:
            result.add_error(
                f"Journal entry {label} has no lines",
                context=f"Entry: {entry.id}",
                error=EmptyJournalEntryError(entry.id),
            )
            continue
        
        for line in ledger_entry.lines:
            if line.account_id not in known_ids:
                result.add_error(
                    f"Journal entry {label} line {line.line_number} references "
                    f"unknown account {line.account_id}",
                    context=f"Entry: {entry.id}",
                    error=AccountNotFoundError(line.account_id, entry.id),
                )
        
        debits, credits = entry_totals(ledger_entry.lines)
        if not config.is_balanced(debits - credits):
            unbalanced_count += 1
            message = (
                f"Unbalanced journal entry {label}: debits {debits:,.2f} "
                f"!= credits {credits:,.2f} (imbalance: {debits - credits:.4f})"
            )
            error = UnbalancedEntryError(entry.id, debits, credits)
            if is_ledger_effective(entry):
                result.add_error(
                    message, context=f"Entry: {entry.id}, Date: {entry.posting_date}", error=error
                )
            else:
                result.add_warning(message, context=f"Entry: {entry.id} ({entry.status.value})", error=error)
    
    logger.info(f"Processed {len(entries)} journal entries")
    
    if unbalanced_count == 0:
        logger.info("✓ All journal entries are balanced")
    else:
        logger.error(f"✗ Found {unbalanced_count} unbalanced journal entr(y/ies)")
    
    return result


def validate_company(
    accounts: Sequence[Account],
    entries: Sequence[LedgerEntry],
    config: Optional[GLGAAPConfig] = None,
    contra_account_ids: Iterable[AccountId] = (),
) -> ValidationResult:
    """
    Perform comprehensive validation of a company's chart and ledger.
    
    Args:
        accounts: The company's accounts.
        entries: Journal entries with their lines.
        config: Optional configuration; uses default if not provided.
        contra_account_ids: Intentional contra accounts (see validate_chart).
        
    Returns:
        ValidationResult with all problems found.
    """
    logger.info("Starting company validation")
    
    result = validate_chart(accounts, contra_account_ids)
    result.extend(validate_ledger(accounts, entries, config))
    
    logger.info("Validation complete")
    return result


def validate_for_reporting(
    accounts: Sequence[Account],
    entries: Sequence[LedgerEntry],
    config: Optional[GLGAAPConfig] = None,
) -> ValidationResult:
    """
    Validate a company with strict requirements before generating reports.
    
    Accounts whose normal balance is opposite to their type are treated as
    intentional contra accounts here: statements compute every balance on
    the canonical side, so a contra account simply reduces its section.
    
    Args:
        accounts: The company's accounts.
        entries: Journal entries with their lines.
        config: Optional configuration; uses default if not provided.
        
    Returns:
        ValidationResult (errors absent, warnings possible).
        
    Raises:
        ValidationFailedError: If validation fails (has errors) - reports should
                               NOT be generated. It is a RuntimeError and
                               carries the ValidationResult.
    """
    logger.info("Running strict validation for report generation")
    
    contra_ids = [a.id for a in accounts if a.is_contra]
    result = validate_company(accounts, entries, config, contra_ids)
    
    if result.has_errors:
        error = ValidationFailedError(result)
        logger.error(str(error))
        raise error
    
    logger.info("✓ Strict validation passed - ready for report generation")
    
    return result
