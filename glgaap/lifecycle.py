"""
Journal entry lifecycle.

State machine for journal entries:

    Draft -> PendingApproval -> Approved -> Posted -> Reversed
                   |
                   +-> Draft (rejection)

The transition functions are pure: they take the current entry (and lines
where relevant) and return new values, raising a typed error when the
transition is illegal. Posted and Reversed entries can no longer be edited
or deleted, and an entry can be reversed at most once.

InMemoryEntryRepository and the *_entry helpers apply transitions against
stored state. Every transition is serialized per journal entry; submit and
reverse, which allocate entry numbers, also hold the company lock (always
taken before the entry lock). Every commit re-checks that the stored status
is still the one that was read, and refuses an entry number the company
already uses.
"""

import logging
import re
import threading
from dataclasses import replace
from datetime import date, datetime, timezone
from typing import Iterable, Mapping, Optional, Protocol, Sequence

from .balances import entry_totals
from .config import GLGAAPConfig
from .errors import (
    AccountNotActiveError,
    AccountNotFoundError,
    AccountNotPostableError,
    ConcurrentModificationError,
    DuplicateEntryNumberError,
    DuplicateLineNumberError,
    EmptyJournalEntryError,
    EntryAlreadyReversedError,
    EntryNotEditableError,
    EntryNotPostedError,
    InvalidStatusTransitionError,
    JournalEntryNotFoundError,
    UnbalancedEntryError,
)
from .models import (
    Account,
    AccountId,
    CompanyId,
    EntryStatus,
    EntryType,
    JournalEntry,
    JournalEntryId,
    JournalEntryLine,
    JournalEntryLineId,
    LedgerEntry,
    UserId,
)

logger = logging.getLogger(__name__)

_NUMBER_SUFFIX = re.compile(r"^(.*?)(\d+)$")


# ---------------------------------------------------------------------------
# Line checks
# ---------------------------------------------------------------------------


def validate_entry_lines(
    entry: JournalEntry,
    lines: Sequence[JournalEntryLine],
    accounts: Optional[Mapping[AccountId, Account]] = None,
) -> None:
    """
    Check that an entry's lines can be posted.
    
    Args:
        entry: Journal entry header.
        lines: The entry's lines.
        accounts: Optional account id -> Account map; when given, every
                  line's account must exist, be postable and be active.
        
    Raises:
        EmptyJournalEntryError: If there are no lines.
        DuplicateLineNumberError: If a line number repeats.
        AccountNotFoundError: If a line references an unknown account.
        AccountNotPostableError: If a line posts to a summary account.
        AccountNotActiveError: If a line posts to an inactive account.
    """
    if not lines:
        raise EmptyJournalEntryError(entry.id)
    
    seen: set[int] = set()
    for line in lines:
        if line.line_number in seen:
            raise DuplicateLineNumberError(entry.id, line.line_number)
        seen.add(line.line_number)
    
    if accounts is None:
        return
    for line in lines:
        account = accounts.get(line.account_id)
        if account is None:
            raise AccountNotFoundError(line.account_id, entry.id)
        if not account.is_postable:
            raise AccountNotPostableError(account.id)
        if not account.is_active:
            raise AccountNotActiveError(account.id)


def ensure_balanced(
    entry: JournalEntry,
    lines: Sequence[JournalEntryLine],
    config: Optional[GLGAAPConfig] = None,
) -> None:
    """
    Raise UnbalancedEntryError unless functional debits equal credits.
    """
    if config is None:
        from .config import default_config
        config = default_config
    
    total_debits, total_credits = entry_totals(lines)
    if not config.is_balanced(total_debits - total_credits):
        raise UnbalancedEntryError(entry.id, total_debits, total_credits)


def _require_status(entry: JournalEntry, action: str, required: EntryStatus) -> None:
    if entry.status is not required:
        raise InvalidStatusTransitionError(entry.id, action, entry.status, required)


# ---------------------------------------------------------------------------
# Transitions
# ---------------------------------------------------------------------------


def submit_for_approval(
    entry: JournalEntry,
    lines: Sequence[JournalEntryLine],
    entry_number: Optional[str] = None,
    accounts: Optional[Mapping[AccountId, Account]] = None,
) -> JournalEntry:
    """
    Move a Draft entry to PendingApproval.
    
    Args:
        entry: Entry in Draft status.
        lines: The entry's lines (must be non-empty with unique line numbers).
        entry_number: Number to assign if the entry has none yet.
        accounts: Optional account map for account checks.
        
    Returns:
        The entry in PendingApproval status.
        
    Raises:
        InvalidStatusTransitionError: If the entry is not a Draft.
    """
    _require_status(entry, "submit", EntryStatus.DRAFT)
    validate_entry_lines(entry, lines, accounts)
    
    logger.info(f"Submitting journal entry {entry.id} for approval")
    return replace(
        entry,
        status=EntryStatus.PENDING_APPROVAL,
        entry_number=entry.entry_number or entry_number,
    )


def approve(entry: JournalEntry) -> JournalEntry:
    """Approve an entry awaiting approval."""
    _require_status(entry, "approve", EntryStatus.PENDING_APPROVAL)
    logger.info(f"Approving journal entry {entry.id}")
    return replace(entry, status=EntryStatus.APPROVED)


def reject(entry: JournalEntry) -> JournalEntry:
    """Send an entry awaiting approval back to Draft."""
    _require_status(entry, "reject", EntryStatus.PENDING_APPROVAL)
    logger.info(f"Rejecting journal entry {entry.id}")
    return replace(entry, status=EntryStatus.DRAFT)


def post(
    entry: JournalEntry,
    lines: Sequence[JournalEntryLine],
    posted_by: UserId,
    posting_date: Optional[date] = None,
    posted_at: Optional[datetime] = None,
    config: Optional[GLGAAPConfig] = None,
) -> JournalEntry:
    """
    Post an approved entry to the ledger.
    
    The lines must balance in the functional currency; an unbalanced entry
    is rejected, never posted.
    
    Args:
        entry: Entry in Approved status.
        lines: The entry's lines.
        posted_by: User posting the entry.
        posting_date: Ledger date; defaults to today.
        posted_at: Posting timestamp; defaults to now (UTC).
        config: Optional configuration (balance tolerance).
        
    Returns:
        The entry in Posted status with posting fields set.
        
    Raises:
        InvalidStatusTransitionError: If the entry is not Approved.
        EmptyJournalEntryError: If there are no lines.
        UnbalancedEntryError: If debits do not equal credits.
    """
    _require_status(entry, "post", EntryStatus.APPROVED)
    if not lines:
        raise EmptyJournalEntryError(entry.id)
    ensure_balanced(entry, lines, config)
    
    posting_date = posting_date or date.today()
    posted_at = posted_at or datetime.now(timezone.utc)
    
    logger.info(f"Posting journal entry {entry.entry_number or entry.id} on {posting_date}")
    return replace(
        entry,
        status=EntryStatus.POSTED,
        posting_date=posting_date,
        posted_by=posted_by,
        posted_at=posted_at,
    )


def reverse(
    entry: JournalEntry,
    lines: Sequence[JournalEntryLine],
    reversal_entry_id: JournalEntryId,
    reversed_by: UserId,
    reversal_line_ids: Optional[Sequence[JournalEntryLineId]] = None,
    reversal_date: Optional[date] = None,
    reversed_at: Optional[datetime] = None,
    reversal_entry_number: Optional[str] = None,
) -> tuple[JournalEntry, LedgerEntry]:
    """
    Reverse a posted entry.
    
    Produces a new Posted entry of type Reversing whose lines copy the
    original lines with debit and credit swapped (same account, same
    amount, same line number), and marks the original as Reversed. The two
    results must be stored together; see reverse_entry().
    
    Args:
        entry: Entry in Posted status that has not been reversed.
        lines: The entry's lines.
        reversal_entry_id: Id for the new reversal entry.
        reversed_by: User reversing the entry.
        reversal_line_ids: Ids for the reversal lines, one per original
                           line; defaults to "<reversal id>-<line number>".
        reversal_date: Transaction and posting date of the reversal;
                       defaults to today.
        reversed_at: Timestamp of the reversal; defaults to now (UTC).
        reversal_entry_number: Optional entry number for the reversal.
        
    Returns:
        Tuple of (updated original entry, reversal LedgerEntry).
        
    Raises:
        EntryAlreadyReversedError: If the entry was already reversed.
        EntryNotPostedError: If the entry is not Posted.
        ValueError: If reversal_line_ids does not match the line count.
    """
    if entry.reversing_entry_id is not None:
        raise EntryAlreadyReversedError(entry.id, entry.reversing_entry_id)
    if entry.status is not EntryStatus.POSTED:
        raise EntryNotPostedError(entry.id, entry.status)
    
    if reversal_line_ids is None:
        reversal_line_ids = [
            JournalEntryLineId(f"{reversal_entry_id}-{line.line_number}") for line in lines
        ]
    if len(reversal_line_ids) != len(lines):
        raise ValueError(
            f"Expected {len(lines)} reversal line id(s), got {len(reversal_line_ids)}"
        )
    
    reversal_date = reversal_date or date.today()
    reversed_at = reversed_at or datetime.now(timezone.utc)
    
    reversal_entry = JournalEntry(
        id=reversal_entry_id,
        company_id=entry.company_id,
        transaction_date=reversal_date,
        fiscal_period=entry.fiscal_period,
        description=f"Reversal of {entry.entry_number or entry.id}",
        entry_number=reversal_entry_number,
        reference_number=entry.reference_number,
        posting_date=reversal_date,
        entry_type=EntryType.REVERSING,
        source_module=entry.source_module,
        status=EntryStatus.POSTED,
        is_reversing=True,
        reversed_entry_id=entry.id,
        created_by=reversed_by,
        created_at=reversed_at,
        posted_by=reversed_by,
        posted_at=reversed_at,
    )
    
    reversal_lines = tuple(
        JournalEntryLine(
            id=line_id,
            journal_entry_id=reversal_entry_id,
            line_number=line.line_number,
            account_id=line.account_id,
            debit_amount=line.credit_amount,
            credit_amount=line.debit_amount,
            functional_debit_amount=line.functional_credit_amount,
            functional_credit_amount=line.functional_debit_amount,
            exchange_rate=line.exchange_rate,
            memo=line.memo,
        )
        for line, line_id in zip(lines, reversal_line_ids)
    )
    
    updated_original = replace(
        entry,
        status=EntryStatus.REVERSED,
        reversing_entry_id=reversal_entry_id,
    )
    
    logger.info(f"Reversing journal entry {entry.entry_number or entry.id} with {reversal_entry_id}")
    return updated_original, LedgerEntry(reversal_entry, reversal_lines)


def is_editable(entry: JournalEntry) -> bool:
    """Only Draft entries may be edited or deleted."""
    return entry.status is EntryStatus.DRAFT


def ensure_editable(entry: JournalEntry, action: str = "edit") -> None:
    """
    Raise EntryNotEditableError unless the entry is a Draft.
    """
    if not is_editable(entry):
        raise EntryNotEditableError(entry.id, action, entry.status)


# ---------------------------------------------------------------------------
# Entry numbering
# ---------------------------------------------------------------------------


def next_entry_number(existing_numbers: Iterable[Optional[str]], seed: str = "JE-0001") -> str:
    """
    Allocate the next entry number in a company's sequence.
    
    Takes the existing number with the largest trailing numeric suffix,
    increments the suffix and re-pads it to the same width
    ("JE-0041" -> "JE-0042"). Numbers without a numeric suffix are ignored.
    
    Args:
        existing_numbers: Entry numbers already used by the company.
        seed: Number returned when no numbered entries exist.
        
    Returns:
        The next entry number.
    """
    best: Optional[tuple[int, str, int]] = None
    for number in existing_numbers:
        if not number:
            continue
        match = _NUMBER_SUFFIX.match(number)
        if match is None:
            continue
        prefix, digits = match.groups()
        value = int(digits)
        if best is None or value > best[0]:
            best = (value, prefix, len(digits))
    
    if best is None:
        return seed
    value, prefix, width = best
    return f"{prefix}{str(value + 1).zfill(width)}"


# ---------------------------------------------------------------------------
# Repository-backed transitions
# ---------------------------------------------------------------------------


class EntryRepository(Protocol):
    """Persistence boundary for journal entries."""
    
    def get(self, entry_id: JournalEntryId) -> LedgerEntry: ...
    
    def entry_numbers(self, company_id: CompanyId) -> list[str]: ...
    
    def lock_for(self, entry_id: JournalEntryId) -> threading.Lock: ...
    
    def lock_for_company(self, company_id: CompanyId) -> threading.Lock: ...
    
    def commit(self, changes: Sequence[tuple[LedgerEntry, Optional[EntryStatus]]]) -> None: ...
    
    def delete(self, entry_id: JournalEntryId) -> None: ...


class InMemoryEntryRepository:
    """
    Thread-safe in-memory journal entry store.
    
    commit() applies a group of changes as one unit: each change names the
    status it expects the stored entry to have (None for a new entry), and
    nothing is written unless every expectation holds and no entry number
    is used twice within a company.
    """
    
    def __init__(self, entries: Iterable[LedgerEntry] = ()):
        self._entries: dict[JournalEntryId, LedgerEntry] = {}
        self._locks: dict[JournalEntryId, threading.Lock] = {}
        self._company_locks: dict[CompanyId, threading.Lock] = {}
        self._store_lock = threading.Lock()
        for ledger_entry in entries:
            self._entries[ledger_entry.entry.id] = ledger_entry
    
    def get(self, entry_id: JournalEntryId) -> LedgerEntry:
        with self._store_lock:
            try:
                return self._entries[entry_id]
            except KeyError:
                raise JournalEntryNotFoundError(entry_id) from None
    
    def add(self, ledger_entry: LedgerEntry) -> None:
        self.commit([(ledger_entry, None)])
    
    def all(self) -> list[LedgerEntry]:
        with self._store_lock:
            return list(self._entries.values())
    
    def list_for_company(self, company_id: CompanyId) -> list[LedgerEntry]:
        return [le for le in self.all() if le.entry.company_id == company_id]
    
    def entry_numbers(self, company_id: CompanyId) -> list[str]:
        return [
            le.entry.entry_number for le in self.list_for_company(company_id)
            if le.entry.entry_number
        ]
    
    def lock_for(self, entry_id: JournalEntryId) -> threading.Lock:
        with self._store_lock:
            return self._locks.setdefault(entry_id, threading.Lock())
    
    def lock_for_company(self, company_id: CompanyId) -> threading.Lock:
        with self._store_lock:
            return self._company_locks.setdefault(company_id, threading.Lock())
    
    def commit(self, changes: Sequence[tuple[LedgerEntry, Optional[EntryStatus]]]) -> None:
        with self._store_lock:
            for ledger_entry, expected_status in changes:
                entry_id = ledger_entry.entry.id
                stored = self._entries.get(entry_id)
                if expected_status is None:
                    if stored is not None:
                        raise ValueError(f"Journal entry already exists: {entry_id}")
                elif stored is None:
                    raise JournalEntryNotFoundError(entry_id)
                elif stored.entry.status is not expected_status:
                    raise ConcurrentModificationError(
                        entry_id, expected_status, stored.entry.status
                    )
            self._check_entry_numbers(changes)
            for ledger_entry, _ in changes:
                self._entries[ledger_entry.entry.id] = ledger_entry
    
    def _check_entry_numbers(self, changes: Sequence[tuple[LedgerEntry, Optional[EntryStatus]]]) -> None:
        changed_ids = {le.entry.id for le, _ in changes}
        used = {
            (le.entry.company_id, le.entry.entry_number)
            for entry_id, le in self._entries.items()
            if entry_id not in changed_ids and le.entry.entry_number
        }
        for ledger_entry, _ in changes:
            entry = ledger_entry.entry
            stored = self._entries.get(entry.id)
            if not entry.entry_number or (
                stored is not None and stored.entry.entry_number == entry.entry_number
            ):
                continue
            key = (entry.company_id, entry.entry_number)
            if key in used:
                raise DuplicateEntryNumberError(entry.id, entry.company_id, entry.entry_number)
            used.add(key)
    
    def delete(self, entry_id: JournalEntryId) -> None:
        with self._store_lock:
            stored = self._entries.get(entry_id)
            if stored is None:
                raise JournalEntryNotFoundError(entry_id)
            ensure_editable(stored.entry, "delete")
            del self._entries[entry_id]
            self._locks.pop(entry_id, None)


def submit_entry(
    repository: EntryRepository,
    entry_id: JournalEntryId,
    accounts: Optional[Mapping[AccountId, Account]] = None,
    config: Optional[GLGAAPConfig] = None,
) -> JournalEntry:
    """Submit a stored Draft, allocating its entry number if it has none."""
    if config is None:
        from .config import default_config
        config = default_config
    
    company_id = repository.get(entry_id).entry.company_id
    with repository.lock_for_company(company_id), repository.lock_for(entry_id):
        current = repository.get(entry_id)
        number = None
        if current.entry.entry_number is None:
            number = next_entry_number(
                repository.entry_numbers(current.entry.company_id), config.entry_number_seed
            )
        updated = submit_for_approval(current.entry, current.lines, number, accounts)
        repository.commit([(LedgerEntry(updated, current.lines), current.entry.status)])
    return updated


def approve_entry(repository: EntryRepository, entry_id: JournalEntryId) -> JournalEntry:
    with repository.lock_for(entry_id):
        current = repository.get(entry_id)
        updated = approve(current.entry)
        repository.commit([(LedgerEntry(updated, current.lines), current.entry.status)])
    return updated


def reject_entry(repository: EntryRepository, entry_id: JournalEntryId) -> JournalEntry:
    with repository.lock_for(entry_id):
        current = repository.get(entry_id)
        updated = reject(current.entry)
        repository.commit([(LedgerEntry(updated, current.lines), current.entry.status)])
    return updated


def post_entry(
    repository: EntryRepository,
    entry_id: JournalEntryId,
    posted_by: UserId,
    posting_date: Optional[date] = None,
    config: Optional[GLGAAPConfig] = None,
) -> JournalEntry:
    """
    Post a stored entry, serialized per entry.
    
    Raises:
        ConcurrentModificationError: If the stored status changed between
                                     read and commit.
    """
    with repository.lock_for(entry_id):
        current = repository.get(entry_id)
        updated = post(current.entry, current.lines, posted_by, posting_date, config=config)
        repository.commit([(LedgerEntry(updated, current.lines), current.entry.status)])
    return updated


def reverse_entry(
    repository: EntryRepository,
    entry_id: JournalEntryId,
    reversal_entry_id: JournalEntryId,
    reversed_by: UserId,
    reversal_date: Optional[date] = None,
    config: Optional[GLGAAPConfig] = None,
) -> tuple[JournalEntry, LedgerEntry]:
    """
    Reverse a stored entry; the original and the reversal are committed together.
    
    Raises:
        DuplicateEntryNumberError: If the reversal number is already used in
                                   the company.
    """
    if config is None:
        from .config import default_config
        config = default_config
    
    company_id = repository.get(entry_id).entry.company_id
    with repository.lock_for_company(company_id), repository.lock_for(entry_id):
        current = repository.get(entry_id)
        reversal_number = next_entry_number(
            repository.entry_numbers(current.entry.company_id), config.entry_number_seed
        )
        updated_original, reversal = reverse(
            current.entry,
            current.lines,
            reversal_entry_id,
            reversed_by,
            reversal_date=reversal_date,
            reversal_entry_number=reversal_number,
        )
        repository.commit([
            (LedgerEntry(updated_original, current.lines), current.entry.status),
            (reversal, None),
        ])
    return updated_original, reversal
