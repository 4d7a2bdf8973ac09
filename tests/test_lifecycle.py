"""Tests for glgaap.lifecycle."""

import threading
from dataclasses import replace
from datetime import date, datetime, timezone
from decimal import Decimal

import pytest

from glgaap.balances import calculate_balance
from glgaap.errors import (
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
from glgaap.lifecycle import (
    InMemoryEntryRepository,
    approve,
    approve_entry,
    ensure_editable,
    is_editable,
    next_entry_number,
    post,
    post_entry,
    reject,
    reject_entry,
    reverse,
    reverse_entry,
    submit_entry,
    submit_for_approval,
    validate_entry_lines,
)
from glgaap.models import AccountCategory, EntryStatus, EntryType, LedgerEntry, NormalBalance
from tests.helpers import cr, dr, make_account, make_entry, make_line, standard_accounts

JAN_10 = date(2025, 1, 10)
JAN_20 = date(2025, 1, 20)


def draft(entry_id="je-1", lines=None, entry_number=None):
    lines = lines or [dr("cash", "500"), cr("sales", "500")]
    return make_entry(entry_id, JAN_10, lines, status=EntryStatus.DRAFT, entry_number=entry_number)


def with_status(ledger_entry, status):
    return LedgerEntry(replace(ledger_entry.entry, status=status), ledger_entry.lines)


class InterleavingRepository(InMemoryEntryRepository):
    """Holds each numbering read until a second caller reads too, or a timeout."""

    def __init__(self, entries=()):
        super().__init__(entries)
        self.barrier = threading.Barrier(2)

    def entry_numbers(self, company_id):
        try:
            self.barrier.wait(timeout=0.5)
        except threading.BrokenBarrierError:
            pass
        return super().entry_numbers(company_id)


@pytest.fixture
def account_map():
    return {a.id: a for a in standard_accounts()}


# ---------------------------------------------------------------------------
# Line checks
# ---------------------------------------------------------------------------


class TestValidateEntryLines:
    def test_valid_lines(self, account_map):
        le = draft()
        validate_entry_lines(le.entry, le.lines, account_map)

    def test_no_lines(self):
        le = draft()
        with pytest.raises(EmptyJournalEntryError):
            validate_entry_lines(le.entry, [])

    def test_duplicate_line_numbers(self):
        le = draft()
        lines = [make_line("je-1", 1, "cash", debit="5"), make_line("je-1", 1, "sales", credit="5")]
        with pytest.raises(DuplicateLineNumberError) as exc_info:
            validate_entry_lines(le.entry, lines)
        assert exc_info.value.line_number == 1

    def test_unknown_account(self, account_map):
        le = draft(lines=[dr("ghost", "5"), cr("sales", "5")])
        with pytest.raises(AccountNotFoundError):
            validate_entry_lines(le.entry, le.lines, account_map)

    def test_summary_account_not_postable(self):
        accounts = {
            "cash": make_account("cash", "1000", "Cash", AccountCategory.CURRENT_ASSET, is_postable=False),
        }
        le = draft(lines=[dr("cash", "5"), cr("cash", "5")])
        with pytest.raises(AccountNotPostableError):
            validate_entry_lines(le.entry, le.lines, accounts)

    def test_inactive_account(self):
        accounts = {
            "cash": make_account("cash", "1000", "Cash", AccountCategory.CURRENT_ASSET, is_active=False),
        }
        le = draft(lines=[dr("cash", "5"), cr("cash", "5")])
        with pytest.raises(AccountNotActiveError):
            validate_entry_lines(le.entry, le.lines, accounts)


# ---------------------------------------------------------------------------
# Transitions
# ---------------------------------------------------------------------------


class TestTransitions:
    def test_full_happy_path(self):
        le = draft()
        pending = submit_for_approval(le.entry, le.lines, entry_number="JE-0001")
        assert pending.status is EntryStatus.PENDING_APPROVAL
        assert pending.entry_number == "JE-0001"

        approved = approve(pending)
        assert approved.status is EntryStatus.APPROVED

        posted_at = datetime(2025, 1, 20, 9, 30, tzinfo=timezone.utc)
        posted = post(approved, le.lines, "alice", posting_date=JAN_20, posted_at=posted_at)
        assert posted.status is EntryStatus.POSTED
        assert posted.posting_date == JAN_20
        assert posted.posted_by == "alice"
        assert posted.posted_at == posted_at

    def test_submit_keeps_existing_number(self):
        le = draft(entry_number="JE-0007")
        pending = submit_for_approval(le.entry, le.lines, entry_number="JE-0099")
        assert pending.entry_number == "JE-0007"

    def test_reject_returns_to_draft(self):
        le = draft()
        pending = submit_for_approval(le.entry, le.lines)
        assert reject(pending).status is EntryStatus.DRAFT

    def test_cannot_approve_draft(self):
        with pytest.raises(InvalidStatusTransitionError) as exc_info:
            approve(draft().entry)
        assert exc_info.value.current_status is EntryStatus.DRAFT
        assert exc_info.value.required_status is EntryStatus.PENDING_APPROVAL

    def test_cannot_post_pending(self):
        le = draft()
        pending = submit_for_approval(le.entry, le.lines)
        with pytest.raises(InvalidStatusTransitionError, match="Cannot post"):
            post(pending, le.lines, "alice")

    def test_cannot_submit_posted(self):
        le = make_entry("je", JAN_10, [dr("cash", "1"), cr("sales", "1")])
        with pytest.raises(InvalidStatusTransitionError):
            submit_for_approval(le.entry, le.lines)

    def test_post_rejects_unbalanced(self):
        le = make_entry("je", JAN_10, [dr("cash", "100"), cr("sales", "99")], status=EntryStatus.APPROVED)
        with pytest.raises(UnbalancedEntryError) as exc_info:
            post(le.entry, le.lines, "alice")
        assert exc_info.value.total_debits == Decimal("100")
        assert exc_info.value.total_credits == Decimal("99")

    def test_post_rejects_empty(self):
        le = make_entry("je", JAN_10, [dr("cash", "1"), cr("sales", "1")], status=EntryStatus.APPROVED)
        with pytest.raises(EmptyJournalEntryError):
            post(le.entry, [], "alice")

    def test_post_defaults_posting_date_to_today(self):
        le = make_entry("je", JAN_10, [dr("cash", "1"), cr("sales", "1")], status=EntryStatus.APPROVED)
        assert post(le.entry, le.lines, "alice").posting_date == date.today()


class TestReverse:
    def test_reversal_swaps_sides(self):
        le = make_entry("je", JAN_10, [dr("cash", "500"), cr("sales", "500")], entry_number="JE-0001")
        original, reversal = reverse(le.entry, le.lines, "je-rev", "bob", reversal_date=JAN_20)

        assert original.status is EntryStatus.REVERSED
        assert original.reversing_entry_id == "je-rev"

        assert reversal.entry.status is EntryStatus.POSTED
        assert reversal.entry.entry_type is EntryType.REVERSING
        assert reversal.entry.is_reversing is True
        assert reversal.entry.reversed_entry_id == "je"
        assert reversal.entry.posting_date == JAN_20
        assert reversal.entry.description == "Reversal of JE-0001"

        first, second = reversal.lines
        assert first.account_id == "cash"
        assert first.credit_amount == le.lines[0].debit_amount
        assert first.debit_amount is None
        assert second.debit_amount == le.lines[1].credit_amount
        assert [line.id for line in reversal.lines] == ["je-rev-1", "je-rev-2"]

    def test_reversal_nets_balances_to_zero(self):
        le = make_entry("je", JAN_10, [dr("cash", "500"), cr("sales", "500")])
        original, reversal = reverse(le.entry, le.lines, "je-rev", "bob", reversal_date=JAN_20)
        entries = [LedgerEntry(original, le.lines), reversal]
        for account_id, normal in (("cash", NormalBalance.DEBIT), ("sales", NormalBalance.CREDIT)):
            assert calculate_balance(account_id, normal, entries, JAN_20, "USD").is_zero

    def test_cannot_reverse_twice(self):
        le = make_entry("je", JAN_10, [dr("cash", "1"), cr("sales", "1")])
        original, _ = reverse(le.entry, le.lines, "je-rev", "bob")
        with pytest.raises(EntryAlreadyReversedError) as exc_info:
            reverse(original, le.lines, "je-rev-2", "bob")
        assert exc_info.value.reversing_entry_id == "je-rev"

    def test_cannot_reverse_unposted(self):
        le = draft()
        with pytest.raises(EntryNotPostedError):
            reverse(le.entry, le.lines, "je-rev", "bob")

    def test_reversal_line_id_count_must_match(self):
        le = make_entry("je", JAN_10, [dr("cash", "1"), cr("sales", "1")])
        with pytest.raises(ValueError, match="reversal line id"):
            reverse(le.entry, le.lines, "je-rev", "bob", reversal_line_ids=["only-one"])


class TestEditability:
    def test_only_drafts_editable(self):
        assert is_editable(draft().entry)
        posted = make_entry("je", JAN_10, [dr("cash", "1"), cr("sales", "1")])
        assert not is_editable(posted.entry)

    def test_ensure_editable_raises(self):
        posted = make_entry("je", JAN_10, [dr("cash", "1"), cr("sales", "1")])
        with pytest.raises(EntryNotEditableError, match="Cannot delete"):
            ensure_editable(posted.entry, "delete")


# ---------------------------------------------------------------------------
# Entry numbering
# ---------------------------------------------------------------------------


class TestNextEntryNumber:
    def test_increments_highest(self):
        assert next_entry_number(["JE-0003", "JE-0041", "JE-0007"]) == "JE-0042"

    def test_preserves_width(self):
        assert next_entry_number(["JE-0099"]) == "JE-0100"

    def test_grows_past_width(self):
        assert next_entry_number(["JE-9999"]) == "JE-10000"

    def test_seed_when_empty(self):
        assert next_entry_number([]) == "JE-0001"
        assert next_entry_number([None, ""], seed="GJ-100") == "GJ-100"

    def test_ignores_numbers_without_suffix(self):
        assert next_entry_number(["OPENING", "JE-0002"]) == "JE-0003"


# ---------------------------------------------------------------------------
# Repository
# ---------------------------------------------------------------------------


class TestInMemoryEntryRepository:
    def test_get_missing(self):
        with pytest.raises(JournalEntryNotFoundError):
            InMemoryEntryRepository().get("nope")

    def test_add_duplicate_rejected(self):
        repository = InMemoryEntryRepository([draft()])
        with pytest.raises(ValueError, match="already exists"):
            repository.add(draft())

    def test_commit_detects_stale_status(self):
        le = draft()
        repository = InMemoryEntryRepository([le])
        pending = with_status(le, EntryStatus.PENDING_APPROVAL)
        with pytest.raises(ConcurrentModificationError) as exc_info:
            repository.commit([(pending, EntryStatus.APPROVED)])
        assert exc_info.value.actual_status is EntryStatus.DRAFT
        assert repository.get("je-1").entry.status is EntryStatus.DRAFT

    def test_commit_is_all_or_nothing(self):
        le = draft()
        repository = InMemoryEntryRepository([le])
        changes = [
            (with_status(le, EntryStatus.PENDING_APPROVAL), EntryStatus.DRAFT),
            (draft("je-2"), EntryStatus.DRAFT),
        ]
        with pytest.raises(JournalEntryNotFoundError):
            repository.commit(changes)
        assert repository.get("je-1").entry.status is EntryStatus.DRAFT

    def test_delete_draft(self):
        repository = InMemoryEntryRepository([draft()])
        repository.delete("je-1")
        assert repository.all() == []

    def test_delete_posted_rejected(self):
        repository = InMemoryEntryRepository([make_entry("je", JAN_10, [dr("cash", "1"), cr("sales", "1")])])
        with pytest.raises(EntryNotEditableError):
            repository.delete("je")
        assert len(repository.all()) == 1

    def test_entry_numbers_by_company(self):
        repository = InMemoryEntryRepository([
            draft("a", entry_number="JE-0001"),
            make_entry("b", JAN_10, [dr("cash", "1"), cr("sales", "1")], entry_number="JE-0005",
                       company_id="other"),
        ])
        assert repository.entry_numbers("acme") == ["JE-0001"]

    def test_commit_rejects_number_used_in_company(self):
        repository = InMemoryEntryRepository([draft("a", entry_number="JE-0001")])
        with pytest.raises(DuplicateEntryNumberError) as exc_info:
            repository.add(draft("b", entry_number="JE-0001"))
        assert exc_info.value.entry_number == "JE-0001"
        assert exc_info.value.company_id == "acme"
        assert [le.entry.id for le in repository.all()] == ["a"]

    def test_commit_rejects_number_repeated_within_changes(self):
        repository = InMemoryEntryRepository()
        with pytest.raises(DuplicateEntryNumberError):
            repository.commit([
                (draft("a", entry_number="JE-0007"), None),
                (draft("b", entry_number="JE-0007"), None),
            ])
        assert repository.all() == []

    def test_same_number_allowed_in_other_company(self):
        repository = InMemoryEntryRepository([draft("a", entry_number="JE-0001")])
        repository.add(make_entry(
            "b", JAN_10, [dr("cash", "1"), cr("sales", "1")], status=EntryStatus.DRAFT,
            entry_number="JE-0001", company_id="other",
        ))
        assert len(repository.all()) == 2

    def test_company_lock_is_shared(self):
        repository = InMemoryEntryRepository()
        assert repository.lock_for_company("acme") is repository.lock_for_company("acme")
        assert repository.lock_for_company("acme") is not repository.lock_for_company("other")


class TestRepositoryWorkflow:
    def test_submit_allocates_next_number(self):
        repository = InMemoryEntryRepository([
            make_entry("old", JAN_10, [dr("cash", "1"), cr("sales", "1")], entry_number="JE-0041"),
            draft("new"),
        ])
        updated = submit_entry(repository, "new")
        assert updated.entry_number == "JE-0042"
        assert repository.get("new").entry.status is EntryStatus.PENDING_APPROVAL

    def test_submit_reject_resubmit(self):
        repository = InMemoryEntryRepository([draft()])
        submit_entry(repository, "je-1")
        reject_entry(repository, "je-1")
        assert repository.get("je-1").entry.status is EntryStatus.DRAFT
        assert submit_entry(repository, "je-1").entry_number == "JE-0001"

    def test_post_and_reverse(self):
        repository = InMemoryEntryRepository([draft()])
        submit_entry(repository, "je-1")
        approve_entry(repository, "je-1")
        post_entry(repository, "je-1", "alice", posting_date=JAN_10)
        original, reversal = reverse_entry(repository, "je-1", "je-1-rev", "bob", reversal_date=JAN_20)

        assert repository.get("je-1").entry.status is EntryStatus.REVERSED
        assert repository.get("je-1-rev").entry.status is EntryStatus.POSTED
        assert reversal.entry.entry_number == "JE-0002"
        assert original.reversing_entry_id == "je-1-rev"

    def test_concurrent_posts_post_once(self):
        le = make_entry("je", JAN_10, [dr("cash", "1"), cr("sales", "1")], status=EntryStatus.APPROVED)
        repository = InMemoryEntryRepository([le])
        outcomes = []

        def worker(user):
            try:
                post_entry(repository, "je", user, posting_date=JAN_10)
                outcomes.append("posted")
            except InvalidStatusTransitionError:
                outcomes.append("rejected")

        threads = [threading.Thread(target=worker, args=(f"user-{i}",)) for i in range(5)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        assert outcomes.count("posted") == 1
        assert outcomes.count("rejected") == 4

    def test_concurrent_submits_get_distinct_numbers(self):
        repository = InterleavingRepository([draft("a"), draft("b")])
        failures = []

        def worker(entry_id):
            try:
                submit_entry(repository, entry_id)
            except Exception as e:
                failures.append(e)

        threads = [threading.Thread(target=worker, args=(entry_id,)) for entry_id in ("a", "b")]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        assert failures == []
        numbers = sorted(repository.get(entry_id).entry.entry_number for entry_id in ("a", "b"))
        assert numbers == ["JE-0001", "JE-0002"]

    def test_concurrent_reversals_get_distinct_numbers(self):
        repository = InterleavingRepository([
            make_entry("a", JAN_10, [dr("cash", "1"), cr("sales", "1")], entry_number="JE-0001"),
            make_entry("b", JAN_10, [dr("cash", "2"), cr("sales", "2")], entry_number="JE-0002"),
        ])
        failures = []

        def worker(entry_id):
            try:
                reverse_entry(repository, entry_id, f"{entry_id}-rev", "bob", reversal_date=JAN_20)
            except Exception as e:
                failures.append(e)

        threads = [threading.Thread(target=worker, args=(entry_id,)) for entry_id in ("a", "b")]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        assert failures == []
        numbers = sorted(repository.get(f"{e}-rev").entry.entry_number for e in ("a", "b"))
        assert numbers == ["JE-0003", "JE-0004"]
