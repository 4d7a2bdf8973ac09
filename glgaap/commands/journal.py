"""
Journal command group for glgaap.

Commands: next-number, submit, approve, reject, post, reverse

The lifecycle commands operate on JSON ledger snapshots only; GnuCash books
are opened read-only.
"""

import logging
import sys
from datetime import date as date_class
from pathlib import Path

import click

from ..config import GLGAAPConfig
from ..ledger_source import JsonLedgerSource
from ..lifecycle import (
    InMemoryEntryRepository,
    approve_entry,
    next_entry_number,
    post_entry,
    reject_entry,
    reverse_entry,
    submit_entry,
)
from ..models import JournalEntryId, UserId, parse_date
from ._options import company_option, ledger_file_option, open_ledger_source, output_file_option

logger = logging.getLogger(__name__)


def _entry_option(func):
    return click.option(
        "--entry",
        "-e",
        "entry_id",
        type=str,
        required=True,
        help="Journal entry id.",
    )(func)


def _user_option(func):
    return click.option(
        "--user",
        "-u",
        "user_id",
        type=str,
        required=True,
        help="User performing the action.",
    )(func)


def _load_snapshot(ledger_file: Path) -> JsonLedgerSource:
    if ledger_file.suffix.lower() != ".json":
        raise ValueError(
            f"Journal lifecycle commands need a JSON ledger snapshot, got: {ledger_file}"
        )
    return JsonLedgerSource.load(ledger_file)


def _save_snapshot(source: JsonLedgerSource, repository: InMemoryEntryRepository, output_file: Path) -> None:
    updated = JsonLedgerSource(
        source.companies.values(),
        source.accounts,
        repository.all(),
    )
    updated.save(output_file)


def _run_transition(ledger_file: Path, output_file: Path, action: str, apply) -> None:
    """
    Load a snapshot, apply one lifecycle transition and save the result.

    Args:
        ledger_file: Snapshot to read.
        output_file: Snapshot to write.
        action: Verb used in messages ("post", "approve", ...).
        apply: Callable taking (source, repository) and returning the
               updated JournalEntry.
    """
    logger.info(f"=== GLGAAP Journal: {action} ===")

    try:
        source = _load_snapshot(ledger_file)
        repository = InMemoryEntryRepository(source.entries)
        updated = apply(source, repository)
        _save_snapshot(source, repository, output_file)

        click.echo(
            f"\n[OK] Journal entry {updated.entry_number or updated.id} is now {updated.status.value}"
        )
        click.echo(f"Saved to: {output_file}")
        sys.exit(0)

    except (ValueError, LookupError) as e:
        logger.error(f"Cannot {action} journal entry: {e}")
        click.echo(f"\n[ERROR] {e}")
        sys.exit(1)
    except RuntimeError as e:
        logger.error(f"Journal entry changed during {action}: {e}")
        click.echo(f"\n[ERROR] {e}")
        sys.exit(1)
    except Exception as e:
        logger.error(f"Error during {action}: {e}", exc_info=True)
        click.echo(f"\n[ERROR] {e}")
        sys.exit(1)


@click.group(name="journal")
def journal_group():
    """Journal entry numbering and lifecycle commands."""


@journal_group.command(name="next-number")
@ledger_file_option
@company_option
def next_number(ledger_file, company_id):
    """Show the next free journal entry number for a company."""
    try:
        with open_ledger_source(ledger_file, company_id) as source:
            entries = source.get_journal_entries_with_lines(company_id)

        numbers = [le.entry.entry_number for le in entries]
        click.echo(next_entry_number(numbers, GLGAAPConfig().entry_number_seed))
        sys.exit(0)

    except Exception as e:
        logger.error(f"Error allocating entry number: {e}", exc_info=True)
        click.echo(f"\n[ERROR] {e}")
        sys.exit(1)


@journal_group.command()
@ledger_file_option
@_entry_option
@output_file_option(required=True)
def submit(ledger_file, entry_id, output_file):
    """Submit a Draft entry for approval, assigning its entry number."""
    def apply(source, repository):
        accounts = {a.id: a for a in source.accounts}
        return submit_entry(repository, JournalEntryId(entry_id), accounts)

    _run_transition(ledger_file, output_file, "submit", apply)


@journal_group.command()
@ledger_file_option
@_entry_option
@output_file_option(required=True)
def approve(ledger_file, entry_id, output_file):
    """Approve an entry that is pending approval."""
    _run_transition(
        ledger_file, output_file, "approve",
        lambda source, repository: approve_entry(repository, JournalEntryId(entry_id)),
    )


@journal_group.command()
@ledger_file_option
@_entry_option
@output_file_option(required=True)
def reject(ledger_file, entry_id, output_file):
    """Send an entry that is pending approval back to Draft."""
    _run_transition(
        ledger_file, output_file, "reject",
        lambda source, repository: reject_entry(repository, JournalEntryId(entry_id)),
    )


@journal_group.command()
@ledger_file_option
@_entry_option
@_user_option
@click.option(
    "--date",
    "posting_date",
    type=str,
    default=None,
    help="Posting date (YYYY-MM-DD, default: today).",
)
@output_file_option(required=True)
def post(ledger_file, entry_id, user_id, posting_date, output_file):
    """
    Post an approved entry to the ledger.

    The entry must balance; an unbalanced entry is rejected and the
    snapshot is left unchanged.
    """
    def apply(source, repository):
        when = parse_date(posting_date) if posting_date else date_class.today()
        return post_entry(repository, JournalEntryId(entry_id), UserId(user_id), when)

    _run_transition(ledger_file, output_file, "post", apply)


@journal_group.command()
@ledger_file_option
@_entry_option
@_user_option
@click.option(
    "--reversal-id",
    type=str,
    default=None,
    help="Id for the reversal entry (default: <entry id>-REV).",
)
@click.option(
    "--date",
    "reversal_date",
    type=str,
    default=None,
    help="Reversal date (YYYY-MM-DD, default: today).",
)
@output_file_option(required=True)
def reverse(ledger_file, entry_id, user_id, reversal_id, reversal_date, output_file):
    """
    Reverse a posted entry.

    Creates a posted Reversing entry with every line's debit and credit
    swapped and marks the original as Reversed. An entry can be reversed
    only once.
    """
    def apply(source, repository):
        when = parse_date(reversal_date) if reversal_date else date_class.today()
        new_id = JournalEntryId(reversal_id or f"{entry_id}-REV")
        original, reversal = reverse_entry(
            repository, JournalEntryId(entry_id), new_id, UserId(user_id), reversal_date=when
        )
        click.echo(
            f"Created reversal entry {reversal.entry.entry_number or reversal.entry.id} "
            f"({len(reversal.lines)} line(s))"
        )
        return original

    _run_transition(ledger_file, output_file, "reverse", apply)
