"""Tests for glgaap.ledger_source."""

import json
from dataclasses import replace
from datetime import date, datetime, timezone
from decimal import Decimal
from pathlib import Path
from unittest.mock import MagicMock, patch

import pytest

from glgaap.ledger_source import (
    Company,
    GnuCashLedgerSource,
    JsonLedgerSource,
    account_from_dict,
    entry_from_dict,
)
from glgaap.models import (
    AccountCategory,
    AccountRole,
    AccountType,
    EntryStatus,
    EntryType,
    LedgerEntry,
    MonetaryAmount,
    NormalBalance,
)
from tests.conftest import JAN_15
from tests.helpers import COMPANY, USD, cr, dr, make_entry


# ---------------------------------------------------------------------------
# In-memory source
# ---------------------------------------------------------------------------


class TestInMemoryLedgerSource:
    def test_functional_currency(self, ledger_source):
        assert ledger_source.get_company_functional_currency(COMPANY) == "USD"

    def test_unknown_company_has_no_currency(self, ledger_source):
        assert ledger_source.get_company_functional_currency("nobody") is None

    def test_accounts_filtered_by_company(self, ledger_source):
        assert len(ledger_source.get_accounts_for_company(COMPANY)) == 14
        assert ledger_source.get_accounts_for_company("nobody") == []

    def test_only_posted_entries_returned(self, ledger_source):
        ledger_source.entries.append(
            make_entry("draft", JAN_15, [dr("cash", "1"), cr("sales", "1")], status=EntryStatus.DRAFT)
        )
        ledger_source.entries.append(
            make_entry("reversed", JAN_15, [dr("cash", "1"), cr("sales", "1")], status=EntryStatus.REVERSED)
        )
        posted_ids = [le.entry.id for le in ledger_source.get_posted_journal_entries_with_lines(COMPANY)]
        assert "draft" not in posted_ids
        assert "reversed" in posted_ids
        assert len(ledger_source.get_journal_entries_with_lines(COMPANY)) == 10


# ---------------------------------------------------------------------------
# JSON snapshot
# ---------------------------------------------------------------------------


def write_snapshot(path: Path, data: dict) -> Path:
    path.write_text(json.dumps(data), encoding="utf-8")
    return path


SNAPSHOT = {
    "companies": [{"id": "acme", "name": "Acme Trading", "functional_currency": "USD"}],
    "accounts": [
        {
            "id": "cash", "company_id": "acme", "account_number": "1000", "name": "Cash",
            "account_type": "Asset", "account_category": "CurrentAsset",
        },
        {
            "id": "sales", "company_id": "acme", "account_number": 4000, "name": "Sales",
            "account_type": "Revenue", "account_category": "OperatingRevenue",
        },
    ],
    "journal_entries": [
        {
            "entry": {
                "id": "je-1", "company_id": "acme", "transaction_date": "2025-01-15",
                "posting_date": "2025-01-15", "status": "Posted", "entry_number": "JE-0001",
            },
            "lines": [
                {"id": "l1", "line_number": 1, "account_id": "cash", "debit": "250.00"},
                {"id": "l2", "line_number": 2, "account_id": "sales", "credit": "250.00"},
            ],
        }
    ],
}


class TestAccountFromDict:
    def test_defaults(self):
        account = account_from_dict(SNAPSHOT["accounts"][0])
        assert account.account_type is AccountType.ASSET
        assert account.normal_balance is NormalBalance.DEBIT
        assert account.is_postable is True
        assert account.role is None

    def test_numeric_account_number_becomes_string(self):
        assert account_from_dict(SNAPSHOT["accounts"][1]).account_number == "4000"

    def test_explicit_fields(self):
        account = account_from_dict({
            "id": "ad", "company_id": "acme", "account_number": "1510",
            "name": "Accumulated Depreciation", "account_type": "Asset",
            "account_category": "FixedAsset", "normal_balance": "Credit", "role": "Cash",
            "cash_flow_category": "Investing",
        })
        assert account.is_contra
        assert account.role is AccountRole.CASH
        assert account.cash_flow_category.value == "Investing"

    def test_illegal_category_rejected(self):
        with pytest.raises(ValueError):
            account_from_dict({
                "id": "x", "company_id": "acme", "account_number": "1000", "name": "X",
                "account_type": "Asset", "account_category": "OperatingRevenue",
            })


class TestEntryFromDict:
    def test_defaults(self):
        le = entry_from_dict(SNAPSHOT["journal_entries"][0], "USD")
        assert le.entry.status is EntryStatus.POSTED
        assert le.entry.entry_type is EntryType.STANDARD
        assert le.entry.fiscal_period.year == 2025
        assert le.entry.fiscal_period.period == 1
        assert le.lines[0].debit_amount == MonetaryAmount(Decimal("250.00"), "USD")
        assert le.lines[1].is_debit is False

    def test_status_defaults_to_draft(self):
        le = entry_from_dict({
            "entry": {"id": "d", "company_id": "acme", "transaction_date": "2025-01-15"},
            "lines": [],
        }, "USD")
        assert le.entry.status is EntryStatus.DRAFT
        assert le.entry.posting_date is None


class TestJsonLedgerSource:
    def test_load(self, tmp_path):
        source = JsonLedgerSource.load(write_snapshot(tmp_path / "ledger.json", SNAPSHOT))
        assert source.get_company("acme").name == "Acme Trading"
        assert len(source.get_accounts_for_company("acme")) == 2
        entries = source.get_posted_journal_entries_with_lines("acme")
        assert entries[0].entry.entry_number == "JE-0001"
        assert source.path == tmp_path / "ledger.json"

    def test_missing_file(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            JsonLedgerSource.load(tmp_path / "nope.json")

    def test_invalid_json(self, tmp_path):
        path = tmp_path / "broken.json"
        path.write_text("{not json", encoding="utf-8")
        with pytest.raises(ValueError, match="Invalid JSON"):
            JsonLedgerSource.load(path)

    def test_missing_required_field(self, tmp_path):
        data = {"accounts": [{"id": "cash"}]}
        with pytest.raises(ValueError, match="missing required field"):
            JsonLedgerSource.load(write_snapshot(tmp_path / "ledger.json", data))

    def test_save_and_reload(self, tmp_path, accounts, january_entries):
        original = JsonLedgerSource(
            [Company(COMPANY, "Acme Trading", USD)], accounts, january_entries
        )
        path = tmp_path / "saved.json"
        original.save(path)

        reloaded = JsonLedgerSource.load(path)
        assert reloaded.get_accounts_for_company(COMPANY) == accounts
        assert reloaded.entries == january_entries

    def test_save_keeps_lifecycle_fields(self, tmp_path):
        le = make_entry("rev", JAN_15, [dr("cash", "1"), cr("sales", "1")], entry_type=EntryType.REVERSING)
        posted_at = datetime(2025, 1, 15, 12, 0, tzinfo=timezone.utc)
        entry = replace(le.entry, posted_by="alice", posted_at=posted_at, reversed_entry_id="orig")
        le = LedgerEntry(entry, le.lines)

        path = tmp_path / "saved.json"
        JsonLedgerSource([Company(COMPANY, "Acme", USD)], [], [le]).save(path)
        entry = JsonLedgerSource.load(path).entries[0].entry
        assert entry.posted_by == "alice"
        assert entry.posted_at == posted_at
        assert entry.reversed_entry_id == "orig"
        assert entry.entry_type is EntryType.REVERSING


# ---------------------------------------------------------------------------
# GnuCash book
# ---------------------------------------------------------------------------


def gnucash_account(guid, fullname, type_, code="", parent=None, placeholder=False, commodity="USD"):
    account = MagicMock()
    account.guid = guid
    account.fullname = fullname
    account.type = type_
    account.code = code
    account.parent = parent
    account.placeholder = placeholder
    account.description = ""
    account.commodity.mnemonic = commodity
    return account


def gnucash_split(guid, account, value, memo="", quantity=None):
    split = MagicMock()
    split.guid = guid
    split.account = account
    split.value = Decimal(value)
    split.quantity = Decimal(quantity if quantity is not None else value)
    split.memo = memo
    return split


@pytest.fixture
def mock_book():
    root = gnucash_account("root", "Root Account", "ROOT")
    assets = gnucash_account("assets", "Assets", "ASSET", code="1000", parent=root, placeholder=True)
    checking = gnucash_account("checking", "Assets:Checking", "BANK", parent=assets)
    income = gnucash_account("income", "Income", "INCOME", parent=root)
    retained = gnucash_account("re", "Equity:Retained Earnings", "EQUITY", parent=root)

    transaction = MagicMock()
    transaction.guid = "tx-1"
    transaction.post_date = date(2025, 1, 15)
    transaction.currency.mnemonic = "USD"
    transaction.description = "Consulting"
    transaction.num = "101"
    transaction.splits = [
        gnucash_split("s1", checking, "300"),
        gnucash_split("s2", income, "-300"),
        gnucash_split("s3", income, "0"),
    ]

    book = MagicMock()
    book.accounts = [root, assets, checking, income, retained]
    book.transactions = [transaction]
    book.default_currency.mnemonic = "USD"
    return book


@pytest.fixture
def book_path(tmp_path):
    path = tmp_path / "books.gnucash"
    path.write_bytes(b"")
    return path


@pytest.fixture
def mock_piecash(mock_book):
    piecash = MagicMock()
    piecash.open_book.return_value = mock_book
    with patch.dict("sys.modules", {"piecash": piecash}):
        yield piecash


class TestGnuCashLedgerSource:
    def test_missing_file(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            with GnuCashLedgerSource(tmp_path / "missing.gnucash"):
                pass

    def test_requires_open_book(self, book_path):
        source = GnuCashLedgerSource(book_path)
        with pytest.raises(RuntimeError, match="Book not opened"):
            source.get_accounts_for_company("gnucash")

    def test_opens_read_only_and_closes(self, book_path, mock_piecash, mock_book):
        with GnuCashLedgerSource(book_path):
            pass
        mock_piecash.open_book.assert_called_once_with(str(book_path), readonly=True, do_backup=False)
        mock_book.close.assert_called_once()

    def test_accounts(self, book_path, mock_piecash):
        with GnuCashLedgerSource(book_path) as source:
            accounts = {a.id: a for a in source.get_accounts_for_company("gnucash")}

        assert "root" not in accounts
        assert accounts["assets"].account_number == "1000"
        assert accounts["assets"].is_postable is False
        assert accounts["assets"].parent_account_id is None

        checking = accounts["checking"]
        assert checking.account_number == "1001"
        assert checking.role is AccountRole.CASH
        assert checking.parent_account_id == "assets"
        assert checking.hierarchy_level == 2

        assert accounts["income"].account_number == "4000"
        assert accounts["re"].account_category is AccountCategory.RETAINED_EARNINGS
        assert accounts["re"].is_retained_earnings

    def test_other_company_sees_nothing(self, book_path, mock_piecash):
        with GnuCashLedgerSource(book_path) as source:
            assert source.get_accounts_for_company("acme") == []
            assert source.get_company_functional_currency("acme") is None
            assert source.get_company_functional_currency("gnucash") == "USD"

    def test_transactions_become_posted_entries(self, book_path, mock_piecash):
        with GnuCashLedgerSource(book_path) as source:
            entries = source.get_posted_journal_entries_with_lines("gnucash")

        assert len(entries) == 1
        entry, lines = entries[0].entry, entries[0].lines
        assert entry.status is EntryStatus.POSTED
        assert entry.posting_date == date(2025, 1, 15)
        assert entry.entry_number == "101"
        assert len(lines) == 2
        assert lines[0].debit_amount == MonetaryAmount(Decimal("300"), "USD")
        assert lines[1].credit_amount == MonetaryAmount(Decimal("300"), "USD")

    def test_foreign_transaction_uses_book_currency_quantities(self, book_path, mock_book, mock_piecash, caplog):
        transaction = mock_book.transactions[0]
        checking, income = transaction.splits[0].account, transaction.splits[1].account
        transaction.currency.mnemonic = "EUR"
        transaction.splits = [
            gnucash_split("s1", checking, "300", quantity="330"),
            gnucash_split("s2", income, "-300", quantity="-330"),
        ]
        with caplog.at_level("WARNING", logger="glgaap.ledger_source"):
            with GnuCashLedgerSource(book_path) as source:
                lines = source.get_posted_journal_entries_with_lines("gnucash")[0].lines

        assert lines[0].debit_amount == MonetaryAmount(Decimal("300"), "EUR")
        assert lines[0].functional_debit_amount == MonetaryAmount(Decimal("330"), "USD")
        assert lines[0].exchange_rate == Decimal("1.1")
        assert lines[1].functional_credit == Decimal("330")
        assert "is in EUR, not the book currency USD" in caplog.text

    def test_foreign_commodity_split_keeps_transaction_value(self, book_path, mock_book, mock_piecash, caplog):
        transaction = mock_book.transactions[0]
        income = transaction.splits[1].account
        euro_account = gnucash_account("eur-bank", "Assets:Euro Bank", "BANK", commodity="EUR")
        transaction.currency.mnemonic = "EUR"
        transaction.splits = [
            gnucash_split("s1", euro_account, "300"),
            gnucash_split("s2", income, "-300", quantity="-330"),
        ]
        with caplog.at_level("WARNING", logger="glgaap.ledger_source"):
            with GnuCashLedgerSource(book_path) as source:
                lines = source.get_posted_journal_entries_with_lines("gnucash")[0].lines

        assert lines[0].functional_debit == Decimal("300")
        assert lines[1].functional_credit == Decimal("330")
        assert "held in EUR" in caplog.text

    def test_unsupported_account_type(self, book_path, mock_book, mock_piecash):
        mock_book.accounts.append(gnucash_account("odd", "Odd", "CURRENCY"))
        with GnuCashLedgerSource(book_path) as source:
            with pytest.raises(ValueError, match="Unsupported GnuCash account type"):
                source.get_accounts_for_company("gnucash")
