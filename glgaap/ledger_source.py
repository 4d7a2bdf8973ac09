"""
Ledger data access layer.

Provides the read-only boundary the reporting engine consumes per company:

- get_accounts_for_company(company_id) -> list[Account]
- get_company_functional_currency(company_id) -> Optional[str]
  (None means the company does not exist)
- get_posted_journal_entries_with_lines(company_id) -> list[LedgerEntry]

Three sources implement it: an in-memory source for callers that already
hold the data, a JSON ledger snapshot file, and a read-only GnuCash book
opened through piecash.
"""

import json
import logging
from dataclasses import dataclass
from datetime import date, datetime
from decimal import Decimal
from pathlib import Path
from typing import Iterable, Optional, Protocol

from .balances import LEDGER_EFFECTIVE_STATUSES
from .models import (
    Account,
    AccountCategory,
    AccountId,
    AccountRole,
    AccountType,
    CashFlowCategory,
    CompanyId,
    EntryStatus,
    EntryType,
    FiscalPeriodRef,
    JournalEntry,
    JournalEntryId,
    JournalEntryLine,
    JournalEntryLineId,
    LedgerEntry,
    MonetaryAmount,
    NormalBalance,
    canonical_normal_balance,
    parse_date,
)

logger = logging.getLogger(__name__)


class LedgerSource(Protocol):
    """Per-company read access to accounts and posted journal entries."""
    
    def get_accounts_for_company(self, company_id: CompanyId) -> list[Account]: ...
    
    def get_company_functional_currency(self, company_id: CompanyId) -> Optional[str]: ...
    
    def get_posted_journal_entries_with_lines(self, company_id: CompanyId) -> list[LedgerEntry]: ...


@dataclass
class Company:
    """
    A company whose books are kept in one functional currency.
    
    Attributes:
        id: Company identifier.
        name: Display name.
        functional_currency: Currency the books are kept in.
    """
    
    id: CompanyId
    name: str
    functional_currency: str


# ---------------------------------------------------------------------------
# In-memory source
# ---------------------------------------------------------------------------


class InMemoryLedgerSource:
    """
    Ledger source over companies, accounts and entries held in memory.
    """
    
    def __init__(
        self,
        companies: Iterable[Company] = (),
        accounts: Iterable[Account] = (),
        entries: Iterable[LedgerEntry] = (),
    ):
        self.companies: dict[CompanyId, Company] = {c.id: c for c in companies}
        self.accounts: list[Account] = list(accounts)
        self.entries: list[LedgerEntry] = list(entries)
    
    def get_company(self, company_id: CompanyId) -> Optional[Company]:
        return self.companies.get(company_id)
    
    def get_accounts_for_company(self, company_id: CompanyId) -> list[Account]:
        return [a for a in self.accounts if a.company_id == company_id]
    
    def get_company_functional_currency(self, company_id: CompanyId) -> Optional[str]:
        company = self.companies.get(company_id)
        return company.functional_currency if company else None
    
    def get_journal_entries_with_lines(self, company_id: CompanyId) -> list[LedgerEntry]:
        """All entries of a company, whatever their status."""
        return [le for le in self.entries if le.entry.company_id == company_id]
    
    def get_posted_journal_entries_with_lines(self, company_id: CompanyId) -> list[LedgerEntry]:
        return [
            le for le in self.get_journal_entries_with_lines(company_id)
            if le.entry.status in LEDGER_EFFECTIVE_STATUSES
        ]


# ---------------------------------------------------------------------------
# JSON ledger snapshot
# ---------------------------------------------------------------------------


def _opt_date(value: Optional[str]) -> Optional[date]:
    return parse_date(value) if value else None


def _opt_datetime(value: Optional[str]) -> Optional[datetime]:
    return datetime.fromisoformat(value) if value else None


def _opt_amount(value: Optional[str], currency: str) -> Optional[MonetaryAmount]:
    return MonetaryAmount.from_string(str(value), currency) if value is not None else None


def account_from_dict(data: dict) -> Account:
    """
    Build an Account from its snapshot dictionary.
    
    "normal_balance" may be omitted, in which case the canonical side for
    the account type is used.
    """
    account_type = AccountType(data["account_type"])
    normal_balance = data.get("normal_balance")
    return Account(
        id=AccountId(data["id"]),
        company_id=CompanyId(data["company_id"]),
        account_number=str(data["account_number"]),
        name=data["name"],
        account_type=account_type,
        account_category=AccountCategory(data["account_category"]),
        normal_balance=(
            NormalBalance(normal_balance) if normal_balance
            else canonical_normal_balance(account_type)
        ),
        parent_account_id=data.get("parent_account_id"),
        hierarchy_level=data.get("hierarchy_level", 1),
        is_postable=data.get("is_postable", True),
        is_cash_flow_relevant=data.get("is_cash_flow_relevant", False),
        cash_flow_category=(
            CashFlowCategory(data["cash_flow_category"]) if data.get("cash_flow_category") else None
        ),
        is_intercompany=data.get("is_intercompany", False),
        intercompany_partner_id=data.get("intercompany_partner_id"),
        currency_restriction=data.get("currency_restriction"),
        is_active=data.get("is_active", True),
        is_retained_earnings=data.get("is_retained_earnings", False),
        role=AccountRole(data["role"]) if data.get("role") else None,
        description=data.get("description"),
    )


def account_to_dict(account: Account) -> dict:
    return {
        "id": account.id,
        "company_id": account.company_id,
        "account_number": account.account_number,
        "name": account.name,
        "account_type": account.account_type.value,
        "account_category": account.account_category.value,
        "normal_balance": account.normal_balance.value,
        "parent_account_id": account.parent_account_id,
        "hierarchy_level": account.hierarchy_level,
        "is_postable": account.is_postable,
        "is_cash_flow_relevant": account.is_cash_flow_relevant,
        "cash_flow_category": account.cash_flow_category.value if account.cash_flow_category else None,
        "is_intercompany": account.is_intercompany,
        "intercompany_partner_id": account.intercompany_partner_id,
        "currency_restriction": account.currency_restriction,
        "is_active": account.is_active,
        "is_retained_earnings": account.is_retained_earnings,
        "role": account.role.value if account.role else None,
        "description": account.description,
    }


def line_from_dict(data: dict, entry_id: JournalEntryId, default_currency: str) -> JournalEntryLine:
    currency = data.get("currency", default_currency)
    functional_currency = data.get("functional_currency", currency)
    return JournalEntryLine(
        id=JournalEntryLineId(data["id"]),
        journal_entry_id=entry_id,
        line_number=int(data["line_number"]),
        account_id=AccountId(data["account_id"]),
        debit_amount=_opt_amount(data.get("debit"), currency),
        credit_amount=_opt_amount(data.get("credit"), currency),
        functional_debit_amount=_opt_amount(data.get("functional_debit"), functional_currency),
        functional_credit_amount=_opt_amount(data.get("functional_credit"), functional_currency),
        exchange_rate=Decimal(str(data.get("exchange_rate", "1"))),
        memo=data.get("memo"),
    )


def line_to_dict(line: JournalEntryLine) -> dict:
    amount = line.debit_amount or line.credit_amount
    functional = line.functional_debit_amount or line.functional_credit_amount
    return {
        "id": line.id,
        "line_number": line.line_number,
        "account_id": line.account_id,
        "debit": str(line.debit_amount.amount) if line.debit_amount else None,
        "credit": str(line.credit_amount.amount) if line.credit_amount else None,
        "currency": amount.currency,
        "functional_debit": (
            str(line.functional_debit_amount.amount) if line.functional_debit_amount else None
        ),
        "functional_credit": (
            str(line.functional_credit_amount.amount) if line.functional_credit_amount else None
        ),
        "functional_currency": functional.currency,
        "exchange_rate": str(line.exchange_rate),
        "memo": line.memo,
    }


def entry_from_dict(data: dict, default_currency: str) -> LedgerEntry:
    """Build a LedgerEntry from {"entry": {...}, "lines": [...]}."""
    header = data["entry"]
    entry_id = JournalEntryId(header["id"])
    transaction_date = parse_date(header["transaction_date"])
    fiscal_period = header.get("fiscal_period") or {
        "year": transaction_date.year,
        "period": transaction_date.month,
    }
    entry = JournalEntry(
        id=entry_id,
        company_id=CompanyId(header["company_id"]),
        transaction_date=transaction_date,
        fiscal_period=FiscalPeriodRef(fiscal_period["year"], fiscal_period["period"]),
        description=header.get("description", ""),
        entry_number=header.get("entry_number"),
        reference_number=header.get("reference_number"),
        posting_date=_opt_date(header.get("posting_date")),
        document_date=_opt_date(header.get("document_date")),
        entry_type=EntryType(header.get("entry_type", EntryType.STANDARD.value)),
        source_module=header.get("source_module", "GeneralLedger"),
        status=EntryStatus(header.get("status", EntryStatus.DRAFT.value)),
        is_reversing=header.get("is_reversing", False),
        reversed_entry_id=header.get("reversed_entry_id"),
        reversing_entry_id=header.get("reversing_entry_id"),
        created_by=header.get("created_by"),
        created_at=_opt_datetime(header.get("created_at")),
        posted_by=header.get("posted_by"),
        posted_at=_opt_datetime(header.get("posted_at")),
    )
    lines = [line_from_dict(line, entry_id, default_currency) for line in data.get("lines", [])]
    return LedgerEntry(entry, lines)


def entry_to_dict(ledger_entry: LedgerEntry) -> dict:
    entry = ledger_entry.entry
    return {
        "entry": {
            "id": entry.id,
            "company_id": entry.company_id,
            "transaction_date": entry.transaction_date.isoformat(),
            "fiscal_period": {"year": entry.fiscal_period.year, "period": entry.fiscal_period.period},
            "description": entry.description,
            "entry_number": entry.entry_number,
            "reference_number": entry.reference_number,
            "posting_date": entry.posting_date.isoformat() if entry.posting_date else None,
            "document_date": entry.document_date.isoformat() if entry.document_date else None,
            "entry_type": entry.entry_type.value,
            "source_module": entry.source_module,
            "status": entry.status.value,
            "is_reversing": entry.is_reversing,
            "reversed_entry_id": entry.reversed_entry_id,
            "reversing_entry_id": entry.reversing_entry_id,
            "created_by": entry.created_by,
            "created_at": entry.created_at.isoformat() if entry.created_at else None,
            "posted_by": entry.posted_by,
            "posted_at": entry.posted_at.isoformat() if entry.posted_at else None,
        },
        "lines": [line_to_dict(line) for line in ledger_entry.lines],
    }


class JsonLedgerSource(InMemoryLedgerSource):
    """
    Ledger source loaded from a JSON ledger snapshot file.
    
    File layout:
        {
          "companies": [{"id": ..., "name": ..., "functional_currency": ...}],
          "accounts": [{...}],
          "journal_entries": [{"entry": {...}, "lines": [{...}]}]
        }
    """
    
    def __init__(
        self,
        companies: Iterable[Company] = (),
        accounts: Iterable[Account] = (),
        entries: Iterable[LedgerEntry] = (),
        path: Optional[Path] = None,
    ):
        super().__init__(companies, accounts, entries)
        self.path = path
    
    @classmethod
    def load(cls, path: Path, default_currency: str = "USD") -> "JsonLedgerSource":
        """
        Load a ledger snapshot from disk.
        
        Args:
            path: Path to the JSON snapshot.
            default_currency: Currency for lines that do not name one.
            
        Returns:
            JsonLedgerSource instance.
            
        Raises:
            FileNotFoundError: If the file does not exist.
            ValueError: If the file is not valid JSON or has invalid records.
        """
        if not path.exists():
            raise FileNotFoundError(f"Ledger snapshot file not found: {path}")
        
        logger.info(f"Loading ledger snapshot from: {path}")
        try:
            with open(path, "r", encoding="utf-8") as f:
                data = json.load(f)
        except json.JSONDecodeError as e:
            raise ValueError(f"Invalid JSON in ledger snapshot {path}: {e}") from e
        
        try:
            companies = [
                Company(
                    id=CompanyId(c["id"]),
                    name=c.get("name", c["id"]),
                    functional_currency=c.get("functional_currency", default_currency),
                )
                for c in data.get("companies", [])
            ]
            accounts = [account_from_dict(a) for a in data.get("accounts", [])]
            entries = [entry_from_dict(e, default_currency) for e in data.get("journal_entries", [])]
        except KeyError as e:
            raise ValueError(f"Ledger snapshot {path} is missing required field {e}") from e
        
        logger.info(
            f"Loaded {len(companies)} companies, {len(accounts)} accounts, "
            f"{len(entries)} journal entries"
        )
        return cls(companies, accounts, entries, path=path)
    
    def to_dict(self) -> dict:
        return {
            "companies": [
                {"id": c.id, "name": c.name, "functional_currency": c.functional_currency}
                for c in self.companies.values()
            ],
            "accounts": [account_to_dict(a) for a in self.accounts],
            "journal_entries": [entry_to_dict(e) for e in self.entries],
        }
    
    def save(self, path: Path) -> None:
        """Write the snapshot to *path* as indented JSON."""
        with open(path, "w", encoding="utf-8") as f:
            json.dump(self.to_dict(), f, indent=2)
        logger.info(f"Saved ledger snapshot to: {path}")


# ---------------------------------------------------------------------------
# GnuCash book (piecash)
# ---------------------------------------------------------------------------


# GnuCash account type -> (type, category, role)
GNUCASH_TYPE_MAP = {
    "BANK": (AccountType.ASSET, AccountCategory.CURRENT_ASSET, AccountRole.CASH),
    "CASH": (AccountType.ASSET, AccountCategory.CURRENT_ASSET, AccountRole.CASH),
    "ASSET": (AccountType.ASSET, AccountCategory.CURRENT_ASSET, None),
    "RECEIVABLE": (AccountType.ASSET, AccountCategory.CURRENT_ASSET, None),
    "STOCK": (AccountType.ASSET, AccountCategory.NON_CURRENT_ASSET, None),
    "MUTUAL": (AccountType.ASSET, AccountCategory.NON_CURRENT_ASSET, None),
    "TRADING": (AccountType.ASSET, AccountCategory.CURRENT_ASSET, None),
    "LIABILITY": (AccountType.LIABILITY, AccountCategory.CURRENT_LIABILITY, None),
    "PAYABLE": (AccountType.LIABILITY, AccountCategory.CURRENT_LIABILITY, None),
    "CREDIT": (AccountType.LIABILITY, AccountCategory.CURRENT_LIABILITY, None),
    "EQUITY": (AccountType.EQUITY, AccountCategory.CONTRIBUTED_CAPITAL, None),
    "INCOME": (AccountType.REVENUE, AccountCategory.OPERATING_REVENUE, None),
    "EXPENSE": (AccountType.EXPENSE, AccountCategory.OPERATING_EXPENSE, None),
}

# First account number handed out per type when an account has no code
NUMBER_BASE = {
    AccountType.ASSET: 1000,
    AccountType.LIABILITY: 2000,
    AccountType.EQUITY: 3000,
    AccountType.REVENUE: 4000,
    AccountType.EXPENSE: 5000,
}

SKIPPED_GNUCASH_TYPES = {"ROOT", "TEMPLATE"}


class GnuCashLedgerSource:
    """
    Context-managed, read-only ledger source over a GnuCash book.
    
    A GnuCash book holds one company. Account codes are used as account
    numbers (accounts without a code get the next free number in their
    type's range), and every GnuCash transaction is treated as a posted
    journal entry whose splits become debit (positive value) or credit
    (negative value) lines.
    
    Usage:
        with GnuCashLedgerSource(path) as source:
            accounts = source.get_accounts_for_company(source.company_id)
    """
    
    def __init__(self, path: Path, company_id: str = "gnucash"):
        """
        Initialize the GnuCash book accessor.
        
        Args:
            path: Path to the GnuCash book file (.gnucash or .db).
            company_id: Company id to expose the book under.
        """
        self.path = path
        self.company_id = CompanyId(company_id)
        self._book = None
        self._accounts: Optional[list[Account]] = None
        
        logger.info(f"Initializing GnuCash book access for: {path}")
    
    def __enter__(self) -> "GnuCashLedgerSource":
        """
        Open the GnuCash book for reading.
        
        Raises:
            FileNotFoundError: If the book file does not exist.
            ImportError: If piecash is not installed.
        """
        if not self.path.exists():
            raise FileNotFoundError(f"GnuCash book file not found: {self.path}")
        
        try:
            import piecash
        except ImportError:
            logger.error("piecash library not available. Install with: pip install glgaap[gnucash]")
            raise
        
        logger.debug(f"Opening GnuCash book: {self.path}")
        self._book = piecash.open_book(str(self.path), readonly=True, do_backup=False)
        logger.info("GnuCash book opened successfully")
        return self
    
    def __exit__(self, exc_type, exc_val, exc_tb):
        if self._book is not None:
            try:
                self._book.close()
                logger.debug("GnuCash book closed")
            except Exception as e:
                logger.warning(f"Error closing GnuCash book: {e}")
            finally:
                self._book = None
                self._accounts = None
    
    def _require_open(self) -> None:
        if self._book is None:
            raise RuntimeError("Book not opened. Use within 'with' statement.")
    
    def _check_company(self, company_id: CompanyId) -> bool:
        return company_id == self.company_id
    
    def get_company_functional_currency(self, company_id: CompanyId) -> Optional[str]:
        self._require_open()
        if not self._check_company(company_id):
            return None
        return self._book.default_currency.mnemonic
    
    def get_accounts_for_company(self, company_id: CompanyId) -> list[Account]:
        """
        Convert the book's accounts into Accounts.
        
        Raises:
            RuntimeError: If called outside of context manager.
            ValueError: If an account has a GnuCash type with no mapping.
        """
        self._require_open()
        if not self._check_company(company_id):
            return []
        if self._accounts is None:
            self._accounts = self._convert_accounts()
        return list(self._accounts)
    
    def _convert_accounts(self) -> list[Account]:
        logger.debug("Converting GnuCash accounts")
        
        candidates = [a for a in self._book.accounts if a.type not in SKIPPED_GNUCASH_TYPES]
        used_numbers = {a.code for a in candidates if getattr(a, "code", None)}
        next_number = dict(NUMBER_BASE)
        
        accounts = []
        for pc_account in candidates:
            if pc_account.type not in GNUCASH_TYPE_MAP:
                raise ValueError(
                    f"Unsupported GnuCash account type '{pc_account.type}' "
                    f"for account: {pc_account.fullname}"
                )
            account_type, category, role = GNUCASH_TYPE_MAP[pc_account.type]
            if account_type is AccountType.EQUITY and "retained" in pc_account.fullname.lower():
                category = AccountCategory.RETAINED_EARNINGS
            
            number = getattr(pc_account, "code", None)
            if not number:
                while str(next_number[account_type]) in used_numbers:
                    next_number[account_type] += 1
                number = str(next_number[account_type])
                used_numbers.add(number)
            
            parent_id = None
            parent = pc_account.parent
            if parent is not None and parent.type not in SKIPPED_GNUCASH_TYPES:
                parent_id = AccountId(str(parent.guid))
            
            accounts.append(Account(
                id=AccountId(str(pc_account.guid)),
                company_id=self.company_id,
                account_number=str(number),
                name=pc_account.fullname,
                account_type=account_type,
                account_category=category,
                normal_balance=canonical_normal_balance(account_type),
                parent_account_id=parent_id,
                hierarchy_level=pc_account.fullname.count(":") + 1,
                is_postable=not pc_account.placeholder,
                is_retained_earnings=category is AccountCategory.RETAINED_EARNINGS,
                role=role,
                description=getattr(pc_account, "description", None) or None,
            ))
        
        logger.info(f"Converted {len(accounts)} GnuCash accounts")
        return accounts
    
    def get_posted_journal_entries_with_lines(self, company_id: CompanyId) -> list[LedgerEntry]:
        """
        Convert every GnuCash transaction into a posted LedgerEntry.
        
        Line amounts are the split values in the transaction currency. When
        that is not the book currency, the functional amounts come from the
        split quantities of accounts held in the book currency; other splits
        keep their transaction value and are logged as unconverted.
        
        Raises:
            RuntimeError: If called outside of context manager.
        """
        self._require_open()
        if not self._check_company(company_id):
            return []
        
        book_currency = self._book.default_currency.mnemonic
        entries = []
        for transaction in self._book.transactions:
            post_date = transaction.post_date
            if isinstance(post_date, datetime):
                post_date = post_date.date()
            entry_id = JournalEntryId(str(transaction.guid))
            currency = transaction.currency.mnemonic
            foreign = currency != book_currency
            if foreign:
                logger.warning(
                    f"Transaction {entry_id} is in {currency}, not the book currency "
                    f"{book_currency}; using split quantities as {book_currency} amounts"
                )
            
            lines = []
            for number, split in enumerate(transaction.splits, start=1):
                value = Decimal(split.value)
                if value == 0:
                    continue
                amount = MonetaryAmount(abs(value), currency)
                functional = amount
                if foreign:
                    functional = MonetaryAmount(
                        abs(self._book_currency_value(split, value, book_currency, entry_id)),
                        book_currency,
                    )
                lines.append(JournalEntryLine(
                    id=JournalEntryLineId(str(split.guid)),
                    journal_entry_id=entry_id,
                    line_number=number,
                    account_id=AccountId(str(split.account.guid)),
                    debit_amount=amount if value > 0 else None,
                    credit_amount=amount if value < 0 else None,
                    functional_debit_amount=functional if value > 0 else None,
                    functional_credit_amount=functional if value < 0 else None,
                    exchange_rate=functional.amount / amount.amount,
                    memo=split.memo or None,
                ))
            
            entry = JournalEntry(
                id=entry_id,
                company_id=self.company_id,
                transaction_date=post_date,
                fiscal_period=FiscalPeriodRef(post_date.year, post_date.month),
                description=transaction.description or "",
                entry_number=transaction.num or None,
                posting_date=post_date,
                source_module="GnuCash",
                status=EntryStatus.POSTED,
            )
            entries.append(LedgerEntry(entry, lines))
        
        logger.debug(f"Converted {len(entries)} GnuCash transactions")
        return entries

    @staticmethod
    def _book_currency_value(split, value: Decimal, book_currency: str, entry_id: JournalEntryId) -> Decimal:
        commodity = split.account.commodity.mnemonic
        if commodity == book_currency:
            return Decimal(split.quantity)
        logger.warning(
            f"Split {split.guid} of transaction {entry_id} is held in {commodity}; "
            f"no {book_currency} amount available, keeping its transaction value"
        )
        return value
    
    def get_journal_entries_with_lines(self, company_id: CompanyId) -> list[LedgerEntry]:
        """GnuCash has no draft transactions, so this is every entry."""
        return self.get_posted_journal_entries_with_lines(company_id)
