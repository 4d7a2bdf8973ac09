"""
Reporting service.

Loads a company's chart of accounts, functional currency and posted journal
entries from a ledger source and hands them to the pure report generators.
"""

import logging
from dataclasses import dataclass
from datetime import date
from typing import Optional

from .config import GLGAAPConfig
from .errors import CompanyNotFoundError
from .ledger_source import LedgerSource
from .models import Account, CompanyId, LedgerEntry
from .reports import balance_sheet, cash_flow, equity_statement, income_statement, trial_balance
from .validate import ValidationResult, validate_company, validate_for_reporting

logger = logging.getLogger(__name__)


@dataclass
class CompanyLedger:
    """Everything the generators need for one company."""
    
    company_id: CompanyId
    currency: str
    accounts: list[Account]
    entries: list[LedgerEntry]


class ReportingService:
    """
    Caller-facing report operations over a ledger source.
    
    Args:
        source: Ledger source providing accounts, currency and posted entries.
        config: Optional configuration; uses default if not provided.
        strict: If True, run strict validation before every report and refuse
                to report on a company with validation errors (raises
                ValidationFailedError).
    """
    
    def __init__(
        self,
        source: LedgerSource,
        config: Optional[GLGAAPConfig] = None,
        strict: bool = False,
    ):
        if config is None:
            from .config import default_config
            config = default_config
        self.source = source
        self.config = config
        self.strict = strict
    
    def load_company(self, company_id: CompanyId) -> CompanyLedger:
        """
        Load a company's ledger.
        
        Raises:
            CompanyNotFoundError: If the source has no functional currency
                                  for the company.
        """
        currency = self.source.get_company_functional_currency(company_id)
        if currency is None:
            raise CompanyNotFoundError(company_id)
        
        accounts = self.source.get_accounts_for_company(company_id)
        entries = self.source.get_posted_journal_entries_with_lines(company_id)
        logger.debug(
            f"Loaded company {company_id}: {len(accounts)} accounts, "
            f"{len(entries)} posted entries ({currency})"
        )
        return CompanyLedger(company_id, currency, accounts, entries)
    
    def _load_for_report(self, company_id: CompanyId) -> CompanyLedger:
        ledger = self.load_company(company_id)
        if self.strict:
            validate_for_reporting(ledger.accounts, ledger.entries, self.config)
        return ledger
    
    def validate(self, company_id: CompanyId) -> ValidationResult:
        """Validate a company's chart of accounts and posted entries."""
        ledger = self.load_company(company_id)
        contra_ids = [a.id for a in ledger.accounts if a.is_contra]
        return validate_company(ledger.accounts, ledger.entries, self.config, contra_ids)
    
    def generate_balance_sheet(
        self,
        company_id: CompanyId,
        as_of_date: date,
        include_zero_balances: bool = False,
        comparative_date: Optional[date] = None,
    ) -> balance_sheet.BalanceSheet:
        ledger = self._load_for_report(company_id)
        return balance_sheet.generate_balance_sheet(
            company_id,
            ledger.accounts,
            ledger.entries,
            as_of_date,
            ledger.currency,
            include_zero_balances=include_zero_balances,
            comparative_date=comparative_date,
            config=self.config,
        )
    
    def generate_cash_flow_statement(
        self,
        company_id: CompanyId,
        period_start: date,
        period_end: date,
    ) -> cash_flow.CashFlowStatement:
        ledger = self._load_for_report(company_id)
        return cash_flow.generate_cash_flow_statement(
            company_id,
            ledger.accounts,
            ledger.entries,
            period_start,
            period_end,
            ledger.currency,
            config=self.config,
        )
    
    def generate_equity_statement(
        self,
        company_id: CompanyId,
        period_start: date,
        period_end: date,
        is_consolidated: bool = False,
    ) -> equity_statement.EquityStatement:
        ledger = self._load_for_report(company_id)
        return equity_statement.generate_equity_statement(
            company_id,
            ledger.accounts,
            ledger.entries,
            period_start,
            period_end,
            ledger.currency,
            is_consolidated=is_consolidated,
            config=self.config,
        )
    
    def generate_income_statement(
        self,
        company_id: CompanyId,
        period_start: date,
        period_end: date,
    ) -> income_statement.IncomeStatement:
        ledger = self._load_for_report(company_id)
        return income_statement.generate_income_statement(
            company_id,
            ledger.accounts,
            ledger.entries,
            period_start,
            period_end,
            ledger.currency,
            config=self.config,
        )
    
    def generate_trial_balance(
        self,
        company_id: CompanyId,
        as_of_date: date,
        include_zero_balances: bool = False,
    ) -> trial_balance.TrialBalance:
        ledger = self._load_for_report(company_id)
        return trial_balance.generate_trial_balance(
            company_id,
            ledger.accounts,
            ledger.entries,
            as_of_date,
            ledger.currency,
            include_zero_balances=include_zero_balances,
            config=self.config,
        )
