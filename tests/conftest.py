"""
Shared pytest fixtures for GLGAAP tests.
"""

from datetime import date

import pytest

from glgaap.config import GLGAAPConfig
from glgaap.ledger_source import Company, InMemoryLedgerSource
from tests.helpers import COMPANY, USD, cr, dr, make_entry, standard_accounts

DEC_15 = date(2024, 12, 15)
JAN_1 = date(2025, 1, 1)
JAN_15 = date(2025, 1, 15)
JAN_31 = date(2025, 1, 31)


@pytest.fixture
def sample_config() -> GLGAAPConfig:
    """Default GLGAAP configuration (exact identities)."""
    return GLGAAPConfig()


@pytest.fixture
def accounts() -> list:
    return standard_accounts()


@pytest.fixture
def january_entries() -> list:
    """
    Opening balances on 2024-12-15 followed by January 2025 activity.

        Opening : cash 100000, AR 25000, inventory 30000, equipment 50000
                  / AP 20000, notes 35000, common stock 150000
        Jan 15  : sales on account 80000
                  collections 60000
                  salaries 25000, interest 2000, tax 10000 paid in cash
                  equipment purchase 15000
                  borrowing 20000

        Net income = 80000 - 25000 - 2000 - 10000 = 43000
        Ending cash = 100000 + 60000 - 25000 - 2000 - 10000 - 15000 + 20000 = 128000
    """
    return [
        make_entry("opening", DEC_15, [
            dr("cash", "100000"),
            dr("ar", "25000"),
            dr("inventory", "30000"),
            dr("equipment", "50000"),
            cr("ap", "20000"),
            cr("notes", "35000"),
            cr("common", "150000"),
        ]),
        make_entry("je-1", JAN_15, [dr("ar", "80000"), cr("sales", "80000")]),
        make_entry("je-2", JAN_15, [dr("cash", "60000"), cr("ar", "60000")]),
        make_entry("je-3", JAN_15, [dr("salaries", "25000"), cr("cash", "25000")]),
        make_entry("je-4", JAN_15, [dr("interest", "2000"), cr("cash", "2000")]),
        make_entry("je-5", JAN_15, [dr("tax", "10000"), cr("cash", "10000")]),
        make_entry("je-6", JAN_15, [dr("equipment", "15000"), cr("cash", "15000")]),
        make_entry("je-7", JAN_15, [dr("cash", "20000"), cr("notes", "20000")]),
    ]


@pytest.fixture
def ledger_source(accounts, january_entries) -> InMemoryLedgerSource:
    return InMemoryLedgerSource(
        companies=[Company(id=COMPANY, name="Acme Trading", functional_currency=USD)],
        accounts=accounts,
        entries=january_entries,
    )
