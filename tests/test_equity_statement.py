"""Tests for glgaap.reports.equity_statement."""

import json
from datetime import date
from decimal import Decimal

import pytest

from glgaap.config import GLGAAPConfig
from glgaap.errors import InvalidPeriodError
from glgaap.models import AccountCategory, AccountRole, EntryType
from glgaap.reports.equity_statement import (
    EquityComponent,
    EquityComponentColumn,
    EquityMovement,
    classify_equity_component,
    format_as_json,
    format_as_text,
    generate_equity_statement,
)
from tests.conftest import DEC_15, JAN_1, JAN_15, JAN_31
from tests.helpers import COMPANY, USD, cr, dr, make_account, make_entry


@pytest.fixture
def equity_accounts():
    return [
        make_account("cash", "1000", "Cash", AccountCategory.CURRENT_ASSET),
        make_account("securities", "1600", "Available-for-sale Securities", AccountCategory.NON_CURRENT_ASSET),
        make_account("common", "3000", "Common Stock", AccountCategory.CONTRIBUTED_CAPITAL),
        make_account("apic", "3010", "Additional Paid-In Capital", AccountCategory.CONTRIBUTED_CAPITAL),
        make_account(
            "retained", "3100", "Retained Earnings", AccountCategory.RETAINED_EARNINGS,
            is_retained_earnings=True,
        ),
        make_account("dividends", "3200", "Dividends", AccountCategory.RETAINED_EARNINGS),
        make_account("treasury", "3300", "Treasury Stock", AccountCategory.TREASURY_STOCK),
        make_account("aoci", "3400", "Unrealized Gains", AccountCategory.OTHER_COMPREHENSIVE_INCOME),
        make_account("revenue", "4000", "Revenue", AccountCategory.OPERATING_REVENUE),
        make_account("expense", "5000", "Expenses", AccountCategory.OPERATING_EXPENSE),
    ]


@pytest.fixture
def opening_entry():
    """Opening equity of 500000: common 100000, APIC 150000, retained 250000."""
    return make_entry("opening", DEC_15, [
        dr("cash", "500000"),
        cr("common", "100000"),
        cr("apic", "150000"),
        cr("retained", "250000"),
    ])


@pytest.fixture
def combined_entries(opening_entry):
    """
    January 2025:
        revenue 100000, expenses 20000       -> net income 80000
        dividends declared 20000
        stock issued: 5000 par + 20000 APIC
        unrealized gain 5000 through OCI
        treasury stock bought back 15000
    """
    return [
        opening_entry,
        make_entry("sales", JAN_15, [dr("cash", "100000"), cr("revenue", "100000")]),
        make_entry("costs", JAN_15, [dr("expense", "20000"), cr("cash", "20000")]),
        make_entry("div", JAN_15, [dr("dividends", "20000"), cr("cash", "20000")]),
        make_entry("issue", JAN_15, [dr("cash", "25000"), cr("common", "5000"), cr("apic", "20000")]),
        make_entry("oci", JAN_15, [dr("securities", "5000"), cr("aoci", "5000")]),
        make_entry("buyback", JAN_15, [dr("treasury", "15000"), cr("cash", "15000")]),
    ]


def build(accounts, entries, start=JAN_1, end=JAN_31, **kwargs):
    return generate_equity_statement(COMPANY, accounts, entries, start, end, USD, **kwargs)


# ---------------------------------------------------------------------------
# Classification
# ---------------------------------------------------------------------------


class TestClassifyEquityComponent:
    @pytest.mark.parametrize("account,expected", [
        (make_account("c", "3000", "Common Stock", AccountCategory.CONTRIBUTED_CAPITAL),
         EquityComponent.COMMON_STOCK),
        (make_account("a", "3010", "Additional Paid-In Capital", AccountCategory.CONTRIBUTED_CAPITAL),
         EquityComponent.APIC),
        (make_account("a", "3011", "Share Premium", AccountCategory.CONTRIBUTED_CAPITAL,
                      role=AccountRole.ADDITIONAL_PAID_IN_CAPITAL),
         EquityComponent.APIC),
        (make_account("n", "3020", "Non-Controlling Interest", AccountCategory.CONTRIBUTED_CAPITAL),
         EquityComponent.NCI),
        (make_account("n", "3021", "Minority Holders", AccountCategory.CONTRIBUTED_CAPITAL,
                      role=AccountRole.NON_CONTROLLING_INTEREST),
         EquityComponent.NCI),
        (make_account("r", "3100", "Retained Earnings", AccountCategory.RETAINED_EARNINGS),
         EquityComponent.RETAINED_EARNINGS),
        (make_account("t", "3300", "Treasury Stock", AccountCategory.TREASURY_STOCK),
         EquityComponent.TREASURY_STOCK),
        (make_account("o", "3400", "AOCI", AccountCategory.OTHER_COMPREHENSIVE_INCOME),
         EquityComponent.AOCI),
        (make_account("x", "1000", "Cash", AccountCategory.CURRENT_ASSET), None),
    ])
    def test_components(self, account, expected):
        assert classify_equity_component(account) is expected

    def test_role_overrides_name(self):
        account = make_account(
            "c", "3000", "Additional Paid-In Capital", AccountCategory.CONTRIBUTED_CAPITAL,
            role=AccountRole.COMMON_STOCK,
        )
        assert classify_equity_component(account) is EquityComponent.COMMON_STOCK


# ---------------------------------------------------------------------------
# Generation
# ---------------------------------------------------------------------------


class TestGenerateEquityStatement:
    def test_combined_movements(self, equity_accounts, combined_entries):
        statement = build(equity_accounts, combined_entries)
        columns = statement.columns

        assert columns[EquityComponent.COMMON_STOCK].opening_balance == Decimal("100000")
        assert columns[EquityComponent.APIC].opening_balance == Decimal("150000")
        assert columns[EquityComponent.RETAINED_EARNINGS].opening_balance == Decimal("250000")
        assert statement.total_opening_equity == Decimal("500000")

        assert statement.net_income == Decimal("80000")
        assert statement.dividends == Decimal("-20000")
        assert columns[EquityComponent.COMMON_STOCK].stock_issuance == Decimal("5000")
        assert columns[EquityComponent.APIC].stock_issuance == Decimal("20000")
        assert columns[EquityComponent.AOCI].oci == Decimal("5000")
        assert columns[EquityComponent.TREASURY_STOCK].stock_repurchase == Decimal("-15000")

        assert statement.total_change_in_equity == Decimal("75000")
        assert statement.total_closing_equity == Decimal("575000")
        assert statement.equity_increased

    def test_same_snapshot_same_report(self, equity_accounts, combined_entries):
        first = build(equity_accounts, combined_entries)
        second = build(equity_accounts, combined_entries)
        assert first == second
        assert format_as_json(first) == format_as_json(second)

    def test_rows_and_columns_shape(self, equity_accounts, combined_entries):
        statement = build(equity_accounts, combined_entries)
        assert len(statement.all_columns) == 6
        assert len(statement.rows) == 8
        assert len(statement.movement_rows) == 6
        assert statement.rows[0].movement is EquityMovement.OPENING_BALANCE
        assert statement.rows[-1].movement is EquityMovement.CLOSING_BALANCE

    def test_row_totals(self, equity_accounts, combined_entries):
        statement = build(equity_accounts, combined_entries)
        assert statement.get_row(EquityMovement.OPENING_BALANCE).row_total == Decimal("500000")
        assert statement.get_row(EquityMovement.STOCK_ISSUANCE).row_total == Decimal("25000")
        assert statement.get_row(EquityMovement.CLOSING_BALANCE).row_total == Decimal("575000")
        assert not statement.get_row(EquityMovement.OTHER_ADJUSTMENTS).has_amounts

    def test_closing_balance_matches_ledger(self, equity_accounts, combined_entries):
        statement = build(equity_accounts, combined_entries)
        # Retained column: 250000 + 80000 - 20000
        assert statement.columns[EquityComponent.RETAINED_EARNINGS].closing_balance == Decimal("310000")
        assert statement.columns[EquityComponent.COMMON_STOCK].closing_balance == Decimal("105000")

    def test_closing_entry_not_double_counted(self, equity_accounts, combined_entries):
        combined_entries.append(make_entry("close", JAN_31, [
            dr("revenue", "100000"),
            cr("expense", "20000"),
            cr("retained", "80000"),
        ], entry_type=EntryType.CLOSING))
        statement = build(equity_accounts, combined_entries)
        retained = statement.columns[EquityComponent.RETAINED_EARNINGS]
        assert retained.net_income == Decimal("80000")
        assert retained.other_adjustments == Decimal("0")
        assert statement.total_closing_equity == Decimal("575000")

    def test_treasury_only(self, equity_accounts):
        entries = [
            make_entry("first", DEC_15, [dr("treasury", "10000"), cr("cash", "10000")]),
            make_entry("second", JAN_15, [dr("treasury", "15000"), cr("cash", "15000")]),
        ]
        statement = build(equity_accounts, entries)
        treasury = statement.columns[EquityComponent.TREASURY_STOCK]
        assert treasury.opening_balance == Decimal("-10000")
        assert treasury.stock_repurchase == Decimal("-15000")
        assert treasury.closing_balance == Decimal("-25000")
        assert statement.total_closing_equity == Decimal("-25000")

    def test_net_loss(self, equity_accounts, opening_entry):
        entries = [
            opening_entry,
            make_entry("sales", JAN_15, [dr("cash", "10000"), cr("revenue", "10000")]),
            make_entry("costs", JAN_15, [dr("expense", "40000"), cr("cash", "40000")]),
        ]
        statement = build(equity_accounts, entries)
        assert statement.net_income == Decimal("-30000")
        assert statement.equity_decreased

    def test_direct_retained_earnings_adjustment(self, equity_accounts, opening_entry):
        entries = [
            opening_entry,
            make_entry("restate", JAN_15, [dr("retained", "4000"), cr("cash", "4000")]),
        ]
        retained = build(equity_accounts, entries).columns[EquityComponent.RETAINED_EARNINGS]
        assert retained.other_adjustments == Decimal("-4000")
        assert retained.dividends == Decimal("0")

    def test_prior_unclosed_earnings_in_opening(self, equity_accounts, opening_entry):
        entries = [
            opening_entry,
            make_entry("december-sales", date(2024, 12, 20), [dr("cash", "7000"), cr("revenue", "7000")]),
        ]
        statement = build(equity_accounts, entries)
        assert statement.columns[EquityComponent.RETAINED_EARNINGS].opening_balance == Decimal("257000")

    def test_prior_unclosed_earnings_disabled(self, equity_accounts, opening_entry):
        entries = [
            opening_entry,
            make_entry("december-sales", date(2024, 12, 20), [dr("cash", "7000"), cr("revenue", "7000")]),
        ]
        config = GLGAAPConfig(include_unclosed_earnings=False)
        statement = build(equity_accounts, entries, config=config)
        assert statement.columns[EquityComponent.RETAINED_EARNINGS].opening_balance == Decimal("250000")

    def test_consolidated_flag(self, equity_accounts, combined_entries):
        assert build(equity_accounts, combined_entries, is_consolidated=True).is_consolidated

    def test_invalid_period(self, equity_accounts, combined_entries):
        with pytest.raises(InvalidPeriodError):
            build(equity_accounts, combined_entries, start=JAN_31, end=JAN_1)


class TestEquityComponentColumn:
    def test_closing_is_opening_plus_movements(self):
        column = EquityComponentColumn(
            EquityComponent.RETAINED_EARNINGS,
            opening_balance=Decimal("100"),
            net_income=Decimal("50"),
            dividends=Decimal("-20"),
        )
        assert column.closing_balance == Decimal("130")
        assert column.total_change == Decimal("30")
        assert column.has_movement
        assert column.amount_for(EquityMovement.DIVIDENDS) == Decimal("-20")


# ---------------------------------------------------------------------------
# Formatters
# ---------------------------------------------------------------------------


class TestFormatters:
    def test_text(self, equity_accounts, combined_entries):
        text = format_as_text(build(equity_accounts, combined_entries, is_consolidated=True))
        assert "STATEMENT OF CHANGES IN EQUITY" in text
        assert "Consolidated" in text
        assert "Opening Balance" in text
        assert "Dividends Declared" in text
        assert "575,000.00" in text

    def test_json(self, equity_accounts, combined_entries):
        data = json.loads(format_as_json(build(equity_accounts, combined_entries)))["equity_statement"]
        assert len(data["columns"]) == 6
        assert len(data["rows"]) == 8
        assert data["totals"]["total_closing_equity"] == "575000.00"
        closing = data["rows"][-1]
        assert closing["movement"] == "ClosingBalance"
        assert closing["amounts"]["TreasuryStock"] == "-15000.00"
