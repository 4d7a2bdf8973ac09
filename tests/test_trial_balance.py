"""Tests for glgaap.reports.trial_balance."""

import csv
import json
import logging
from decimal import Decimal
from io import StringIO

from glgaap.models import AccountType
from glgaap.reports.trial_balance import (
    assign_debit_credit,
    format_as_csv,
    format_as_json,
    format_as_text,
    generate_trial_balance,
)
from tests.conftest import DEC_15, JAN_15, JAN_31
from tests.helpers import COMPANY, USD, cr, dr, make_entry


def build(accounts, entries, as_of=JAN_31, **kwargs):
    return generate_trial_balance(COMPANY, accounts, entries, as_of, USD, **kwargs)


def by_id(trial_balance):
    return {line.account_id: line for line in trial_balance.lines}


class TestAssignDebitCredit:
    def test_positive_goes_to_debit(self):
        assert assign_debit_credit(Decimal("10")) == (Decimal("10"), Decimal("0"))

    def test_negative_goes_to_credit(self):
        assert assign_debit_credit(Decimal("-10")) == (Decimal("0"), Decimal("10"))

    def test_zero(self):
        assert assign_debit_credit(Decimal("0")) == (Decimal("0"), Decimal("0"))


class TestGenerateTrialBalance:
    def test_balanced(self, accounts, january_entries):
        tb = build(accounts, january_entries)
        assert tb.total_debits == tb.total_credits
        assert tb.total_debits == Decimal("305000")
        assert tb.is_balanced()
        assert tb.imbalance() == Decimal("0")

    def test_columns(self, accounts, january_entries):
        lines = by_id(build(accounts, january_entries))
        assert lines["cash"].debit == Decimal("128000")
        assert lines["cash"].credit == Decimal("0")
        assert lines["sales"].credit == Decimal("80000")
        assert lines["sales"].account_type is AccountType.REVENUE
        assert lines["notes"].credit == Decimal("55000")

    def test_sorted_by_account_number(self, accounts, january_entries):
        tb = build(list(reversed(accounts)), january_entries)
        numbers = [line.account_number for line in tb.lines]
        assert numbers == sorted(numbers)

    def test_zero_balances(self, accounts, january_entries):
        assert "depreciation" not in by_id(build(accounts, january_entries))
        assert "depreciation" in by_id(build(accounts, january_entries, include_zero_balances=True))

    def test_as_of_date(self, accounts, january_entries):
        tb = build(accounts, january_entries, as_of=DEC_15)
        assert tb.total_debits == Decimal("205000")
        assert "sales" not in by_id(tb)

    def test_imbalance_logged_not_raised(self, accounts, january_entries, caplog):
        january_entries.append(make_entry("bad", JAN_15, [dr("cash", "50")]))
        with caplog.at_level(logging.WARNING, logger="glgaap.reports.trial_balance"):
            tb = build(accounts, january_entries)
        assert not tb.is_balanced()
        assert tb.imbalance() == Decimal("50")
        assert "imbalance" in caplog.text


class TestFormatters:
    def test_text(self, accounts, january_entries):
        text = format_as_text(build(accounts, january_entries))
        assert "TRIAL BALANCE" in text
        assert "1000 Cash" in text
        assert "305,000.00" in text
        assert "[OK] TRIAL BALANCE IS BALANCED" in text

    def test_csv(self, accounts, january_entries):
        rows = list(csv.reader(StringIO(format_as_csv(build(accounts, january_entries)))))
        assert ["1000", "Cash", "Asset", "0", "128000.00", ""] in rows
        assert rows[-1] == ["TOTALS", "", "", "", "305000.00", "305000.00"]

    def test_json(self, accounts, january_entries):
        data = json.loads(format_as_json(build(accounts, january_entries)))["trial_balance"]
        assert data["summary"]["is_balanced"] is True
        assert data["summary"]["total_credits"] == "305000.00"
        assert data["accounts"][0]["account_number"] == "1000"
