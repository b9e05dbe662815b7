from dataclasses import replace
from decimal import Decimal

import pytest

from statement_ledger.api import (
    PARSER_VERSION,
    parse_statement,
    reapply_rules,
    record_category_override,
    snapshot_statement,
)
from statement_ledger.models import CanonicalTransaction, CategoryRule, RuleSnapshot

from tests.helpers.statements import JUNE_2025, JUNE_2025_BAD_RUNNING, JUNE_2025_BAD_TABLE, NORFOLK


def test_parse_june_statement_end_to_end():
    result = parse_statement(JUNE_2025)

    assert result.year == 2025
    assert [r.amount for r in result.rows] == [
        Decimal("2500.00"),
        Decimal("-84.20"),
        Decimal("-142.50"),
        Decimal("-61.13"),
        Decimal("-40.00"),
        Decimal("-20.00"),
        Decimal("-6.45"),
    ]
    rec = result.reconciliation
    assert rec.initial_expense_delta_cents == 2000
    assert rec.expense_delta_cents == 0
    assert rec.income_delta_cents == 0
    assert rec.reconciled
    (excluded,) = rec.excluded_rows
    assert excluded.description.startswith("Online Transfer to Way2Save Savings")
    # The transfer still moved money, so the balance table agrees.
    assert result.balance_mismatch is None
    assert result.opening_balance == Decimal("1000.00")
    assert {r.merchant for r in result.rows if r.recurring} == {
        "Leidos Payroll",
        "Dominion Energy",
    }
    assert result.rows[4].category == "Cash Back"


def test_statement_balance_table_error_is_reported():
    result = parse_statement(JUNE_2025_BAD_TABLE)

    mismatch = result.balance_mismatch
    assert mismatch is not None
    assert mismatch.date == "2025-06-05"
    assert mismatch.computed == Decimal("3273.30")
    assert mismatch.statement == Decimal("3263.30")
    assert [r.amount for r in mismatch.transactions] == [Decimal("-142.50")]
    # Verification reports, it never edits the rows.
    assert len(result.rows) == 7
    assert result.inline_balance_mismatch is None


def test_misprinted_running_balance_is_reported_separately():
    result = parse_statement(JUNE_2025_BAD_RUNNING)

    assert result.balance_mismatch is None
    inline = result.inline_balance_mismatch
    assert inline is not None
    assert inline.date == "2025-06-03"
    assert inline.computed == Decimal("3415.80")
    assert inline.statement == Decimal("3405.80")


def test_year_is_required_when_the_text_has_none():
    with pytest.raises(ValueError, match="year"):
        parse_statement(NORFOLK)

    assert len(parse_statement(NORFOLK, year=2025).rows) == 1


def test_caller_expectations_override_scraped_totals():
    result = parse_statement(NORFOLK, year=2025, expected_expense=Decimal("50.00"))

    assert result.reconciliation.expense_delta_cents == 800
    assert not result.reconciliation.reconciled


def test_history_feeds_recurring_detection():
    snapshot = RuleSnapshot(
        category_rules={"tok:city": CategoryRule("tok:city", "Home/Utilities")}
    )
    (june,) = parse_statement(NORFOLK, year=2025, snapshot=snapshot).rows
    assert june.recurring is False

    may = replace(june, id="may", date="2025-05-26")
    (june,) = parse_statement(NORFOLK, year=2025, snapshot=snapshot, history=[may]).rows
    assert june.category == "Home/Utilities"
    assert june.recurring is True


def test_record_category_override_returns_rows_and_new_snapshot():
    rows = list(parse_statement(JUNE_2025).rows)
    starbucks = rows[-1]
    original = RuleSnapshot()

    updated_rows, snapshot = record_category_override(rows, starbucks.id, "Dining", original)

    assert original == RuleSnapshot()
    assert updated_rows[-1].effective_category == "Dining"
    assert snapshot.category_rules["alias:starbucks"].category == "Dining"
    assert len(snapshot.overrides) == 1
    # The learned rule flows into the next parse of the same statement.
    reparsed = parse_statement(JUNE_2025, snapshot=snapshot)
    assert reparsed.rows[-1].category_override == "Dining"


def test_record_category_override_unknown_id():
    rows = parse_statement(NORFOLK, year=2025).rows

    with pytest.raises(KeyError):
        record_category_override(rows, "nope", "Dining", RuleSnapshot())


def test_reapply_rules_keeps_existing_overrides():
    row = CanonicalTransaction(
        id="r1",
        date="2025-06-14",
        description="Purchase authorized on 06/13 Starbucks Store 12345 Norfolk VA Card 5280",
        amount=Decimal("-6.45"),
        category="Starbucks",
        merchant="Starbucks",
        category_override="Dining",
    )

    (again,) = reapply_rules([row], RuleSnapshot())

    assert again.category == "Starbucks"
    assert again.category_override == "Dining"


def test_snapshot_statement_uses_declared_month():
    result = parse_statement(JUNE_2025)

    snap = snapshot_statement(result, JUNE_2025)

    assert (snap.id, snap.label) == ("2025-06", "June 2025")
    assert snap.pages_raw == (JUNE_2025,)
    assert snap.rows == result.rows
    assert snap.total_withdrawals == Decimal("334.28")
    assert snap.parser_version == PARSER_VERSION


def test_snapshot_statement_month_fallbacks():
    result = parse_statement(NORFOLK, year=2025)
    assert snapshot_statement(result, NORFOLK).id == "2025-06"
    assert snapshot_statement(result, NORFOLK, month=7).id == "2025-07"

    empty = parse_statement("nothing to see", year=2025)
    with pytest.raises(ValueError, match="month"):
        snapshot_statement(empty, "nothing to see")
