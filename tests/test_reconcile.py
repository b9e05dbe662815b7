from decimal import Decimal
from itertools import count

from statement_ledger.models import CanonicalTransaction
from statement_ledger.reconcile import find_subset, reconcile, totals_cents

_ids = count()


def _row(amount: str, description: str = "Purchase authorized on 06/02 Target Card 1234", **kw):
    return CanonicalTransaction(
        id=f"r{next(_ids)}",
        date=kw.pop("date", "2025-06-02"),
        description=description,
        amount=Decimal(amount),
        category=kw.pop("category", "Uncategorized"),
        **kw,
    )


def test_internal_transfer_explains_expense_overage():
    rows = [
        _row("2500.00", "Leidos Payroll Dir Dep 250602"),
        _row("-100.00"),
        _row("-20.00", "Online Transfer to Way2Save Savings xxxxxx5678 Ref #Ib0Abcdefg"),
    ]

    result = reconcile(
        rows, expected_income=Decimal("2500.00"), expected_expense=Decimal("100.00")
    )

    assert result.initial_expense_delta_cents == 2000
    assert result.expense_delta_cents == 0
    assert result.income_delta_cents == 0
    assert result.reconciled
    assert [r.description for r in result.excluded_rows] == [rows[2].description]
    assert result.rows[2].excluded_from_totals is True
    # Exclusion flags rows, it never drops them.
    assert len(result.rows) == 3


def test_transfer_larger_than_the_delta_is_left_in_totals():
    transfer = _row("-50.00", "Online Transfer to Way2Save Savings xxxxxx5678 Ref #Ib0Abcdefg")
    rows = [_row("-100.00"), _row("-20.00"), transfer]

    result = reconcile(rows, expected_expense=Decimal("150.00"))

    assert result.initial_expense_delta_cents == 2000
    assert result.excluded_rows == (result.rows[1],)
    assert result.rows[2].excluded_from_totals is False
    assert result.expense_delta_cents == 0


def test_transfer_category_counts_as_internal_transfer():
    rows = [_row("-100.00"), _row("-35.00", "Zelle to Savings Jar", category="Transfer: Savings")]

    result = reconcile(rows, expected_expense=Decimal("100.00"))

    assert result.excluded_rows == (result.rows[1],)
    assert result.expense_delta_cents == 0


def test_triple_subset_is_found_when_no_single_or_pair_fits():
    rows = [_row("-100.00"), _row("-7.50"), _row("-12.25"), _row("-4.75")]

    result = reconcile(rows, expected_expense=Decimal("100.00"))

    assert sorted(r.amount for r in result.excluded_rows) == [
        Decimal("-12.25"),
        Decimal("-7.50"),
        Decimal("-4.75"),
    ]
    assert result.expense_delta_cents == 0
    assert result.rows[0].excluded_from_totals is False


def test_single_row_is_preferred_over_a_pair():
    rows = [_row("-100.00"), _row("-5.00"), _row("-10.00"), _row("-15.00")]

    result = reconcile(rows, expected_expense=Decimal("115.00"))

    assert [r.amount for r in result.excluded_rows] == [Decimal("-15.00")]


def test_unexplained_expense_gap_is_reported_not_forced():
    rows = [_row("-100.00"), _row("-7.00")]

    result = reconcile(rows, expected_expense=Decimal("100.50"))

    assert result.excluded_rows == ()
    assert result.expense_delta_cents == 650
    assert not result.reconciled


def test_income_overage_tries_ambiguous_credits_before_strong_deposits():
    rows = [
        _row("2500.00", "Leidos Payroll Dir Dep 250602"),
        _row("50.00", "Mobile Deposit Ref Number 123456"),
        _row("50.00", "Merchant Adjustment Card 1234"),
    ]

    result = reconcile(rows, expected_income=Decimal("2550.00"))

    assert [r.description for r in result.excluded_rows] == ["Merchant Adjustment Card 1234"]
    assert result.income_delta_cents == 0


def test_income_overage_only_searches_single_rows():
    rows = [
        _row("2500.00", "Leidos Payroll Dir Dep 250602"),
        _row("30.00", "Merchant Adjustment Card 1234"),
        _row("20.00", "Merchant Adjustment Card 5678"),
    ]

    result = reconcile(rows, expected_income=Decimal("2500.00"))

    # A pair would explain the gap, but income exclusion is single-row only.
    assert result.excluded_rows == ()
    assert result.income_delta_cents == 5000


def test_missing_expectations_leave_rows_alone():
    rows = [_row("2500.00"), _row("-20.00", "Online Transfer to Way2Save Savings")]

    result = reconcile(rows)

    assert result.excluded_rows == ()
    assert (result.income_delta_cents, result.expense_delta_cents) == (0, 0)
    assert (result.income_cents, result.expense_cents) == (250000, 2000)


def test_one_cent_gap_counts_as_reconciled():
    rows = [_row("-100.01")]

    result = reconcile(rows, expected_expense=Decimal("100.00"))

    assert result.excluded_rows == ()
    assert result.reconciled


def test_already_excluded_rows_stay_out_of_totals():
    rows = [_row("-100.00"), _row("-20.00", excluded_from_totals=True)]
    assert totals_cents(rows) == (0, 10000)


def test_find_subset():
    assert find_subset([475, 750, 1225, 10000], 2450) == (0, 1, 2)
    assert find_subset([500, 1000, 1500], 1500) == (2,)
    assert find_subset([500, 1000, 1400], 1500) == (0, 1)
    assert find_subset([500, 1000], 1501) == (0, 1)
    assert find_subset([500, 1000], 3000) is None
