"""Reconcile computed totals against statement-declared totals.

All arithmetic is in integer cents; a gap of at most one cent counts as
reconciled. When expense is overstated the engine first drops internal
transfers between the holder's own accounts, then searches the 120 smallest
debits for a single row, a pair, or a triple that explains the gap. When
income is overstated only single rows are tried, ambiguous credits before
strong deposit signals.

Exclusion only sets ``excluded_from_totals``; rows are never removed.
"""

from __future__ import annotations

import re
from collections.abc import Iterable, Sequence
from dataclasses import replace
from decimal import Decimal

from .amounts import from_cents, to_cents
from .canon import TRANSFER_CATEGORIES
from .logging_setup import get_logger
from .models import CanonicalTransaction, ReconciliationResult
from .patterns import INTERNAL_TRANSFER_RX, STRONG_DEPOSIT_RX

EPS_CENTS = 1
MAX_SEARCH_ROWS = 120

_logger = get_logger("statement_ledger.reconcile")


def totals_cents(rows: Iterable[CanonicalTransaction]) -> tuple[int, int]:
    """Return ``(income, expense)`` cents over unexcluded rows."""

    income = 0
    expense = 0
    for row in rows:
        if row.excluded_from_totals:
            continue
        cents = to_cents(row.amount)
        if cents > 0:
            income += cents
        else:
            expense += -cents
    return income, expense


def is_internal_transfer(
    row: CanonicalTransaction, pattern: re.Pattern[str] = INTERNAL_TRANSFER_RX
) -> bool:
    return bool(pattern.search(row.description)) or (
        row.effective_category in TRANSFER_CATEGORIES
    )


def find_subset(values: Sequence[int], target: int, eps: int = EPS_CENTS) -> tuple[int, ...] | None:
    """Positions of a single, pair or triple in ``values`` summing to ``target``.

    ``values`` must be sorted ascending. Singles are tried first, then pairs,
    then triples, each scanning low-to-high; the first hit wins.
    """

    n = len(values)
    for a in range(n):
        if abs(values[a] - target) <= eps:
            return (a,)
    for a in range(n):
        for b in range(a + 1, n):
            s = values[a] + values[b]
            if abs(s - target) <= eps:
                return (a, b)
            if s > target + eps:
                break
    for a in range(n):
        for b in range(a + 1, n):
            ab = values[a] + values[b]
            if ab > target + eps:
                break
            for c in range(b + 1, n):
                s = ab + values[c]
                if abs(s - target) <= eps:
                    return (a, b, c)
                if s > target + eps:
                    break
    return None


def _expected_cents(value: Decimal | None, computed: int) -> int:
    return computed if value is None else to_cents(abs(value))


def reconcile(
    rows: Sequence[CanonicalTransaction],
    expected_income: Decimal | None = None,
    expected_expense: Decimal | None = None,
    *,
    internal_transfer: re.Pattern[str] = INTERNAL_TRANSFER_RX,
    max_rows: int = MAX_SEARCH_ROWS,
) -> ReconciliationResult:
    """Explain overstated totals by excluding rows.

    ``expected_*`` are the statement's declared deposits and withdrawals
    (magnitudes); ``None`` skips that side. Deltas in the result are
    ``computed - expected`` in cents.
    """

    income, expense = totals_cents(rows)
    target_income = _expected_cents(expected_income, income)
    target_expense = _expected_cents(expected_expense, expense)
    income_delta = income - target_income
    expense_delta = expense - target_expense
    excluded: set[int] = set()

    def cents(i: int) -> int:
        return abs(to_cents(rows[i].amount))

    def open_rows(debit: bool) -> list[int]:
        return [
            i
            for i, r in enumerate(rows)
            if r.amount != 0
            and (r.amount < 0) == debit
            and not r.excluded_from_totals
            and i not in excluded
        ]

    if expense_delta > EPS_CENTS:
        remaining = expense_delta
        transfers = sorted(
            (i for i in open_rows(debit=True) if is_internal_transfer(rows[i], internal_transfer)),
            key=cents,
        )
        for i in transfers:
            if abs(remaining) <= EPS_CENTS:
                break
            # Never overshoot the remaining delta by more than a cent.
            if cents(i) <= remaining + EPS_CENTS:
                excluded.add(i)
                remaining -= cents(i)

        if remaining > EPS_CENTS:
            pool = sorted(open_rows(debit=True), key=cents)[:max_rows]
            hit = find_subset([cents(i) for i in pool], remaining)
            if hit is not None:
                excluded.update(pool[p] for p in hit)
            else:
                _logger.debug("reconcile:expense_unexplained delta_cents=%d", remaining)

    if income_delta > EPS_CENTS:
        credits = open_rows(debit=False)
        strong = {i for i in credits if STRONG_DEPOSIT_RX.search(rows[i].description)}
        ordered = sorted((i for i in credits if i not in strong), key=cents)
        ordered += sorted(strong, key=cents)
        for i in ordered:
            if abs(cents(i) - income_delta) <= EPS_CENTS:
                excluded.add(i)
                break
        else:
            _logger.debug("reconcile:income_unexplained delta_cents=%d", income_delta)

    updated = tuple(
        replace(r, excluded_from_totals=True) if i in excluded else r for i, r in enumerate(rows)
    )
    final_income, final_expense = totals_cents(updated)
    result = ReconciliationResult(
        rows=updated,
        excluded_rows=tuple(updated[i] for i in sorted(excluded)),
        income_delta_cents=final_income - target_income,
        expense_delta_cents=final_expense - target_expense,
        initial_income_delta_cents=income_delta,
        initial_expense_delta_cents=expense_delta,
        income_cents=final_income,
        expense_cents=final_expense,
    )
    _logger.info(
        "reconcile: income=%s expense=%s income_delta=%s expense_delta=%s excluded=%d",
        from_cents(final_income),
        from_cents(final_expense),
        from_cents(result.income_delta_cents),
        from_cents(result.expense_delta_cents),
        len(excluded),
    )
    return result


__all__ = [
    "EPS_CENTS",
    "MAX_SEARCH_ROWS",
    "totals_cents",
    "is_internal_transfer",
    "find_subset",
    "reconcile",
]
