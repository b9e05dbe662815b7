"""Daily balance rollup and verification.

The rollup starts at the opening balance and adds every row's signed amount
per day, excluded rows included: exclusion is a reporting flag, the money
still moved. Verification compares the rollup with a statement-declared
series and reports the first disagreement. It never edits the ledger.
"""

from __future__ import annotations

from collections import defaultdict
from collections.abc import Iterable, Mapping, Sequence
from decimal import Decimal

from .amounts import quantize, to_cents
from .models import BalanceMismatch, CanonicalTransaction, DailyBalance, TransactionCandidate


def rollup_daily_balances(
    rows: Iterable[CanonicalTransaction], opening_balance: Decimal
) -> list[DailyBalance]:
    by_day: dict[str, Decimal] = defaultdict(Decimal)
    for row in rows:
        by_day[row.date] += row.amount
    running = quantize(opening_balance)
    out: list[DailyBalance] = []
    for day in sorted(by_day):
        running = quantize(running + by_day[day])
        out.append(DailyBalance(day, running))
    return out


def _as_mapping(
    balances: Mapping[str, Decimal] | Iterable[DailyBalance],
) -> dict[str, Decimal]:
    if isinstance(balances, Mapping):
        return dict(balances)
    return {b.date: b.balance for b in balances}


def verify_daily_balances(
    rows: Sequence[CanonicalTransaction],
    opening_balance: Decimal,
    statement_balances: Mapping[str, Decimal] | Iterable[DailyBalance],
) -> BalanceMismatch | None:
    """Return the first date whose computed balance differs, else ``None``.

    Only dates present in both series are compared.
    """

    declared = _as_mapping(statement_balances)
    for day, balance in rollup_daily_balances(rows, opening_balance):
        if day not in declared:
            continue
        if to_cents(balance) != to_cents(declared[day]):
            return BalanceMismatch(
                date=day,
                computed=balance,
                statement=quantize(declared[day]),
                transactions=tuple(r for r in rows if r.date == day),
            )
    return None


def inline_daily_balances(candidates: Iterable[TransactionCandidate]) -> list[DailyBalance]:
    """Last running balance printed in the transaction table for each day."""

    last: dict[str, Decimal] = {}
    for c in sorted(candidates, key=lambda c: c.line_index):
        if c.ledger_balance is not None:
            last[c.date] = c.ledger_balance
    return [DailyBalance(day, quantize(last[day])) for day in sorted(last)]


__all__ = ["rollup_daily_balances", "verify_daily_balances", "inline_daily_balances"]
