"""Statement-level facts scraped from the raw text.

These are the values a statement declares about itself: its closing year and
month, opening balance, total deposits and withdrawals, and its own daily
ending balance table. They feed reconciliation and balance verification and
are never used to edit the ledger.
"""

from __future__ import annotations

import calendar
from decimal import Decimal

from .amounts import to_decimal
from .lines import month_day_to_iso, split_lines
from .models import DailyBalance, StatementTotals
from .patterns import (
    DAILY_TABLE_END_RX,
    DAILY_TABLE_HEADER_RX,
    DAILY_TABLE_PAIR_RX,
    DEPOSITS_TOTAL_RX,
    ENDING_BALANCE_RX,
    FEE_PERIOD_RX,
    OPENING_BALANCE_RX,
    WITHDRAWALS_TOTAL_RX,
    YEAR_RX,
)

_MIN_YEAR = 2010
_MAX_YEAR = 2100


def infer_statement_year(text: str, fallback: int | None = None) -> int | None:
    """Closing year of the fee period, else the latest plausible year."""

    m = FEE_PERIOD_RX.search(text)
    if m:
        return int(m.group(6))
    years = [int(y) for y in YEAR_RX.findall(text) if _MIN_YEAR <= int(y) <= _MAX_YEAR]
    return max(years) if years else fallback


def infer_statement_month(text: str) -> int | None:
    m = FEE_PERIOD_RX.search(text)
    if m:
        return int(m.group(4))
    m = ENDING_BALANCE_RX.search(text)
    if m:
        return int(m.group(1))
    return None


def extract_opening_balance(text: str) -> Decimal | None:
    m = OPENING_BALANCE_RX.search(text)
    return to_decimal(m.group(1)) if m else None


def extract_declared_totals(text: str) -> tuple[Decimal | None, Decimal | None]:
    """Return ``(total_deposits, total_withdrawals)`` as magnitudes."""

    dep = DEPOSITS_TOTAL_RX.search(text)
    wd = WITHDRAWALS_TOTAL_RX.search(text)
    return (
        abs(to_decimal(dep.group(1))) if dep else None,
        abs(to_decimal(wd.group(1))) if wd else None,
    )


def extract_daily_balance_table(text: str, year: int) -> tuple[DailyBalance, ...]:
    """Read ``date amount`` pairs from the daily ending balance table.

    Handles ``M/D`` and ``Mon D`` dates and several pairs per line. Later
    entries for the same date win.
    """

    found: dict[str, Decimal] = {}
    in_table = False
    for line in split_lines(text):
        # "Average daily ledger balance" closes the table, it does not open one.
        if DAILY_TABLE_END_RX.match(line):
            in_table = False
            continue
        header = DAILY_TABLE_HEADER_RX.search(line)
        if header:
            in_table = True
            line = line[header.end() :]
        elif not in_table:
            continue
        for m in DAILY_TABLE_PAIR_RX.finditer(line):
            iso = month_day_to_iso(m.group(1), year)
            if iso:
                found[iso] = to_decimal(m.group(2))
    return tuple(DailyBalance(day, found[day]) for day in sorted(found))


def scrape_statement(text: str, year: int | None = None) -> StatementTotals:
    resolved_year = year or infer_statement_year(text)
    deposits, withdrawals = extract_declared_totals(text)
    return StatementTotals(
        year=resolved_year,
        month=infer_statement_month(text),
        opening_balance=extract_opening_balance(text),
        total_deposits=deposits,
        total_withdrawals=withdrawals,
        daily_balances=(
            extract_daily_balance_table(text, resolved_year) if resolved_year else ()
        ),
    )


def statement_id(year: int, month: int) -> str:
    """Year-month key of a statement snapshot, e.g. ``"2025-06"``."""

    if not 1 <= month <= 12:
        raise ValueError(f"invalid month: {month}")
    return f"{year:04d}-{month:02d}"


def statement_label(year: int, month: int) -> str:
    return f"{calendar.month_name[month]} {year}"


__all__ = [
    "infer_statement_year",
    "infer_statement_month",
    "extract_opening_balance",
    "extract_declared_totals",
    "extract_daily_balance_table",
    "scrape_statement",
    "statement_id",
    "statement_label",
]
