"""Public API and orchestration for the ``statement_ledger`` package.

:func:`parse_statement` runs the whole pipeline over the page text of one
statement:

1. normalize and classify every line;
2. extract candidates (primary pass, cashback recovery, cash-back split);
3. build ledger rows against the injected rule snapshot, overrides last;
4. flag recurring rows (optionally against earlier statements' rows);
5. reconcile computed totals against the declared ones;
6. verify daily balances against the statement's own series.

Declared values (year, opening balance, totals, daily balances) are scraped
from the text unless the caller passes them explicitly.

Nothing here touches the rule store: the snapshot is an input and the
``record_category_override`` helper returns a new one for the caller to save.
"""

from __future__ import annotations

import re
from collections.abc import Iterable, Sequence
from dataclasses import replace
from decimal import Decimal

from .balances import inline_daily_balances, verify_daily_balances
from .extract import extract_transactions
from .ledger import apply_override, apply_rules, build_ledger, flag_recurring
from .lines import classify_pages
from .logging_setup import get_logger
from .models import (
    CanonicalTransaction,
    ParseResult,
    RuleSnapshot,
    StatementSnapshot,
    override_key,
)
from .patterns import INTERNAL_TRANSFER_RX
from .reconcile import reconcile
from .resolver import Resolver
from .statement import scrape_statement, statement_id, statement_label

# Bump when extraction output for the same text changes.
PARSER_VERSION: int = 1

_logger = get_logger("statement_ledger.api")


def _as_pages(pages: str | Sequence[str]) -> list[str]:
    if isinstance(pages, str):
        return pages.split("\f")
    return list(pages)


def parse_statement(
    pages: str | Sequence[str],
    *,
    year: int | None = None,
    snapshot: RuleSnapshot | None = None,
    opening_balance: Decimal | None = None,
    expected_income: Decimal | None = None,
    expected_expense: Decimal | None = None,
    history: Iterable[CanonicalTransaction] = (),
    internal_transfer: re.Pattern[str] = INTERNAL_TRANSFER_RX,
) -> ParseResult:
    """Parse one statement into reconciled ledger rows.

    Parameters
    ----------
    pages:
        Page texts in order, or a single string with ``\\f`` page breaks.
    year:
        Reference year for ``M/D`` dates. Scraped from the fee period (or the
        latest plausible year in the text) when omitted.
    snapshot:
        Alias rules, category rules and overrides to resolve against.
    opening_balance, expected_income, expected_expense:
        Declared values; each falls back to the value scraped from the text.
        Expected values are magnitudes.
    history:
        Rows from other statements, used only for recurring detection.

    Raises ``ValueError`` when no year is given and none can be inferred.
    """

    page_list = _as_pages(pages)
    snap = snapshot or RuleSnapshot()
    declared = scrape_statement("\n".join(page_list), year)
    resolved_year = year or declared.year
    if resolved_year is None:
        raise ValueError("statement year not given and not found in the text")

    lines = classify_pages(page_list)
    candidates, diagnostics = extract_transactions(lines, resolved_year)

    resolver = Resolver(snap)
    rows = build_ledger(candidates, resolver, snap.overrides)
    rows = flag_recurring(rows, history)

    income = expected_income if expected_income is not None else declared.total_deposits
    expense = expected_expense if expected_expense is not None else declared.total_withdrawals
    reconciliation = reconcile(rows, income, expense, internal_transfer=internal_transfer)

    opening = opening_balance if opening_balance is not None else declared.opening_balance
    balance_mismatch = None
    inline_mismatch = None
    if opening is not None:
        if declared.daily_balances:
            balance_mismatch = verify_daily_balances(
                reconciliation.rows, opening, declared.daily_balances
            )
        inline_series = inline_daily_balances(candidates)
        if inline_series:
            inline_mismatch = verify_daily_balances(reconciliation.rows, opening, inline_series)

    _logger.info(
        "parse: year=%d lines=%d rows=%d dropped=%d recovered=%d reconciled=%s",
        resolved_year,
        diagnostics.lines_total,
        len(reconciliation.rows),
        len(diagnostics.dropped),
        diagnostics.cashback_recovered,
        reconciliation.reconciled,
    )
    if balance_mismatch is not None:
        _logger.info(
            "parse: first balance mismatch date=%s computed=%s statement=%s",
            balance_mismatch.date,
            balance_mismatch.computed,
            balance_mismatch.statement,
        )
    if inline_mismatch is not None:
        _logger.info(
            "parse: first running balance mismatch date=%s computed=%s statement=%s",
            inline_mismatch.date,
            inline_mismatch.computed,
            inline_mismatch.statement,
        )

    return ParseResult(
        rows=reconciliation.rows,
        reconciliation=reconciliation,
        diagnostics=diagnostics,
        declared=declared,
        year=resolved_year,
        opening_balance=opening,
        balance_mismatch=balance_mismatch,
        inline_balance_mismatch=inline_mismatch,
    )


def reapply_rules(
    rows: Iterable[CanonicalTransaction], snapshot: RuleSnapshot
) -> list[CanonicalTransaction]:
    """Re-resolve rule categories and re-attach stored overrides.

    Rows keep any override they already carry; a stored override for the same
    ``(date, description, amount)`` replaces it.
    """

    out: list[CanonicalTransaction] = []
    for row in apply_rules(rows, Resolver(snapshot)):
        stored = snapshot.overrides.get(override_key(row.date, row.description, row.amount))
        if stored is not None and stored != row.category_override:
            row = replace(row, category_override=stored)
        out.append(row)
    return out


def record_category_override(
    rows: Sequence[CanonicalTransaction],
    row_id: str,
    category: str,
    snapshot: RuleSnapshot,
) -> tuple[list[CanonicalTransaction], RuleSnapshot]:
    """Override the category of ``row_id`` and propagate what was learned.

    Returns the updated rows and a new snapshot holding the override plus the
    learned rule. Raises ``KeyError`` when no row has ``row_id``.
    """

    target = next((r for r in rows if r.id == row_id), None)
    if target is None:
        raise KeyError(f"no transaction with id {row_id!r}")
    _, updated = apply_override(target, category, snapshot)
    _logger.info("override: id=%s category=%s", row_id, category)
    return reapply_rules(rows, updated), updated


def snapshot_statement(
    result: ParseResult,
    pages: str | Sequence[str],
    *,
    month: int | None = None,
) -> StatementSnapshot:
    """Build the ``YYYY-MM`` snapshot for a parsed statement.

    The month comes from the argument, else the fee period or ending balance
    banner, else the latest row date. Raises ``ValueError`` when none is
    available.
    """

    resolved_month = month or result.declared.month
    if resolved_month is None and result.rows:
        resolved_month = int(max(r.date for r in result.rows)[5:7])
    if resolved_month is None:
        raise ValueError("statement month not given and not found in the text")
    return StatementSnapshot(
        id=statement_id(result.year, resolved_month),
        label=statement_label(result.year, resolved_month),
        year=result.year,
        month=resolved_month,
        pages_raw=tuple(_as_pages(pages)),
        rows=result.rows,
        opening_balance=result.opening_balance,
        total_deposits=result.declared.total_deposits,
        total_withdrawals=result.declared.total_withdrawals,
        parser_version=PARSER_VERSION,
    )


__all__ = [
    "PARSER_VERSION",
    "parse_statement",
    "reapply_rules",
    "record_category_override",
    "snapshot_statement",
]
