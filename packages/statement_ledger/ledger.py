"""Candidates to ledger rows.

Builds :class:`CanonicalTransaction` rows from extraction candidates, applies
category overrides (always last, always authoritative), derives stable row ids
and flags recurring rows.
"""

from __future__ import annotations

import hashlib
import json
from collections import defaultdict
from collections.abc import Iterable, Mapping, Sequence
from dataclasses import replace
from decimal import Decimal

from .amounts import ZERO, quantize
from .canon import (
    KNOWN_RECURRING_MERCHANTS,
    NON_RECURRING_MERCHANTS,
    RECURRING_CATEGORIES,
    canonicalize_category,
)
from .extract import dedup_key, normalize_descriptor
from .models import (
    CASH_BACK_CATEGORY,
    CanonicalTransaction,
    RuleSnapshot,
    TransactionCandidate,
    override_key,
)
from .resolver import Resolver, merchant_guess


def transaction_id(candidate: TransactionCandidate) -> str:
    """Stable SHA-256 id over the dedup key and the split part."""

    payload = {"key": dedup_key(candidate), "part": candidate.part}
    data = json.dumps(payload, sort_keys=True, separators=(",", ":"))
    return hashlib.sha256(data.encode("utf-8")).hexdigest()


def to_transaction(
    candidate: TransactionCandidate,
    resolver: Resolver,
    overrides: Mapping[str, str] | None = None,
) -> CanonicalTransaction:
    resolution = resolver.resolve(candidate.descriptor)
    amount = quantize(candidate.amount)
    description = candidate.descriptor
    override = (overrides or {}).get(override_key(candidate.date, description, amount))
    notes = candidate.notes
    if candidate.part == "cashback":
        notes = (*notes, "cash back portion")
    return CanonicalTransaction(
        id=transaction_id(candidate),
        date=candidate.date,
        description=description,
        amount=amount,
        category=candidate.category or resolution.category,
        kind=candidate.kind,
        category_override=override,
        merchant=resolution.merchant or merchant_guess(description) or None,
        card_last4=candidate.card_last4,
        cashback=candidate.cashback,
        notes=notes,
    )


def build_ledger(
    candidates: Iterable[TransactionCandidate],
    resolver: Resolver,
    overrides: Mapping[str, str] | None = None,
) -> list[CanonicalTransaction]:
    return [to_transaction(c, resolver, overrides) for c in candidates]


def apply_rules(
    rows: Iterable[CanonicalTransaction], resolver: Resolver
) -> list[CanonicalTransaction]:
    """Re-resolve rule categories on existing rows.

    Overrides are untouched (only ``category`` changes) and cash-back portions
    keep their forced category.
    """

    out: list[CanonicalTransaction] = []
    for row in rows:
        if row.category == CASH_BACK_CATEGORY and "cash back portion" in row.notes:
            out.append(row)
            continue
        out.append(row.with_category(resolver.resolve(row.description).category))
    return out


def apply_override(
    row: CanonicalTransaction,
    category: str,
    snapshot: RuleSnapshot,
) -> tuple[CanonicalTransaction, RuleSnapshot]:
    """Set an override on ``row`` and return it with an updated snapshot.

    The new snapshot records the override and, when the descriptor yields a
    strong enough key, a learned category rule.
    """

    canonical = canonicalize_category(category)
    updated = snapshot.with_override(
        override_key(row.date, row.description, row.amount), canonical
    )
    rule = Resolver(snapshot).learn_category_rule(row.description, canonical)
    if rule is not None:
        updated = updated.with_category_rules([rule])
    return replace(row, category_override=canonical), updated


# ---------------------------------------------------------------------------
# Recurring
# ---------------------------------------------------------------------------


def recurrence_key(row: CanonicalTransaction) -> str:
    return normalize_descriptor(row.merchant or merchant_guess(row.description))


def flag_recurring(
    rows: Sequence[CanonicalTransaction],
    history: Iterable[CanonicalTransaction] = (),
) -> list[CanonicalTransaction]:
    """Mark rows that look like scheduled payments or paychecks.

    A row recurs when its merchant shows up in two or more distinct months
    (across ``rows`` and ``history``) or is a known recurring merchant, its
    effective category is a recurring-type category, it carries no cash back
    and it is not a credit card payment.
    """

    months: dict[str, set[str]] = defaultdict(set)
    for row in (*rows, *history):
        months[recurrence_key(row)].add(row.date[:7])

    out: list[CanonicalTransaction] = []
    for row in rows:
        seen_often = len(months[recurrence_key(row)]) >= 2
        known = row.merchant in KNOWN_RECURRING_MERCHANTS
        recurring = (
            (seen_often or known)
            and row.effective_category in RECURRING_CATEGORIES
            and not (row.cashback and row.cashback > 0)
            and row.merchant not in NON_RECURRING_MERCHANTS
        )
        out.append(row if row.recurring == recurring else replace(row, recurring=recurring))
    return out


def compute_totals(rows: Iterable[CanonicalTransaction]) -> tuple[Decimal, Decimal]:
    """Return ``(income, expense)`` over rows not excluded from totals.

    Expense is reported as a positive magnitude.
    """

    income = ZERO
    expense = ZERO
    for row in rows:
        if row.excluded_from_totals:
            continue
        if row.amount > 0:
            income += row.amount
        else:
            expense += -row.amount
    return quantize(income), quantize(expense)


__all__ = [
    "transaction_id",
    "to_transaction",
    "build_ledger",
    "apply_rules",
    "apply_override",
    "recurrence_key",
    "flag_recurring",
    "compute_totals",
]
