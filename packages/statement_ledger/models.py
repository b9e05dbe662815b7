"""Data models and type aliases for ``statement_ledger``.

Domain records are frozen, slotted dataclasses: they are created once per
parse pass and replaced (``dataclasses.replace``) rather than mutated. The
pydantic models at the bottom describe the on-disk JSON shapes (rule store,
ledger output, statement snapshots) and are validated strictly.

Amount sign convention everywhere: positive = money in (deposit/credit),
negative = money out (purchase/debit/fee).
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field, replace
from decimal import Decimal
from typing import Literal, NamedTuple

from pydantic import BaseModel, ConfigDict, field_validator

from .amounts import fmt_amount, to_decimal

# ---------------------------------------------------------------------------
# Tags
# ---------------------------------------------------------------------------

LineKind = Literal["date", "header", "amount", "descriptor"]
"""Content-only classification of a statement line."""

TransactionKind = Literal["deposit", "billpay", "card", "cashback"]
"""Extraction kind; precedence is cashback > deposit > billpay > card."""

AliasMode = Literal["contains", "startsWith", "regex"]
RuleSource = Literal["alias", "merchant", "token"]

ALIAS_MODES: tuple[str, ...] = ("contains", "startsWith", "regex")
RULE_SOURCES: tuple[str, ...] = ("alias", "merchant", "token")

UNCATEGORIZED = "Uncategorized"
CASH_BACK_CATEGORY = "Cash Back"


# ---------------------------------------------------------------------------
# Parse-pass records
# ---------------------------------------------------------------------------


@dataclass(frozen=True, slots=True)
class ClassifiedLine:
    """One trimmed, non-empty statement line plus its tag.

    ``date_token`` holds a leading ``M/D`` (or ``Mon D``) token for descriptor
    lines such as ``"6/25 Purchase authorized on ..."``.
    """

    index: int
    text: str
    kind: LineKind
    date_token: str | None = None


@dataclass(frozen=True, slots=True)
class TransactionCandidate:
    """A transaction as discovered by an extraction pass.

    ``category`` is only set when extraction forces one (the cash-back half of
    a split). ``part`` distinguishes the two halves of a split so that both
    keep stable, distinct identities.
    """

    date: str
    descriptor: str
    amount: Decimal
    kind: TransactionKind
    card_last4: str | None = None
    cashback: Decimal | None = None
    auth_code: str | None = None
    ledger_balance: Decimal | None = None
    line_index: int = -1
    notes: tuple[str, ...] = ()
    category: str | None = None
    part: str | None = None


@dataclass(frozen=True, slots=True)
class CanonicalTransaction:
    """The persisted ledger row.

    ``category_override`` is authoritative whenever set; rule application only
    ever touches ``category``.
    """

    id: str
    date: str
    description: str
    amount: Decimal
    category: str
    kind: TransactionKind = "card"
    category_override: str | None = None
    merchant: str | None = None
    card_last4: str | None = None
    cashback: Decimal | None = None
    excluded_from_totals: bool = False
    recurring: bool = False
    notes: tuple[str, ...] = ()

    @property
    def effective_category(self) -> str:
        return self.category_override or self.category

    @property
    def is_credit(self) -> bool:
        return self.amount > 0

    def with_category(self, category: str) -> CanonicalTransaction:
        """Return a copy with a rule-derived category; overrides are kept."""

        return replace(self, category=category)


@dataclass(frozen=True, slots=True)
class AliasRule:
    pattern: str
    label: str
    mode: AliasMode = "contains"


@dataclass(frozen=True, slots=True)
class CategoryRule:
    key: str
    category: str
    source: RuleSource = "token"


@dataclass(frozen=True, slots=True)
class RuleSnapshot:
    """Immutable view of the persisted alias/rule/override state.

    The engine receives one snapshot per call and never mutates it; the
    ``with_*`` helpers return new snapshots for the caller to persist.
    ``overrides`` maps ``override_key(date, description, amount)`` to a
    category.
    """

    aliases: tuple[AliasRule, ...] = ()
    category_rules: Mapping[str, CategoryRule] = field(default_factory=dict)
    overrides: Mapping[str, str] = field(default_factory=dict)

    def with_alias(self, rule: AliasRule) -> RuleSnapshot:
        return replace(self, aliases=(*self.aliases, rule))

    def with_category_rules(self, rules: list[CategoryRule]) -> RuleSnapshot:
        merged = dict(self.category_rules)
        for r in rules:
            merged[r.key] = r
        return replace(self, category_rules=merged)

    def with_override(self, key: str, category: str) -> RuleSnapshot:
        merged = dict(self.overrides)
        merged[key] = category
        return replace(self, overrides=merged)


def override_key(date: str, description: str, amount: Decimal) -> str:
    """Key a category override by ``(date, descriptor, amount)``."""

    return f"{date}|{description.strip()}|{fmt_amount(amount)}"


# ---------------------------------------------------------------------------
# Diagnostics and results
# ---------------------------------------------------------------------------


class DroppedLine(NamedTuple):
    line_index: int
    text: str
    reason: str
    date: str | None = None


@dataclass(slots=True)
class ParseDiagnostics:
    """Counters and notes accumulated while extracting one statement."""

    lines_total: int = 0
    date_markers: int = 0
    descriptors_seen: int = 0
    transactions_emitted: int = 0
    duplicates_dropped: int = 0
    cashback_recovered: int = 0
    dropped: list[DroppedLine] = field(default_factory=list)
    notes: list[str] = field(default_factory=list)

    def drop(self, line: ClassifiedLine, reason: str, date: str | None = None) -> None:
        self.dropped.append(DroppedLine(line.index, line.text, reason, date))

    def note(self, message: str) -> None:
        self.notes.append(message)


class DailyBalance(NamedTuple):
    date: str
    balance: Decimal


@dataclass(frozen=True, slots=True)
class BalanceMismatch:
    """First date where the computed balance disagrees with the statement."""

    date: str
    computed: Decimal
    statement: Decimal
    transactions: tuple[CanonicalTransaction, ...] = ()

    @property
    def difference(self) -> Decimal:
        return abs(self.computed - self.statement)


@dataclass(frozen=True, slots=True)
class ReconciliationResult:
    """Outcome of :func:`statement_ledger.reconcile.reconcile`.

    Deltas are ``computed - expected`` in integer cents; the ``initial_*``
    values are measured before any exclusion, the plain ones after.
    """

    rows: tuple[CanonicalTransaction, ...]
    excluded_rows: tuple[CanonicalTransaction, ...]
    income_delta_cents: int
    expense_delta_cents: int
    initial_income_delta_cents: int = 0
    initial_expense_delta_cents: int = 0
    income_cents: int = 0
    expense_cents: int = 0

    @property
    def reconciled(self) -> bool:
        return abs(self.income_delta_cents) <= 1 and abs(self.expense_delta_cents) <= 1


@dataclass(frozen=True, slots=True)
class StatementTotals:
    """Values a statement declares about itself (all optional)."""

    year: int | None = None
    month: int | None = None
    opening_balance: Decimal | None = None
    total_deposits: Decimal | None = None
    total_withdrawals: Decimal | None = None
    daily_balances: tuple[DailyBalance, ...] = ()


@dataclass(frozen=True, slots=True)
class StatementSnapshot:
    """Per-statement record keyed by ``YYYY-MM``: raw pages, inputs, rows."""

    id: str
    label: str
    year: int
    month: int
    pages_raw: tuple[str, ...]
    rows: tuple[CanonicalTransaction, ...]
    opening_balance: Decimal | None = None
    total_deposits: Decimal | None = None
    total_withdrawals: Decimal | None = None
    parser_version: int = 0


@dataclass(frozen=True, slots=True)
class ParseResult:
    rows: tuple[CanonicalTransaction, ...]
    reconciliation: ReconciliationResult
    diagnostics: ParseDiagnostics
    declared: StatementTotals
    year: int
    opening_balance: Decimal | None = None
    balance_mismatch: BalanceMismatch | None = None
    inline_balance_mismatch: BalanceMismatch | None = None


# ---------------------------------------------------------------------------
# DTOs for typed JSON I/O
# ---------------------------------------------------------------------------


def _check_amount(v: str | None) -> str | None:
    if v is None:
        return None
    return fmt_amount(to_decimal(v))


class AliasRuleModel(BaseModel):
    model_config = ConfigDict(strict=True, extra="forbid", str_strip_whitespace=True)

    pattern: str
    label: str
    mode: AliasMode = "contains"

    @field_validator("pattern", "label")
    @classmethod
    def _non_empty(cls, v: str) -> str:
        if not v:
            raise ValueError("must be non-empty")
        return v


class CategoryRuleModel(BaseModel):
    model_config = ConfigDict(strict=True, extra="forbid", str_strip_whitespace=True)

    key: str
    category: str
    source: RuleSource = "token"

    @field_validator("key")
    @classmethod
    def _known_prefix(cls, v: str) -> str:
        if not (v.startswith("alias:") or v.startswith("tok:")):
            raise ValueError("rule key must start with 'alias:' or 'tok:'")
        return v


class TransactionRecordModel(BaseModel):
    """JSON shape of one :class:`CanonicalTransaction`."""

    model_config = ConfigDict(strict=True, extra="forbid")

    id: str
    date: str
    description: str
    amount: str
    category: str
    kind: TransactionKind = "card"
    category_override: str | None = None
    merchant: str | None = None
    card_last4: str | None = None
    cashback: str | None = None
    excluded_from_totals: bool = False
    recurring: bool = False
    notes: list[str] = []

    @field_validator("amount", "cashback")
    @classmethod
    def _two_decimals(cls, v: str | None) -> str | None:
        return _check_amount(v)

    @classmethod
    def from_transaction(cls, tx: CanonicalTransaction) -> TransactionRecordModel:
        return cls(
            id=tx.id,
            date=tx.date,
            description=tx.description,
            amount=fmt_amount(tx.amount),
            category=tx.category,
            kind=tx.kind,
            category_override=tx.category_override,
            merchant=tx.merchant,
            card_last4=tx.card_last4,
            cashback=fmt_amount(tx.cashback) if tx.cashback is not None else None,
            excluded_from_totals=tx.excluded_from_totals,
            recurring=tx.recurring,
            notes=list(tx.notes),
        )

    def to_transaction(self) -> CanonicalTransaction:
        return CanonicalTransaction(
            id=self.id,
            date=self.date,
            description=self.description,
            amount=to_decimal(self.amount),
            category=self.category,
            kind=self.kind,
            category_override=self.category_override,
            merchant=self.merchant,
            card_last4=self.card_last4,
            cashback=to_decimal(self.cashback) if self.cashback is not None else None,
            excluded_from_totals=self.excluded_from_totals,
            recurring=self.recurring,
            notes=tuple(self.notes),
        )


class StatementInputsModel(BaseModel):
    model_config = ConfigDict(strict=True, extra="forbid")

    opening_balance: str | None = None
    total_deposits: str | None = None
    total_withdrawals: str | None = None

    @field_validator("opening_balance", "total_deposits", "total_withdrawals")
    @classmethod
    def _two_decimals(cls, v: str | None) -> str | None:
        return _check_amount(v)


class StatementSummaryModel(BaseModel):
    """Per-document summary written next to the transactions."""

    model_config = ConfigDict(strict=True, extra="forbid")

    source: str
    statement_id: str | None = None
    year: int
    inputs: StatementInputsModel
    income: str
    expense: str
    income_delta_cents: int
    expense_delta_cents: int
    reconciled: bool
    excluded_ids: list[str] = []
    first_balance_mismatch: str | None = None
    inline_balance_mismatch: str | None = None
    dropped_lines: int = 0


class LedgerFile(BaseModel):
    """Top-level schema of the ledger document written by the CLI."""

    model_config = ConfigDict(strict=True, extra="forbid")

    schema_version: int
    statements: list[StatementSummaryModel]
    transactions: list[TransactionRecordModel]


__all__ = [
    "LineKind",
    "TransactionKind",
    "AliasMode",
    "RuleSource",
    "ALIAS_MODES",
    "RULE_SOURCES",
    "UNCATEGORIZED",
    "CASH_BACK_CATEGORY",
    "ClassifiedLine",
    "TransactionCandidate",
    "CanonicalTransaction",
    "AliasRule",
    "CategoryRule",
    "RuleSnapshot",
    "override_key",
    "DroppedLine",
    "ParseDiagnostics",
    "DailyBalance",
    "BalanceMismatch",
    "ReconciliationResult",
    "StatementTotals",
    "StatementSnapshot",
    "ParseResult",
    "AliasRuleModel",
    "CategoryRuleModel",
    "TransactionRecordModel",
    "StatementInputsModel",
    "StatementSummaryModel",
    "LedgerFile",
]
