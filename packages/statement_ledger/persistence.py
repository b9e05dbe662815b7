# ruff: noqa: I001
"""Persistence integration for statement_ledger.

Functions here read and write rule state and statement snapshots in the
shared database owned by ``libs/db``. They rely on the SQLAlchemy ORM models
defined in ``db.models.ledger`` and a session provided by ``db.client``.

Scope:
- Load/save the whole rule snapshot (aliases, category rules, overrides).
- Upsert and read per-statement snapshots keyed by ``YYYY-MM``.

Reads are fail-open per collection in the same way as the JSON file store:
a collection whose rows fail validation is logged and treated as empty.
"""

from __future__ import annotations

from collections.abc import Iterable
from typing import Any

from pydantic import ValidationError
from sqlalchemy import delete, func, select
from sqlalchemy.orm import Session

from db.models.ledger import SlAliasRule, SlCategoryOverride, SlCategoryRule, SlStatement
from .amounts import fmt_amount, to_decimal
from .logging_setup import get_logger
from .models import (
    CanonicalTransaction,
    RuleSnapshot,
    StatementInputsModel,
    StatementSnapshot,
    TransactionRecordModel,
)
from .store import validate_aliases, validate_category_rules, validate_overrides

_logger = get_logger("statement_ledger.persistence")


# ---------------------------------------------------------------------------
# Rule snapshot
# ---------------------------------------------------------------------------


def load_rule_snapshot_db(session: Session) -> RuleSnapshot:
    """Load aliases (in position order), category rules and overrides."""

    alias_rows = session.scalars(
        select(SlAliasRule).order_by(SlAliasRule.position, SlAliasRule.id)
    ).all()
    rule_rows = session.scalars(select(SlCategoryRule)).all()
    override_rows = session.scalars(select(SlCategoryOverride)).all()

    return RuleSnapshot(
        aliases=validate_aliases(
            [{"pattern": r.pattern, "label": r.label, "mode": r.mode} for r in alias_rows],
            origin="db:sl_alias_rules",
        ),
        category_rules=validate_category_rules(
            [{"key": r.key, "category": r.category, "source": r.source} for r in rule_rows],
            origin="db:sl_category_rules",
        ),
        overrides=validate_overrides(
            {r.key: r.category for r in override_rows},
            origin="db:sl_category_overrides",
        ),
    )


def save_rule_snapshot_db(session: Session, snapshot: RuleSnapshot) -> None:
    """Replace the stored rule state with ``snapshot``.

    The snapshot is the unit of persistence: all three tables are cleared and
    rewritten inside the caller's transaction.
    """

    session.execute(delete(SlAliasRule))
    session.execute(delete(SlCategoryRule))
    session.execute(delete(SlCategoryOverride))
    session.flush()

    session.add_all(
        SlAliasRule(position=i, pattern=a.pattern, label=a.label, mode=a.mode)
        for i, a in enumerate(snapshot.aliases)
    )
    session.add_all(
        SlCategoryRule(key=r.key, category=r.category, source=r.source)
        for r in snapshot.category_rules.values()
    )
    session.add_all(
        SlCategoryOverride(key=k, category=v) for k, v in snapshot.overrides.items()
    )
    session.flush()
    _logger.debug(
        "persistence:rules_saved aliases=%d rules=%d overrides=%d",
        len(snapshot.aliases),
        len(snapshot.category_rules),
        len(snapshot.overrides),
    )


# ---------------------------------------------------------------------------
# Statement snapshots
# ---------------------------------------------------------------------------


def _opt_amount(v: Any) -> str | None:
    return fmt_amount(v) if v is not None else None


def _inputs_payload(snapshot: StatementSnapshot) -> dict[str, Any]:
    return StatementInputsModel(
        opening_balance=_opt_amount(snapshot.opening_balance),
        total_deposits=_opt_amount(snapshot.total_deposits),
        total_withdrawals=_opt_amount(snapshot.total_withdrawals),
    ).model_dump(mode="json")


def _rows_from_json(raw: Any, *, origin: str) -> tuple[CanonicalTransaction, ...]:
    if not isinstance(raw, list):
        _logger.warning("persistence:rows_invalid origin=%s; ignoring rows", origin)
        return ()
    try:
        return tuple(TransactionRecordModel.model_validate(r).to_transaction() for r in raw)
    except ValidationError:
        _logger.warning("persistence:rows_invalid origin=%s; ignoring rows", origin)
        return ()


def upsert_statement(session: Session, snapshot: StatementSnapshot) -> None:
    """Insert or replace the snapshot row for ``snapshot.id``."""

    existing = session.get(SlStatement, snapshot.id)
    payload = {
        "label": snapshot.label,
        "stmt_year": snapshot.year,
        "stmt_month": snapshot.month,
        "pages_raw": list(snapshot.pages_raw),
        "inputs": _inputs_payload(snapshot),
        "rows": [
            TransactionRecordModel.from_transaction(r).model_dump(mode="json")
            for r in snapshot.rows
        ],
        "parser_version": snapshot.parser_version,
    }
    if existing is None:
        session.add(SlStatement(id=snapshot.id, **payload))
    else:
        for attr, value in payload.items():
            setattr(existing, attr, value)
        existing.updated_at = func.now()
    session.flush()
    _logger.info(
        "persistence:statement_saved id=%s rows=%d parser_version=%d",
        snapshot.id,
        len(snapshot.rows),
        snapshot.parser_version,
    )


def _snapshot_from_row(row: SlStatement) -> StatementSnapshot:
    inputs = row.inputs if isinstance(row.inputs, dict) else {}
    opening = inputs.get("opening_balance")
    deposits = inputs.get("total_deposits")
    withdrawals = inputs.get("total_withdrawals")
    return StatementSnapshot(
        id=row.id,
        label=row.label,
        year=row.stmt_year,
        month=row.stmt_month,
        pages_raw=tuple(row.pages_raw or ()),
        rows=_rows_from_json(row.rows, origin=f"db:sl_statements:{row.id}"),
        opening_balance=to_decimal(opening) if opening is not None else None,
        total_deposits=to_decimal(deposits) if deposits is not None else None,
        total_withdrawals=to_decimal(withdrawals) if withdrawals is not None else None,
        parser_version=row.parser_version,
    )


def load_statement(session: Session, statement_id: str) -> StatementSnapshot | None:
    row = session.get(SlStatement, statement_id)
    if row is None:
        return None
    return _snapshot_from_row(row)


def list_statements(session: Session) -> list[StatementSnapshot]:
    """All stored snapshots, oldest statement first."""

    rows = session.scalars(select(SlStatement).order_by(SlStatement.id)).all()
    return [_snapshot_from_row(r) for r in rows]


def history_rows(
    session: Session, *, exclude_ids: Iterable[str] = ()
) -> list[CanonicalTransaction]:
    """Rows of every stored statement except ``exclude_ids``.

    Used as the cross-statement history for recurring detection.
    """

    skip = set(exclude_ids)
    out: list[CanonicalTransaction] = []
    for snap in list_statements(session):
        if snap.id in skip:
            continue
        out.extend(snap.rows)
    return out


__all__ = [
    "load_rule_snapshot_db",
    "save_rule_snapshot_db",
    "upsert_statement",
    "load_statement",
    "list_statements",
    "history_rows",
]
