# ruff: noqa: E402, I001
from __future__ import annotations

import json
import sys
from decimal import Decimal
from pathlib import Path

# Make sure the workspace `packages/` and `libs/db/src` dirs are on sys.path so
# `statement_ledger` and `db` are importable without an install.
_ROOT = Path(__file__).resolve().parents[2]
_PKG_DIRS = [_ROOT / "packages", _ROOT / "libs" / "db" / "src"]
sys.path[:0] = [p for p in [*map(str, _PKG_DIRS), str(_ROOT)] if p not in sys.path]

from typer.testing import CliRunner  # noqa: E402

from db.client import session_scope  # noqa: E402
from statement_ledger.cli import app  # noqa: E402
from statement_ledger.persistence import load_rule_snapshot_db, load_statement  # noqa: E402
from statement_ledger.store import load_rule_snapshot  # noqa: E402

from tests.helpers.db import bootstrap_sqlite_db  # noqa: E402
from tests.helpers.statements import JULY_2025, JUNE_2025  # noqa: E402


def _ledger(path: Path) -> dict:
    return json.loads(path.read_text(encoding="utf-8"))


def test_override_learned_in_one_run_applies_to_the_next(tmp_path: Path, rules_file: Path):
    """Parse, override a category, parse again: the override and rule stick."""

    runner = CliRunner()
    june = tmp_path / "june.txt"
    # Two pages, split the way pdftotext does.
    head, tail = JUNE_2025.split("6/10\n", 1)
    june.write_text(f"{head}\f6/10\n{tail}", encoding="utf-8")
    first = tmp_path / "first.json"

    res = runner.invoke(app, ["parse", str(june), "-o", str(first)])
    assert res.exit_code == 0, res.output

    rows = _ledger(first)["transactions"]
    assert len(rows) == 7
    harris = next(r for r in rows if "Harris Teeter" in r["description"])
    assert harris["category"] == "Groceries"

    res = runner.invoke(app, ["set-category", str(first), harris["id"], "shopping"])
    assert res.exit_code == 0, res.output

    snapshot = load_rule_snapshot()
    assert snapshot.category_rules["alias:harris teeter"].category == "Shopping"

    res = runner.invoke(app, ["add-alias", "food lion", "Food Lion Grocery"])
    assert res.exit_code == 0, res.output

    second = tmp_path / "second.json"
    res = runner.invoke(app, ["parse", str(june), "-o", str(second)])
    assert res.exit_code == 0, res.output

    again = _ledger(second)["transactions"]
    # Ids are stable across runs of the same text.
    assert [r["id"] for r in again] == [r["id"] for r in rows]
    harris_again = next(r for r in again if r["id"] == harris["id"])
    assert harris_again["category"] == "Shopping"
    assert harris_again["category_override"] == "Shopping"
    food_lion = [r for r in again if r["merchant"] == "Food Lion Grocery"]
    assert [r["category"] for r in food_lion] == ["Uncategorized", "Cash Back"]


def test_database_backed_runs_share_rules_and_history(tmp_path: Path):
    url = bootstrap_sqlite_db(tmp_path / "ledger.sqlite3")
    runner = CliRunner()
    june = tmp_path / "june.txt"
    july = tmp_path / "july.txt"
    june.write_text(JUNE_2025, encoding="utf-8")
    july.write_text(JULY_2025, encoding="utf-8")

    res = runner.invoke(
        app, ["add-alias", "food lion", "Food Lion Grocery", "--database-url", url]
    )
    assert res.exit_code == 0, res.output

    for path in (june, july):
        res = runner.invoke(
            app,
            [
                "parse",
                str(path),
                "-o",
                str(tmp_path / f"{path.stem}.json"),
                "--persist",
                "--database-url",
                url,
            ],
        )
        assert res.exit_code == 0, res.output

    with session_scope(database_url=url) as session:
        (alias,) = load_rule_snapshot_db(session).aliases
        stored = load_statement(session, "2025-07")

    assert alias.label == "Food Lion Grocery"
    assert stored is not None
    assert stored.label == "July 2025"
    assert stored.opening_balance == Decimal("3145.72")
    june_rows = _ledger(tmp_path / "june.json")["transactions"]
    food_lion = [r for r in june_rows if r["merchant"] == "Food Lion Grocery"]
    assert [r["category"] for r in food_lion] == ["Uncategorized", "Cash Back"]
