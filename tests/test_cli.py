from __future__ import annotations

import json
from pathlib import Path

from db.client import session_scope
from typer.testing import CliRunner

from statement_ledger.cli import app
from statement_ledger.persistence import load_rule_snapshot_db, load_statement

from tests.helpers.db import bootstrap_sqlite_db
from tests.helpers.statements import JULY_2025, JUNE_2025, JUNE_2025_BAD_RUNNING, NORFOLK

runner = CliRunner()


def _write(tmp_path: Path, name: str, text: str) -> Path:
    path = tmp_path / name
    path.write_text(text, encoding="utf-8")
    return path


def _parse(tmp_path: Path, *args: str):
    june = _write(tmp_path, "june.txt", JUNE_2025)
    out = tmp_path / "out" / "ledger.json"
    result = runner.invoke(app, ["parse", str(june), "-o", str(out), *args])
    return result, out


def test_parse_writes_ledger_and_prints_summary(tmp_path: Path):
    result, out = _parse(tmp_path)

    assert result.exit_code == 0, result.output
    assert "june.txt: 7 transactions (2025)" in result.output
    assert "MISMATCH" not in result.output
    assert "excluded 2025-06-12 -20.00 Online Transfer" in result.output
    assert f"Wrote 7 transactions to {out}" in result.output

    payload = json.loads(out.read_text(encoding="utf-8"))
    assert payload["schema_version"] == 1
    (summary,) = payload["statements"]
    assert summary["statement_id"] == "2025-06"
    assert summary["reconciled"] is True
    assert summary["expense"] == "334.28"
    assert summary["inputs"]["opening_balance"] == "1000.00"
    assert len(summary["excluded_ids"]) == 1
    assert [t["amount"] for t in payload["transactions"]][:2] == ["2500.00", "-84.20"]
    assert not out.with_suffix(".json.tmp").exists()


def test_parse_reports_running_balance_mismatch(tmp_path: Path):
    june = _write(tmp_path, "june.txt", JUNE_2025_BAD_RUNNING)
    out = tmp_path / "ledger.json"

    result = runner.invoke(app, ["parse", str(june), "-o", str(out)])

    assert result.exit_code == 0, result.output
    assert (
        "first running balance mismatch 2025-06-03: computed 3415.80 statement 3405.80 "
        "(off by 10.00)"
    ) in result.output
    assert "first balance mismatch" not in result.output
    (summary,) = json.loads(out.read_text(encoding="utf-8"))["statements"]
    assert summary["inline_balance_mismatch"] == "2025-06-03"
    assert summary["first_balance_mismatch"] is None


def test_parse_requires_output(tmp_path: Path):
    june = _write(tmp_path, "june.txt", JUNE_2025)

    result = runner.invoke(app, ["parse", str(june)])

    assert result.exit_code == 2


def test_parse_missing_input(tmp_path: Path):
    result = runner.invoke(
        app, ["parse", str(tmp_path / "nope.txt"), "-o", str(tmp_path / "o.json")]
    )

    assert result.exit_code == 1
    assert "Error: File not found" in result.output
    assert not (tmp_path / "o.json").exists()


def test_parse_reports_a_bad_document_and_keeps_going(tmp_path: Path):
    june = _write(tmp_path, "june.txt", JUNE_2025)
    undated = _write(tmp_path, "undated.txt", NORFOLK)
    out = tmp_path / "ledger.json"

    result = runner.invoke(app, ["parse", str(undated), str(june), "-o", str(out)])

    assert result.exit_code == 1
    assert "undated.txt: statement year not given" in result.output
    assert len(json.loads(out.read_text(encoding="utf-8"))["transactions"]) == 7


def test_parse_rejects_bad_money_flag(tmp_path: Path):
    result, _ = _parse(tmp_path, "--expected-expense", "lots")

    assert result.exit_code == 2


def test_expected_flags_override_the_statement(tmp_path: Path):
    result, out = _parse(tmp_path, "--expected-expense", "300.00")

    assert result.exit_code == 0
    assert "MISMATCH" in result.output
    (summary,) = json.loads(out.read_text(encoding="utf-8"))["statements"]
    assert summary["reconciled"] is False


def test_add_alias(rules_file: Path):
    result = runner.invoke(app, ["add-alias", "wm supercenter", "Walmart"])

    assert result.exit_code == 0, result.output
    assert "Added alias 'Walmart' (contains)" in result.output
    aliases = json.loads(rules_file.read_text(encoding="utf-8"))["aliases"]
    assert aliases == [{"pattern": "wm supercenter", "label": "Walmart", "mode": "contains"}]


def test_add_alias_validation(rules_file: Path):
    bad_regex = runner.invoke(app, ["add-alias", "([", "Broken", "--mode", "regex"])
    bad_mode = runner.invoke(app, ["add-alias", "x", "X", "--mode", "fuzzy"])

    assert bad_regex.exit_code == 1
    assert "Error: invalid regex" in bad_regex.output
    assert bad_mode.exit_code == 1
    assert not rules_file.exists()


def test_set_category_updates_ledger_and_rules(tmp_path: Path, rules_file: Path):
    _, out = _parse(tmp_path)
    starbucks = json.loads(out.read_text(encoding="utf-8"))["transactions"][-1]

    result = runner.invoke(app, ["set-category", str(out), starbucks["id"], "restaurant"])

    assert result.exit_code == 0, result.output
    assert f"{starbucks['id']}\tDining" in result.output
    updated = json.loads(out.read_text(encoding="utf-8"))["transactions"][-1]
    assert updated["category_override"] == "Dining"
    rules = json.loads(rules_file.read_text(encoding="utf-8"))
    assert {"key": "alias:starbucks", "category": "Dining", "source": "merchant"} in rules[
        "category_rules"
    ]
    assert list(rules["overrides"].values()) == ["Dining"]


def test_set_category_unknown_row(tmp_path: Path):
    _, out = _parse(tmp_path)

    result = runner.invoke(app, ["set-category", str(out), "nope", "Dining"])

    assert result.exit_code == 1
    assert "Error: no transaction with id 'nope'" in result.output


def test_persist_stores_statement_snapshots(tmp_path: Path):
    url = f"sqlite+pysqlite:///{tmp_path / 'ledger.sqlite3'}"
    result, _ = _parse(tmp_path, "--persist", "--database-url", url)
    assert result.exit_code == 0, result.output

    july = _write(tmp_path, "july.txt", JULY_2025)
    result = runner.invoke(
        app,
        [
            "parse",
            str(july),
            "-o",
            str(tmp_path / "july.json"),
            "--persist",
            "--database-url",
            url,
        ],
    )
    assert result.exit_code == 0, result.output

    with session_scope(database_url=url) as session:
        june = load_statement(session, "2025-06")
        stored_july = load_statement(session, "2025-07")

    assert june is not None and len(june.rows) == 7
    assert june.pages_raw == (JUNE_2025,)
    assert stored_july is not None
    assert len(stored_july.rows) == 1
    assert stored_july.rows[0].recurring is True


def test_add_alias_to_database_feeds_the_next_parse(tmp_path: Path, rules_file: Path):
    url = bootstrap_sqlite_db(tmp_path / "rules.sqlite3")

    result = runner.invoke(
        app, ["add-alias", "norfolk", "City Parking", "--database-url", url]
    )
    assert result.exit_code == 0, result.output
    assert "Added alias 'City Parking' (contains) to database" in result.output
    assert not rules_file.exists()

    norfolk = _write(tmp_path, "norfolk.txt", NORFOLK)
    out = tmp_path / "norfolk.json"
    result = runner.invoke(
        app,
        ["parse", str(norfolk), "-o", str(out), "--year", "2025", "--database-url", url],
    )
    assert result.exit_code == 0, result.output
    (row,) = json.loads(out.read_text(encoding="utf-8"))["transactions"]
    assert row["merchant"] == "City Parking"

    with session_scope(database_url=url) as session:
        aliases = load_rule_snapshot_db(session).aliases
    assert [(a.pattern, a.label, a.mode) for a in aliases] == [
        ("norfolk", "City Parking", "contains")
    ]


def test_set_category_with_database_url_learns_into_the_database(
    tmp_path: Path, rules_file: Path
):
    url = bootstrap_sqlite_db(tmp_path / "rules.sqlite3")
    _, out = _parse(tmp_path, "--database-url", url)
    starbucks = json.loads(out.read_text(encoding="utf-8"))["transactions"][-1]

    result = runner.invoke(
        app, ["set-category", str(out), starbucks["id"], "restaurant", "--database-url", url]
    )

    assert result.exit_code == 0, result.output
    assert not rules_file.exists()
    with session_scope(database_url=url) as session:
        snapshot = load_rule_snapshot_db(session)
    assert snapshot.category_rules["alias:starbucks"].category == "Dining"
    assert list(snapshot.overrides.values()) == ["Dining"]

    # A second parse against the same database picks the override up.
    _, again = _parse(tmp_path, "--database-url", url)
    reparsed = json.loads(again.read_text(encoding="utf-8"))["transactions"][-1]
    assert reparsed["category_override"] == "Dining"


def test_parse_rejects_non_finite_money_flag(tmp_path: Path):
    result, out = _parse(tmp_path, "--opening-balance", "NaN")

    assert result.exit_code == 2
    assert not out.exists()
