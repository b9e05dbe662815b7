# ruff: noqa: I001
"""CLI for the ``statement_ledger`` package.

Typer-based console interface over :mod:`statement_ledger.api`. Environment
variables (``SL_RULES_FILE``, ``DATABASE_URL``, ``STATEMENT_LEDGER_LOG_LEVEL``)
are loaded from a local ``.env`` using ``python-dotenv`` before any command
runs; command-line flags win over the environment.

Commands:

- ``parse``: read statement documents, write a JSON ledger and print a
  reconciliation summary per document.
- ``set-category``: override one row's category in a ledger file and learn a
  rule from it.
- ``add-alias``: append a merchant alias rule.

Rules live in the JSON rules file unless ``--database-url`` points the
command at the SQL tables.
"""

from __future__ import annotations

import contextlib
import json
import os
import sys
from decimal import Decimal
from pathlib import Path
from typing import Annotated

import typer
from dotenv import load_dotenv
from typer.models import ArgumentInfo, OptionInfo

from .logging_setup import configure_logging
from .models import ALIAS_MODES

LEDGER_SCHEMA_VERSION = 1


# ---- Small module-level helpers used by CLI commands -------------------------


def _parse_money(raw: str | None, *, flag: str) -> Decimal | None:
    """Parse a money flag; a bad value is a usage error."""

    from .amounts import to_decimal

    if raw is None:
        return None
    try:
        return to_decimal(raw)
    except ValueError as e:
        raise typer.BadParameter(str(e), param_hint=flag) from e


def _fmt_delta(cents: int) -> str:
    from .amounts import fmt_amount, from_cents

    status = "OK" if abs(cents) <= 1 else "MISMATCH"
    return f"delta {fmt_amount(from_cents(cents))} {status}"


def _print_summary(source: str, result) -> None:
    from .amounts import fmt_amount, from_cents

    rec = result.reconciliation
    rows = result.rows
    recurring = sum(1 for r in rows if r.recurring)
    cashback = sum(1 for r in rows if r.kind == "cashback")
    print(f"{source}: {len(rows)} transactions ({result.year})")
    print(
        f"  income   {fmt_amount(from_cents(rec.income_cents)):>12}  "
        f"{_fmt_delta(rec.income_delta_cents)}"
    )
    print(
        f"  expense  {fmt_amount(from_cents(rec.expense_cents)):>12}  "
        f"{_fmt_delta(rec.expense_delta_cents)}"
    )
    print(f"  recurring {recurring}  cashback {cashback}  excluded {len(rec.excluded_rows)}")
    for row in rec.excluded_rows:
        print(f"  excluded {row.date} {fmt_amount(row.amount)} {row.description}")
    for label, mismatch in (
        ("first balance mismatch", result.balance_mismatch),
        ("first running balance mismatch", result.inline_balance_mismatch),
    ):
        if mismatch is None:
            continue
        print(
            f"  {label} {mismatch.date}: computed "
            f"{fmt_amount(mismatch.computed)} statement {fmt_amount(mismatch.statement)} "
            f"(off by {fmt_amount(mismatch.difference)})"
        )
    if result.diagnostics.dropped:
        print(f"  dropped lines {len(result.diagnostics.dropped)}")


def _summary_model(source: str, result, stmt_id: str | None):
    from .amounts import fmt_amount, from_cents
    from .models import StatementInputsModel, StatementSummaryModel

    declared = result.declared
    rec = result.reconciliation
    mismatch = result.balance_mismatch
    inline = result.inline_balance_mismatch

    def _opt(v: Decimal | None) -> str | None:
        return fmt_amount(v) if v is not None else None

    return StatementSummaryModel(
        source=source,
        statement_id=stmt_id,
        year=result.year,
        inputs=StatementInputsModel(
            opening_balance=_opt(result.opening_balance),
            total_deposits=_opt(declared.total_deposits),
            total_withdrawals=_opt(declared.total_withdrawals),
        ),
        income=fmt_amount(from_cents(rec.income_cents)),
        expense=fmt_amount(from_cents(rec.expense_cents)),
        income_delta_cents=rec.income_delta_cents,
        expense_delta_cents=rec.expense_delta_cents,
        reconciled=rec.reconciled,
        excluded_ids=[r.id for r in rec.excluded_rows],
        first_balance_mismatch=mismatch.date if mismatch is not None else None,
        inline_balance_mismatch=inline.date if inline is not None else None,
        dropped_lines=len(result.diagnostics.dropped),
    )


def _write_json_atomic(path: Path, payload: object) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    tmp = path.with_suffix(path.suffix + ".tmp")
    try:
        tmp.write_text(json.dumps(payload, ensure_ascii=False, indent=2), encoding="utf-8")
        os.replace(tmp, path)
    except Exception:
        with contextlib.suppress(FileNotFoundError):
            tmp.unlink()
        raise


# ---- Typer-based console interface -------------------------------------------


app = typer.Typer(
    no_args_is_help=True,
    add_completion=False,
    help=(
        "Parse bank statements into a reconciled, categorized ledger. "
        "Loads SL_RULES_FILE / DATABASE_URL from a local .env before running."
    ),
)


# Module-level parameter objects to satisfy ruff B008 (no calls in parameter
# defaults). Typer inspects these when used as defaults below.
PATHS_ARGUMENT: ArgumentInfo = typer.Argument(
    ...,
    help="Statement documents (.pdf, or text with form feeds between pages).",
    dir_okay=False,
    exists=False,  # allow non-existent here; the handler reports nice errors
)
OUTPUT_OPTION: OptionInfo = typer.Option(
    ..., "--output", "-o", help="Where to write the JSON ledger.", dir_okay=False
)
RULES_FILE_OPTION: OptionInfo = typer.Option(
    "--rules-file", help="Rules JSON file (falls back to SL_RULES_FILE)."
)
DATABASE_URL_OPTION: OptionInfo = typer.Option(
    "--database-url", help="Override DATABASE_URL (falls back to env var)."
)


def _load_rules(rules_file: Path | None, database_url: str | None, use_db: bool):
    if use_db:
        from db.client import create_schema, session_scope
        from .persistence import load_rule_snapshot_db

        create_schema(database_url=database_url)
        with session_scope(database_url=database_url) as session:
            return load_rule_snapshot_db(session)

    from .store import load_rule_snapshot

    return load_rule_snapshot(rules_file)


def _save_rules(snapshot, rules_file: Path | None, database_url: str | None, use_db: bool) -> str:
    """Write the rule snapshot back to where it was read from; return a label for it."""

    if use_db:
        from db.client import session_scope
        from .persistence import save_rule_snapshot_db

        with session_scope(database_url=database_url) as session:
            save_rule_snapshot_db(session, snapshot)
        return "database"

    from .store import save_rule_snapshot

    return str(save_rule_snapshot(snapshot, rules_file))


@app.command("parse")
def parse_cmd(
    paths: Annotated[list[Path], PATHS_ARGUMENT],
    output: Annotated[Path, OUTPUT_OPTION],
    *,
    year: int | None = typer.Option(None, help="Reference year for M/D dates."),
    opening_balance: str | None = typer.Option(
        None, help="Opening balance (defaults to the statement's own)."
    ),
    expected_income: str | None = typer.Option(
        None, help="Declared deposits total (defaults to the statement's own)."
    ),
    expected_expense: str | None = typer.Option(
        None, help="Declared withdrawals total (defaults to the statement's own)."
    ),
    rules_file: Annotated[Path | None, RULES_FILE_OPTION] = None,
    database_url: Annotated[str | None, DATABASE_URL_OPTION] = None,
    persist: bool = typer.Option(
        False, help="Read rules from and save statement snapshots to the database."
    ),
) -> None:
    """Parse statements, write the ledger JSON and print a summary."""

    # Deferred imports to keep CLI startup fast
    from .api import parse_statement, snapshot_statement
    from .ingest.documents import read_document_pages
    from .models import LedgerFile, TransactionRecordModel

    opening = _parse_money(opening_balance, flag="--opening-balance")
    income = _parse_money(expected_income, flag="--expected-income")
    expense = _parse_money(expected_expense, flag="--expected-expense")
    use_db = persist or bool(database_url)

    # Read every input before doing any work; an unreadable input stops the run.
    documents: list[tuple[Path, list[str]]] = []
    for path in paths:
        try:
            documents.append((path, read_document_pages(path)))
        except FileNotFoundError:
            print(f"Error: File not found: {path}", file=sys.stderr)
            raise typer.Exit(1) from None
        except PermissionError:
            print(f"Error: Permission denied: {path}", file=sys.stderr)
            raise typer.Exit(1) from None
        except Exception as e:
            print(f"Error: Unexpected failure reading '{path}': {e}", file=sys.stderr)
            raise typer.Exit(1) from None

    try:
        snapshot = _load_rules(rules_file, database_url, use_db)
    except Exception as e:
        print(f"Error: failed to load rules: {e}", file=sys.stderr)
        raise typer.Exit(1) from None

    history = []
    if persist:
        try:
            from db.client import create_schema, session_scope
            from .persistence import history_rows

            create_schema(database_url=database_url)
            with session_scope(database_url=database_url) as session:
                history = history_rows(session)
        except Exception as e:
            print(f"Error: failed to load statement history: {e}", file=sys.stderr)
            raise typer.Exit(1) from None

    summaries = []
    transactions = []
    failed = 0
    for path, pages in documents:
        try:
            result = parse_statement(
                pages,
                year=year,
                snapshot=snapshot,
                opening_balance=opening,
                expected_income=income,
                expected_expense=expense,
                history=history,
            )
        except ValueError as e:
            print(f"Error: {path}: {e}", file=sys.stderr)
            failed += 1
            continue

        stmt_id = None
        try:
            stmt = snapshot_statement(result, pages)
            stmt_id = stmt.id
        except ValueError as e:
            stmt = None
            print(f"Warning: {path}: {e}; snapshot skipped", file=sys.stderr)

        if persist and stmt is not None:
            try:
                from db.client import session_scope
                from .persistence import upsert_statement

                with session_scope(database_url=database_url) as session:
                    upsert_statement(session, stmt)
            except Exception as e:
                print(f"Error: persistence (snapshot) failed: {e}", file=sys.stderr)
                failed += 1

        _print_summary(str(path), result)
        summaries.append(_summary_model(str(path), result, stmt_id))
        transactions.extend(TransactionRecordModel.from_transaction(r) for r in result.rows)

    ledger = LedgerFile(
        schema_version=LEDGER_SCHEMA_VERSION,
        statements=summaries,
        transactions=transactions,
    )
    try:
        _write_json_atomic(output, ledger.model_dump(mode="json"))
    except OSError as e:
        print(f"Error: failed to write '{output}': {e}", file=sys.stderr)
        raise typer.Exit(1) from None
    print(f"Wrote {len(transactions)} transactions to {output}")

    if failed:
        raise typer.Exit(1)


LEDGER_ARGUMENT: ArgumentInfo = typer.Argument(
    ..., help="Ledger JSON written by `parse`.", dir_okay=False
)


@app.command("set-category")
def set_category_cmd(
    ledger_path: Annotated[Path, LEDGER_ARGUMENT],
    row_id: str,
    category: str,
    *,
    rules_file: Annotated[Path | None, RULES_FILE_OPTION] = None,
    database_url: Annotated[str | None, DATABASE_URL_OPTION] = None,
) -> None:
    """Override one row's category and learn a rule for similar rows.

    Rules are read from and written back to the database when
    ``--database-url`` is given, otherwise to the rules JSON file.
    """

    from pydantic import ValidationError

    from .api import record_category_override
    from .models import LedgerFile, TransactionRecordModel

    try:
        ledger = LedgerFile.model_validate_json(ledger_path.read_text(encoding="utf-8"))
    except FileNotFoundError:
        print(f"Error: File not found: {ledger_path}", file=sys.stderr)
        raise typer.Exit(1) from None
    except (OSError, ValidationError) as e:
        print(f"Error: failed to read ledger '{ledger_path}': {e}", file=sys.stderr)
        raise typer.Exit(1) from None

    use_db = bool(database_url)
    rows = [t.to_transaction() for t in ledger.transactions]
    try:
        snapshot = _load_rules(rules_file, database_url, use_db)
    except Exception as e:
        print(f"Error: failed to load rules: {e}", file=sys.stderr)
        raise typer.Exit(1) from None
    try:
        updated_rows, updated = record_category_override(rows, row_id, category, snapshot)
    except KeyError as e:
        print(f"Error: {e.args[0]}", file=sys.stderr)
        raise typer.Exit(1) from None

    ledger = ledger.model_copy(
        update={"transactions": [TransactionRecordModel.from_transaction(r) for r in updated_rows]}
    )
    try:
        _save_rules(updated, rules_file, database_url, use_db)
        _write_json_atomic(ledger_path, ledger.model_dump(mode="json"))
    except Exception as e:
        print(f"Error: failed to save: {e}", file=sys.stderr)
        raise typer.Exit(1) from None

    changed = next(r for r in updated_rows if r.id == row_id)
    print(f"{changed.id}\t{changed.effective_category}")


@app.command("add-alias")
def add_alias_cmd(
    pattern: str,
    label: str,
    *,
    mode: str = typer.Option("contains", help="contains | startsWith | regex"),
    rules_file: Annotated[Path | None, RULES_FILE_OPTION] = None,
    database_url: Annotated[str | None, DATABASE_URL_OPTION] = None,
) -> None:
    """Append a merchant alias rule (evaluated after existing ones)."""

    import re

    from .models import AliasRule

    if mode not in ALIAS_MODES:
        expected = ", ".join(ALIAS_MODES)
        print(f"Error: unknown mode {mode!r}; expected one of {expected}", file=sys.stderr)
        raise typer.Exit(1)
    if not pattern.strip() or not label.strip():
        print("Error: pattern and label must be non-empty", file=sys.stderr)
        raise typer.Exit(1)
    if mode == "regex":
        try:
            re.compile(pattern)
        except re.error as e:
            print(f"Error: invalid regex {pattern!r}: {e}", file=sys.stderr)
            raise typer.Exit(1) from None

    use_db = bool(database_url)
    try:
        snapshot = _load_rules(rules_file, database_url, use_db)
    except Exception as e:
        print(f"Error: failed to load rules: {e}", file=sys.stderr)
        raise typer.Exit(1) from None
    rule = AliasRule(pattern=pattern.strip(), label=label.strip(), mode=mode)
    try:
        target = _save_rules(snapshot.with_alias(rule), rules_file, database_url, use_db)
    except Exception as e:
        print(f"Error: failed to save rules: {e}", file=sys.stderr)
        raise typer.Exit(1) from None
    print(f"Added alias {rule.label!r} ({rule.mode}) to {target}")


@app.callback(invoke_without_command=True)
def _root(ctx: typer.Context) -> None:
    """Root command.

    Loads ``.env`` from the current working directory (without overriding any
    already-set environment variables) and configures logging.
    """

    # Load environment from .env in CWD (override=False to keep existing env)
    load_dotenv(dotenv_path=Path.cwd() / ".env", override=False)

    # Central logging setup so child loggers inherit configuration
    configure_logging()

    if ctx.invoked_subcommand is None:
        typer.echo("No subcommand provided. Use --help to see available commands.")
        raise typer.Exit(1)


if __name__ == "__main__":  # pragma: no cover
    # Running as a module: `python -m statement_ledger.cli`
    app()
