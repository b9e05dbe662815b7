"""Pytest configuration for test isolation.

The rule store defaults to ``./.statement_ledger/rules.json`` under the
working directory. When tests run in the same working tree, a rules file
written by one test (an alias, a learned category rule, an override) would
change how later tests categorize rows.

To keep tests hermetic, we point ``SL_RULES_FILE`` at a per-test temporary
file and clear ``DATABASE_URL`` via an autouse fixture.
"""

from __future__ import annotations

import os
from pathlib import Path

import pytest


@pytest.fixture(autouse=True)
def _isolate_rules_file(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Path:
    """Force a per-test rules file so tests don't share on-disk state."""

    rules_file = tmp_path / "state" / "rules.json"
    monkeypatch.setenv("SL_RULES_FILE", os.fspath(rules_file))
    monkeypatch.delenv("DATABASE_URL", raising=False)
    monkeypatch.setenv("STATEMENT_LEDGER_LOG_LEVEL", "WARNING")
    return rules_file


@pytest.fixture
def rules_file(_isolate_rules_file: Path) -> Path:
    return _isolate_rules_file
