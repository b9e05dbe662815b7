import io
import logging

import pytest

from statement_ledger.logging_setup import configure_logging, get_logger, resolve_level


def test_resolve_level_sources(monkeypatch: pytest.MonkeyPatch):
    assert resolve_level(logging.DEBUG) == logging.DEBUG
    assert resolve_level(" debug ") == logging.DEBUG
    assert resolve_level("15") == 15
    assert resolve_level("chatty") == logging.INFO

    monkeypatch.setenv("STATEMENT_LEDGER_LOG_LEVEL", "error")
    assert resolve_level() == logging.ERROR
    monkeypatch.delenv("STATEMENT_LEDGER_LOG_LEVEL")
    assert resolve_level() == logging.INFO


def test_configure_twice_keeps_one_handler():
    first, second = io.StringIO(), io.StringIO()

    configure_logging("INFO", stream=first)
    root = configure_logging("INFO", stream=second)
    get_logger("extract").info("extract:done lines=%d", 3)

    assert root.name == "statement_ledger"
    assert first.getvalue() == ""
    assert "INFO statement_ledger.extract: extract:done lines=3" in second.getvalue()
    assert sum(isinstance(h, logging.StreamHandler) for h in root.handlers) == 1


def test_get_logger_keeps_package_names():
    assert get_logger("statement_ledger.api").name == "statement_ledger.api"
    assert get_logger("store").name == "statement_ledger.store"
