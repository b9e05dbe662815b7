"""Logging for ``statement_ledger``.

Engine modules log through ``get_logger("statement_ledger.<module>")`` and
never attach handlers. Only the CLI calls :func:`configure_logging`, which
installs one stderr handler on the ``statement_ledger`` logger; the level
comes from the argument, then ``STATEMENT_LEDGER_LOG_LEVEL``, then ``INFO``.
"""

from __future__ import annotations

import logging
import os
import sys
from typing import IO

ROOT_LOGGER = "statement_ledger"
LEVEL_ENV = "STATEMENT_LEDGER_LOG_LEVEL"
LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"

_root = logging.getLogger(ROOT_LOGGER)
# Silent until a host application (or our CLI) configures output.
_root.addHandler(logging.NullHandler())


class _CliHandler(logging.StreamHandler):
    """Marker type so repeated configuration replaces rather than stacks."""


def resolve_level(level: int | str | None = None) -> int:
    if level is None:
        level = os.getenv(LEVEL_ENV) or logging.INFO
    if isinstance(level, int):
        return level
    name = level.strip().upper()
    if name.isdigit():
        return int(name)
    value = logging.getLevelNamesMapping().get(name)
    return value if value is not None else logging.INFO


def configure_logging(
    level: int | str | None = None, *, stream: IO[str] | None = None
) -> logging.Logger:
    """Send package log records to ``stream`` (stderr by default)."""

    for handler in list(_root.handlers):
        if isinstance(handler, _CliHandler):
            _root.removeHandler(handler)

    handler = _CliHandler(stream if stream is not None else sys.stderr)
    handler.setFormatter(logging.Formatter(LOG_FORMAT))
    _root.addHandler(handler)
    _root.setLevel(resolve_level(level))
    _root.propagate = False
    return _root


def get_logger(name: str) -> logging.Logger:
    if name != ROOT_LOGGER and not name.startswith(ROOT_LOGGER + "."):
        name = f"{ROOT_LOGGER}.{name}"
    return logging.getLogger(name)


__all__ = ["ROOT_LOGGER", "LEVEL_ENV", "configure_logging", "get_logger", "resolve_level"]
