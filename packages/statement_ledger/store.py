"""JSON file store for alias rules, category rules and overrides.

Layout (default ``./.statement_ledger/rules.json``, override with the
``SL_RULES_FILE`` environment variable)::

    {"schema_version": 1,
     "aliases": [{"pattern": ..., "label": ..., "mode": ...}],
     "category_rules": [{"key": ..., "category": ..., "source": ...}],
     "overrides": {"<date>|<description>|<amount>": "<category>"}}

Loading is fail-open per collection: an unreadable file yields an empty
snapshot and a collection that fails validation is treated as empty, so a bad
blob degrades categorization rather than stopping a run. Weak token rules are
pruned on load.

Atomicity: writes target ``.tmp`` first and then ``os.replace`` into place.
"""

from __future__ import annotations

import contextlib
import json
import os
from pathlib import Path
from typing import Any

from pydantic import BaseModel, ConfigDict, TypeAdapter, ValidationError

from .logging_setup import get_logger
from .models import (
    AliasRule,
    AliasRuleModel,
    CategoryRule,
    CategoryRuleModel,
    RuleSnapshot,
)
from .resolver import prune_weak_rules

# Bump only when the on-disk JSON shape changes.
SCHEMA_VERSION: int = 1

_logger = get_logger("statement_ledger.store")

_ALIASES = TypeAdapter(list[AliasRuleModel])
_RULES = TypeAdapter(list[CategoryRuleModel])
_OVERRIDES = TypeAdapter(dict[str, str])


class RuleStoreFile(BaseModel):
    """Top-level schema of the rules JSON file."""

    model_config = ConfigDict(strict=True, extra="forbid")

    schema_version: int
    aliases: list[AliasRuleModel]
    category_rules: list[CategoryRuleModel]
    overrides: dict[str, str]


def default_rules_path() -> Path:
    """Return the rules file path.

    Default: ``./.statement_ledger/rules.json`` under the current working
    directory. Override: ``SL_RULES_FILE`` (absolute or relative).
    """

    env = os.getenv("SL_RULES_FILE")
    if env and env.strip():
        return Path(env).expanduser().resolve()
    return (Path.cwd() / ".statement_ledger" / "rules.json").resolve()


# ---------------------------------------------------------------------------
# Model <-> domain conversion (shared with the SQL persistence layer)
# ---------------------------------------------------------------------------


def alias_from_model(m: AliasRuleModel) -> AliasRule:
    return AliasRule(pattern=m.pattern, label=m.label, mode=m.mode)


def rule_from_model(m: CategoryRuleModel) -> CategoryRule:
    return CategoryRule(key=m.key, category=m.category, source=m.source)


def validate_aliases(value: Any, *, origin: str) -> tuple[AliasRule, ...]:
    if value is None:
        return ()
    try:
        return tuple(alias_from_model(m) for m in _ALIASES.validate_python(value))
    except ValidationError:
        _logger.warning("store:aliases_invalid origin=%s; ignoring collection", origin)
        return ()


def validate_category_rules(value: Any, *, origin: str) -> dict[str, CategoryRule]:
    if value is None:
        return {}
    try:
        rules = [rule_from_model(m) for m in _RULES.validate_python(value)]
    except ValidationError:
        _logger.warning("store:category_rules_invalid origin=%s; ignoring collection", origin)
        return {}
    return prune_weak_rules(rules)


def validate_overrides(value: Any, *, origin: str) -> dict[str, str]:
    if value is None:
        return {}
    try:
        return _OVERRIDES.validate_python(value)
    except ValidationError:
        _logger.warning("store:overrides_invalid origin=%s; ignoring collection", origin)
        return {}


def snapshot_from_raw(raw: Any, *, origin: str) -> RuleSnapshot:
    if not isinstance(raw, dict):
        _logger.warning("store:not_an_object origin=%s; using empty rules", origin)
        return RuleSnapshot()
    return RuleSnapshot(
        aliases=validate_aliases(raw.get("aliases"), origin=origin),
        category_rules=validate_category_rules(raw.get("category_rules"), origin=origin),
        overrides=validate_overrides(raw.get("overrides"), origin=origin),
    )


def snapshot_to_file(snapshot: RuleSnapshot) -> RuleStoreFile:
    return RuleStoreFile(
        schema_version=SCHEMA_VERSION,
        aliases=[
            AliasRuleModel(pattern=a.pattern, label=a.label, mode=a.mode) for a in snapshot.aliases
        ],
        category_rules=[
            CategoryRuleModel(key=r.key, category=r.category, source=r.source)
            for r in sorted(snapshot.category_rules.values(), key=lambda r: r.key)
        ],
        overrides=dict(sorted(snapshot.overrides.items())),
    )


# ---------------------------------------------------------------------------
# File I/O
# ---------------------------------------------------------------------------


def load_rule_snapshot(path: Path | None = None) -> RuleSnapshot:
    """Load the rules file; missing or corrupt files give an empty snapshot."""

    target = path or default_rules_path()
    if not target.exists():
        return RuleSnapshot()
    try:
        raw = json.loads(target.read_text(encoding="utf-8"))
    except (OSError, UnicodeDecodeError, json.JSONDecodeError):
        _logger.warning(
            "store:read_failed path=%s; using empty rules", os.fspath(target), exc_info=True
        )
        return RuleSnapshot()
    return snapshot_from_raw(raw, origin=os.fspath(target))


def save_rule_snapshot(snapshot: RuleSnapshot, path: Path | None = None) -> Path:
    """Write the whole snapshot atomically and return the path written."""

    target = path or default_rules_path()
    target.parent.mkdir(parents=True, exist_ok=True)
    tmp = target.with_suffix(target.suffix + ".tmp")
    payload = snapshot_to_file(snapshot).model_dump(mode="json")
    try:
        tmp.write_text(json.dumps(payload, ensure_ascii=False, indent=2), encoding="utf-8")
        os.replace(tmp, target)
    except Exception:
        with contextlib.suppress(FileNotFoundError):
            tmp.unlink()
        raise
    _logger.debug(
        "store:saved path=%s aliases=%d rules=%d overrides=%d",
        os.fspath(target),
        len(snapshot.aliases),
        len(snapshot.category_rules),
        len(snapshot.overrides),
    )
    return target


__all__ = [
    "SCHEMA_VERSION",
    "RuleStoreFile",
    "default_rules_path",
    "alias_from_model",
    "rule_from_model",
    "validate_aliases",
    "validate_category_rules",
    "validate_overrides",
    "snapshot_from_raw",
    "snapshot_to_file",
    "load_rule_snapshot",
    "save_rule_snapshot",
]
