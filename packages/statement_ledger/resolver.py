"""Merchant and category resolution.

Merchant precedence: user alias rules (first match by mode), then the static
canon table, then nothing (callers fall back to a cleaned descriptor).

Category precedence: learned rules looked up by ``alias:<merchant>``, then
``tok:<bigram>``, then ``tok:<unigram>``; then the hard-coded signals in
:data:`statement_ledger.canon.SIGNAL_CATEGORIES`; then the default category of
a canonical merchant; otherwise ``Uncategorized``. Overrides are applied by
the ledger builder on top of whatever this module returns.

A :class:`Resolver` wraps one immutable :class:`RuleSnapshot`. Learning never
mutates it: :meth:`Resolver.learn_category_rule` returns the new rule for the
caller to merge into a new snapshot.
"""

from __future__ import annotations

import re
from collections.abc import Iterable
from typing import NamedTuple

from .canon import (
    CANON_MERCHANT_CATEGORY,
    NOISE_UNIGRAMS,
    SIGNAL_CATEGORIES,
    STOPWORDS,
    canon_merchant,
    canonicalize_category,
)
from .logging_setup import get_logger
from .models import UNCATEGORIZED, AliasRule, CategoryRule, RuleSnapshot, RuleSource

_logger = get_logger("statement_ledger.resolver")

_AUTH_TAIL_RX = re.compile(r"\s*\b[SP]\d{6,}\b.*$")
_CARD_TAIL_RX = re.compile(r"\s*\bCard\s?\d{4}\b.*$", re.IGNORECASE)
_AUTH_PREFIX_RX = re.compile(
    r"^.*?\b(?:authorized|recurring\s+payment)\s+on\s+\d{1,2}/\d{1,2}\s*", re.IGNORECASE
)
_LEADING_KIND_RX = re.compile(
    r"^(?:purchase\s+with\s+cash\s*back\s+\$?[\d,]*\.?\d*|purchase|recurring\s+payment)\s+",
    re.IGNORECASE,
)


# ---------------------------------------------------------------------------
# Descriptor cleanup and token keys
# ---------------------------------------------------------------------------


def strip_auth_and_card(text: str) -> str:
    """Drop an auth code or ``Card NNNN`` suffix and everything after it."""

    s = _AUTH_TAIL_RX.sub("", text)
    s = _CARD_TAIL_RX.sub("", s)
    return re.sub(r"\s+", " ", s).strip()


def merchant_guess(text: str) -> str:
    """Best-effort merchant text: the descriptor minus bank boilerplate."""

    s = strip_auth_and_card(text)
    guess = _AUTH_PREFIX_RX.sub("", s)
    guess = _LEADING_KIND_RX.sub("", guess).strip()
    return guess or s


def token_list(text: str) -> list[str]:
    s = merchant_guess(text).lower()
    s = re.sub(r"#\s*\d+", " ", s)
    s = re.sub(r"\d+", " ", s)
    s = re.sub(r"[^a-z]+", " ", s)
    return [t for t in s.split() if len(t) > 2 and t not in STOPWORDS]


def token_keys(text: str) -> tuple[str | None, str | None]:
    """Return ``(bigram_key, unigram_key)`` for a descriptor."""

    toks = token_list(text)
    bigram = f"tok:{toks[0]}_{toks[1]}" if len(toks) >= 2 else None
    unigram = f"tok:{toks[0]}" if toks else None
    return bigram, unigram


def alias_key(label: str) -> str:
    return f"alias:{label.strip().lower()}"


def is_weak_rule(rule: CategoryRule) -> bool:
    """Token rules too generic to keep (stopwords, noise, short unigrams)."""

    if not rule.key.startswith("tok:"):
        return False
    body = rule.key[4:].strip()
    if not body or body in STOPWORDS:
        return True
    return "_" not in body and (len(body) <= 3 or body in NOISE_UNIGRAMS)


def prune_weak_rules(rules: Iterable[CategoryRule]) -> dict[str, CategoryRule]:
    kept: dict[str, CategoryRule] = {}
    for rule in rules:
        if is_weak_rule(rule):
            _logger.debug("rules:prune key=%s category=%s", rule.key, rule.category)
            continue
        kept[rule.key] = rule
    return kept


# ---------------------------------------------------------------------------
# Resolver
# ---------------------------------------------------------------------------


class Resolution(NamedTuple):
    merchant: str | None
    category: str
    rule_key: str | None = None
    source: str = "default"


class Resolver:
    """Resolve merchants and categories against one rule snapshot."""

    def __init__(self, snapshot: RuleSnapshot | None = None) -> None:
        snap = snapshot or RuleSnapshot()
        self._aliases: tuple[AliasRule, ...] = tuple(snap.aliases)
        self._rules = prune_weak_rules(snap.category_rules.values())
        self._regex_cache: dict[str, re.Pattern[str] | None] = {}

    @property
    def rules(self) -> dict[str, CategoryRule]:
        return dict(self._rules)

    def _compiled(self, pattern: str) -> re.Pattern[str] | None:
        if pattern not in self._regex_cache:
            try:
                self._regex_cache[pattern] = re.compile(pattern, re.IGNORECASE)
            except re.error:
                _logger.debug("alias:invalid_regex pattern=%r", pattern)
                self._regex_cache[pattern] = None
        return self._regex_cache[pattern]

    def alias_matches(self, rule: AliasRule, descriptor: str) -> bool:
        hay = strip_auth_and_card(descriptor).lower()
        if rule.mode == "regex":
            rx = self._compiled(rule.pattern)
            return bool(rx and rx.search(hay))
        pat = rule.pattern.strip().lower()
        if not pat:
            return False
        if rule.mode == "startsWith":
            return hay.startswith(pat) or merchant_guess(descriptor).lower().startswith(pat)
        return pat in hay

    def resolve_merchant(self, descriptor: str) -> tuple[str | None, str | None]:
        """Return ``(merchant, via)`` where ``via`` is ``alias``, ``canon`` or ``None``."""

        for rule in self._aliases:
            if self.alias_matches(rule, descriptor):
                return rule.label, "alias"
        name = canon_merchant(descriptor)
        if name:
            return name, "canon"
        return None, None

    def candidate_keys(self, descriptor: str, merchant: str | None = None) -> list[str]:
        """Rule lookup keys in precedence order."""

        keys: list[str] = []
        if merchant:
            keys.append(alias_key(merchant))
        bigram, unigram = token_keys(descriptor)
        keys.extend(k for k in (bigram, unigram) if k)
        return keys

    def lookup_rule(self, keys: Iterable[str]) -> CategoryRule | None:
        for key in keys:
            rule = self._rules.get(key)
            if rule is not None:
                return rule
        return None

    def resolve(self, descriptor: str) -> Resolution:
        merchant, via = self.resolve_merchant(descriptor)
        rule = self.lookup_rule(self.candidate_keys(descriptor, merchant))
        if rule is not None:
            return Resolution(merchant, rule.category, rule.key, "rule")
        for rx, category in SIGNAL_CATEGORIES:
            if rx.search(descriptor):
                return Resolution(merchant, category, None, "signal")
        if merchant and merchant in CANON_MERCHANT_CATEGORY:
            return Resolution(merchant, CANON_MERCHANT_CATEGORY[merchant], None, "canon")
        return Resolution(merchant, UNCATEGORIZED, None, "default")

    def derive_rule_key(self, descriptor: str) -> tuple[str, RuleSource] | None:
        """Key a learned rule for ``descriptor`` would be stored under.

        Alias and canon merchants key on ``alias:<merchant>``; everything else
        keys on the first token bigram (or unigram).
        """

        merchant, via = self.resolve_merchant(descriptor)
        if merchant:
            return alias_key(merchant), ("alias" if via == "alias" else "merchant")
        bigram, unigram = token_keys(descriptor)
        key = bigram or unigram
        return (key, "token") if key else None

    def learn_category_rule(self, descriptor: str, category: str) -> CategoryRule | None:
        """Return the rule that would pin ``descriptor`` to ``category``.

        ``None`` when the only available key is too weak to keep.
        """

        derived = self.derive_rule_key(descriptor)
        if derived is None:
            return None
        key, source = derived
        rule = CategoryRule(key=key, category=canonicalize_category(category), source=source)
        if is_weak_rule(rule):
            return None
        return rule


__all__ = [
    "strip_auth_and_card",
    "merchant_guess",
    "token_list",
    "token_keys",
    "alias_key",
    "is_weak_rule",
    "prune_weak_rules",
    "Resolution",
    "Resolver",
]
