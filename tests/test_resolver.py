# ruff: noqa: E501
from statement_ledger.models import AliasRule, CategoryRule, RuleSnapshot
from statement_ledger.resolver import (
    Resolver,
    is_weak_rule,
    merchant_guess,
    prune_weak_rules,
    token_keys,
)

HARRIS = "Purchase authorized on 06/01 Harris Teeter #0123 Norfolk VA S385153000111111 Card 5280"
NORFOLK = "Purchase authorized on 06/25 City of Norfolk Norfolk VA Card 5280"
ZELLE = "Zelle to Bob Smith on 06/03 Ref # Pp0Abc"
TAPHOUSE = "Purchase authorized on 06/02 Blue Moon Taphouse Norfolk VA Card 1234"


def _snapshot(*, aliases=(), rules=()) -> RuleSnapshot:
    return RuleSnapshot(aliases=tuple(aliases), category_rules={r.key: r for r in rules})


def test_merchant_guess_strips_bank_boilerplate():
    assert merchant_guess(HARRIS) == "Harris Teeter #0123 Norfolk VA"
    assert merchant_guess(NORFOLK) == "City of Norfolk Norfolk VA"


def test_alias_beats_canon_table():
    resolver = Resolver(_snapshot(aliases=[AliasRule("harris teeter", "HT Grocery")]))

    assert resolver.resolve_merchant(HARRIS) == ("HT Grocery", "alias")
    assert Resolver().resolve_merchant(HARRIS) == ("Harris Teeter", "canon")


def test_alias_modes():
    starts = AliasRule("city of norfolk", "City of Norfolk", "startsWith")
    regex = AliasRule(r"blue\s+moon", "Blue Moon", "regex")
    resolver = Resolver(_snapshot(aliases=[starts, regex]))

    assert resolver.resolve_merchant(NORFOLK) == ("City of Norfolk", "alias")
    assert resolver.resolve_merchant(TAPHOUSE) == ("Blue Moon", "alias")


def test_invalid_regex_alias_is_skipped():
    bad = AliasRule("([", "Broken", "regex")
    resolver = Resolver(_snapshot(aliases=[bad]))

    assert resolver.resolve_merchant(HARRIS) == ("Harris Teeter", "canon")
    assert resolver.resolve_merchant(TAPHOUSE) == (None, None)


def test_token_keys():
    assert token_keys(ZELLE) == ("tok:zelle_bob", "tok:zelle")
    assert token_keys("Purchase authorized on 06/01 Card 1234") == (None, None)


def test_category_precedence_rule_then_signal_then_canon_then_default():
    assert Resolver().resolve(ZELLE).category == "Uncategorized"
    assert Resolver().resolve(ZELLE).source == "signal"

    learned = Resolver(_snapshot(rules=[CategoryRule("tok:zelle_bob", "Allowance")]))
    res = learned.resolve(ZELLE)
    assert (res.category, res.rule_key, res.source) == ("Allowance", "tok:zelle_bob", "rule")

    res = Resolver().resolve(HARRIS)
    assert (res.merchant, res.category, res.source) == ("Harris Teeter", "Groceries", "canon")

    res = Resolver().resolve(TAPHOUSE)
    assert (res.merchant, res.category, res.source) == (None, "Uncategorized", "default")


def test_alias_key_beats_token_keys():
    rules = [
        CategoryRule("alias:harris teeter", "Shopping", "merchant"),
        CategoryRule("tok:harris_teeter", "Dining"),
    ]
    assert Resolver(_snapshot(rules=rules)).resolve(HARRIS).category == "Shopping"


def test_weak_rules_are_pruned():
    assert is_weak_rule(CategoryRule("tok:the", "Dining"))
    assert is_weak_rule(CategoryRule("tok:gym", "Memberships"))
    assert is_weak_rule(CategoryRule("tok:cash", "Cash Back"))
    assert not is_weak_rule(CategoryRule("tok:zelle_bob", "Allowance"))
    assert not is_weak_rule(CategoryRule("alias:gym", "Memberships", "alias"))

    kept = prune_weak_rules(
        [CategoryRule("tok:pos", "Shopping"), CategoryRule("tok:taphouse", "Dining")]
    )
    assert list(kept) == ["tok:taphouse"]

    resolver = Resolver(_snapshot(rules=[CategoryRule("tok:pos", "Shopping")]))
    assert resolver.rules == {}


def test_learn_category_rule_key_choice():
    rule = Resolver().learn_category_rule(HARRIS, "groceries")
    assert rule == CategoryRule("alias:harris teeter", "Groceries", "merchant")

    aliased = Resolver(_snapshot(aliases=[AliasRule("blue moon", "Blue Moon")]))
    rule = aliased.learn_category_rule(TAPHOUSE, "Dining")
    assert rule == CategoryRule("alias:blue moon", "Dining", "alias")

    rule = Resolver().learn_category_rule(TAPHOUSE, "restaurant")
    assert rule == CategoryRule("tok:blue_moon", "Dining", "token")

    assert Resolver().learn_category_rule("Purchase authorized on 06/01 Card 1234", "Dining") is None


def test_derive_rule_key():
    assert Resolver().derive_rule_key(HARRIS) == ("alias:harris teeter", "merchant")
    assert Resolver().derive_rule_key(ZELLE) == ("tok:zelle_bob", "token")
    assert Resolver().derive_rule_key("Purchase authorized on 06/01 Card 1234") is None
