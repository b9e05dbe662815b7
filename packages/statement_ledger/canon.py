"""Static token and canon tables.

- ``STOPWORDS``: words removed before deriving token keys (generic banking
  words, US state codes, local city names).
- ``CANON_MERCHANTS``: ordered ``(pattern, canonical name)`` pairs evaluated
  top-down; the first match names the merchant.
- ``CANON_MERCHANT_CATEGORY``: confident default category per canonical
  merchant.
- ``SIGNAL_CATEGORIES``: ordered keyword signals consulted when no learned
  rule matched.
- ``CATEGORY_NAMES`` and ``canonicalize_category``: the canonical category
  vocabulary and the alias map for user-entered labels.
"""

from __future__ import annotations

import re

from .models import CASH_BACK_CATEGORY, UNCATEGORIZED

# ---------------------------------------------------------------------------
# Categories
# ---------------------------------------------------------------------------

INCOME_CATEGORY = "Income/Payroll"

CATEGORY_NAMES: tuple[str, ...] = (
    "Fast Food",
    "Dining",
    "Groceries",
    "Fuel",
    "Home/Utilities",
    "Insurance",
    "Entertainment",
    "Shopping",
    "Amazon",
    "Starbucks",
    "Allowance",
    "Vehicle/City Related",
    INCOME_CATEGORY,
    "Transfer: Savings",
    "Transfer: Investing",
    "Rent/Mortgage",
    "Debt",
    "Impulse/Misc",
    "Doctors",
    "Memberships",
    "Subscriptions",
    CASH_BACK_CATEGORY,
    "Travel",
    UNCATEGORIZED,
)

TRANSFER_CATEGORIES = frozenset({"Transfer: Savings", "Transfer: Investing"})

_CATEGORY_ALIASES: dict[str, str] = {
    "fastfood": "Fast Food",
    "quick service": "Fast Food",
    "takeout": "Fast Food",
    "dining out": "Dining",
    "restaurant": "Dining",
    "restaurants": "Dining",
    "grocery": "Groceries",
    "supermarket": "Groceries",
    "gas": "Fuel",
    "gasoline": "Fuel",
    "utilities": "Home/Utilities",
    "utility": "Home/Utilities",
    "electric": "Home/Utilities",
    "internet": "Home/Utilities",
    "cable": "Home/Utilities",
    "auto insurance": "Insurance",
    "car insurance": "Insurance",
    "movies": "Entertainment",
    "tickets": "Entertainment",
    "retail": "Shopping",
    "amazon.com": "Amazon",
    "amzn": "Amazon",
    "sbux": "Starbucks",
    "parking": "Vehicle/City Related",
    "tolls": "Vehicle/City Related",
    "income": INCOME_CATEGORY,
    "payroll": INCOME_CATEGORY,
    "salary": INCOME_CATEGORY,
    "direct deposit": INCOME_CATEGORY,
    "savings transfer": "Transfer: Savings",
    "transfer savings": "Transfer: Savings",
    "brokerage transfer": "Transfer: Investing",
    "transfer investing": "Transfer: Investing",
    "rent": "Rent/Mortgage",
    "mortgage": "Rent/Mortgage",
    "housing": "Rent/Mortgage",
    "loan payment": "Debt",
    "credit card payment": "Debt",
    "misc": "Impulse/Misc",
    "miscellaneous": "Impulse/Misc",
    "medical": "Doctors",
    "doctor": "Doctors",
    "dental": "Doctors",
    "membership": "Memberships",
    "gym membership": "Memberships",
    "subscription": "Subscriptions",
    "streaming": "Subscriptions",
    "cashback": CASH_BACK_CATEGORY,
    "cash-back": CASH_BACK_CATEGORY,
    "airfare": "Travel",
    "hotel": "Travel",
    "uncategorised": UNCATEGORIZED,
    "other": UNCATEGORIZED,
}

_CANON_BY_LOWER = {name.lower(): name for name in CATEGORY_NAMES}


def _tidy(s: str) -> str:
    s = re.sub(r"\s*:\s*", ":", s.lower())
    s = re.sub(r"\s*/\s*", "/", s)
    return re.sub(r"\s+", " ", s).strip()


def canonicalize_category(name: str | None) -> str:
    """Map a user-entered label onto the canonical vocabulary.

    Unknown labels are kept verbatim (users may invent categories); blank
    input becomes ``Uncategorized``.
    """

    raw = (name or "").strip()
    if not raw:
        return UNCATEGORIZED
    if raw in CATEGORY_NAMES:
        return raw
    key = _tidy(raw)
    if key in _CANON_BY_LOWER:
        return _CANON_BY_LOWER[key]
    if key in _CATEGORY_ALIASES:
        return _CATEGORY_ALIASES[key]
    if key.startswith("transfer:"):
        if "saving" in key:
            return "Transfer: Savings"
        if "invest" in key:
            return "Transfer: Investing"
    return raw


# ---------------------------------------------------------------------------
# Tokens
# ---------------------------------------------------------------------------

STOPWORDS: frozenset[str] = frozenset(
    {
        # generic banking / descriptor noise
        "the", "a", "an", "and", "of", "on", "for", "with", "to", "from", "at", "in",
        "by", "purchase", "authorized", "recurring", "payment", "card", "www", "com",
        "bill", "store", "retail", "services", "inc", "llc", "co", "corp", "company",
        "online", "xfer", "epay", "thank", "you", "capital", "one", "ref", "pos",
        "debit", "web", "id", "ppd", "ccd",
        # US state codes
        "al", "ak", "az", "ar", "ca", "ct", "de", "dc", "fl", "ga", "hi", "ia",
        "il", "ks", "ky", "la", "ma", "md", "me", "mi", "mn", "mo", "ms",
        "mt", "nc", "nd", "ne", "nh", "nj", "nm", "nv", "ny", "oh", "ok", "or", "pa",
        "ri", "sc", "sd", "tn", "tx", "ut", "va", "vt", "wa", "wi", "wv", "wy",
        # local city names seen in descriptors
        "chesapeake", "norfolk", "virginia", "beach", "newport", "news", "portsmouth",
        "suffolk", "hampton",
    }
)  # fmt: skip

# Too generic to key a learned rule on their own.
NOISE_UNIGRAMS: frozenset[str] = frozenset(
    {
        "cash", "back", "cashback", "reward", "rewards", "points", "bonus",
        "credit", "debit", "purchase", "payment",
    }
)  # fmt: skip

# Transfers and P2P apps never get a guessed category.
TRANSFER_SIGNAL_RX = re.compile(
    r"\b(?:zelle|venmo|paypal|cash\s*app|transfer|xfer)\b", re.IGNORECASE
)
INCOME_SIGNAL_RX = re.compile(
    r"\b(?:pay\s*roll|direct\s*deposit|ach\s*credit|salary|vacp\s*treas|ssa\s*treas)\b",
    re.IGNORECASE,
)

SIGNAL_CATEGORIES: tuple[tuple[re.Pattern[str], str], ...] = (
    (INCOME_SIGNAL_RX, INCOME_CATEGORY),
    (TRANSFER_SIGNAL_RX, UNCATEGORIZED),
)

# ---------------------------------------------------------------------------
# Canonical merchants
# ---------------------------------------------------------------------------

CANON_MERCHANTS: tuple[tuple[re.Pattern[str], str], ...] = tuple(
    (re.compile(p, re.IGNORECASE), name)
    for p, name in (
        (r"newrez|shellpoin", "Newrez (Mortgage)"),
        (r"truist\s*ln|truist", "Truist Loan"),
        (r"chase\s*credit\s*crd|chase.*epay|\bchase\b", "Chase Credit Card Payment"),
        (r"capital\s*one", "Capital One Credit Card Payment"),
        (r"dominion\s*energy", "Dominion Energy"),
        (r"virginia\s*natural\s*gas|\bvng\b", "Virginia Natural Gas"),
        (r"cox\s*comm", "Cox Communications"),
        (r"t-?mobile", "T-Mobile"),
        (r"hp\s*\*?\s*instant\s*ink", "HP Instant Ink"),
        (r"apple\.com/bill", "Apple.com/Bill"),
        (r"discovery\+", "Discovery+"),
        (r"netflix", "Netflix"),
        (r"progressive", "Progressive Insurance"),
        (r"pac-?life|pacific\s*life", "Pacific Life Insurance"),
        (r"school\s*of\s*rock", "School of Rock"),
        (r"harris\s*teeter", "Harris Teeter"),
        (r"food\s*lion", "Food Lion"),
        (r"\btarget\b", "Target"),
        (r"chick-?fil-?a", "Chick-fil-A"),
        (r"cinema\s*cafe", "Cinema Cafe"),
        (r"prime\s*video", "Prime Video"),
        (r"amazon\s*fresh", "Amazon Fresh"),
        (r"amazon|amzn", "Amazon Marketplace"),
        (r"\bexxon|\bshell\s*oil|\bwawa\b|\bsheetz\b|\bbp#|\b7-?eleven", "Fuel Station"),
        (r"adobe", "Adobe"),
        (r"buzzsprout", "Buzzsprout"),
        (r"ibm.*payroll|payroll.*ibm", "IBM Payroll"),
        (r"leidos.*payroll|payroll.*leidos", "Leidos Payroll"),
        (r"home\s*depot", "Home Depot"),
        (r"starbucks|\bsbux\b", "Starbucks"),
    )
)

CANON_MERCHANT_CATEGORY: dict[str, str] = {
    "Newrez (Mortgage)": "Rent/Mortgage",
    "Truist Loan": "Debt",
    "Chase Credit Card Payment": "Debt",
    "Capital One Credit Card Payment": "Debt",
    "Dominion Energy": "Home/Utilities",
    "Virginia Natural Gas": "Home/Utilities",
    "Cox Communications": "Home/Utilities",
    "T-Mobile": "Home/Utilities",
    "HP Instant Ink": "Subscriptions",
    "Apple.com/Bill": "Subscriptions",
    "Discovery+": "Subscriptions",
    "Netflix": "Subscriptions",
    "Prime Video": "Subscriptions",
    "Adobe": "Subscriptions",
    "Buzzsprout": "Subscriptions",
    "Progressive Insurance": "Insurance",
    "Pacific Life Insurance": "Insurance",
    "School of Rock": "Memberships",
    "Harris Teeter": "Groceries",
    "Food Lion": "Groceries",
    "Amazon Fresh": "Groceries",
    "Amazon Marketplace": "Amazon",
    "Target": "Shopping",
    "Home Depot": "Shopping",
    "Chick-fil-A": "Fast Food",
    "Cinema Cafe": "Entertainment",
    "Fuel Station": "Fuel",
    "IBM Payroll": INCOME_CATEGORY,
    "Leidos Payroll": INCOME_CATEGORY,
    "Starbucks": "Starbucks",
}

# ---------------------------------------------------------------------------
# Recurring detection
# ---------------------------------------------------------------------------

RECURRING_CATEGORIES = frozenset(
    {
        "Rent/Mortgage",
        "Home/Utilities",
        "Insurance",
        "Subscriptions",
        "Memberships",
        "Debt",
        INCOME_CATEGORY,
        "Transfer: Savings",
        "Transfer: Investing",
    }
)

KNOWN_RECURRING_MERCHANTS = frozenset(
    {
        "Newrez (Mortgage)",
        "Truist Loan",
        "Dominion Energy",
        "Virginia Natural Gas",
        "Cox Communications",
        "T-Mobile",
        "HP Instant Ink",
        "Apple.com/Bill",
        "Discovery+",
        "Netflix",
        "Adobe",
        "Buzzsprout",
        "Progressive Insurance",
        "Pacific Life Insurance",
        "School of Rock",
        "IBM Payroll",
        "Leidos Payroll",
    }
)

# Card payments follow the card balance, not a fixed schedule.
NON_RECURRING_MERCHANTS = frozenset(
    {"Chase Credit Card Payment", "Capital One Credit Card Payment"}
)


def canon_merchant(text: str) -> str | None:
    """Return the canonical merchant for ``text`` (first match wins)."""

    for rx, name in CANON_MERCHANTS:
        if rx.search(text):
            return name
    return None


__all__ = [
    "INCOME_CATEGORY",
    "CATEGORY_NAMES",
    "TRANSFER_CATEGORIES",
    "canonicalize_category",
    "STOPWORDS",
    "NOISE_UNIGRAMS",
    "TRANSFER_SIGNAL_RX",
    "INCOME_SIGNAL_RX",
    "SIGNAL_CATEGORIES",
    "CANON_MERCHANTS",
    "CANON_MERCHANT_CATEGORY",
    "RECURRING_CATEGORIES",
    "KNOWN_RECURRING_MERCHANTS",
    "NON_RECURRING_MERCHANTS",
    "canon_merchant",
]
