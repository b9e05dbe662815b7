"""Statement-family pattern tables.

Every table here is ordered and evaluated top-down, first match wins. The
order is part of the contract: reordering entries changes which kind, sign or
merchant existing statements resolve to.
"""

from __future__ import annotations

import re

# ---------------------------------------------------------------------------
# Line shapes
# ---------------------------------------------------------------------------

MONTHS = ("jan", "feb", "mar", "apr", "may", "jun", "jul", "aug", "sep", "oct", "nov", "dec")

_MONTH_NAME = r"(?:Jan|Feb|Mar|Apr|May|Jun|Jul|Aug|Sep|Sept|Oct|Nov|Dec)[a-z]*\.?"

AMOUNT_ONLY_RX = re.compile(r"^\$?\s*\d{1,3}(?:,\d{3})*\.\d{2}$|^\$?\s*\d+\.\d{2}$")
DATE_ONLY_RX = re.compile(rf"^(?:\d{{1,2}}/\d{{1,2}}|{_MONTH_NAME}\s+\d{{1,2}})$", re.IGNORECASE)
LEADING_DATE_RX = re.compile(r"^(\d{1,2}/\d{1,2})\s+(?=\S)")
INLINE_AMOUNT_RX = re.compile(r"(?<![\d/])\$?\s?(\d{1,3}(?:,\d{3})*\.\d{2}|\d+\.\d{2})(?!\d)")

SECTION_HEADER_RX = re.compile(
    r"^(?:"
    r"Beginning\s+balance\s+on"
    r"|Ending\s+balance\s+on"
    r"|Deposits/Additions"
    r"|Withdrawals/Subtractions"
    r"|Deposits\s+and\s+(?:other\s+)?Additions"
    r"|Withdrawals\s+and\s+(?:other\s+)?Subtractions"
    r"|Account\s+summary"
    r"|Daily\s+(?:ending|ledger)\s+balance"
    r"|Ending\s+daily\s+balance"
    r"|Transaction\s+history"
    r"|Page\s+\d+\s+of\s+\d+"
    r"|Fee\s+period"
    r"|Totals?\s+\$?\d"
    r")",
    re.IGNORECASE,
)

# ---------------------------------------------------------------------------
# Transaction kinds (precedence: cashback > deposit > billpay > card)
# ---------------------------------------------------------------------------

CASHBACK_RX = re.compile(r"Purchase\s+with\s+Cash\s*Back\b", re.IGNORECASE)

DEPOSIT_RX = re.compile(
    r"\b(?:pay\s*roll|direct\s*deposit|e\s*deposit|edeposit|ach\s*credit|vacp\s*treas"
    r"|irs\s*treas|us\s*treas|ssa\s*treas|ssa|inst\s*xfer\s*from|mobile\s*deposit"
    r"|branch\s*deposit|atm\s*check\s*deposit|zelle\s*(?:from|credit)"
    r"|online\s*transfer\s*from|transfer\s*from)\b",
    re.IGNORECASE,
)

BILL_RX = re.compile(
    r"\b(?:newrez|shellpoint|truist|chase|capital\s*one|progressive|pac-?life|dominion"
    r"|virginia\s*natural\s*gas|t-?mobile|cox\s*comm\w*|adobe|buzzsprout|netflix"
    r"|online\s*transfer\s*to|transfer\s*to|zelle\s*(?:to|payment)|ach\s*debit|epay|e-pay)\b"
    r"|apple\.com/bill|discovery\+|hp\s*\*?\s*instant\s*ink",
    re.IGNORECASE,
)

CARD_RX = re.compile(r"\bCard\s?\d{4}\b|\bauthorized\s+on\b", re.IGNORECASE)

# A continuation line holding only an auth code and/or card suffix.
CODE_ONLY_RX = re.compile(r"^(?:[SP]\d{6,}\s*)?Card\s?\d{4}\s*$|^[SP]\d{6,}\s*$", re.IGNORECASE)

CARD_LAST4_RX = re.compile(r"\bCard\s?(\d{4})\b", re.IGNORECASE)
AUTH_CODE_RX = re.compile(r"\b[SP]\d{6,}\b")
AUTHORIZED_ON_RX = re.compile(r"\bauthorized\s+on\s+(\d{1,2}/\d{1,2})\b", re.IGNORECASE)
CASHBACK_AMOUNT_RX = re.compile(
    r"cash\s*back\s*\$?\s*(\d{1,3}(?:,\d{3})*(?:\.\d{2})?)", re.IGNORECASE
)

# ---------------------------------------------------------------------------
# Sign rules (credit patterns flip, debit patterns force; debit wins)
# ---------------------------------------------------------------------------

CREDIT_PATTERNS: tuple[re.Pattern[str], ...] = (
    re.compile(r"\b(?:online\s*)?(?:transfer|xfer)\s*from\b", re.IGNORECASE),
    re.compile(r"\bzelle\b.*\b(?:from|credit)\b", re.IGNORECASE),
    re.compile(r"\bach\s*credit\b", re.IGNORECASE),
    re.compile(r"\bpayment\s*received\b|\bpmt\s*rcvd\b", re.IGNORECASE),
    re.compile(r"\b(?:refund|reversal|return)\b", re.IGNORECASE),
    re.compile(r"\bcredit\s*interest\b|\binterest\s*(?:payment|credit)\b", re.IGNORECASE),
    re.compile(
        r"\b(?:vacp\s*treas|us\s*treas|irs\s*treas|ssa|social\s*security|treasury)\b",
        re.IGNORECASE,
    ),
    DEPOSIT_RX,
)

DEBIT_PATTERNS: tuple[re.Pattern[str], ...] = (
    re.compile(r"\b(?:transfer|xfer)\s*to\b", re.IGNORECASE),
    re.compile(r"\bzelle\b.*\b(?:to|payment)\b", re.IGNORECASE),
    re.compile(r"\bach\s*debit\b", re.IGNORECASE),
    re.compile(
        r"\b(?:epay|e-pay|card\s*payment|crd\s*epay|credit\s*card\s*pmt)\b", re.IGNORECASE
    ),
)

# ---------------------------------------------------------------------------
# Reconciliation
# ---------------------------------------------------------------------------

STRONG_DEPOSIT_RX = re.compile(
    r"pay\s*roll|direct\s*deposit|e\s*deposit|edeposit|mobile\s*deposit|branch\s*deposit"
    r"|check\s*deposit|zelle\s*(?:from|credit)|online\s*transfer\s*from|xfer\s*from"
    r"|ach\s*credit|credit\s+interest|interest\s+(?:payment|credit)|refund|reversal"
    r"|return|vacp\s*treas|irs\s*treas|\bssa\b",
    re.IGNORECASE,
)

# Transfers between the account holder's own accounts.
INTERNAL_TRANSFER_RX = re.compile(
    r"\bonline\s+transfer\s+to\b.*\b(?:wells\s+fargo\s+clear|way2save|savings|brokerage)\b",
    re.IGNORECASE,
)

# ---------------------------------------------------------------------------
# Statement-level text (scrapers)
# ---------------------------------------------------------------------------

FEE_PERIOD_RX = re.compile(
    r"Fee\s+period\s+(\d{1,2})/(\d{1,2})/(\d{4})\s*-\s*(\d{1,2})/(\d{1,2})/(\d{4})",
    re.IGNORECASE,
)
YEAR_RX = re.compile(r"\b(20\d{2})\b")
OPENING_BALANCE_RX = re.compile(
    r"Beginning\s+balance\s+on\s+\d{1,2}/\d{1,2}\s+\$?\s*(-?\d[\d,]*\.\d{2})", re.IGNORECASE
)
ENDING_BALANCE_RX = re.compile(
    r"Ending\s+balance\s+on\s+(\d{1,2})/(\d{1,2})\s+\$?\s*(-?\d[\d,]*\.\d{2})", re.IGNORECASE
)
DEPOSITS_TOTAL_RX = re.compile(
    r"Deposits/Additions\s+\$?\s*(\d[\d,]*\.\d{2})", re.IGNORECASE
)
WITHDRAWALS_TOTAL_RX = re.compile(
    r"Withdrawals/Subtractions\s+-?\s*\$?\s*(\d[\d,]*\.\d{2})", re.IGNORECASE
)
DAILY_TABLE_HEADER_RX = re.compile(r"Daily\s+(?:ending|ledger)\s+balance", re.IGNORECASE)
DAILY_TABLE_PAIR_RX = re.compile(
    rf"\b(\d{{1,2}}/\d{{1,2}}|{_MONTH_NAME}\s+\d{{1,2}})"
    r"\s+\$?\s*(-?\d{1,3}(?:,\d{3})*\.\d{2})",
    re.IGNORECASE,
)
DAILY_TABLE_END_RX = re.compile(
    r"^(?:The\s+Ending\s+Daily\s+Balance|Average\s+daily|Page\s+\d+\s+of|Monthly\s+service"
    r"|Overdraft|IMPORTANT|Account\s+transaction\s+fees)",
    re.IGNORECASE,
)


__all__ = [
    "MONTHS",
    "AMOUNT_ONLY_RX",
    "DATE_ONLY_RX",
    "LEADING_DATE_RX",
    "INLINE_AMOUNT_RX",
    "SECTION_HEADER_RX",
    "CASHBACK_RX",
    "DEPOSIT_RX",
    "BILL_RX",
    "CARD_RX",
    "CODE_ONLY_RX",
    "CARD_LAST4_RX",
    "AUTH_CODE_RX",
    "AUTHORIZED_ON_RX",
    "CASHBACK_AMOUNT_RX",
    "CREDIT_PATTERNS",
    "DEBIT_PATTERNS",
    "STRONG_DEPOSIT_RX",
    "INTERNAL_TRANSFER_RX",
    "FEE_PERIOD_RX",
    "YEAR_RX",
    "OPENING_BALANCE_RX",
    "ENDING_BALANCE_RX",
    "DEPOSITS_TOTAL_RX",
    "WITHDRAWALS_TOTAL_RX",
    "DAILY_TABLE_HEADER_RX",
    "DAILY_TABLE_PAIR_RX",
    "DAILY_TABLE_END_RX",
]
