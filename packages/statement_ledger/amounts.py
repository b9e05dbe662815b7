"""Money helpers shared by extraction, reconciliation and serialization.

Amounts travel through the engine as :class:`~decimal.Decimal`. Reconciliation
converts to integer cents so that subset sums never drift; everything written
to disk is a two-decimal string (``"-58.00"``).
"""

from __future__ import annotations

from decimal import ROUND_HALF_UP, Decimal, InvalidOperation

CENT = Decimal("0.01")
ZERO = Decimal("0.00")


def to_decimal(raw: str | None) -> Decimal:
    """Parse a statement amount such as ``"$1,234.56"`` or ``"(12.00)"``.

    Raises ``ValueError`` on empty, non-numeric or non-finite input.
    """

    if raw is None:
        raise ValueError("amount is required")
    s = raw.strip()
    if not s:
        raise ValueError("amount is empty")
    negative = False

    # Strip leading sign, currency symbol and parentheses in any order.
    while True:
        changed = False
        if s.startswith("+"):
            s = s[1:].lstrip()
            changed = True
        elif s.startswith("-"):
            negative = True
            s = s[1:].lstrip()
            changed = True
        if s.startswith("$"):
            s = s[1:].lstrip()
            changed = True
        if s.startswith("(") and s.endswith(")") and len(s) >= 2:
            negative = True
            s = s[1:-1].strip()
            changed = True
        if not changed:
            break

    s = s.replace(",", "").replace(" ", "")
    try:
        d = Decimal(s)
    except InvalidOperation as exc:
        raise ValueError(f"invalid amount: {raw!r}") from exc
    if not d.is_finite():
        raise ValueError(f"invalid amount: {raw!r}")
    return -abs(d) if negative else d


def quantize(d: Decimal) -> Decimal:
    return d.quantize(CENT, rounding=ROUND_HALF_UP)


def fmt_amount(d: Decimal) -> str:
    """Exactly two decimals, ASCII dot, leading minus for negatives."""

    q = quantize(d)
    if q == 0:
        # Avoid "-0.00" in keys and output.
        q = ZERO
    return f"{q:.2f}"


def to_cents(d: Decimal) -> int:
    return int(quantize(d) * 100)


def from_cents(cents: int) -> Decimal:
    return quantize(Decimal(cents) / 100)


__all__ = ["CENT", "ZERO", "to_decimal", "quantize", "fmt_amount", "to_cents", "from_cents"]
