"""Transaction extraction state machine.

The primary pass walks the classified lines once:

- a ``date`` line updates the current date context;
- a ``descriptor`` line is classified into a kind (cashback > deposit >
  billpay > card, otherwise skipped), given a posting date, and paired with an
  amount by :func:`scan_for_amount`;
- ``header`` and stray ``amount`` lines are ignored.

A second, cashback-only recovery pass revisits every cashback descriptor
independently of the primary pass's cursor and adds the ones the primary pass
missed. Both passes share one set of dedup keys, so a line seen twice yields
one candidate. Bare amount lines taken by the primary pass are not handed out
a second time; a cashback descriptor whose only amount was already taken
falls back to an amount printed at the end of its own line. Debit candidates
carrying a cash-back sub-amount are then split into a reduced purchase and a
separate cash-back candidate.

Nothing here raises for malformed input: lines without a usable date or amount
are dropped and recorded in :class:`ParseDiagnostics`.
"""

from __future__ import annotations

import re
from collections.abc import Sequence
from dataclasses import replace
from decimal import Decimal
from typing import NamedTuple

from .amounts import fmt_amount, quantize, to_decimal
from .lines import month_day_to_iso
from .logging_setup import get_logger
from .models import (
    CASH_BACK_CATEGORY,
    ClassifiedLine,
    ParseDiagnostics,
    TransactionCandidate,
    TransactionKind,
)
from .patterns import (
    AUTH_CODE_RX,
    AUTHORIZED_ON_RX,
    BILL_RX,
    CARD_LAST4_RX,
    CARD_RX,
    CASHBACK_AMOUNT_RX,
    CASHBACK_RX,
    CODE_ONLY_RX,
    CREDIT_PATTERNS,
    DEBIT_PATTERNS,
    DEPOSIT_RX,
    INLINE_AMOUNT_RX,
    LEADING_DATE_RX,
)

_logger = get_logger("statement_ledger.extract")

_TRAILING_AMOUNTS_RX = re.compile(r"(?:\s+\$?\d{1,3}(?:,\d{3})*\.\d{2}|\s+\$?\d+\.\d{2})+$")


class AmountScan(NamedTuple):
    """Result of scanning forward from a descriptor line.

    ``cursor`` is the index of the first line the caller has not consumed.
    ``source`` is ``"standalone"``, ``"inline"`` or ``"none"``;
    ``amount_index`` is the position of the standalone amount line, if any.
    """

    amount: Decimal | None
    cursor: int
    balance: Decimal | None = None
    source: str = "none"
    amount_index: int | None = None


# ---------------------------------------------------------------------------
# Classification helpers
# ---------------------------------------------------------------------------


def classify_kind(text: str) -> TransactionKind | None:
    """Return the transaction kind for a descriptor, or ``None`` to skip it."""

    if CODE_ONLY_RX.match(text):
        return None
    if CASHBACK_RX.search(text):
        return "cashback"
    if DEPOSIT_RX.search(text):
        return "deposit"
    if BILL_RX.search(text):
        return "billpay"
    if CARD_RX.search(text):
        return "card"
    return None


def resolve_sign(descriptor: str, kind: TransactionKind) -> int:
    """Return ``+1`` for money in, ``-1`` for money out.

    Deposits default to credit, everything else to debit. Credit patterns flip
    the sign; debit patterns are applied last and always win.
    """

    if kind == "cashback":
        return -1
    sign = 1 if kind == "deposit" else -1
    if any(rx.search(descriptor) for rx in CREDIT_PATTERNS):
        sign = 1
    if any(rx.search(descriptor) for rx in DEBIT_PATTERNS):
        sign = -1
    return sign


def last_inline_amount(text: str) -> Decimal | None:
    found = INLINE_AMOUNT_RX.findall(text)
    if not found:
        return None
    return to_decimal(found[-1])


def _trailing_amount(text: str) -> Decimal | None:
    m = _TRAILING_AMOUNTS_RX.search(text)
    return last_inline_amount(m.group(0)) if m else None


def _is_boundary(line: ClassifiedLine) -> bool:
    return line.kind in ("date", "header") or line.date_token is not None


def scan_for_amount(lines: Sequence[ClassifiedLine], start: int) -> AmountScan:
    """Find the amount belonging to the descriptor at ``lines[start]``.

    Walks forward until the next date line, header or dated descriptor (never
    crossing one). The first bare amount line wins; a second bare amount right
    after it is the running balance and is consumed too. Without a bare
    amount, the last inline amount on the descriptor line itself is used.
    """

    j = start + 1
    while j < len(lines):
        line = lines[j]
        if _is_boundary(line):
            break
        if line.kind == "amount":
            amount = to_decimal(line.text)
            nxt = j + 1
            if nxt < len(lines) and lines[nxt].kind == "amount":
                balance = to_decimal(lines[nxt].text)
                return AmountScan(amount, nxt + 1, balance, "standalone", j)
            return AmountScan(amount, nxt, None, "standalone", j)
        j += 1

    inline = last_inline_amount(lines[start].text)
    if inline is None:
        return AmountScan(None, start + 1)
    return AmountScan(inline, start + 1, None, "inline")


def _posting_date(
    line: ClassifiedLine, context: str | None, year: int
) -> tuple[str | None, str | None]:
    """Return ``(iso_date, note)`` for a descriptor line."""

    if line.date_token:
        iso = month_day_to_iso(line.date_token, year)
        if iso:
            return iso, None
    if context:
        return context, None
    m = AUTHORIZED_ON_RX.search(line.text)
    if m:
        iso = month_day_to_iso(m.group(1), year)
        if iso:
            return iso, "date taken from authorization"
    return None, None


def _descriptor_text(line: ClassifiedLine, *, strip_amounts: bool) -> str:
    text = line.text
    if line.date_token:
        text = LEADING_DATE_RX.sub("", text, count=1)
    if strip_amounts:
        text = _TRAILING_AMOUNTS_RX.sub("", text)
    return text.strip()


def _continuation(lines: Sequence[ClassifiedLine], index: int) -> str:
    """Text of an auth-code/card continuation line right after ``index``."""

    nxt = index + 1
    if nxt >= len(lines) or lines[nxt].kind != "descriptor":
        return ""
    return lines[nxt].text if CODE_ONLY_RX.match(lines[nxt].text) else ""


def _cashback_amount(lines: Sequence[ClassifiedLine], index: int) -> Decimal | None:
    # Own line first, then the neighbours.
    for j in (index, index + 1, index - 1):
        if 0 <= j < len(lines):
            m = CASHBACK_AMOUNT_RX.search(lines[j].text)
            if m:
                return quantize(to_decimal(m.group(1)))
    return None


def _build_candidate(
    lines: Sequence[ClassifiedLine],
    index: int,
    kind: TransactionKind,
    date_iso: str,
    scan: AmountScan,
    notes: tuple[str, ...],
) -> TransactionCandidate:
    line = lines[index]
    descriptor = _descriptor_text(line, strip_amounts=scan.source == "inline")
    extra = _continuation(lines, index)
    haystack = f"{line.text} {extra}"

    auth = AUTH_CODE_RX.search(haystack)
    card = CARD_LAST4_RX.search(haystack)
    gross = quantize(abs(scan.amount or Decimal(0)))
    cashback = _cashback_amount(lines, index) if kind == "cashback" else None
    if scan.source == "inline":
        notes = (*notes, "amount taken from descriptor line")

    return TransactionCandidate(
        date=date_iso,
        descriptor=descriptor,
        amount=gross * resolve_sign(descriptor, kind),
        kind=kind,
        card_last4=card.group(1) if card else None,
        cashback=cashback,
        auth_code=auth.group(0) if auth else None,
        ledger_balance=scan.balance,
        line_index=line.index,
        notes=notes,
    )


# ---------------------------------------------------------------------------
# Dedup
# ---------------------------------------------------------------------------


def normalize_descriptor(text: str) -> str:
    return re.sub(r"\s+", " ", text).strip().lower()


def dedup_key(candidate: TransactionCandidate) -> str:
    """``date|kind|descriptor|auth|card|amount`` identity of a candidate."""

    return "|".join(
        (
            candidate.date,
            candidate.kind,
            normalize_descriptor(candidate.descriptor),
            candidate.auth_code or "",
            candidate.card_last4 or "",
            fmt_amount(candidate.amount),
        )
    )


# ---------------------------------------------------------------------------
# Passes
# ---------------------------------------------------------------------------


def extract_candidates(
    lines: Sequence[ClassifiedLine],
    year: int,
    *,
    diagnostics: ParseDiagnostics | None = None,
    seen: set[str] | None = None,
    claimed: dict[int, int] | None = None,
) -> list[TransactionCandidate]:
    """Primary extraction pass over classified lines.

    ``claimed`` maps the position of each bare amount line paired with a
    descriptor to the position of that descriptor.
    """

    diag = diagnostics if diagnostics is not None else ParseDiagnostics()
    keys = seen if seen is not None else set()
    out: list[TransactionCandidate] = []
    context: str | None = None

    i = 0
    while i < len(lines):
        line = lines[i]
        if line.kind == "date":
            diag.date_markers += 1
            context = month_day_to_iso(line.text, year)
            if context is None:
                diag.note(f"line {line.index}: unparsable date {line.text!r}")
            i += 1
            continue
        if line.kind != "descriptor":
            i += 1
            continue

        kind = classify_kind(line.text)
        if kind is None:
            i += 1
            continue
        diag.descriptors_seen += 1

        date_iso, date_note = _posting_date(line, context, year)
        scan = scan_for_amount(lines, i)
        if date_iso is None:
            diag.drop(line, "no date")
            _logger.debug("extract:drop no_date line=%d text=%r", line.index, line.text)
            i += 1
            continue
        if scan.amount is None:
            diag.drop(line, "no amount", date_iso)
            _logger.debug("extract:drop no_amount line=%d text=%r", line.index, line.text)
            i += 1
            continue

        if claimed is not None and scan.amount_index is not None:
            claimed[scan.amount_index] = i
        notes = (date_note,) if date_note else ()
        candidate = _build_candidate(lines, i, kind, date_iso, scan, notes)
        key = dedup_key(candidate)
        if key in keys:
            diag.duplicates_dropped += 1
            _logger.debug("extract:duplicate key=%s", key)
        else:
            keys.add(key)
            out.append(candidate)
            diag.transactions_emitted += 1
        i = scan.cursor
    return out


def recover_cashback(
    lines: Sequence[ClassifiedLine],
    year: int,
    seen: set[str],
    *,
    diagnostics: ParseDiagnostics | None = None,
    claimed: dict[int, int] | None = None,
) -> list[TransactionCandidate]:
    """Cashback-only pass; adds candidates whose dedup key is not in ``seen``.

    A bare amount line that ``claimed`` pairs with a different descriptor is
    not reused; the cashback line then needs a trailing amount of its own.
    """

    diag = diagnostics if diagnostics is not None else ParseDiagnostics()
    out: list[TransactionCandidate] = []
    context: str | None = None
    for i, line in enumerate(lines):
        if line.kind == "date":
            context = month_day_to_iso(line.text, year)
            continue
        if line.kind != "descriptor" or not CASHBACK_RX.search(line.text):
            continue
        date_iso, date_note = _posting_date(line, context, year)
        scan = scan_for_amount(lines, i)
        if date_iso is None or scan.amount is None:
            continue
        owner = (claimed or {}).get(scan.amount_index, i)
        if owner != i:
            own = _trailing_amount(line.text)
            if own is None:
                diag.drop(line, "amount already used", date_iso)
                _logger.debug("extract:drop reused_amount line=%d text=%r", line.index, line.text)
                continue
            scan = AmountScan(own, i + 1, None, "inline")
        notes = (date_note,) if date_note else ()
        candidate = _build_candidate(lines, i, "cashback", date_iso, scan, notes)
        key = dedup_key(candidate)
        if key in seen:
            continue
        seen.add(key)
        out.append(replace(candidate, notes=(*candidate.notes, "recovered by cashback pass")))
        diag.cashback_recovered += 1
        diag.transactions_emitted += 1
    return out


def split_cashback(candidate: TransactionCandidate) -> list[TransactionCandidate]:
    """Split a debit carrying cash back into purchase and cash-back halves.

    Applies when ``0 < cashback <= gross``. The purchase half is omitted when
    nothing is left after removing the cash back. Both halves keep the
    original ``cashback`` value; ``part`` marks them so a second split is a
    no-op.
    """

    cb = candidate.cashback
    if candidate.part is not None or candidate.amount >= 0 or cb is None or cb <= 0:
        return [candidate]
    gross = -candidate.amount
    if cb > gross:
        return [replace(candidate, notes=(*candidate.notes, "cash back exceeds gross; not split"))]

    out: list[TransactionCandidate] = []
    spend = gross - cb
    if spend > 0:
        out.append(replace(candidate, amount=-spend, part="purchase"))
    out.append(
        replace(
            candidate,
            amount=-cb,
            descriptor=f"{candidate.descriptor} (Cash back ${cb:.2f})",
            category=CASH_BACK_CATEGORY,
            part="cashback",
        )
    )
    return out


def extract_transactions(
    lines: Sequence[ClassifiedLine], year: int
) -> tuple[list[TransactionCandidate], ParseDiagnostics]:
    """Run both passes and the cash-back split over one statement."""

    diag = ParseDiagnostics(lines_total=len(lines))
    seen: set[str] = set()
    claimed: dict[int, int] = {}
    found = extract_candidates(lines, year, diagnostics=diag, seen=seen, claimed=claimed)
    found += recover_cashback(lines, year, seen, diagnostics=diag, claimed=claimed)

    out: list[TransactionCandidate] = []
    for candidate in found:
        out.extend(split_cashback(candidate))
    _logger.debug(
        "extract:done lines=%d candidates=%d dropped=%d duplicates=%d recovered=%d",
        diag.lines_total,
        len(out),
        len(diag.dropped),
        diag.duplicates_dropped,
        diag.cashback_recovered,
    )
    return out, diag


__all__ = [
    "AmountScan",
    "classify_kind",
    "resolve_sign",
    "last_inline_amount",
    "scan_for_amount",
    "normalize_descriptor",
    "dedup_key",
    "extract_candidates",
    "recover_cashback",
    "split_cashback",
    "extract_transactions",
]
