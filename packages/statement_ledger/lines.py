"""Text normalization and content-only line classification.

A statement page becomes an ordered list of :class:`ClassifiedLine`. Each line
is tagged from its own text alone:

- ``header``: statement boilerplate (balance banners, column headers,
  ``Page N of M``, fee-period banners). Never a date, descriptor or amount.
- ``amount``: a bare currency amount (optional ``$``, exactly two decimals).
- ``date``: a bare ``M/D`` or ``Mon D`` token and nothing else.
- ``descriptor``: everything else.
"""

from __future__ import annotations

import re
from collections.abc import Iterable
from datetime import date

from .models import ClassifiedLine, LineKind
from .patterns import (
    AMOUNT_ONLY_RX,
    DATE_ONLY_RX,
    LEADING_DATE_RX,
    MONTHS,
    SECTION_HEADER_RX,
)

_INVISIBLE_RX = re.compile("[\u200b-\u200f\u202a-\u202e\u2066-\u2069\ufeff]")
_DASH_RX = re.compile("[\u2012\u2013\u2014\u2015\u2212]")
_SPACES_RX = re.compile(r" {2,}")
_NUMERIC_DATE_RX = re.compile(r"^(\d{1,2})/(\d{1,2})$")
_NAMED_DATE_RX = re.compile(r"^([A-Za-z]{3})[a-z]*\.?\s+(\d{1,2})$")


def normalize_page_text(text: str) -> str:
    """Normalize line endings, odd spaces, invisible marks and dashes."""

    s = text.replace("\r\n", "\n").replace("\r", "\n")
    s = s.replace("\u00a0", " ").replace("\t", " ")
    s = _INVISIBLE_RX.sub("", s)
    return _DASH_RX.sub("-", s)


def split_lines(text: str) -> list[str]:
    out: list[str] = []
    for raw in normalize_page_text(text).split("\n"):
        line = _SPACES_RX.sub(" ", raw.strip())
        if line:
            out.append(line)
    return out


def classify_line(text: str) -> LineKind:
    if SECTION_HEADER_RX.match(text):
        return "header"
    if AMOUNT_ONLY_RX.match(text):
        return "amount"
    if DATE_ONLY_RX.match(text):
        return "date"
    return "descriptor"


def classify_lines(text: str, *, start_index: int = 0) -> list[ClassifiedLine]:
    """Split one page of raw text and classify every line."""

    out: list[ClassifiedLine] = []
    for offset, line in enumerate(split_lines(text)):
        kind = classify_line(line)
        date_token = None
        if kind == "descriptor":
            m = LEADING_DATE_RX.match(line)
            if m:
                date_token = m.group(1)
        out.append(ClassifiedLine(start_index + offset, line, kind, date_token))
    return out


def classify_pages(pages: Iterable[str]) -> list[ClassifiedLine]:
    """Classify several pages into one continuously indexed line list."""

    out: list[ClassifiedLine] = []
    for page in pages:
        out.extend(classify_lines(page, start_index=len(out)))
    return out


def parse_month_day(token: str, year: int) -> date | None:
    """Resolve ``M/D`` or ``Mon D`` against ``year``; ``None`` when invalid."""

    s = token.strip()
    m = _NUMERIC_DATE_RX.match(s)
    if m:
        month, day = int(m.group(1)), int(m.group(2))
    else:
        m = _NAMED_DATE_RX.match(s)
        if not m or m.group(1).lower() not in MONTHS:
            return None
        month, day = MONTHS.index(m.group(1).lower()) + 1, int(m.group(2))
    try:
        return date(year, month, day)
    except ValueError:
        return None


def month_day_to_iso(token: str, year: int) -> str | None:
    d = parse_month_day(token, year)
    return d.isoformat() if d else None


__all__ = [
    "normalize_page_text",
    "split_lines",
    "classify_line",
    "classify_lines",
    "classify_pages",
    "parse_month_day",
    "month_day_to_iso",
]
