"""Read statement documents into per-page text.

PDFs go through ``pdfplumber``; every other file is read as UTF-8 text with
form feeds (``\\f``) as page breaks, which is what ``pdftotext`` emits and
what the text fixtures in the test suite use.
"""

from __future__ import annotations

from os import PathLike
from pathlib import Path

from ..logging_setup import get_logger

_logger = get_logger("statement_ledger.ingest.documents")


def read_pdf_pages(path: str | PathLike[str]) -> list[str]:
    """Return the extracted text of every page (empty string for blank pages)."""

    # Deferred import: only PDF inputs need pdfplumber.
    import pdfplumber

    pages: list[str] = []
    with pdfplumber.open(Path(path)) as pdf:
        for page in pdf.pages:
            pages.append(page.extract_text() or "")
    return pages


def read_text_pages(path: str | PathLike[str]) -> list[str]:
    text = Path(path).read_text(encoding="utf-8")
    return text.split("\f")


def read_document_pages(path: str | PathLike[str]) -> list[str]:
    """Dispatch on suffix; raises ``OSError`` when the file cannot be read."""

    p = Path(path)
    if p.suffix.lower() == ".pdf":
        pages = read_pdf_pages(p)
    else:
        pages = read_text_pages(p)
    _logger.debug("ingest:read path=%s pages=%d", p, len(pages))
    return pages


__all__ = ["read_pdf_pages", "read_text_pages", "read_document_pages"]
