"""
NewsAI - Text Utilities
========================
Helper functions for text cleaning, truncation, and keyword-based
category detection.

These utilities are consumed by the ingestion pipeline, the retrieval
engine and the context assembler, and must remain stateless and
side-effect-free.
"""

from __future__ import annotations

import re
import unicodedata
from collections.abc import Iterable, Sequence


# ── Non-printable character pattern ────────────────────────────────────
# Matches control characters (C0/C1), except \n, \r, \t which we handle
# separately. Also catches BOM, zero-width chars, soft hyphens, etc.
_NON_PRINTABLE_RE = re.compile(r"[\x00-\x08\x0b\x0c\x0e-\x1f\x7f-\x9f\ufeff\u200b\u200c\u200d\u200e\u200f\u00ad\u2060\ufffe]")

# Feed descriptions frequently embed escaped HTML fragments.
_HTML_TAG_RE = re.compile(r"<[^>]+>")

_ELLIPSIS = "..."


# ── Public API ─────────────────────────────────────────────────────────

def clean_text(text: str) -> str:
    """
    Sanitise raw feed text for embedding and display.

    Steps:
        1. Unicode NFC normalisation.
        2. Drop leftover HTML tags.
        3. Strip non-printable / zero-width characters.
        4. Collapse runs of horizontal whitespace, *preserving* newlines.
        5. Strip every line and collapse 3+ blank lines to 2.

    Args:
        text: Raw text extracted from a feed item.

    Returns:
        Cleaned, normalised text.
    """
    text = unicodedata.normalize("NFC", text)
    text = _HTML_TAG_RE.sub(" ", text)
    text = _NON_PRINTABLE_RE.sub("", text)
    text = re.sub(r"[^\S\n]+", " ", text)
    lines = [line.strip() for line in text.splitlines()]
    text = "\n".join(lines)
    text = re.sub(r"\n{3,}", "\n\n", text)
    return text.strip()


def truncate(text: str, max_chars: int) -> str:
    """
    Cut *text* to at most *max_chars* characters.

    Truncated output ends with ``...`` (counted inside the budget) so
    readers can tell the excerpt is partial.
    """
    if max_chars <= 0:
        return ""
    if len(text) <= max_chars:
        return text
    if max_chars <= len(_ELLIPSIS):
        return text[:max_chars]
    return text[: max_chars - len(_ELLIPSIS)].rstrip() + _ELLIPSIS


def detect_category(text: str, keyword_table: Sequence[tuple[str, Iterable[str]]]) -> str | None:
    """
    Map free text onto a category using case-insensitive substring matching.

    The table is scanned in order and the first category with any
    matching keyword wins, so the same text always yields the same
    category for a given table.

    Examples::

        "Who won the NBA finals?"     → "sports"
        "Bitcoin price today"         → "crypto"
        "What's on at the zoo?"       → None

    Args:
        text: Query or document text.
        keyword_table: Ordered ``(category, keywords)`` pairs.

    Returns:
        The matching category name, or ``None``.
    """
    lowered = text.lower()
    for category, keywords in keyword_table:
        if any(keyword in lowered for keyword in keywords):
            return category
    return None
