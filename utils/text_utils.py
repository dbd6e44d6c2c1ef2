"""
Text utilities for handling merchant-entered spreadsheet text.

Catalog files arrive in Arabic and English, often edited in tools that
insert invisible direction marks around right-to-left text.
"""

import re
import unicodedata
from typing import Optional

# LRM, RLM, ALM, embeddings/overrides, isolates, BOM
_BIDI_MARKS = re.compile("[\u200e\u200f\u061c\u202a-\u202e\u2066-\u2069\ufeff]")

_WHITESPACE_RUN = re.compile(r"\s+")


def strip_bidi_marks(text: str) -> str:
    """
    Remove invisible bidirectional control characters.

    "\\u200fقميص\\u200f" -> "قميص"
    """
    return _BIDI_MARKS.sub("", text)


def normalize_header(col) -> str:
    """
    Normalize a column header for consistent matching.

    "Category Code" -> "category_code"
    "  image-urls " -> "image_urls"
    "\\ufeffSKU" -> "sku"

    Args:
        col: Header cell value (any type; pandas may hand us ints)

    Returns:
        Lowercase snake_case header with accents folded
    """
    col = strip_bidi_marks(str(col)).strip().lower()

    # Fold accents (NFD separates base chars from combining marks)
    col = unicodedata.normalize("NFD", col)
    col = "".join(c for c in col if unicodedata.category(c) != "Mn")

    col = col.replace("-", " ").replace("_", " ")
    return _WHITESPACE_RUN.sub("_", col.strip())


def clean_text(value: Optional[str]) -> Optional[str]:
    """
    Clean a text value for storage (preserves accents and Arabic script).

    - Removes bidi marks
    - Collapses internal whitespace runs to a single space
    - Returns None for empty/whitespace-only strings

    Args:
        value: Raw text from a spreadsheet cell

    Returns:
        Cleaned string, or None if nothing visible remains
    """
    if value is None:
        return None

    cleaned = _WHITESPACE_RUN.sub(" ", strip_bidi_marks(value)).strip()
    return cleaned or None
