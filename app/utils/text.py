"""Text normalization helpers."""
from typing import Optional


def normalize_sentence(text: Optional[str]) -> str:
    """Trim, collapse inner whitespace and case-fold, for equality checks between sentences."""
    return " ".join((text or "").split()).casefold()


def same_sentence(a: Optional[str], b: Optional[str]) -> bool:
    return normalize_sentence(a) == normalize_sentence(b)
