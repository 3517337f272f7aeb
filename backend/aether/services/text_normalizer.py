"""Whitespace normalization and truncation for extracted attachment text."""

import re

TRUNCATION_SUFFIX = "… [truncated]"

_MULTI_SPACE = re.compile(r" {2,}")
_MULTI_NEWLINE = re.compile(r"\n{3,}")


def normalize(text: str) -> str:
    """Collapse control characters and whitespace runs into a canonical form.

    Idempotent: normalize(normalize(x)) == normalize(x).
    """
    cleaned = text.replace("\r", "").replace("\t", " ").replace("\x00", "")
    cleaned = _MULTI_SPACE.sub(" ", cleaned)
    cleaned = _MULTI_NEWLINE.sub("\n\n", cleaned)
    return cleaned.strip()


def truncate(text: str, max_chars: int) -> str:
    """Normalize text and cut it to max_chars, marking the cut with a suffix."""
    cleaned = normalize(text)
    if len(cleaned) <= max_chars:
        return cleaned
    return f"{cleaned[:max(max_chars, 0)]}{TRUNCATION_SUFFIX}"
