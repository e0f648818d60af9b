"""Account name canonicalization for duplicate detection and cross-batch grouping."""

import re
from typing import Optional

_LEGAL_SUFFIX = re.compile(r",?\s*\b(?:inc\.?|llc)$", re.IGNORECASE)
_WHITESPACE = re.compile(r"\s+")
_NUMERIC_ONLY = re.compile(r"^\d+$")
_SYMBOLS_ONLY = re.compile(r"^[^a-zA-Z0-9\s]*$")

# Placeholder values seen in CRM exports (compared case-insensitively)
_DENYLIST = frozenset({"n/a", "tbd", "unknown", "test", "null", "undefined"})


def normalize_name(name: Optional[str]) -> str:
    """
    Canonical form of an account name: legal suffixes (Inc, Inc., LLC) stripped
    from the end, whitespace collapsed, case-folded.
    normalize_name("Acme Inc.") == normalize_name("ACME") == "acme"
    """
    text = _WHITESPACE.sub(" ", name or "").strip()
    while True:
        stripped = _LEGAL_SUFFIX.sub("", text).strip()
        if stripped == text:
            break
        text = stripped
    return text.casefold()


def is_valid_name(name: Optional[str]) -> bool:
    """
    Reject empty, too-short, numeric-only, symbol-only and placeholder names.
    Names mixing digits and letters ("3 Pillar") are valid.
    """
    if not name or not name.strip():
        return False
    trimmed = name.strip()
    if len(trimmed) < 2:
        return False
    if _NUMERIC_ONLY.match(trimmed):
        return False
    if _SYMBOLS_ONLY.match(trimmed):
        return False
    return trimmed.lower() not in _DENYLIST
