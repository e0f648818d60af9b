"""Shared stage keyword matching for history reconstruction and reports.

Stage labels are free text from the upstream CRM. The recognized keyword set
("closed", "won", "lost", "validation", "introduction") is fixed; report
results depend on matching it exactly as below.
"""

from typing import Optional

CLOSED_WON = "closed won"
CLOSED_LOST = "closed lost"
VALIDATION_KEYWORDS = ("validation", "introduction")


def _key(stage: Optional[str]) -> str:
    return (stage or "").strip().lower()


def is_closed(stage: Optional[str]) -> bool:
    """Terminal stage: label contains "closed"."""
    return "closed" in _key(stage)


def is_closed_won(stage: Optional[str]) -> bool:
    """Exactly "Closed Won" (trimmed, case-insensitive)."""
    return _key(stage) == CLOSED_WON


def is_closed_lost_exact(stage: Optional[str]) -> bool:
    """Exactly "Closed Lost" (trimmed, case-insensitive)."""
    return _key(stage) == CLOSED_LOST


def is_lost(stage: Optional[str]) -> bool:
    """Label contains "lost"."""
    return "lost" in _key(stage)


def is_closed_lost(stage: Optional[str]) -> bool:
    """Label contains both "closed" and "lost"."""
    key = _key(stage)
    return "closed" in key and "lost" in key


def is_final_outcome(stage: Optional[str]) -> bool:
    """Outcome stage for closing probability: Closed Won, or anything lost."""
    return is_closed_won(stage) or is_lost(stage)


def is_validation_stage(stage: Optional[str]) -> bool:
    """
    Fuzzy validation match: equals or contains "validation" or "introduction".
    "Validation/Introduction" and "Technical Validation" both qualify.
    """
    key = _key(stage)
    if not key:
        return False
    return any(kw in key for kw in VALIDATION_KEYWORDS)


def is_active_stage(stage: Optional[str]) -> bool:
    """Open, post-validation pipeline: neither closed nor validation."""
    key = _key(stage)
    if not key:
        return False
    return "closed" not in key and "validation" not in key
