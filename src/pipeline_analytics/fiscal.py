"""Fiscal calendar: fiscal year starts February 1 and is numbered by the year it ends.

FY2024 runs Feb 1 2023 - Jan 31 2024.
Q1 = Feb-Apr, Q2 = May-Jul, Q3 = Aug-Oct, Q4 = Nov-Jan (spans the calendar year).
"""

from datetime import date, datetime

FISCAL_YEAR_START_MONTH = 2
QUARTER_END_MONTHS = frozenset({4, 7, 10, 1})


def _as_date(d: date | datetime) -> date:
    return d.date() if isinstance(d, datetime) else d


def fiscal_year_number(d: date | datetime) -> int:
    """Numeric fiscal year: January belongs to the FY that started the previous February."""
    d = _as_date(d)
    return d.year if d.month < FISCAL_YEAR_START_MONTH else d.year + 1


def fiscal_quarter_number(d: date | datetime) -> int:
    """Fiscal quarter 1-4."""
    d = _as_date(d)
    fiscal_month = (d.month - FISCAL_YEAR_START_MONTH) % 12  # 0 = February
    return fiscal_month // 3 + 1


def fiscal_year(d: date | datetime) -> str:
    """Fiscal year label, e.g. 'FY2024'."""
    return f"FY{fiscal_year_number(d)}"


def fiscal_quarter(d: date | datetime) -> str:
    """Fiscal quarter label, e.g. 'Q4 FY2024'."""
    return f"Q{fiscal_quarter_number(d)} {fiscal_year(d)}"


def is_fiscal_quarter_end_month(d: date | datetime) -> bool:
    """True for April, July, October and January."""
    return _as_date(d).month in QUARTER_END_MONTHS


def fiscal_year_start(d: date | datetime) -> date:
    """February 1 opening the fiscal year that contains d."""
    return date(fiscal_year_number(d) - 1, FISCAL_YEAR_START_MONTH, 1)
