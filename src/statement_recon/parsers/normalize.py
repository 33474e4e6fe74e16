"""
Date and amount normalization shared by every statement parsing strategy.
"""

from datetime import date, datetime
from decimal import Decimal, InvalidOperation, ROUND_HALF_UP
from typing import Any, Optional
import re

TWO_PLACES = Decimal("0.01")

# Year-first must be tried before the day-first patterns: "2024-03-07" would
# otherwise satisfy the two-digit-year pattern as "24-03-07".
_YEAR_FIRST = re.compile(r"(?<!\d)(\d{4})[/-](\d{1,2})[/-](\d{1,2})(?!\d)")
_DAY_FIRST_LONG_YEAR = re.compile(r"(?<!\d)(\d{1,2})[/-](\d{1,2})[/-](\d{4})(?!\d)")
_DAY_FIRST_SHORT_YEAR = re.compile(r"(?<!\d)(\d{1,2})[/-](\d{1,2})[/-](\d{2})(?!\d)")

_AMOUNT_NOISE = re.compile(r"[,\s$£€¥₹]")
_LEADING_NUMBER = re.compile(r"[-+]?(?:\d+(?:\.\d*)?|\.\d+)")


def to_date(value: Any) -> Optional[date]:
    """
    Parse a statement date cell into a calendar date.

    Accepts ``YYYY/MM/DD``, ``DD/MM/YYYY`` and ``DD/MM/YY`` with slash or
    hyphen separators, plus date/datetime objects from spreadsheets. Day-first
    is assumed unless the first component is a valid month and the second
    cannot be one.

    Args:
        value: Raw cell value

    Returns:
        The date, or None if nothing in the value forms a valid calendar date
    """
    if value is None:
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value

    text = str(value).strip()
    if not text:
        return None

    match = _YEAR_FIRST.search(text)
    if match:
        parsed = _safe_date(int(match.group(1)), int(match.group(2)), int(match.group(3)))
        if parsed:
            return parsed

    for pattern, century in ((_DAY_FIRST_LONG_YEAR, 0), (_DAY_FIRST_SHORT_YEAR, 2000)):
        match = pattern.search(text)
        if not match:
            continue

        first, second = int(match.group(1)), int(match.group(2))
        year = century + int(match.group(3))
        if first <= 12 < second:
            day, month = second, first
        else:
            day, month = first, second

        parsed = _safe_date(year, month, day)
        if parsed:
            return parsed

    return None


def parse_date(value: Any) -> Optional[str]:
    """Normalize a statement date to ``YYYY-MM-DD`` (None if unparseable)."""
    parsed = to_date(value)
    return parsed.isoformat() if parsed else None


def _safe_date(year: int, month: int, day: int) -> Optional[date]:
    try:
        return date(year, month, day)
    except ValueError:
        return None


def parse_amount(value: Any) -> Optional[Decimal]:
    """
    Parse a signed amount, ignoring thousands separators and currency symbols.

    Like a lenient float parse, the leading numeric part is used, so
    ``"150.00 CR"`` yields ``150.00``. Accounting negatives such as
    ``"(150.00)"`` are honoured.

    Args:
        value: Raw amount cell (string or number)

    Returns:
        Decimal amount (not yet quantized) or None
    """
    if value is None:
        return None

    if isinstance(value, (int, float, Decimal)) and not isinstance(value, bool):
        try:
            amount = Decimal(str(value))
        except InvalidOperation:
            return None
        return amount if amount.is_finite() else None

    text = _AMOUNT_NOISE.sub("", str(value))
    if text.startswith("(") and text.endswith(")"):
        text = "-" + text[1:-1]

    match = _LEADING_NUMBER.match(text)
    if not match:
        return None

    try:
        return Decimal(match.group(0))
    except InvalidOperation:
        return None


def to_money(amount: Decimal) -> Decimal:
    """Quantize to two decimal places, rounding half up."""
    return amount.quantize(TWO_PLACES, rounding=ROUND_HALF_UP)
