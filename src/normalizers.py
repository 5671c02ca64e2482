"""Value normalization shared by key building, comparison and profiling.

Amounts:
- Surrounding whitespace and thousands separators (commas) are ignored.
- Optional sign, decimal point and exponent are accepted.
- Empty, non-numeric, NaN and infinite values are treated as missing.

Dates are normalized to ``YYYY-MM-DD``. Numeric dates with slashes, dashes or
dots are read month first (``01/05/2024`` is the 5th of January) unless the
first part is greater than 12, in which case the day comes first.
"""

import math
import re
from datetime import datetime, timezone
from typing import Any, Optional

_NUMBER_RE = re.compile(r"^[+-]?(\d+\.?\d*|\.\d+)([eE][+-]?\d+)?$")

# Numeric date with year last: 01/05/2024, 1-5-24, 05.01.2024
_YEAR_LAST_RE = re.compile(r"^(\d{1,2})[/.-](\d{1,2})[/.-](\d{2}|\d{4})$")
# Numeric date with year first: 2024/01/05, 2024.1.5, 2024-1-5
_YEAR_FIRST_RE = re.compile(r"^(\d{4})[/.-](\d{1,2})[/.-](\d{1,2})$")
_COMPACT_RE = re.compile(r"^(\d{4})(\d{2})(\d{2})$")

_TEXT_DATE_FORMATS = [
    "%b %d %Y",
    "%B %d %Y",
    "%d %b %Y",
    "%d %B %Y",
    "%d-%b-%Y",
    "%d-%B-%Y",
    "%d-%b-%y",
    "%b %d %y",
    "%a %b %d %Y",
]


def stringify(value: Any) -> str:
    """Trimmed string form of a raw value; None becomes an empty string."""
    if value is None:
        return ""
    return str(value).strip()


def to_number(value: Any) -> Optional[float]:
    """
    Parse an amount tolerant of thousands separators and whitespace.

    Args:
        value: Raw cell value

    Returns:
        Parsed float, or None when the value is empty or not a finite number
    """
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        number = float(value)
        return number if math.isfinite(number) else None

    cleaned = stringify(value).replace(",", "")
    if not cleaned or not _NUMBER_RE.match(cleaned):
        return None
    number = float(cleaned)
    return number if math.isfinite(number) else None


def format_number(number: float) -> str:
    """Canonical text for a parsed number: 1000.0 -> '1000', 0.1 -> '0.1'."""
    if number.is_integer() and abs(number) < 1e21:
        return str(int(number))
    return repr(number)


def _two_digit_year(year: int) -> int:
    # Same pivot as strptime's %y
    return year + (2000 if year < 69 else 1900)


def _iso_date(year: int, month: int, day: int) -> Optional[str]:
    try:
        return datetime(year, month, day).strftime("%Y-%m-%d")
    except ValueError:
        return None


def _parse_iso(text: str) -> Optional[str]:
    candidate = text.replace("Z", "+00:00") if text.endswith("Z") else text
    try:
        parsed = datetime.fromisoformat(candidate)
    except ValueError:
        return None
    if parsed.tzinfo is not None:
        parsed = parsed.astimezone(timezone.utc)
    return parsed.strftime("%Y-%m-%d")


def normalize_date(value: Any) -> Optional[str]:
    """
    Parse common date text forms into a canonical YYYY-MM-DD string.

    Args:
        value: Raw cell value

    Returns:
        ISO date string, or None when the value cannot be read as a date
    """
    text = stringify(value)
    if not text:
        return None

    iso = _parse_iso(text)
    if iso:
        return iso

    # Drop a trailing time component ("01/05/2024 13:45")
    head = text.split()[0] if " " in text and ":" in text else text

    match = _YEAR_FIRST_RE.match(head) or _COMPACT_RE.match(head)
    if match:
        year, month, day = (int(part) for part in match.groups())
        return _iso_date(year, month, day)

    match = _YEAR_LAST_RE.match(head)
    if match:
        first, second, year = (int(part) for part in match.groups())
        if len(match.group(3)) == 2:
            year = _two_digit_year(year)
        if first > 12:
            return _iso_date(year, second, first)
        return _iso_date(year, first, second)

    cleaned = re.sub(r"\s+", " ", text.replace(",", " ")).strip()
    for fmt in _TEXT_DATE_FORMATS:
        try:
            return datetime.strptime(cleaned, fmt).strftime("%Y-%m-%d")
        except ValueError:
            continue
    return None


def days_between(left: str, right: str) -> float:
    """Absolute day difference between two normalized dates at UTC midnight."""
    start = datetime.strptime(left, "%Y-%m-%d").replace(tzinfo=timezone.utc)
    end = datetime.strptime(right, "%Y-%m-%d").replace(tzinfo=timezone.utc)
    return abs((start - end).total_seconds()) / 86400
