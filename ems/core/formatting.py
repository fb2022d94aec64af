"""
Input masks and date/time checks shared by the schemas and the API client.
"""

from __future__ import annotations

import re
from datetime import date, datetime

_NON_DIGIT = re.compile(r"\D")
_TIME_RE = re.compile(r"^([01]\d|2[0-3]):[0-5]\d$")
_DATE_RE = re.compile(r"^\d{4}-\d{2}-\d{2}$")


def format_phone(raw: str) -> str:
    """Mask a phone number as you type: ``010-1234-5678`` (max 11 digits)."""
    digits = _NON_DIGIT.sub("", raw or "")[:11]
    if len(digits) <= 3:
        return digits
    if len(digits) <= 7:
        return f"{digits[:3]}-{digits[3:]}"
    return f"{digits[:3]}-{digits[3:7]}-{digits[7:]}"


def format_time_input(raw: str) -> str:
    """Mask a time as you type: digits until four are present, then ``HH:mm``."""
    digits = _NON_DIGIT.sub("", raw or "")[:4]
    if len(digits) < 4:
        return digits
    return f"{digits[:2]}:{digits[2:]}"


def is_valid_time(value: str) -> bool:
    """Zero-padded 24h ``HH:mm``, so string order equals (hour, minute) order."""
    return bool(_TIME_RE.match(value or ""))


def is_valid_date(value: str) -> bool:
    if not _DATE_RE.match(value or ""):
        return False
    try:
        datetime.strptime(value, "%Y-%m-%d")
    except ValueError:
        return False
    return True


def is_upcoming(value: str, today: date | None = None) -> bool:
    """True when the reservation date is today or later."""
    today = today or date.today()
    return value >= today.isoformat()
