"""Shared utilities used across the scheduling engine."""

import re
import unicodedata

from shootmatch.errors import ValidationError

MINUTES_PER_DAY = 24 * 60

_HHMM = re.compile(r"^(\d{1,2}):(\d{2})$")


def time_to_minutes(value: str) -> int:
    """Convert an "HH:MM" string to minutes after midnight.

    Examples:
        >>> time_to_minutes("14:15")
        855
    """
    match = _HHMM.match(value.strip()) if value else None
    if not match:
        raise ValidationError(f"Malformed time {value!r}, expected HH:MM", code="BAD_TIME")
    hours, minutes = int(match.group(1)), int(match.group(2))
    if hours > 23 or minutes > 59:
        raise ValidationError(f"Time out of range: {value!r}", code="BAD_TIME")
    return hours * 60 + minutes


def minutes_to_time(minutes: int) -> str:
    """Inverse of time_to_minutes for values inside a single day.

    Examples:
        >>> minutes_to_time(960)
        '16:00'
    """
    if not 0 <= minutes < MINUTES_PER_DAY:
        raise ValidationError(f"Minute offset {minutes} is outside a single day", code="BAD_TIME")
    return f"{minutes // 60:02d}:{minutes % 60:02d}"


def normalize_code(value: str) -> str:
    """Normalize a coupon code for case-insensitive lookup.

    Examples:
        >>> normalize_code("  desconto10 ")
        'DESCONTO10'
    """
    return value.strip().upper()


def normalize_city(value: str) -> str:
    """Fold case and accents so geocoder city names compare reliably.

    Examples:
        >>> normalize_city("  São José dos Pinhais ")
        'sao jose dos pinhais'
    """
    decomposed = unicodedata.normalize("NFKD", value.strip())
    stripped = "".join(ch for ch in decomposed if not unicodedata.combining(ch))
    return " ".join(stripped.lower().split())


def dedupe(ids) -> list[str]:
    """Drop repeated ids while keeping first-seen order."""
    seen: set[str] = set()
    result: list[str] = []
    for item in ids:
        if item not in seen:
            seen.add(item)
            result.append(item)
    return result
