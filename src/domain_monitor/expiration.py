"""
Expiration date parsing.

WHOIS registries emit either fully qualified timestamps or bare calendar
dates. The strict RFC 3339 form is tried first so a timestamp is never
misread as a date; a bare date means midnight UTC.
"""

import re
from datetime import datetime, timedelta, timezone

from .enums import WHOISErrorCode
from .exceptions import ProtocolError


RFC3339_PATTERN = re.compile(
    r"^(?P<year>\d{4})-(?P<month>\d{2})-(?P<day>\d{2})"
    r"T(?P<hour>\d{2}):(?P<minute>\d{2}):(?P<second>\d{2})"
    r"(?:\.(?P<fraction>\d{1,9}))?"
    r"(?P<offset>Z|[+-]\d{2}:\d{2})$"
)

DATE_ONLY_PATTERN = re.compile(r"^(?P<year>\d{4})-(?P<month>\d{2})-(?P<day>\d{2})$")

# Serialized form of an unknown expiration in state files.
ZERO_TIMESTAMP = "0001-01-01T00:00:00Z"


def _parse_offset(text: str) -> timezone:
    if text == "Z":
        return timezone.utc
    sign = 1 if text[0] == "+" else -1
    hours, minutes = int(text[1:3]), int(text[4:6])
    if hours > 23 or minutes > 59:
        raise ValueError(f"invalid UTC offset: {text}")
    if hours == 0 and minutes == 0:
        return timezone.utc
    return timezone(sign * timedelta(hours=hours, minutes=minutes))


def parse_rfc3339(raw: str) -> datetime:
    """
    Parse a strict RFC 3339 timestamp.

    Fractional seconds beyond microsecond precision are truncated. The
    returned datetime keeps the offset given in the input.

    Raises:
        ValueError: If the text is not a valid RFC 3339 timestamp
    """
    match = RFC3339_PATTERN.match(raw)
    if match is None:
        raise ValueError(f"not an RFC 3339 timestamp: {raw!r}")

    fraction = match.group("fraction") or ""
    microsecond = int(fraction[:6].ljust(6, "0")) if fraction else 0

    return datetime(
        int(match.group("year")),
        int(match.group("month")),
        int(match.group("day")),
        int(match.group("hour")),
        int(match.group("minute")),
        int(match.group("second")),
        microsecond,
        tzinfo=_parse_offset(match.group("offset")),
    )


def parse_date_only(raw: str) -> datetime:
    """
    Parse a bare YYYY-MM-DD date as midnight UTC.

    Raises:
        ValueError: If the text is not a valid calendar date
    """
    match = DATE_ONLY_PATTERN.match(raw)
    if match is None:
        raise ValueError(f"not a calendar date: {raw!r}")
    return datetime(
        int(match.group("year")),
        int(match.group("month")),
        int(match.group("day")),
        tzinfo=timezone.utc,
    )


def parse_expiration(raw: str) -> datetime:
    """
    Parse a WHOIS expiration field into a timezone-aware datetime.

    Args:
        raw: Expiration text, RFC 3339 timestamp or YYYY-MM-DD date

    Returns:
        The expiration instant

    Raises:
        ProtocolError: If neither format matches
    """
    text = (raw or "").strip()

    try:
        return parse_rfc3339(text)
    except ValueError:
        pass

    try:
        return parse_date_only(text)
    except ValueError:
        raise ProtocolError(
            code=WHOISErrorCode.INVALID_DATE.value,
            message=f"Invalid expiration date {raw!r}",
            details={"raw": raw},
        ) from None


def format_rfc3339(value: datetime) -> str:
    """Render an aware datetime as RFC 3339, using 'Z' for UTC."""
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    text = value.isoformat()
    if text.endswith("+00:00"):
        text = text[:-6] + "Z"
    return text
