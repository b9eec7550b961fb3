"""Business-date helpers in the client timezone."""

import logging
import re
from datetime import date, datetime, timezone

from babel.dates import get_timezone

from sams.config import get_settings

logger = logging.getLogger(__name__)

ISO_DATE_RE = re.compile(r"^\d{4}-\d{2}-\d{2}$")
US_DATE_RE = re.compile(r"^(\d{1,2})/(\d{1,2})/(\d{4})$")


def business_timezone(tz_name: str | None = None):
    """Return the tzinfo used for business dates (America/Cancun by default)."""
    return get_timezone(tz_name or get_settings().timezone)


def local_today(tz_name: str | None = None) -> date:
    """Today's date in the business timezone."""
    return datetime.now(business_timezone(tz_name)).date()


def parse_legacy_date(value: str, tz_name: str | None = None) -> date:
    """Parse a date from a legacy JSON export into a business date.

    Accepted formats:
        - Full ISO timestamps ("2025-01-01T00:52:34.948Z"), read as UTC and
          converted to the business timezone. An evening payment in Cancun
          exported as the next day in UTC keeps its Cancun date.
        - "YYYY-MM-DD"
        - "M/d/yyyy"

    Args:
        value: Raw date string
        tz_name: Timezone name override

    Returns:
        Calendar date in the business timezone

    Raises:
        ValueError: If the value matches none of the formats
    """
    raw = (value or "").strip()
    if "T" in raw:
        parsed = datetime.fromisoformat(raw.replace("Z", "+00:00"))
        if parsed.tzinfo is None:
            parsed = parsed.replace(tzinfo=timezone.utc)
        return parsed.astimezone(business_timezone(tz_name)).date()
    if ISO_DATE_RE.match(raw):
        return date.fromisoformat(raw)
    match = US_DATE_RE.match(raw)
    if match:
        month, day, year = (int(part) for part in match.groups())
        return date(year, month, day)
    raise ValueError(f"Unrecognized date format: {value!r}")


__all__ = ["business_timezone", "local_today", "parse_legacy_date"]
