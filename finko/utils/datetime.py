import re
from datetime import date, datetime, timezone
from typing import Optional


ISO_DATE_PATTERN = re.compile(r"(\d{4})-(\d{2})-(\d{2})")


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def today() -> date:
    return utc_now().date()


def parse_iso_date(value: str) -> Optional[date]:
    """Calendar date from the first YYYY-MM-DD found in the string, time dropped."""
    match = ISO_DATE_PATTERN.search(value)
    if not match:
        return None
    try:
        return date(int(match.group(1)), int(match.group(2)), int(match.group(3)))
    except ValueError:
        return None


def parse_timestamp_date(value: str) -> Optional[date]:
    """Calendar date of an ISO-8601 timestamp such as 2024-02-10T14:30:00Z."""
    try:
        return datetime.fromisoformat(value.strip().replace("Z", "+00:00")).date()
    except ValueError:
        return parse_iso_date(value)


def epoch_ms_to_datetime(value: str | int | None) -> datetime:
    """Gmail watch expirations come as epoch milliseconds; unparsable means now."""
    try:
        return datetime.fromtimestamp(int(value) / 1000, tz=timezone.utc)
    except (TypeError, ValueError, OverflowError):
        return utc_now()
