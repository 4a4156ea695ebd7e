"""UTC datetime helpers.

Every timestamp written to the task store is timezone-aware UTC.
"""

from datetime import UTC, datetime


def utc_now() -> datetime:
    """Return the current time as an aware UTC datetime."""
    return datetime.now(UTC)


def ensure_utc(dt: datetime | None) -> datetime | None:
    """Normalize a datetime read from storage or a webhook payload to aware UTC.

    Naive values are assumed to already be UTC.
    """
    if dt is None:
        return None
    if dt.tzinfo is None:
        return dt.replace(tzinfo=UTC)
    return dt.astimezone(UTC)


def isoformat_utc(dt: datetime | None = None) -> str:
    """ISO-8601 string with a trailing Z, for metadata fields kept as strings."""
    value = ensure_utc(dt) if dt is not None else utc_now()
    return value.strftime("%Y-%m-%dT%H:%M:%S.%fZ")


def parse_iso_datetime(raw: str | None) -> datetime | None:
    """Parse an ISO-8601 timestamp (e.g. DocuSign's completedDateTime); None if unparseable."""
    if not raw:
        return None
    try:
        return ensure_utc(datetime.fromisoformat(raw.replace("Z", "+00:00")))
    except ValueError:
        return None
