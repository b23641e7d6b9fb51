"""HTTP-date formatting and parsing (RFC 9110 IMF-fixdate)."""

from datetime import UTC, datetime
from email.utils import format_datetime, parsedate_to_datetime

EPOCH = datetime(1970, 1, 1, tzinfo=UTC)


def http_date(moment: datetime) -> str:
    """Format *moment* as an HTTP-date, e.g. ``Sun, 06 Nov 1994 08:49:37 GMT``.

    Naive datetimes are taken to be UTC. Sub-second precision is dropped.
    """
    if moment.tzinfo is None:
        moment = moment.replace(tzinfo=UTC)
    return format_datetime(moment.astimezone(UTC).replace(microsecond=0), usegmt=True)


def parse_http_date(value: str) -> datetime | None:
    """Parse an HTTP-date header value. Returns None when malformed."""
    try:
        parsed = parsedate_to_datetime(value)
    except (TypeError, ValueError, IndexError):
        return None
    if parsed is None:
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=UTC)
    return parsed
