"""Clock helpers shared by the client components."""
from datetime import datetime, timezone
from typing import Callable, Optional

Clock = Callable[[], datetime]


def local_now() -> datetime:
    """Device-local wall-clock time."""
    return datetime.now()


def local_date_key(now: datetime) -> str:
    """Calendar-date key (``YYYY-MM-DD``) for a local time."""
    return now.date().isoformat()


def utc_stamp(now: Optional[datetime] = None) -> str:
    """
    ISO-8601 UTC stamp with millisecond precision and a ``Z`` suffix.

    Stamps in this format sort lexicographically in time order, which the
    sync protocol relies on when comparing ``updatedAt`` values.
    """
    if now is None:
        now = datetime.now(timezone.utc)
    elif now.tzinfo is None:
        now = now.astimezone()
    now = now.astimezone(timezone.utc)
    return now.strftime("%Y-%m-%dT%H:%M:%S.") + f"{now.microsecond // 1000:03d}Z"


def parse_stamp(stamp: str) -> Optional[datetime]:
    """Parse an ISO-8601 stamp into an aware datetime, or None if unparsable."""
    if not stamp:
        return None
    try:
        parsed = datetime.fromisoformat(stamp.replace("Z", "+00:00"))
    except ValueError:
        return None
    if parsed.tzinfo is None:
        parsed = parsed.astimezone()
    return parsed
