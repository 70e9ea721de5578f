"""UTC ISO-8601 timestamps as stored and served everywhere in the pipeline."""

from datetime import datetime, timezone
from typing import Optional


def to_utc_iso(dt: datetime) -> str:
    """Naive datetimes are taken as UTC; output is millisecond precision with a ``Z`` suffix."""
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc).isoformat(timespec="milliseconds").replace("+00:00", "Z")


def utc_now_iso(now: Optional[datetime] = None) -> str:
    return to_utc_iso(now or datetime.now(timezone.utc))
