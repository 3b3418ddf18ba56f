"""
Post age helpers: parse Supabase timestamps, decide new/expired, format labels.
"""

from datetime import datetime, timedelta, timezone
from typing import Optional, Union

from pydantic import TypeAdapter

from config import get_settings

EXPIRED_LABEL = "expired"

Timestamp = Union[str, datetime]

# PostgREST trims trailing zeros from fractional seconds, so parse with
# pydantic rather than datetime.fromisoformat.
_DATETIME = TypeAdapter(datetime)


def post_lifetime() -> timedelta:
    """How long a post counts as new; it is labelled expired afterwards."""
    return timedelta(hours=get_settings().new_post_window_hours)


def parse_ts(value: Timestamp) -> datetime:
    """Accept a datetime or an ISO-8601 string (Postgres 'Z' or offset form)."""
    dt = _DATETIME.validate_python(value)
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt


def age(created_at: Timestamp, now: Optional[datetime] = None) -> timedelta:
    now = now or datetime.now(timezone.utc)
    return now - parse_ts(created_at)


def is_new(created_at: Timestamp, now: Optional[datetime] = None, window: Optional[timedelta] = None) -> bool:
    return age(created_at, now) < (window or post_lifetime())


def is_expired(created_at: Timestamp, now: Optional[datetime] = None) -> bool:
    return age(created_at, now) >= post_lifetime()


def _plural(n: int, unit: str) -> str:
    return f"{n} {unit}" if n == 1 else f"{n} {unit}s"


def time_ago_label(created_at: Timestamp, now: Optional[datetime] = None) -> str:
    """Long label: 'now', '5 minutes', '1 hour', ... 'expired' once the post is no longer new."""
    seconds = int(age(created_at, now).total_seconds())
    if seconds >= post_lifetime().total_seconds():
        return EXPIRED_LABEL
    if seconds < 60:
        return "now"
    if seconds < 3600:
        return _plural(seconds // 60, "minute")
    return _plural(seconds // 3600, "hour")


def short_time_ago(created_at: Timestamp, now: Optional[datetime] = None) -> str:
    # Compact form for comments and lists, which do not expire.
    seconds = max(0, int(age(created_at, now).total_seconds()))
    if seconds < 60:
        return "now"
    if seconds < 3600:
        return f"{seconds // 60}m"
    if seconds < 86400:
        return f"{seconds // 3600}h"
    if seconds < 604800:
        return f"{seconds // 86400}d"
    return f"{seconds // 604800}w"
