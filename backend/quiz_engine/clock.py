"""Clock used for every server-side timestamp.

Sessions and services take a clock object exposing `now()` so tests can
substitute a controllable one.
"""

from datetime import datetime, timezone


class SystemClock:
    """Wall clock in UTC."""

    def now(self) -> datetime:
        return datetime.now(timezone.utc)
