from __future__ import annotations

from datetime import datetime, timedelta, tzinfo
from typing import Optional

from .models import Window


def floor_to_midnight(moment: datetime) -> datetime:
    return moment.replace(hour=0, minute=0, second=0, microsecond=0)


def _system_window(now: Optional[datetime]) -> Window:
    # Naive local wall time; astimezone() on a naive value applies the system
    # zone's offset for that specific date.
    if now is None:
        local = datetime.now()
    elif now.tzinfo is None:
        local = now
    else:
        local = now.astimezone().replace(tzinfo=None)

    end = floor_to_midnight(local)
    start = end - timedelta(days=1)
    return Window(start=start.astimezone(), end=end.astimezone())


def select_window(now: Optional[datetime] = None, tz: Optional[tzinfo] = None) -> Window:
    """
    Return the window covering "yesterday" in local time.

    ``end`` is the most recent local midnight and ``start`` the one before it.
    Naive ``now`` values are read as wall-clock time in ``tz`` (or the server
    timezone when ``tz`` is omitted).
    """
    if tz is None:
        return _system_window(now)

    if now is None:
        now = datetime.now(tz)
    elif now.tzinfo is None:
        now = now.replace(tzinfo=tz)
    else:
        now = now.astimezone(tz)

    end = floor_to_midnight(now)
    # Aware arithmetic on the same tzinfo is wall-clock, so DST days keep
    # their calendar boundaries.
    start = floor_to_midnight(end - timedelta(hours=24))
    return Window(start=start, end=end)
