"""
Day-window helpers.

A fee window is the 24h ending at a timestamp. Calendar dates map to windows
the same way the daily TVL/liquidation jobs did it, local midnight to local
midnight, except the zone is a parameter instead of always America/New_York.

    * to_dt(ts): unix ts -> aware UTC datetime
    * to_date(ts, tz_name): ts -> YYYY-MM-DD in that zone
    * date_to_utc_window(date_str, tz_name): local midnight -> UTC timestamps
    * iterate_dates(start, end): inclusive date strings
"""

from __future__ import annotations
from datetime import date, datetime, timedelta, timezone
from typing import Iterator, Tuple

import pytz

DAY_SECONDS = 60 * 60 * 24


def to_dt(ts: int) -> datetime:
    """Convert a unix timestamp to an aware UTC datetime."""
    return datetime.fromtimestamp(int(ts), tz=timezone.utc)


def to_date(ts: int, tz_name: str = "UTC") -> str:
    """Convert a unix timestamp to a calendar date (YYYY-MM-DD) in tz_name."""
    return to_dt(ts).astimezone(pytz.timezone(tz_name)).date().isoformat()


def date_to_utc_window(date_str: str, tz_name: str = "UTC") -> Tuple[int, int]:
    """
    Given a date string 'YYYY-MM-DD', return (ts_start_utc, ts_end_utc):

      ts_start_utc = local midnight at start of that date
      ts_end_utc   = local midnight at start of next date

    ts_end_utc is the window-end timestamp the fee pipeline takes.
    """
    tz = pytz.timezone(tz_name)
    d = datetime.fromisoformat(date_str).date()

    start_local = tz.localize(datetime(d.year, d.month, d.day, 0, 0, 0))
    # localize the next midnight separately so DST days come out 23h/25h long
    nxt = d + timedelta(days=1)
    end_local = tz.localize(datetime(nxt.year, nxt.month, nxt.day, 0, 0, 0))

    ts_start_utc = int(start_local.astimezone(timezone.utc).timestamp())
    ts_end_utc = int(end_local.astimezone(timezone.utc).timestamp())
    return ts_start_utc, ts_end_utc


def iterate_dates(start_str: str, end_str: str) -> Iterator[str]:
    """Yield YYYY-MM-DD strings from start to end (inclusive)"""
    d0 = date.fromisoformat(start_str)
    d1 = date.fromisoformat(end_str)
    d = d0
    while d <= d1:
        yield d.isoformat()
        d += timedelta(days=1)
