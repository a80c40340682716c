"""
Calendar-day helpers.

A calendar day is a plain ``datetime.date``: civil year/month/day with value
equality and ordering. Nothing here looks at instants except ``today()``,
which resolves the wall clock in the reference timezone (UTC unless
configured otherwise) exactly once per call.
"""

from __future__ import annotations

import re
from datetime import date, datetime, timedelta, timezone, tzinfo
from typing import List, Optional

from squatboard.core.errors import InvalidInputError

ONE_DAY = timedelta(days=1)

_DAY_RE = re.compile(r"^\d{4}-\d{2}-\d{2}$")


def today(tz: Optional[tzinfo] = None, *, now: Optional[datetime] = None) -> date:
    """Current civil day in ``tz`` (UTC by default).

    ``now`` pins the instant for deterministic callers; naive values are
    treated as UTC.
    """
    zone = tz or timezone.utc
    moment = now or datetime.now(timezone.utc)
    if moment.tzinfo is None:
        moment = moment.replace(tzinfo=timezone.utc)
    return moment.astimezone(zone).date()


def previous_day(day: date) -> date:
    return day - ONE_DAY


def is_consecutive(a: date, b: date) -> bool:
    """True iff ``b`` is exactly one calendar day after ``a``."""
    return b - a == ONE_DAY


def format_day(day: date) -> str:
    return day.isoformat()


def parse_day(value: str) -> date:
    """Parse a strict ``YYYY-MM-DD`` string."""
    if not isinstance(value, str) or not _DAY_RE.match(value):
        raise InvalidInputError(f"Expected a YYYY-MM-DD day, got {value!r}")
    try:
        return date.fromisoformat(value)
    except ValueError:
        raise InvalidInputError(f"Not a calendar day: {value}") from None


def trailing_days(reference_day: date, count: int) -> List[date]:
    """The ``count`` days ending at ``reference_day``, most recent first."""
    if count < 1:
        raise InvalidInputError("Window must cover at least one day")
    return [reference_day - timedelta(days=offset) for offset in range(count)]
