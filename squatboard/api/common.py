"""Clock and calendar resolution shared by the routers."""

from datetime import date, datetime, timezone
from typing import Optional
from zoneinfo import ZoneInfo

from squatboard.core.config import settings
from squatboard.features.ledger.days import parse_day, today
from squatboard.features.store.base import get_store
from squatboard.features.users.service import load_board
from squatboard.realtime.hub import hub


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def reference_zone() -> ZoneInfo:
    return ZoneInfo(settings.REFERENCE_TIMEZONE)


def resolve_reference_day(day: Optional[str] = None, *, now: Optional[datetime] = None) -> date:
    """The explicit ``day`` if given (YYYY-MM-DD), else today in the reference timezone."""
    if day:
        return parse_day(day)
    return today(reference_zone(), now=now)


async def broadcast_board(reference_day: date) -> None:
    """Push a fresh board to every watcher."""
    view = load_board(
        get_store(),
        reference_day=reference_day,
        window_size_days=settings.VIEW_WINDOW_DAYS,
        max_window_days=settings.MAX_WINDOW_DAYS,
    )
    await hub.broadcast({"type": "update", **view.to_dict()})
