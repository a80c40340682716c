"""
Board API

GET /api/board: the shared grid plus streak statistics
"""

from typing import Optional

from fastapi import APIRouter, Query

from squatboard.api.common import resolve_reference_day
from squatboard.core.config import settings
from squatboard.features.store.base import get_store
from squatboard.features.users.service import load_board

router = APIRouter(prefix="/api", tags=["board"])


@router.get("/board")
async def get_board(
    days: Optional[int] = Query(None, description="Window size in days"),
    viewer: Optional[str] = Query(None, description="User id listed first"),
    sort: str = Query("name", description="name | streak"),
    day: Optional[str] = Query(None, description="Reference day YYYY-MM-DD (defaults to today)"),
):
    """
    Returns:
        {
            "referenceDay": "2024-01-05",
            "dates": ["2024-01-05", "2024-01-04", ...],
            "users": [
                {"userId": "...", "username": "...", "days": [true, false, ...],
                 "currentStreak": 3, "completedToday": true}
            ],
            "stats": {"longestStreak": 3, "streakHolder": "...",
                      "userStreaks": {"...": 3}, "activeToday": 1}
        }
    """
    view = load_board(
        get_store(),
        reference_day=resolve_reference_day(day),
        window_size_days=days if days is not None else settings.VIEW_WINDOW_DAYS,
        max_window_days=settings.MAX_WINDOW_DAYS,
        viewer_id=viewer,
        sort=sort,
    )
    return view.to_dict()
