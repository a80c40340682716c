"""
Aggregate board view.

build_view turns a user snapshot into the grid and statistics the clients
render. Rows come out in ascending user id; order_rows applies the display
sort afterwards and never touches the numbers.
"""

from __future__ import annotations

from dataclasses import replace
from datetime import date
from typing import Iterable, Optional

from squatboard.core.errors import InvalidInputError, UnknownUserError
from squatboard.features.ledger.days import trailing_days
from squatboard.features.streaks.calculator import batch_streaks, ordered_users
from squatboard.models.board import BoardRow, BoardStats, BoardView
from squatboard.models.user import UserSnapshot

DEFAULT_MAX_WINDOW_DAYS = 90
SORT_MODES = ("name", "streak")


def build_view(
    users: Iterable[UserSnapshot],
    reference_day: date,
    window_size_days: int,
    *,
    max_window_days: int = DEFAULT_MAX_WINDOW_DAYS,
) -> BoardView:
    if window_size_days < 1 or window_size_days > max_window_days:
        raise InvalidInputError(f"Window must be between 1 and {max_window_days} days")

    snapshot = ordered_users(users)
    dates = trailing_days(reference_day, window_size_days)
    summary = batch_streaks(snapshot, reference_day)

    rows = []
    active_today = 0
    for user in snapshot:
        completed_today = user.ledger.contains(reference_day)
        if completed_today:
            active_today += 1
        rows.append(
            BoardRow(
                user_id=user.user_id,
                display_name=user.display_name,
                days=[user.ledger.contains(day) for day in dates],
                current_streak=summary.user_streaks[user.user_id],
                completed_today=completed_today,
            )
        )

    stats = BoardStats(
        longest_streak=summary.longest_streak,
        streak_holder=summary.streak_holder,
        user_streaks=summary.user_streaks,
        active_today=active_today,
    )
    return BoardView(reference_day=reference_day, dates=dates, rows=rows, stats=stats)


def order_rows(view: BoardView, viewer_id: Optional[str] = None, sort: str = "name") -> BoardView:
    """Viewer first, then by name (case-insensitive) or by streak descending."""
    if sort not in SORT_MODES:
        raise InvalidInputError(f"sort must be one of {', '.join(SORT_MODES)}")

    def key(row: BoardRow):
        viewer_rank = 0 if viewer_id is not None and row.user_id == viewer_id else 1
        name = row.display_name.casefold()
        if sort == "streak":
            return (viewer_rank, -row.current_streak, name, row.user_id)
        return (viewer_rank, name, row.user_id)

    return replace(view, rows=sorted(view.rows, key=key))


def stats_for_user(view: BoardView, user_id: str) -> BoardRow:
    for row in view.rows:
        if row.user_id == user_id:
            return row
    raise UnknownUserError(user_id)
