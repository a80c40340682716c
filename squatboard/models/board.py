"""
Board view domain model.

The board is the shared grid: one row per user with completion flags for a
trailing window of days, plus summary statistics. It is derived on every
request and never stored.
"""

from dataclasses import dataclass, field
from datetime import date
from typing import Dict, List, Optional


@dataclass(frozen=True)
class BoardStats:
    longest_streak: int = 0
    streak_holder: Optional[str] = None
    user_streaks: Dict[str, int] = field(default_factory=dict)
    active_today: int = 0

    def to_dict(self) -> dict:
        return {
            "longestStreak": self.longest_streak,
            "streakHolder": self.streak_holder,
            "userStreaks": dict(self.user_streaks),
            "activeToday": self.active_today,
        }


@dataclass(frozen=True)
class BoardRow:
    """
    One user's line on the board.

    Attributes:
        days: completion flags aligned with BoardView.dates (most recent first)
    """

    user_id: str
    display_name: str
    days: List[bool]
    current_streak: int
    completed_today: bool

    def to_dict(self) -> dict:
        return {
            "userId": self.user_id,
            "username": self.display_name,
            "days": list(self.days),
            "currentStreak": self.current_streak,
            "completedToday": self.completed_today,
        }


@dataclass(frozen=True)
class BoardView:
    reference_day: date
    dates: List[date]  # most recent first
    rows: List[BoardRow]
    stats: BoardStats

    @property
    def window_size_days(self) -> int:
        return len(self.dates)

    def to_dict(self) -> dict:
        return {
            "referenceDay": self.reference_day.isoformat(),
            "dates": [d.isoformat() for d in self.dates],
            "users": [row.to_dict() for row in self.rows],
            "stats": self.stats.to_dict(),
        }
