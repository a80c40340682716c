"""
Streak calculation over completion ledgers.

One rule everywhere: the current streak is the run of consecutive completed
days ending at the most recent completion that falls on the reference day or
the day before it. A missing reference day therefore does not zero a streak
until the user has also missed the previous day. Completions after the
reference day are ignored.

Pure functions: no clock, no storage.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date
from typing import Dict, Iterable, List, Optional

from squatboard.core.errors import InvalidInputError, UnknownUserError
from squatboard.features.ledger.days import is_consecutive, previous_day
from squatboard.models.ledger import CompletionLedger
from squatboard.models.user import UserSnapshot


@dataclass(frozen=True)
class StreakSummary:
    longest_streak: int = 0
    streak_holder: Optional[str] = None  # display name
    streak_holder_id: Optional[str] = None
    user_streaks: Dict[str, int] = field(default_factory=dict)


def streak_anchor(ledger: CompletionLedger, reference_day: date) -> Optional[date]:
    """Day the current streak ends on, or None when it is broken."""
    if ledger.contains(reference_day):
        return reference_day
    yesterday = previous_day(reference_day)
    if ledger.contains(yesterday):
        return yesterday
    return None


def current_streak(ledger: CompletionLedger, reference_day: date) -> int:
    day = streak_anchor(ledger, reference_day)
    streak = 0
    while day is not None and ledger.contains(day):
        streak += 1
        day = previous_day(day)
    return streak


def longest_run(ledger: CompletionLedger) -> int:
    """Longest run of consecutive days anywhere in the ledger."""
    best = 0
    run = 0
    prior: Optional[date] = None
    for day in sorted(ledger.days):
        run = run + 1 if prior is not None and is_consecutive(prior, day) else 1
        best = max(best, run)
        prior = day
    return best


def ordered_users(users: Iterable[UserSnapshot]) -> List[UserSnapshot]:
    """Users in ascending id order; duplicate ids are rejected."""
    ordered = sorted(users, key=lambda u: u.user_id)
    for earlier, later in zip(ordered, ordered[1:]):
        if earlier.user_id == later.user_id:
            raise InvalidInputError(f"Duplicate user id in snapshot: {later.user_id}")
    return ordered


def batch_streaks(users: Iterable[UserSnapshot], reference_day: date) -> StreakSummary:
    """Current streak per user plus the longest streak and who holds it.

    Users are scanned by ascending id and a tie never replaces the holder,
    so the result does not depend on input order.
    """
    longest = 0
    holder: Optional[UserSnapshot] = None
    per_user: Dict[str, int] = {}

    for user in ordered_users(users):
        streak = current_streak(user.ledger, reference_day)
        per_user[user.user_id] = streak
        if streak > longest:
            longest = streak
            holder = user

    return StreakSummary(
        longest_streak=longest,
        streak_holder=holder.display_name if holder else None,
        streak_holder_id=holder.user_id if holder else None,
        user_streaks=per_user,
    )


def streak_for(users: Iterable[UserSnapshot], user_id: str, reference_day: date) -> int:
    for user in users:
        if user.user_id == user_id:
            return current_streak(user.ledger, reference_day)
    raise UnknownUserError(user_id)
