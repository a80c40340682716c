"""
User domain service.
- check_username / register_user
- record_completion / replay_completions
- load_board / user_stats
- sweep_inactive

Every function takes the store and the clock values explicitly; the API
layer resolves them.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime, timedelta
from typing import Iterable, List, Optional

from squatboard.core.errors import InvalidInputError
from squatboard.core.logging import log_event
from squatboard.core.metrics import completions_recorded_total, users_registered_total, users_swept_total
from squatboard.features.board.builder import build_view, order_rows
from squatboard.features.ledger.days import format_day, parse_day
from squatboard.features.store.base import LedgerStore
from squatboard.features.streaks.calculator import current_streak, longest_run
from squatboard.models.board import BoardView
from squatboard.models.ledger import check_recordable
from squatboard.models.user import UserSnapshot, normalize_display_name


@dataclass(frozen=True)
class ReplayOutcome:
    day: str
    status: str  # recorded | duplicate | rejected
    reason: Optional[str] = None

    def to_dict(self) -> dict:
        payload = {"date": self.day, "status": self.status}
        if self.reason:
            payload["reason"] = self.reason
        return payload


def check_username(store: LedgerStore, display_name: str) -> dict:
    name = normalize_display_name(display_name)
    return {"username": name, "available": store.is_name_available(name)}


def register_user(store: LedgerStore, user_id: str, display_name: str, now: datetime) -> UserSnapshot:
    if not user_id or not user_id.strip():
        raise InvalidInputError("userId is required")
    user = store.claim_user(user_id.strip(), display_name, now)
    users_registered_total.inc()
    log_event("info", "user.registered", user_id=user.user_id, event_type="user.registered")
    return user


def record_completion(
    store: LedgerStore,
    user_id: str,
    day: date,
    *,
    reference_day: date,
    now: datetime,
    skew_days: int = 1,
) -> bool:
    """Record one completion. Returns True if the day was new for this user."""
    store.get_user(user_id)  # unknown user before day validation
    check_recordable(day, reference_day=reference_day, skew_days=skew_days)
    added = store.add_completion(user_id, day, now)
    completions_recorded_total.inc(labels={"outcome": "recorded" if added else "duplicate"})
    log_event(
        "info",
        "completion.recorded" if added else "completion.duplicate",
        user_id=user_id,
        event_type="completion",
        extra={"day": format_day(day)},
    )
    return added


def replay_completions(
    store: LedgerStore,
    user_id: str,
    days: Iterable[str],
    *,
    reference_day: date,
    now: datetime,
    skew_days: int = 1,
) -> List[ReplayOutcome]:
    """
    Replay a client's offline queue.

    Each day is handled on its own: a bad or future day is rejected without
    affecting the others. An unknown user aborts the whole replay.
    """
    outcomes: List[ReplayOutcome] = []
    for raw in days:
        try:
            day = parse_day(raw)
            added = record_completion(
                store,
                user_id,
                day,
                reference_day=reference_day,
                now=now,
                skew_days=skew_days,
            )
        except InvalidInputError as exc:
            completions_recorded_total.inc(labels={"outcome": "rejected"})
            outcomes.append(ReplayOutcome(day=str(raw), status="rejected", reason=exc.message))
            continue
        outcomes.append(ReplayOutcome(day=format_day(day), status="recorded" if added else "duplicate"))
    return outcomes


def load_board(
    store: LedgerStore,
    *,
    reference_day: date,
    window_size_days: int,
    max_window_days: int,
    viewer_id: Optional[str] = None,
    sort: str = "name",
) -> BoardView:
    view = build_view(store.list_users(), reference_day, window_size_days, max_window_days=max_window_days)
    return order_rows(view, viewer_id=viewer_id, sort=sort)


def user_stats(store: LedgerStore, user_id: str, *, reference_day: date) -> dict:
    user = store.get_user(user_id)
    return {
        "userId": user.user_id,
        "username": user.display_name,
        "currentStreak": current_streak(user.ledger, reference_day),
        "longestRun": longest_run(user.ledger),
        "totalCompletions": len(user.ledger),
        "completedToday": user.ledger.contains(reference_day),
        "lastActive": user.last_active.isoformat() if user.last_active else None,
    }


def inactive_users(users: Iterable[UserSnapshot], *, now: datetime, idle_days: int) -> List[UserSnapshot]:
    """Users whose last activity is more than ``idle_days`` before ``now``.

    Users with no recorded activity are treated as idle.
    """
    cutoff = now - timedelta(days=idle_days)
    return [u for u in users if u.last_active is None or u.last_active < cutoff]


def sweep_inactive(store: LedgerStore, *, now: datetime, idle_days: int, dry_run: bool = False) -> List[str]:
    if idle_days < 1:
        raise InvalidInputError("idle_days must be at least 1")
    removed: List[str] = []
    for user in sorted(inactive_users(store.list_users(), now=now, idle_days=idle_days), key=lambda u: u.user_id):
        if dry_run:
            removed.append(user.user_id)
            continue
        if store.remove_user(user.user_id):
            removed.append(user.user_id)
    if not dry_run:
        users_swept_total.inc(amount=len(removed))
    log_event(
        "info",
        "users.swept",
        event_type="users.swept",
        extra={"removed": len(removed), "idle_days": idle_days, "dry_run": dry_run},
    )
    return removed
