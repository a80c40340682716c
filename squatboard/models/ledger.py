"""
Completion ledger domain model.

A ledger is the sparse set of calendar days on which one user recorded a
completion. Absence of a day means "not completed". Values are immutable;
``insert`` returns a ledger instead of mutating in place.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime, timedelta
from typing import AbstractSet, FrozenSet, Iterable, Iterator

from squatboard.core.errors import InvalidInputError


@dataclass(frozen=True)
class CompletionLedger:
    days: FrozenSet[date] = field(default_factory=frozenset)

    @classmethod
    def of(cls, days: Iterable[date]) -> "CompletionLedger":
        collected = frozenset(days)
        for day in collected:
            _require_day(day)
        return cls(collected)

    def contains(self, day: date) -> bool:
        return day in self.days

    def __contains__(self, day: object) -> bool:
        return day in self.days

    def __iter__(self) -> Iterator[date]:
        return iter(self.days)

    def __len__(self) -> int:
        return len(self.days)

    def latest(self) -> date | None:
        return max(self.days) if self.days else None


def contains(ledger: CompletionLedger, day: date) -> bool:
    return ledger.contains(day)


def insert(
    ledger: CompletionLedger,
    day: date,
    *,
    reference_day: date,
    skew_days: int = 1,
) -> CompletionLedger:
    """Return a ledger with ``day`` present.

    Days later than ``reference_day + skew_days`` are rejected.
    """
    check_recordable(day, reference_day=reference_day, skew_days=skew_days)
    if day in ledger.days:
        return ledger
    return CompletionLedger(ledger.days | {day})


def check_recordable(day: date, *, reference_day: date, skew_days: int = 1) -> date:
    _require_day(day)
    latest_allowed = reference_day + timedelta(days=skew_days)
    if day > latest_allowed:
        raise InvalidInputError(
            f"Cannot record {day.isoformat()}: later than {latest_allowed.isoformat()}"
        )
    return day


def days_on(ledger: CompletionLedger) -> AbstractSet[date]:
    """All recorded days, unordered. Re-iterable; iterating twice yields the same days."""
    return ledger.days


def merge(*ledgers: CompletionLedger) -> CompletionLedger:
    merged: FrozenSet[date] = frozenset()
    for ledger in ledgers:
        merged = merged | ledger.days
    return CompletionLedger(merged)


def _require_day(day: object) -> None:
    # datetime is a date subclass; a timestamp is not a calendar day
    if not isinstance(day, date) or isinstance(day, datetime):
        raise InvalidInputError(f"Not a calendar day: {day!r}")
