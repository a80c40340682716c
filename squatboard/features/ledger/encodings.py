"""
Translate persisted completion shapes into a CompletionLedger.

Shapes seen in stored data:

- flat list of ``YYYY-MM-DD`` strings, possibly with repeats
  (``{"squats": ["2024-01-01", ...]}`` or just the list)
- per-month buckets ``{"YYYY-MM": [day_of_month, ...]}`` where members are
  ints or numeric strings
- an iterable of ``date`` values (already canonical)

Only the ledger leaves this module.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from datetime import date, datetime
from typing import Any, Dict, Iterable, List, Mapping

from squatboard.core.errors import InvalidInputError
from squatboard.features.ledger.days import format_day, parse_day
from squatboard.models.ledger import CompletionLedger, merge

_MONTH_RE = re.compile(r"^(\d{4})-(\d{2})$")


@dataclass
class DecodeReport:
    """Collected while decoding in lenient mode."""

    skipped: List[str] = field(default_factory=list)

    def skip(self, member: Any, reason: str) -> None:
        self.skipped.append(f"{member!r}: {reason}")


def ledger_from_legacy(
    payload: Any,
    *,
    strict: bool = True,
    report: DecodeReport | None = None,
) -> CompletionLedger:
    """Detect the stored shape of ``payload`` and decode it.

    In strict mode anything malformed raises InvalidInputError. Otherwise a
    bad member, a bad bucket or an unrecognised payload is skipped and noted
    on ``report``, and decoding carries on with whatever is left.
    """
    if payload is None:
        return CompletionLedger()
    if isinstance(payload, CompletionLedger):
        return payload
    if isinstance(payload, Mapping):
        if "squats" in payload:
            return ledger_from_legacy(payload["squats"], strict=strict, report=report)
        return _from_month_buckets(payload, strict=strict, report=report)
    if isinstance(payload, (str, bytes)):
        return _reject(payload, "Expected a collection of days, got a single string", strict, report)
    if isinstance(payload, Iterable):
        return _from_flat(payload, strict=strict, report=report)
    return _reject(payload, f"Unrecognised completion encoding: {type(payload).__name__}", strict, report)


def merge_encodings(*payloads: Any, strict: bool = True, report: DecodeReport | None = None) -> CompletionLedger:
    """Decode every payload and union the results, collapsing duplicates."""
    return merge(*(ledger_from_legacy(p, strict=strict, report=report) for p in payloads))


def ledger_to_month_buckets(ledger: CompletionLedger) -> Dict[str, List[int]]:
    buckets: Dict[str, List[int]] = {}
    for day in sorted(ledger.days):
        buckets.setdefault(f"{day.year:04d}-{day.month:02d}", []).append(day.day)
    return buckets


def ledger_to_strings(ledger: CompletionLedger) -> List[str]:
    return [format_day(day) for day in sorted(ledger.days)]


def _from_flat(members: Iterable[Any], *, strict: bool, report: DecodeReport | None) -> CompletionLedger:
    days = set()
    for member in members:
        try:
            days.add(_coerce_member(member))
        except InvalidInputError as exc:
            if strict:
                raise
            if report is not None:
                report.skip(member, exc.message)
    return CompletionLedger(frozenset(days))


def _from_month_buckets(
    buckets: Mapping[str, Any],
    *,
    strict: bool,
    report: DecodeReport | None,
) -> CompletionLedger:
    days = set()
    for month_key, members in buckets.items():
        match = _MONTH_RE.match(str(month_key))
        if not match:
            if strict:
                raise InvalidInputError(f"Bad month key: {month_key!r}")
            if report is not None:
                report.skip(month_key, "bad month key")
            continue
        try:
            bucket = _bucket_members(members)
        except InvalidInputError as exc:
            if strict:
                raise
            if report is not None:
                report.skip(f"{month_key}:{members!r}", exc.message)
            continue
        year, month = int(match.group(1)), int(match.group(2))
        for member in bucket:
            try:
                days.add(_month_member(year, month, member))
            except InvalidInputError as exc:
                if strict:
                    raise
                if report is not None:
                    report.skip(f"{month_key}:{member}", exc.message)
    return CompletionLedger(frozenset(days))


def _bucket_members(members: Any) -> Iterable[Any]:
    # a scalar bucket holds one day of month, never one per character
    if members is None:
        return ()
    if isinstance(members, (list, tuple, set, frozenset)):
        return members
    if isinstance(members, (str, bytes, int)) and not isinstance(members, bool):
        return (members,)
    raise InvalidInputError(f"Bad month bucket: {type(members).__name__}")


def _reject(payload: Any, reason: str, strict: bool, report: DecodeReport | None) -> CompletionLedger:
    if strict:
        raise InvalidInputError(reason)
    if report is not None:
        report.skip(payload, reason)
    return CompletionLedger()


def _coerce_member(member: Any) -> date:
    if isinstance(member, bytes):
        member = member.decode("utf-8")
    if isinstance(member, datetime):
        raise InvalidInputError(f"Expected a calendar day, got a timestamp: {member!r}")
    if isinstance(member, date):
        return member
    if isinstance(member, str):
        # some clients stored full ISO timestamps; the calendar part is what was meant
        return parse_day(member[:10] if "T" in member else member)
    raise InvalidInputError(f"Not a day: {member!r}")


def _month_member(year: int, month: int, member: Any) -> date:
    if isinstance(member, bytes):
        member = member.decode("utf-8")
    try:
        day_of_month = int(member)
    except (TypeError, ValueError):
        raise InvalidInputError(f"Not a day of month: {member!r}") from None
    try:
        return date(year, month, day_of_month)
    except ValueError:
        raise InvalidInputError(f"Not a calendar day: {year:04d}-{month:02d}-{day_of_month}") from None
