"""In-memory ledger store for development and tests."""

from __future__ import annotations

import threading
from dataclasses import dataclass, field
from datetime import date, datetime
from typing import Dict, List, Optional, Set

from squatboard.core.errors import ConflictError, UnknownUserError
from squatboard.models.ledger import CompletionLedger
from squatboard.models.user import UserSnapshot, name_key, normalize_display_name


@dataclass
class _UserRecord:
    user_id: str
    display_name: str
    last_active: Optional[datetime]
    days: Set[date] = field(default_factory=set)

    def snapshot(self) -> UserSnapshot:
        return UserSnapshot(
            user_id=self.user_id,
            display_name=self.display_name,
            ledger=CompletionLedger(frozenset(self.days)),
            last_active=self.last_active,
        )


class InMemoryLedgerStore:
    """Dict-backed store; one lock serializes every mutation."""

    def __init__(self):
        self._users: Dict[str, _UserRecord] = {}
        self._name_index: Dict[str, str] = {}
        self._lock = threading.Lock()

    def claim_user(self, user_id: str, display_name: str, now: datetime) -> UserSnapshot:
        name = normalize_display_name(display_name)
        key = name_key(name)
        with self._lock:
            owner = self._name_index.get(key)
            if owner is not None and owner != user_id:
                raise ConflictError("Username already taken")
            existing = self._users.get(user_id)
            if existing is not None:
                if name_key(existing.display_name) != key:
                    raise ConflictError("User id already registered under another name")
                return existing.snapshot()
            record = _UserRecord(user_id=user_id, display_name=name, last_active=now)
            self._users[user_id] = record
            self._name_index[key] = user_id
            return record.snapshot()

    def is_name_available(self, display_name: str) -> bool:
        key = name_key(display_name)
        with self._lock:
            return key not in self._name_index

    def add_completion(self, user_id: str, day: date, now: datetime) -> bool:
        with self._lock:
            record = self._users.get(user_id)
            if record is None:
                raise UnknownUserError(user_id)
            added = day not in record.days
            record.days.add(day)
            record.last_active = now
            return added

    def get_user(self, user_id: str) -> UserSnapshot:
        with self._lock:
            record = self._users.get(user_id)
            if record is None:
                raise UnknownUserError(user_id)
            return record.snapshot()

    def list_users(self) -> List[UserSnapshot]:
        with self._lock:
            return [record.snapshot() for record in self._users.values()]

    def remove_user(self, user_id: str) -> bool:
        with self._lock:
            record = self._users.pop(user_id, None)
            if record is None:
                return False
            self._name_index.pop(name_key(record.display_name), None)
            return True

    def ping(self) -> bool:
        return True
