"""
Redis-backed ledger store.

Key layout:

    user:{id}              hash     user_id, username, last_active (ISO UTC)
    completions:{id}       set      YYYY-MM-DD members, written with SADD
    user_index             hash     casefolded username -> id, claimed with HSETNX
    active_users           set      registered ids

Older deployments wrote a different layout, still read here and upgraded on
first write (or in bulk by workers/migrate_legacy_ledgers.py):

    user:{id}              string   JSON {userId, username, lastActive, squats: [...]}
    squats:{YYYY-MM}:{id}  set      day-of-month members
    userIndex              string   JSON {lowercased username: id}
    activeUsers            set      ids
"""

from __future__ import annotations

import json
import logging
from contextlib import contextmanager
from dataclasses import dataclass, field
from datetime import date, datetime, timezone
from typing import Any, Dict, Iterator, List, Optional

from redis import Redis
from redis.exceptions import RedisError

from squatboard.core.errors import ConflictError, StoreUnavailableError, UnknownUserError
from squatboard.features.ledger.days import format_day
from squatboard.features.ledger.encodings import DecodeReport, ledger_to_strings, merge_encodings
from squatboard.models.ledger import CompletionLedger
from squatboard.models.user import UserSnapshot, name_key, normalize_display_name

logger = logging.getLogger("squatboard.store")

NAME_INDEX_KEY = "user_index"
ACTIVE_USERS_KEY = "active_users"
LEGACY_INDEX_KEY = "userIndex"
LEGACY_ACTIVE_USERS_KEY = "activeUsers"


def user_key(user_id: str) -> str:
    return f"user:{user_id}"


def completions_key(user_id: str) -> str:
    return f"completions:{user_id}"


def legacy_month_pattern(user_id: str) -> str:
    return f"squats:*:{user_id}"


def legacy_field_keys(user_id: str) -> List[str]:
    return [f"user:{user_id}:lastActive", f"user:{user_id}:username", f"user:{user_id}:squats"]


@dataclass
class _Profile:
    user_id: str
    display_name: str
    last_active: Optional[datetime]
    legacy_payload: Any = None
    is_legacy: bool = False


@dataclass
class MigrationResult:
    user_id: str
    legacy: bool = False
    migrated: bool = False
    days: int = 0
    skipped: List[str] = field(default_factory=list)


class RedisLedgerStore:
    def __init__(self, client: Redis):
        self._redis = client

    @classmethod
    def from_url(cls, url: Optional[str]) -> "RedisLedgerStore":
        if not url:
            raise StoreUnavailableError("REDIS_URL is not configured")
        return cls(Redis.from_url(url, decode_responses=True))

    @contextmanager
    def _redis_errors(self) -> Iterator[None]:
        try:
            yield
        except RedisError as exc:
            logger.error("[store] redis error: %s", exc)
            raise StoreUnavailableError(f"Ledger store unavailable: {exc}") from exc

    # Reads -------------------------------------------------------------
    def ping(self) -> bool:
        with self._redis_errors():
            return bool(self._redis.ping())

    def is_name_available(self, display_name: str) -> bool:
        key = name_key(display_name)
        with self._redis_errors():
            if self._redis.hexists(NAME_INDEX_KEY, key):
                return False
            return key not in self._legacy_index()

    def get_user(self, user_id: str) -> UserSnapshot:
        with self._redis_errors():
            profile = self._read_profile(user_id)
            if profile is None:
                raise UnknownUserError(user_id)
            ledger = self._load_ledger(profile)
        return UserSnapshot(
            user_id=profile.user_id,
            display_name=profile.display_name,
            ledger=ledger,
            last_active=profile.last_active,
        )

    def list_users(self) -> List[UserSnapshot]:
        with self._redis_errors():
            user_ids = self._redis.sunion(ACTIVE_USERS_KEY, LEGACY_ACTIVE_USERS_KEY)
        users = []
        for user_id in sorted(user_ids):
            try:
                users.append(self.get_user(user_id))
            except UnknownUserError:
                # listed but deleted underneath us
                logger.debug("[store] skipping vanished user %s", user_id)
        return users

    # Writes ------------------------------------------------------------
    def claim_user(self, user_id: str, display_name: str, now: datetime) -> UserSnapshot:
        """
        Reserve the name, then the profile, each with HSETNX.

        A claim that loses the profile race to a different name releases the
        index entry it took, so no name is left pointing at a user who does
        not hold it.
        """
        name = normalize_display_name(display_name)
        key = name_key(name)
        with self._redis_errors():
            legacy_owner = self._legacy_index().get(key)
            if legacy_owner is not None and legacy_owner != user_id:
                raise ConflictError("Username already taken")

            existing = self._read_profile(user_id)
            if existing is not None and _index_key(existing.display_name) != key:
                raise ConflictError("User id already registered under another name")

            took_index = bool(self._redis.hsetnx(NAME_INDEX_KEY, key, user_id))
            if not took_index and self._redis.hget(NAME_INDEX_KEY, key) != user_id:
                raise ConflictError("Username already taken")

            if existing is not None and existing.is_legacy:
                return self.get_user(user_id)

            if not self._redis.hsetnx(user_key(user_id), "username", name):
                holder = self._redis.hget(user_key(user_id), "username") or ""
                if _index_key(holder) != key:
                    if took_index:
                        self._redis.hdel(NAME_INDEX_KEY, key)
                    raise ConflictError("User id already registered under another name")
                return self.get_user(user_id)

            pipe = self._redis.pipeline(transaction=True)
            pipe.hset(user_key(user_id), mapping={
                "user_id": user_id,
                "last_active": now.astimezone(timezone.utc).isoformat(),
            })
            pipe.sadd(ACTIVE_USERS_KEY, user_id)
            pipe.execute()

        return UserSnapshot(user_id=user_id, display_name=name, ledger=CompletionLedger(), last_active=now)

    def add_completion(self, user_id: str, day: date, now: datetime) -> bool:
        with self._redis_errors():
            profile = self._read_profile(user_id)
            if profile is None:
                raise UnknownUserError(user_id)
            if profile.is_legacy:
                self._upgrade(profile, dry_run=False)

            pipe = self._redis.pipeline(transaction=True)
            pipe.sadd(completions_key(user_id), format_day(day))
            pipe.hset(user_key(user_id), "last_active", now.astimezone(timezone.utc).isoformat())
            added, _ = pipe.execute()
        return bool(added)

    def remove_user(self, user_id: str) -> bool:
        with self._redis_errors():
            profile = self._read_profile(user_id)
            month_keys = list(self._redis.scan_iter(match=legacy_month_pattern(user_id)))
            legacy_index = self._legacy_index()

            pipe = self._redis.pipeline(transaction=True)
            pipe.delete(user_key(user_id), completions_key(user_id), *month_keys, *legacy_field_keys(user_id))
            pipe.srem(ACTIVE_USERS_KEY, user_id)
            pipe.srem(LEGACY_ACTIVE_USERS_KEY, user_id)
            if profile is not None:
                key = _index_key(profile.display_name)
                if self._redis.hget(NAME_INDEX_KEY, key) == user_id:
                    pipe.hdel(NAME_INDEX_KEY, key)
                if legacy_index.get(key) == user_id:
                    del legacy_index[key]
                    pipe.set(LEGACY_INDEX_KEY, json.dumps(legacy_index))
            pipe.execute()
        return profile is not None

    def migrate_user(self, user_id: str, *, dry_run: bool = True) -> MigrationResult:
        """Rewrite one user's legacy records into the current layout."""
        with self._redis_errors():
            profile = self._read_profile(user_id)
            if profile is None:
                raise UnknownUserError(user_id)
            if not profile.is_legacy:
                return MigrationResult(user_id=user_id)
            return self._upgrade(profile, dry_run=dry_run)

    def known_user_ids(self) -> List[str]:
        with self._redis_errors():
            ids = set(self._redis.sunion(ACTIVE_USERS_KEY, LEGACY_ACTIVE_USERS_KEY))
            ids.update(self._legacy_index().values())
        return sorted(ids)

    # Internals ---------------------------------------------------------
    def _legacy_index(self) -> Dict[str, str]:
        raw = self._redis.get(LEGACY_INDEX_KEY)
        if not raw:
            return {}
        try:
            index = json.loads(raw)
        except ValueError:
            logger.warning("[store] legacy userIndex is not valid JSON; ignoring it")
            return {}
        return {str(k).casefold(): str(v) for k, v in index.items()}

    def _read_profile(self, user_id: str) -> Optional[_Profile]:
        key = user_key(user_id)
        kind = self._redis.type(key)
        if kind == "hash":
            fields = self._redis.hgetall(key)
            return _Profile(
                user_id=user_id,
                display_name=fields.get("username", ""),
                last_active=parse_instant(fields.get("last_active")),
            )
        if kind == "string":
            try:
                data = json.loads(self._redis.get(key) or "{}")
            except ValueError:
                logger.warning("[store] unreadable legacy record for %s", user_id)
                return None
            if not isinstance(data, dict):
                logger.warning("[store] legacy record for %s is not an object", user_id)
                return None
            return _Profile(
                user_id=user_id,
                display_name=str(data.get("username", "")),
                last_active=parse_instant(data.get("lastActive")),
                legacy_payload=data.get("squats"),
                is_legacy=True,
            )
        return None

    def _load_ledger(self, profile: _Profile, report: Optional[DecodeReport] = None) -> CompletionLedger:
        report = report if report is not None else DecodeReport()
        payloads: List[Any] = [self._redis.smembers(completions_key(profile.user_id))]
        if profile.is_legacy:
            payloads.append(profile.legacy_payload)
            months = {}
            for month_key in self._redis.scan_iter(match=legacy_month_pattern(profile.user_id)):
                months[month_key.split(":")[1]] = self._redis.smembers(month_key)
            payloads.append(months)
        ledger = merge_encodings(*payloads, strict=False, report=report)
        if report.skipped:
            logger.warning(
                "[store] skipped %d malformed completion(s) for %s",
                len(report.skipped),
                profile.user_id,
            )
        return ledger

    def _upgrade(self, profile: _Profile, *, dry_run: bool) -> MigrationResult:
        report = DecodeReport()
        ledger = self._load_ledger(profile, report)
        result = MigrationResult(user_id=profile.user_id, legacy=True, migrated=not dry_run, days=len(ledger), skipped=report.skipped)
        if dry_run:
            return result

        month_keys = list(self._redis.scan_iter(match=legacy_month_pattern(profile.user_id)))
        last_active = profile.last_active or datetime.now(timezone.utc)
        pipe = self._redis.pipeline(transaction=True)
        pipe.delete(user_key(profile.user_id))
        pipe.hset(user_key(profile.user_id), mapping={
            "user_id": profile.user_id,
            "username": profile.display_name,
            "last_active": last_active.astimezone(timezone.utc).isoformat(),
        })
        if len(ledger):
            pipe.sadd(completions_key(profile.user_id), *ledger_to_strings(ledger))
        if month_keys:
            pipe.delete(*month_keys)
        pipe.sadd(ACTIVE_USERS_KEY, profile.user_id)
        pipe.srem(LEGACY_ACTIVE_USERS_KEY, profile.user_id)
        if profile.display_name:
            pipe.hsetnx(NAME_INDEX_KEY, _index_key(profile.display_name), profile.user_id)
        pipe.execute()
        logger.info("[store] upgraded legacy user %s (%d days)", profile.user_id, len(ledger))
        return result


def _index_key(display_name: str) -> str:
    return display_name.strip().casefold()


def parse_instant(value: Any) -> Optional[datetime]:
    """Stored activity instants: ISO strings (``Z`` suffix allowed) or epoch milliseconds."""
    if value is None or value == "":
        return None
    if isinstance(value, (int, float)):
        return datetime.fromtimestamp(value / 1000, tz=timezone.utc)
    text = str(value)
    if text.isdigit():
        return datetime.fromtimestamp(int(text) / 1000, tz=timezone.utc)
    try:
        moment = datetime.fromisoformat(text.replace("Z", "+00:00"))
    except ValueError:
        logger.warning("[store] unparseable activity timestamp %r", text)
        return None
    if moment.tzinfo is None:
        moment = moment.replace(tzinfo=timezone.utc)
    return moment
