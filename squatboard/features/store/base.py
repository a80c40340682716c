"""
Ledger store contract and backend selection.

The store owns durability of users, display-name reservations and completion
ledgers. Its completion primitive is an add-to-set: idempotent and safe when
two requests record the same (user, day) at once.
"""

from __future__ import annotations

import logging
from datetime import date, datetime
from typing import List, Optional, Protocol

from squatboard.models.user import UserSnapshot

logger = logging.getLogger("squatboard.store")


class LedgerStore(Protocol):
    def claim_user(self, user_id: str, display_name: str, now: datetime) -> UserSnapshot:
        """Reserve the display name (case-insensitively) and create the user.

        Raises ConflictError if the name belongs to someone else or the id is
        already registered under another name.
        """
        ...

    def is_name_available(self, display_name: str) -> bool: ...

    def add_completion(self, user_id: str, day: date, now: datetime) -> bool:
        """Add ``day`` to the user's ledger and touch last activity.

        Returns True when the day was not already present.
        """
        ...

    def get_user(self, user_id: str) -> UserSnapshot: ...

    def list_users(self) -> List[UserSnapshot]: ...

    def remove_user(self, user_id: str) -> bool: ...

    def ping(self) -> bool: ...


_store_instance: Optional[LedgerStore] = None


def create_store(settings_obj=None) -> LedgerStore:
    """
    Build the store named by LEDGER_BACKEND.

    Redis that cannot be reached falls back to memory with a warning, unless
    CONFIG_STRICT is set, in which case StoreUnavailableError propagates.
    """
    from squatboard.core.config import settings
    from squatboard.features.store.memory import InMemoryLedgerStore

    cfg = settings_obj or settings
    backend = (cfg.LEDGER_BACKEND or "memory").lower()

    if backend == "redis":
        from squatboard.core.errors import StoreUnavailableError
        from squatboard.features.store.redis_store import RedisLedgerStore

        try:
            store = RedisLedgerStore.from_url(cfg.REDIS_URL)
            store.ping()
            logger.info("[store] using redis ledger store")
            return store
        except StoreUnavailableError:
            if cfg.CONFIG_STRICT:
                raise
            logger.warning("[store] redis unavailable, falling back to in-memory store")

    return InMemoryLedgerStore()


def get_store() -> LedgerStore:
    """Process-wide store singleton (lazy)."""
    global _store_instance
    if _store_instance is None:
        _store_instance = create_store()
    return _store_instance


def set_store(store: Optional[LedgerStore]) -> None:
    global _store_instance
    _store_instance = store


def reset_store() -> None:
    """Drop the singleton; the next get_store() rebuilds it from settings."""
    set_store(None)
