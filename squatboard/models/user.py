from __future__ import annotations

import unicodedata
from dataclasses import dataclass, field
from datetime import datetime
from typing import Optional

from squatboard.core.errors import InvalidInputError
from squatboard.models.ledger import CompletionLedger

MAX_DISPLAY_NAME_LENGTH = 32


@dataclass(frozen=True)
class UserSnapshot:
    """
    A user as handed to the board and streak calculations.

    The ledger is owned by this user alone; last_active drives the inactivity sweep.
    """

    user_id: str
    display_name: str
    ledger: CompletionLedger = field(default_factory=CompletionLedger)
    last_active: Optional[datetime] = None


def normalize_display_name(display_name: Optional[str]) -> str:
    name = (display_name or "").strip()
    if not name:
        raise InvalidInputError("Please enter a username")
    if len(name) > MAX_DISPLAY_NAME_LENGTH:
        raise InvalidInputError(f"Username must be at most {MAX_DISPLAY_NAME_LENGTH} characters")
    if any(unicodedata.category(ch).startswith("C") for ch in name):
        raise InvalidInputError("Username contains control characters")
    return name


def name_key(display_name: str) -> str:
    """Key under which a display name is reserved; comparisons ignore case."""
    return normalize_display_name(display_name).casefold()
