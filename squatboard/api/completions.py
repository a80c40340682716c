"""
Completions API

POST /api/completions: record today's (or a given day's) completion
POST /api/completions/replay: replay a client's offline queue
"""

from typing import List, Optional

from fastapi import APIRouter
from pydantic import BaseModel, ConfigDict, Field

from squatboard.api.common import broadcast_board, resolve_reference_day, utc_now
from squatboard.core.config import settings
from squatboard.core.errors import PayloadTooLargeError
from squatboard.features.ledger.days import format_day, parse_day
from squatboard.features.store.base import get_store
from squatboard.features.users.service import record_completion, replay_completions

router = APIRouter(prefix="/api/completions", tags=["completions"])

MAX_REPLAY_DAYS = 90


class RecordCompletionRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    user_id: str = Field(..., alias="userId", min_length=1)
    date: Optional[str] = Field(None, description="YYYY-MM-DD; defaults to today")


class ReplayRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    user_id: str = Field(..., alias="userId", min_length=1)
    dates: List[str] = Field(..., min_length=1)


@router.post("")
async def record_completion_endpoint(body: RecordCompletionRequest):
    now = utc_now()
    reference_day = resolve_reference_day(now=now)
    day = parse_day(body.date) if body.date else reference_day

    added = record_completion(
        get_store(),
        body.user_id,
        day,
        reference_day=reference_day,
        now=now,
        skew_days=settings.FUTURE_SKEW_DAYS,
    )
    if added:
        await broadcast_board(reference_day)
    return {"success": True, "date": format_day(day), "duplicate": not added}


@router.post("/replay")
async def replay_endpoint(body: ReplayRequest):
    if len(body.dates) > MAX_REPLAY_DAYS:
        raise PayloadTooLargeError(f"At most {MAX_REPLAY_DAYS} days can be replayed at once")
    now = utc_now()
    reference_day = resolve_reference_day(now=now)
    outcomes = replay_completions(
        get_store(),
        body.user_id,
        body.dates,
        reference_day=reference_day,
        now=now,
        skew_days=settings.FUTURE_SKEW_DAYS,
    )
    if any(o.status == "recorded" for o in outcomes):
        await broadcast_board(reference_day)
    return {
        "results": [o.to_dict() for o in outcomes],
        "recorded": sum(1 for o in outcomes if o.status == "recorded"),
        "rejected": sum(1 for o in outcomes if o.status == "rejected"),
    }
