"""
Users API

GET  /api/users/check: is a username free?
POST /api/users: claim a username
GET  /api/users/{user_id}/stats: one user's streak figures
POST /api/users/sweep: drop users idle past the threshold
"""

from typing import Optional

from fastapi import APIRouter, Query
from pydantic import BaseModel, ConfigDict, Field

from squatboard.api.common import broadcast_board, resolve_reference_day, utc_now
from squatboard.core.config import settings
from squatboard.features.store.base import get_store
from squatboard.features.users.service import check_username, register_user, sweep_inactive, user_stats
from squatboard.realtime.hub import hub

router = APIRouter(prefix="/api/users", tags=["users"])


class SaveUserRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    user_id: str = Field(..., alias="userId", min_length=1, max_length=128)
    username: str = Field(..., min_length=1)


class SweepRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    idle_days: Optional[int] = Field(None, alias="idleDays", ge=1)
    dry_run: bool = Field(False, alias="dryRun")


@router.get("/check")
async def check_username_endpoint(username: str = Query(..., min_length=1)):
    return check_username(get_store(), username)


@router.post("")
async def save_user_endpoint(body: SaveUserRequest):
    """
    Claim a username for a client-generated user id.

    Returns:
        { "success": true, "user": { "userId": "...", "username": "..." } }

    409 when the name is taken (case-insensitive).
    """
    now = utc_now()
    user = register_user(get_store(), body.user_id, body.username, now)
    await broadcast_board(resolve_reference_day(now=now))
    return {"success": True, "user": {"userId": user.user_id, "username": user.display_name}}


@router.get("/{user_id}/stats")
async def user_stats_endpoint(
    user_id: str,
    day: Optional[str] = Query(None, description="Reference day YYYY-MM-DD (defaults to today)"),
):
    return {"data": user_stats(get_store(), user_id, reference_day=resolve_reference_day(day))}


@router.post("/sweep")
async def sweep_endpoint(body: Optional[SweepRequest] = None):
    body = body or SweepRequest()
    idle_days = body.idle_days or settings.INACTIVE_AFTER_DAYS
    now = utc_now()
    removed = sweep_inactive(get_store(), now=now, idle_days=idle_days, dry_run=body.dry_run)

    if removed and not body.dry_run:
        for user_id in removed:
            await hub.broadcast({"type": "userRemoved", "userId": user_id})
        await broadcast_board(resolve_reference_day(now=now))

    return {
        "message": "Inactive users removed" if not body.dry_run else "Inactive users found",
        "removedCount": len(removed),
        "removedUsers": removed,
        "dryRun": body.dry_run,
    }
