"""
Streak API Endpoints

POST /v1/stacks/{stack_id}/streak/complete: record today's completion
GET  /v1/stacks/{stack_id}/streak: stored streak + at-risk flag
GET  /v1/stacks/{stack_id}/badges: badges for one stack
GET  /v1/streaks: all streaks for the current user
GET  /v1/badges: all badges for the current user
GET  /v1/badges/{badge_type}/info: display label and threshold
"""

from typing import Optional

from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel, Field

from protocolstack.core.auth import get_current_user_id
from protocolstack.core.errors import NotFoundError
from protocolstack.features.streaks.service import streak_service
from protocolstack.models.streak import BADGE_TYPES, get_badge_info

router = APIRouter()


class CompleteStackRequest(BaseModel):
    # Browser-reported IANA zone, e.g. Intl.DateTimeFormat().resolvedOptions().timeZone
    timezone: Optional[str] = Field(default=None, max_length=64)


@router.post("/v1/stacks/{stack_id}/streak/complete")
def complete_stack(
    stack_id: str,
    body: Optional[CompleteStackRequest] = None,
    user_id: str = Depends(get_current_user_id),
):
    """Advance the streak for a stack whose protocols are all done today."""
    result = streak_service.update_streak(
        user_id=user_id,
        stack_id=stack_id,
        tz_name=body.timezone if body else None,
    )
    return {"data": result.to_dict()}


@router.get("/v1/stacks/{stack_id}/streak")
def get_stack_streak(
    stack_id: str,
    timezone: Optional[str] = Query(None, max_length=64),
    user_id: str = Depends(get_current_user_id),
):
    status = streak_service.get_stack_streak(user_id=user_id, stack_id=stack_id, tz_name=timezone)
    return {"data": status.to_dict()}


@router.get("/v1/stacks/{stack_id}/badges")
def get_stack_badges(stack_id: str, user_id: str = Depends(get_current_user_id)):
    return {"data": [b.to_dict() for b in streak_service.get_stack_badges(user_id, stack_id)]}


@router.get("/v1/streaks")
def get_user_streaks(user_id: str = Depends(get_current_user_id)):
    return {"data": [r.to_dict() for r in streak_service.get_user_streaks(user_id)]}


@router.get("/v1/badges")
def get_user_badges(user_id: str = Depends(get_current_user_id)):
    return {"data": [b.to_dict() for b in streak_service.get_user_badges(user_id)]}


@router.get("/v1/badges/{badge_type}/info")
def get_badge_display_info(badge_type: str):
    if badge_type not in BADGE_TYPES:
        raise NotFoundError(f"Unknown badge type: {badge_type}")
    return {"data": get_badge_info(badge_type).to_dict()}
