"""
FastAPI router for Check-in endpoints.

Daily mood submission, same-day update, today's status and history.
"""

from typing import Annotated

from fastapi import APIRouter, BackgroundTasks, Depends, Query

from common.utils import success_response
from haven.dependencies import (
    require_auth,
    get_checkin_service,
    get_stats_service,
    get_achievement_engine,
    get_support_circle_notifier,
)
from haven.pipelines import checkin as pipelines
from haven.schemas.checkin import CheckInRequest, UpdateTodayRequest
from haven.services.achievements import AchievementEngine
from haven.services.checkin import CheckInService
from haven.services.stats import UserStatsService
from haven.services.support_circle import SupportCircleNotifier

router = APIRouter(prefix="/checkin", tags=["checkin"])


@router.post("")
async def submit_checkin(
    body: CheckInRequest,
    background_tasks: BackgroundTasks,
    user_id: Annotated[str, Depends(require_auth)],
    checkin_service: Annotated[CheckInService, Depends(get_checkin_service)],
    stats_service: Annotated[UserStatsService, Depends(get_stats_service)],
    achievement_engine: Annotated[AchievementEngine, Depends(get_achievement_engine)],
    notifier: Annotated[SupportCircleNotifier, Depends(get_support_circle_notifier)],
):
    """
    Submit today's mood.

    Creates today's entry, or updates it if the user already checked in.
    Friends are notified after the response is sent.
    """
    result = await pipelines.submit_checkin_pipeline(
        checkin_service=checkin_service,
        stats_service=stats_service,
        achievement_engine=achievement_engine,
        notifier=notifier,
        user_id=user_id,
        mood_input=body.to_mood_input(),
        background_tasks=background_tasks,
    )

    return success_response(result)


@router.put("/today")
async def update_today(
    body: UpdateTodayRequest,
    background_tasks: BackgroundTasks,
    user_id: Annotated[str, Depends(require_auth)],
    checkin_service: Annotated[CheckInService, Depends(get_checkin_service)],
    stats_service: Annotated[UserStatsService, Depends(get_stats_service)],
    achievement_engine: Annotated[AchievementEngine, Depends(get_achievement_engine)],
    notifier: Annotated[SupportCircleNotifier, Depends(get_support_circle_notifier)],
):
    """
    Update today's mood. Same effects as a check-in.
    """
    result = await pipelines.submit_checkin_pipeline(
        checkin_service=checkin_service,
        stats_service=stats_service,
        achievement_engine=achievement_engine,
        notifier=notifier,
        user_id=user_id,
        mood_input=body.to_mood_input(),
        update=True,
        reason=body.reason,
        background_tasks=background_tasks,
    )

    return success_response(result)


@router.get("/today")
async def get_today(
    user_id: Annotated[str, Depends(require_auth)],
    checkin_service: Annotated[CheckInService, Depends(get_checkin_service)],
):
    """
    Get today's check-in status.
    """
    result = await pipelines.get_today_pipeline(
        checkin_service=checkin_service,
        user_id=user_id
    )

    return success_response(result)


@router.get("/history")
async def get_history(
    user_id: Annotated[str, Depends(require_auth)],
    checkin_service: Annotated[CheckInService, Depends(get_checkin_service)],
    limit: int = Query(30, ge=1, le=90),
    offset: int = Query(0, ge=0),
):
    """
    Get mood history, newest first.
    """
    result = await pipelines.get_history_pipeline(
        checkin_service=checkin_service,
        user_id=user_id,
        limit=limit,
        offset=offset
    )

    return success_response(result)
