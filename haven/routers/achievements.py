"""
FastAPI router for Achievement endpoints.
"""

from typing import Annotated

from fastapi import APIRouter, Depends

from common.utils import success_response
from haven.dependencies import (
    require_auth,
    get_achievement_engine,
    get_checkin_service,
    get_stats_service,
)
from haven.pipelines import achievements as pipelines
from haven.services.achievements import AchievementEngine
from haven.services.checkin import CheckInService
from haven.services.stats import UserStatsService

router = APIRouter(prefix="/achievements", tags=["achievements"])


@router.get("")
async def get_achievements(
    user_id: Annotated[str, Depends(require_auth)],
    achievement_engine: Annotated[AchievementEngine, Depends(get_achievement_engine)],
):
    """
    Get every achievement with the user's unlock state and total XP.
    """
    result = await pipelines.get_achievements_pipeline(
        achievement_engine=achievement_engine,
        user_id=user_id
    )

    return success_response(result)


@router.get("/definitions")
async def get_definitions(
    user_id: Annotated[str, Depends(require_auth)],
):
    """
    Get the achievement catalog.
    """
    return success_response({"definitions": pipelines.get_definitions_pipeline()})


@router.get("/stats")
async def get_stats_summary(
    user_id: Annotated[str, Depends(require_auth)],
    checkin_service: Annotated[CheckInService, Depends(get_checkin_service)],
    stats_service: Annotated[UserStatsService, Depends(get_stats_service)],
):
    """
    Get streaks, total check-ins and Support Circle credits.
    """
    result = await pipelines.get_stats_summary_pipeline(
        checkin_service=checkin_service,
        stats_service=stats_service,
        user_id=user_id
    )

    return success_response(result)
