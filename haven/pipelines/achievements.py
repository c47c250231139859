"""
Achievement and stats pipeline functions.
"""

from typing import List, Dict, Any

from haven.services.achievements import AchievementEngine, ACHIEVEMENT_CATALOG
from haven.services.checkin import CheckInService, calculate_streak
from haven.services.stats import UserStatsService


async def get_achievements_pipeline(
    achievement_engine: AchievementEngine,
    user_id: str
) -> Dict[str, Any]:
    """
    Get the full catalog with the user's unlock state.

    Returns:
        dict with achievements, totalXP, unlockedCount, totalCount
    """
    return await achievement_engine.get_user_achievements(user_id)


def get_definitions_pipeline() -> List[Dict[str, Any]]:
    """Get the static achievement catalog."""
    return [definition.to_dict() for definition in ACHIEVEMENT_CATALOG]


async def get_stats_summary_pipeline(
    checkin_service: CheckInService,
    stats_service: UserStatsService,
    user_id: str
) -> Dict[str, int]:
    """
    Get the profile stats summary.

    The current streak is recomputed from the entries, since the stored
    value goes stale as soon as the user misses a day without checking in.

    Returns:
        dict with currentStreak, longestStreak, totalCheckIns, moodsHelped,
        friendsHelped
    """
    summary = await stats_service.get_summary(user_id)

    date_keys = await checkin_service.get_date_keys(user_id)
    state = calculate_streak(date_keys, checkin_service.today_key())

    summary["currentStreak"] = state.current_streak
    summary["totalCheckIns"] = state.total_check_ins
    summary["longestStreak"] = max(summary["longestStreak"], state.longest_streak)

    return summary
