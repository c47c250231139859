"""
Check-in pipeline functions.

Stateless orchestration of a mood submission: upsert, streak recompute,
achievement evaluation and the Support Circle reaction. Only the upsert
can fail the request; every later step is logged and skipped on error.
"""

import logging
from typing import Optional, List, Dict, Any

from fastapi import BackgroundTasks

from haven.services.achievements import (
    AchievementEngine,
    AchievementEvaluationError,
    AchievementDefinition,
)
from haven.services.checkin import CheckInService, calculate_streak, calculate_good_mood_streak
from haven.services.stats import UserStatsService
from haven.services.support_circle import SupportCircleNotifier
from haven.services.support_circle.notifier import LOW_MOOD_MAX, GOOD_MOOD_MIN

logger = logging.getLogger(__name__)


async def submit_checkin_pipeline(
    checkin_service: CheckInService,
    stats_service: UserStatsService,
    achievement_engine: AchievementEngine,
    notifier: SupportCircleNotifier,
    user_id: str,
    mood_input: Dict[str, Any],
    update: bool = False,
    reason: Optional[str] = None,
    background_tasks: Optional[BackgroundTasks] = None
) -> Dict[str, Any]:
    """
    Orchestrates the check-in submission flow.

    Args:
        checkin_service: For the daily upsert
        stats_service: For persisting streaks and recoveries
        achievement_engine: For unlocking achievements
        notifier: For the Support Circle reaction
        user_id: Current user's ID
        mood_input: score, activities, tags, notes
        update: True for the update-today operation
        reason: Why the mood changed (update only)
        background_tasks: If given, the Support Circle fan-out runs after
            the response is sent; otherwise it is awaited

    Returns:
        dict with entry, newAchievements, streak

    Raises:
        ValidationException: Invalid mood input
        NotFoundException: Unknown user
    """
    if update:
        result = await checkin_service.update_todays_mood(user_id, mood_input, reason=reason)
    else:
        result = await checkin_service.check_in(user_id, mood_input)

    entry = result["entry"]
    previous = result["previous"]

    streak = None
    stats = None
    try:
        streak, stats = await _refresh_streak(checkin_service, stats_service, user_id)
    except Exception:
        logger.exception(f"Streak recompute failed for user {user_id}")

    if _is_recovery(previous, entry):
        try:
            stats = await stats_service.increment_mood_recoveries(user_id)
        except Exception:
            logger.exception(f"Could not record mood recovery for user {user_id}")

    new_achievements: List[AchievementDefinition] = []
    try:
        achievement_stats = await achievement_engine.build_stats(user_id, stats)
        new_achievements = await achievement_engine.evaluate(user_id, achievement_stats)
    except AchievementEvaluationError as e:
        logger.error(f"Achievement evaluation incomplete for user {user_id}: {e.failed}")
        new_achievements = e.unlocked
    except Exception:
        logger.exception(f"Achievement evaluation failed for user {user_id}")

    if background_tasks is not None:
        background_tasks.add_task(_run_support_circle, notifier, user_id, entry, previous)
    else:
        await _run_support_circle(notifier, user_id, entry, previous)

    return {
        "entry": format_entry(entry),
        "newAchievements": [a.to_dict() for a in new_achievements],
        "streak": streak,
    }


async def get_today_pipeline(
    checkin_service: CheckInService,
    user_id: str
) -> Dict[str, Any]:
    """
    Get today's check-in status.

    Returns:
        dict with hasCheckedInToday flag and the entry
    """
    entry = await checkin_service.get_today_entry(user_id)

    return {
        "hasCheckedInToday": entry is not None,
        "entry": format_entry(entry) if entry else None,
    }


async def get_history_pipeline(
    checkin_service: CheckInService,
    user_id: str,
    limit: int = 30,
    offset: int = 0
) -> Dict[str, Any]:
    """
    Get mood history with pagination.

    Returns:
        dict with entries list and pagination metadata
    """
    entries = await checkin_service.get_history(user_id=user_id, limit=limit, offset=offset)
    total = await checkin_service.get_total_count(user_id)

    return {
        "entries": [format_entry(e) for e in entries],
        "total": total,
        "limit": limit,
        "offset": offset,
        "hasMore": (offset + len(entries)) < total,
    }


async def _refresh_streak(
    checkin_service: CheckInService,
    stats_service: UserStatsService,
    user_id: str
):
    today = checkin_service.today_key()
    date_keys = await checkin_service.get_date_keys(user_id)
    state = calculate_streak(date_keys, today)

    # A good-mood run can never be longer than the check-in run it sits in
    recent = await checkin_service.get_recent_entries(user_id, days=state.current_streak + 1)
    good_mood_streak = calculate_good_mood_streak(recent, today)

    stats = await stats_service.record_streak(
        user_id,
        state,
        good_mood_streak=good_mood_streak,
        last_check_in_date=max(date_keys) if date_keys else None
    )

    streak = {
        **state.to_dict(),
        "longestStreak": stats.get("longestStreak", state.longest_streak),
        "goodMoodStreak": good_mood_streak,
    }
    return streak, stats


def _is_recovery(previous: Optional[Dict[str, Any]], entry: Dict[str, Any]) -> bool:
    return (
        previous is not None
        and previous.get("score", GOOD_MOOD_MIN) <= LOW_MOOD_MAX
        and entry["score"] >= GOOD_MOOD_MIN
    )


async def _run_support_circle(
    notifier: SupportCircleNotifier,
    user_id: str,
    entry: Dict[str, Any],
    previous: Optional[Dict[str, Any]]
) -> None:
    try:
        await notifier.process_checkin(user_id, entry, previous)
    except Exception:
        # Per-friend failures are parked by the dispatcher; this is the friend lookup itself
        logger.exception(f"Support Circle processing failed for user {user_id}")


def format_entry(entry: Dict[str, Any]) -> Dict[str, Any]:
    """Format a mood entry document for API responses."""
    return {
        "id": str(entry["_id"]),
        "dateKey": entry["dateKey"],
        "score": entry["score"],
        "moodLabel": entry.get("moodLabel"),
        "activities": entry.get("activities", []),
        "tags": entry.get("tags", []),
        "notes": entry.get("notes", ""),
        "updates": [
            {
                "score": u["score"],
                "reason": u.get("reason"),
                "updatedAt": u["updatedAt"].isoformat() if u.get("updatedAt") else None,
            }
            for u in entry.get("updates", [])
        ],
        "createdAt": entry["createdAt"].isoformat() if entry.get("createdAt") else None,
        "updatedAt": entry["updatedAt"].isoformat() if entry.get("updatedAt") else None,
    }
