"""
User stats service.

Persists the derived per-user figures the achievement rules and the
profile summary read: streaks, total check-ins and Support Circle credits.
Streak figures are a cache of what StreakCalculator computes from the
entries; credits (moods helped) only live here.
"""

import logging
from datetime import datetime
from typing import Optional, Dict, Any, Iterable, Callable

from motor.motor_asyncio import AsyncIOMotorDatabase
from pymongo import ReturnDocument

from haven.database import collections
from haven.services.checkin.day_boundary import utcnow
from haven.services.checkin.streak_calculator import StreakState
from haven.services.ids import parse_object_id

logger = logging.getLogger(__name__)


class UserStatsService:
    """
    Reads and updates the userstats collection.
    """

    DEFAULTS: Dict[str, Any] = {
        "currentStreak": 0,
        "longestStreak": 0,
        "totalCheckIns": 0,
        "goodMoodStreak": 0,
        "moodsHelped": 0,
        "helpedUserIds": [],
        "moodRecoveries": 0,
        "lastCheckInDate": None,
    }

    def __init__(
        self,
        db: AsyncIOMotorDatabase,
        clock: Callable[[], datetime] = utcnow
    ):
        """
        Initialize UserStatsService.

        Args:
            db: MongoDB database connection
            clock: Returns the current UTC time
        """
        self._db = db
        self._collection = db[collections.USER_STATS]
        self._clock = clock

    def _on_insert(self, exclude: Iterable[str]) -> Dict[str, Any]:
        excluded = set(exclude)
        defaults = {k: v for k, v in self.DEFAULTS.items() if k not in excluded}
        defaults["createdAt"] = self._clock()
        return defaults

    async def record_streak(
        self,
        user_id: str,
        state: StreakState,
        good_mood_streak: int = 0,
        last_check_in_date: Optional[str] = None
    ) -> Dict[str, Any]:
        """
        Store a freshly computed streak state.

        longestStreak only ever grows, even if the entries it was computed
        from are later removed.

        Args:
            user_id: MongoDB user ID
            state: Output of calculate_streak
            good_mood_streak: Output of calculate_good_mood_streak
            last_check_in_date: Date key of the newest entry

        Returns:
            Updated stats document
        """
        written = {
            "currentStreak": state.current_streak,
            "totalCheckIns": state.total_check_ins,
            "goodMoodStreak": good_mood_streak,
            "lastCheckInDate": last_check_in_date,
        }
        return await self._collection.find_one_and_update(
            {"userId": parse_object_id(user_id)},
            {
                "$set": {**written, "updatedAt": self._clock()},
                "$max": {"longestStreak": state.longest_streak},
                "$setOnInsert": self._on_insert(exclude=[*written, "longestStreak"]),
            },
            upsert=True,
            return_document=ReturnDocument.AFTER
        )

    async def increment_moods_helped(self, helper_id: str, helped_user_id: str) -> Dict[str, Any]:
        """
        Credit a friend for one recovery.

        Args:
            helper_id: Friend who received the low-mood alert
            helped_user_id: User whose mood recovered

        Returns:
            Updated stats document of the helper
        """
        doc = await self._collection.find_one_and_update(
            {"userId": parse_object_id(helper_id)},
            {
                "$inc": {"moodsHelped": 1},
                "$addToSet": {"helpedUserIds": parse_object_id(helped_user_id)},
                "$set": {"updatedAt": self._clock()},
                "$setOnInsert": self._on_insert(exclude=["moodsHelped", "helpedUserIds"]),
            },
            upsert=True,
            return_document=ReturnDocument.AFTER
        )
        logger.info(f"User {helper_id} credited for helping {helped_user_id} (total {doc['moodsHelped']})")
        return doc

    async def increment_mood_recoveries(self, user_id: str) -> Dict[str, Any]:
        """
        Count one recovery of the user's own mood from low to good.
        """
        return await self._collection.find_one_and_update(
            {"userId": parse_object_id(user_id)},
            {
                "$inc": {"moodRecoveries": 1},
                "$set": {"updatedAt": self._clock()},
                "$setOnInsert": self._on_insert(exclude=["moodRecoveries"]),
            },
            upsert=True,
            return_document=ReturnDocument.AFTER
        )

    async def get_stats(self, user_id: str) -> Dict[str, Any]:
        """
        Get a user's stats, filled with defaults when nothing is stored yet.
        """
        doc = await self._collection.find_one({"userId": parse_object_id(user_id)})
        stats = dict(self.DEFAULTS)
        stats["helpedUserIds"] = []
        if doc:
            stats.update({k: v for k, v in doc.items() if k in self.DEFAULTS})
        return stats

    async def get_summary(self, user_id: str) -> Dict[str, int]:
        """
        Get the profile stats summary.

        Returns:
            dict with currentStreak, longestStreak, totalCheckIns,
            moodsHelped and friendsHelped (distinct users helped)
        """
        stats = await self.get_stats(user_id)
        return {
            "currentStreak": stats["currentStreak"],
            "longestStreak": stats["longestStreak"],
            "totalCheckIns": stats["totalCheckIns"],
            "moodsHelped": stats["moodsHelped"],
            "friendsHelped": len(stats["helpedUserIds"] or []),
        }
