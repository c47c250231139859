"""
Achievement engine.

Evaluates the static catalog against a user's stats and records new
unlocks. The unique (userId, achievementId) index is what guarantees an
achievement is earned at most once; a duplicate insert from a concurrent
evaluation means "already unlocked".
"""

import logging
from datetime import datetime
from typing import Optional, List, Dict, Any, Sequence, Callable

from bson import ObjectId
from motor.motor_asyncio import AsyncIOMotorDatabase
from pymongo import ReturnDocument
from pymongo.errors import DuplicateKeyError

from haven.database import collections
from haven.services.achievements.catalog import (
    ACHIEVEMENT_CATALOG,
    AchievementDefinition,
    AchievementStats,
)
from haven.services.checkin.day_boundary import utcnow
from haven.services.ids import parse_object_id
from haven.services.notifications import NotificationLedger
from haven.services.retry import retry_async
from haven.services.social import FriendGraphReader, ActivityCounter
from haven.services.stats import UserStatsService

logger = logging.getLogger(__name__)


class AchievementEvaluationError(Exception):
    """
    Raised after a full evaluation pass when some rules could not be
    evaluated, stored or notified even after retries.

    The unlocks that did succeed are carried along so callers can still
    report them.
    """

    def __init__(self, failed: Dict[str, str], unlocked: List[AchievementDefinition]):
        self.failed = failed
        self.unlocked = unlocked
        super().__init__(f"Achievement rules failed: {', '.join(sorted(failed))}")


class AchievementEngine:
    """
    Stateless rule evaluator backed by the userachievements collection.
    """

    def __init__(
        self,
        db: AsyncIOMotorDatabase,
        notification_ledger: NotificationLedger,
        stats_service: UserStatsService,
        friend_graph: FriendGraphReader,
        activity_counter: ActivityCounter,
        catalog: Sequence[AchievementDefinition] = ACHIEVEMENT_CATALOG,
        max_attempts: int = 3,
        backoff_seconds: float = 0.2,
        clock: Callable[[], datetime] = utcnow
    ):
        """
        Initialize AchievementEngine.

        Args:
            db: MongoDB database connection
            notification_ledger: For achievement-unlocked notifications
            stats_service: For the stored stats
            friend_graph: For the friend count
            activity_counter: For post and message counts
            catalog: Achievement rules
            max_attempts: Attempts per rule before it is reported as failed
            backoff_seconds: Base delay between attempts
            clock: Returns the current UTC time
        """
        self._collection = db[collections.USER_ACHIEVEMENTS]
        self._notification_ledger = notification_ledger
        self._stats_service = stats_service
        self._friend_graph = friend_graph
        self._activity_counter = activity_counter
        self._catalog = list(catalog)
        self._max_attempts = max_attempts
        self._backoff_seconds = backoff_seconds
        self._clock = clock

    async def build_stats(self, user_id: str, stats: Optional[Dict[str, Any]] = None) -> AchievementStats:
        """
        Collect everything the rules need for one user.

        Args:
            user_id: MongoDB user ID
            stats: Already-loaded userstats document (loaded if omitted)
        """
        if stats is None:
            stats = await self._stats_service.get_stats(user_id)

        return AchievementStats.from_stats(
            stats,
            friend_count=await self._friend_graph.count_accepted_friends(user_id),
            post_count=await self._activity_counter.count_posts(user_id),
            message_count=await self._activity_counter.count_messages(user_id),
        )

    async def _get_earned(self, user_id: str) -> Dict[str, Dict[str, Any]]:
        cursor = self._collection.find(
            {"userId": parse_object_id(user_id)},
            {"achievementId": 1, "notified": 1}
        )
        records = await cursor.to_list(length=None)
        return {record["achievementId"]: record for record in records}

    async def evaluate(self, user_id: str, stats: AchievementStats) -> List[AchievementDefinition]:
        """
        Evaluate every rule the user does not hold yet.

        Each rule is evaluated and stored on its own: a failing rule is
        retried, and if it still fails the remaining rules are evaluated
        anyway. Failures are raised together at the end.

        Held achievements whose unlock notification never went out are
        notified again here.

        Args:
            user_id: MongoDB user ID
            stats: Aggregate stats to evaluate against

        Returns:
            Definitions unlocked by this call (never ones already held)

        Raises:
            AchievementEvaluationError: Some rules failed; carries the unlocks
        """
        earned = await self._get_earned(user_id)
        unlocked: List[AchievementDefinition] = []
        failed: Dict[str, str] = {}

        for definition in self._catalog:
            record = earned.get(definition.id)
            if record is not None:
                if record.get("notified") is False and await self._claim_notification(record["_id"]):
                    error = await self._notify(user_id, definition, record["_id"])
                    if error:
                        failed[definition.id] = error
                continue

            try:
                qualifies = definition.predicate(stats)
            except Exception as e:
                logger.error(f"Achievement rule {definition.id} raised for user {user_id}: {e}")
                failed[definition.id] = str(e)
                continue

            if not qualifies:
                continue

            try:
                record_id = await retry_async(
                    lambda d=definition: self._unlock(user_id, d),
                    description=f"Unlock {definition.id}",
                    max_attempts=self._max_attempts,
                    backoff_seconds=self._backoff_seconds,
                )
            except Exception as e:
                logger.error(f"Failed to unlock {definition.id} for user {user_id}: {e}")
                failed[definition.id] = str(e)
                continue

            if record_id is not None:
                unlocked.append(definition)
                error = await self._notify(user_id, definition, record_id)
                if error:
                    failed[definition.id] = error

        if failed:
            raise AchievementEvaluationError(failed=failed, unlocked=unlocked)

        return unlocked

    async def _unlock(self, user_id: str, definition: AchievementDefinition) -> Optional[ObjectId]:
        """Store the unlock; returns the new record id, or None if already held."""
        try:
            # The inserting caller owns the notification
            result = await self._collection.insert_one({
                "userId": parse_object_id(user_id),
                "achievementId": definition.id,
                "earnedAt": self._clock(),
                "notified": True,
            })
        except DuplicateKeyError:
            logger.debug(f"Achievement {definition.id} already unlocked for user {user_id}")
            return None

        logger.info(f"Achievement {definition.id} unlocked for user {user_id}")
        return result.inserted_id

    async def _claim_notification(self, record_id: ObjectId) -> bool:
        claimed = await self._collection.find_one_and_update(
            {"_id": record_id, "notified": False},
            {"$set": {"notified": True}},
            return_document=ReturnDocument.AFTER
        )
        return claimed is not None

    async def _notify(
        self,
        user_id: str,
        definition: AchievementDefinition,
        record_id: ObjectId
    ) -> Optional[str]:
        """
        Send the unlock notification with retries.

        Returns:
            None on success, else the error. The record is marked unnotified
            so the next evaluation sends it again.
        """
        try:
            await retry_async(
                lambda: self._notification_ledger.notify_achievement_unlocked(
                    user_id=user_id,
                    achievement_id=definition.id,
                    name=definition.name,
                    description=definition.description
                ),
                description=f"Notify {definition.id}",
                max_attempts=self._max_attempts,
                backoff_seconds=self._backoff_seconds,
            )
        except Exception as e:
            logger.error(f"Failed to notify user {user_id} of achievement {definition.id}: {e}")
            await self._collection.update_one({"_id": record_id}, {"$set": {"notified": False}})
            return str(e)
        return None

    async def evaluate_user(self, user_id: str) -> List[AchievementDefinition]:
        """
        Build stats and evaluate in one step (used for friends credited by
        the Support Circle).
        """
        return await self.evaluate(user_id, await self.build_stats(user_id))

    async def get_user_achievements(self, user_id: str) -> Dict[str, Any]:
        """
        Get the full catalog with the user's unlock state.

        Returns:
            dict with achievements, totalXP, unlockedCount, totalCount
        """
        cursor = self._collection.find({"userId": parse_object_id(user_id)})
        records = await cursor.to_list(length=None)
        earned_at = {record["achievementId"]: record.get("earnedAt") for record in records}

        achievements = []
        total_xp = 0
        for definition in self._catalog:
            is_unlocked = definition.id in earned_at
            if is_unlocked:
                total_xp += definition.xp
            unlocked_at = earned_at.get(definition.id)
            achievements.append({
                **definition.to_dict(),
                "unlocked": is_unlocked,
                "unlockedAt": unlocked_at.isoformat() if unlocked_at else None,
            })

        # Records for ids dropped from the catalog are ignored
        unlocked_count = sum(1 for a in achievements if a["unlocked"])

        return {
            "achievements": achievements,
            "totalXP": total_xp,
            "unlockedCount": unlocked_count,
            "totalCount": len(self._catalog),
        }

