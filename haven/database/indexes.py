"""
Index setup for Haven collections.

The unique indexes here are what make the daily upsert, achievement unlocks
and low-mood episodes safe under concurrent requests, so they are created
at startup before any service is used.
"""

import logging
from typing import Dict, List

from motor.motor_asyncio import AsyncIOMotorDatabase
from pymongo import ASCENDING, DESCENDING, IndexModel

from haven.database import collections

logger = logging.getLogger(__name__)


INDEXES: Dict[str, List[IndexModel]] = {
    collections.MOOD_ENTRIES: [
        # One entry per user per day
        IndexModel(
            [("userId", ASCENDING), ("dateKey", ASCENDING)],
            unique=True,
            name="uq_moodentries_user_day",
        ),
    ],
    collections.USER_STATS: [
        IndexModel([("userId", ASCENDING)], unique=True, name="uq_userstats_user"),
    ],
    collections.USER_ACHIEVEMENTS: [
        IndexModel(
            [("userId", ASCENDING), ("achievementId", ASCENDING)],
            unique=True,
            name="uq_userachievements_user_achievement",
        ),
    ],
    collections.NOTIFICATIONS: [
        IndexModel(
            [("recipientId", ASCENDING), ("_id", DESCENDING)],
            name="ix_notifications_recipient_id",
        ),
        IndexModel(
            [("recipientId", ASCENDING), ("read", ASCENDING)],
            name="ix_notifications_recipient_read",
        ),
    ],
    collections.NOTIFICATION_COUNTERS: [
        IndexModel([("userId", ASCENDING)], unique=True, name="uq_notificationcounters_user"),
    ],
    collections.LOW_MOOD_ALERTS: [
        IndexModel(
            [("userId", ASCENDING), ("friendId", ASCENDING), ("entryId", ASCENDING)],
            unique=True,
            name="uq_lowmoodalerts_user_friend_entry",
        ),
        # At most one open episode per (user, friend)
        IndexModel(
            [("userId", ASCENDING), ("friendId", ASCENDING)],
            unique=True,
            partialFilterExpression={"status": "open"},
            name="uq_lowmoodalerts_open_episode",
        ),
    ],
    collections.NOTIFICATION_RETRIES: [
        IndexModel([("nextAttemptAt", ASCENDING)], name="ix_notificationretries_next_attempt"),
    ],
}


async def ensure_indexes(db: AsyncIOMotorDatabase) -> None:
    """
    Create all Haven indexes. Safe to call on every startup.

    Args:
        db: MongoDB database connection
    """
    for collection_name, models in INDEXES.items():
        names = await db[collection_name].create_indexes(models)
        logger.info(f"Ensured indexes on {collection_name}: {names}")
