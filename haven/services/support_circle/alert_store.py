"""
Low-mood alert records.

One record per (user, friend, low-mood episode). The record is the source
of truth for "this friend was alerted" and "this friend was credited",
so repeated check-ins and replayed dispatches never alert or credit twice.

Lifecycle:
    open       -> created by a low-mood check-in
    recovered  -> the user later checked in with a good mood
    closed     -> the friend left the Support Circle before the recovery
"""

import logging
from datetime import datetime
from typing import Optional, List, Dict, Any, Callable

from motor.motor_asyncio import AsyncIOMotorDatabase
from pymongo import ReturnDocument
from pymongo.errors import DuplicateKeyError

from haven.database import collections
from haven.services.checkin.day_boundary import utcnow
from haven.services.ids import parse_object_id

logger = logging.getLogger(__name__)


STATUS_OPEN = "open"
STATUS_RECOVERED = "recovered"
STATUS_CLOSED = "closed"

FLAG_NOTIFIED = "notified"
FLAG_CREDITED = "credited"
FLAG_IMPROVEMENT_NOTIFIED = "improvementNotified"

FLAGS = (FLAG_NOTIFIED, FLAG_CREDITED, FLAG_IMPROVEMENT_NOTIFIED)


class LowMoodAlertStore:
    """
    Reads and updates the lowmoodalerts collection.

    Each flag is claimed with a single conditional update (False -> True),
    so only one concurrent caller performs the side effect it guards.
    """

    def __init__(
        self,
        db: AsyncIOMotorDatabase,
        clock: Callable[[], datetime] = utcnow
    ):
        """
        Initialize LowMoodAlertStore.

        Args:
            db: MongoDB database connection
            clock: Returns the current UTC time
        """
        self._collection = db[collections.LOW_MOOD_ALERTS]
        self._clock = clock

    async def open_alert(
        self,
        user_id: str,
        friend_id: str,
        entry_id: Any
    ) -> Optional[Dict[str, Any]]:
        """
        Start a low-mood episode for a (user, friend) pair.

        If the pair already has an open episode, that record is returned
        instead. If the entry already belongs to a finished episode (a
        same-day update that went low, good, then low again) nothing is
        returned.

        Args:
            user_id: User whose mood is low
            friend_id: Friend to alert
            entry_id: Mood entry that started the episode

        Returns:
            The open alert record, or None
        """
        user_oid = parse_object_id(user_id)
        friend_oid = parse_object_id(friend_id)

        record = {
            "userId": user_oid,
            "friendId": friend_oid,
            "entryId": entry_id,
            "status": STATUS_OPEN,
            FLAG_NOTIFIED: False,
            FLAG_CREDITED: False,
            FLAG_IMPROVEMENT_NOTIFIED: False,
            "recoveredByEntryId": None,
            "createdAt": self._clock(),
            "recoveredAt": None,
        }

        try:
            result = await self._collection.insert_one(record)
        except DuplicateKeyError:
            existing = await self._collection.find_one({
                "userId": user_oid,
                "friendId": friend_oid,
                "status": STATUS_OPEN,
            })
            if existing is None:
                logger.debug(f"Entry {entry_id} already closed an episode for {user_id} -> {friend_id}")
            return existing

        record["_id"] = result.inserted_id
        logger.info(f"Opened low-mood alert {result.inserted_id} for user {user_id} -> friend {friend_id}")
        return record

    async def get(self, alert_id: Any) -> Optional[Dict[str, Any]]:
        """Get an alert record by id."""
        return await self._collection.find_one({"_id": parse_object_id(alert_id)})

    async def find_open_for_user(self, user_id: str) -> List[Dict[str, Any]]:
        """Get every open episode of a user, one per friend at most."""
        cursor = self._collection.find({
            "userId": parse_object_id(user_id),
            "status": STATUS_OPEN,
        })
        return await cursor.to_list(length=None)

    async def claim_flag(self, alert_id: Any, flag: str) -> bool:
        """
        Atomically flip a flag from False to True.

        Returns:
            True if this call flipped it, False if it was already set
        """
        if flag not in FLAGS:
            raise ValueError(f"Unknown alert flag: {flag}")

        claimed = await self._collection.find_one_and_update(
            {"_id": alert_id, flag: False},
            {"$set": {flag: True}},
            return_document=ReturnDocument.AFTER
        )
        return claimed is not None

    async def release_flag(self, alert_id: Any, flag: str) -> None:
        """
        Undo a claim whose side effect failed so a retry can claim it again.
        """
        if flag not in FLAGS:
            raise ValueError(f"Unknown alert flag: {flag}")

        await self._collection.update_one({"_id": alert_id}, {"$set": {flag: False}})

    async def mark_recovered(self, alert_id: Any, entry_id: Any) -> Optional[Dict[str, Any]]:
        """
        Move an open episode to recovered.

        Returns:
            The updated record, or None if it was no longer open
        """
        return await self._collection.find_one_and_update(
            {"_id": alert_id, "status": STATUS_OPEN},
            {"$set": {
                "status": STATUS_RECOVERED,
                "recoveredByEntryId": entry_id,
                "recoveredAt": self._clock(),
            }},
            return_document=ReturnDocument.AFTER
        )

    async def close(self, alert_id: Any) -> Optional[Dict[str, Any]]:
        """
        Close an open episode without credit (friend left the circle).

        Returns:
            The updated record, or None if it was no longer open
        """
        closed = await self._collection.find_one_and_update(
            {"_id": alert_id, "status": STATUS_OPEN},
            {"$set": {"status": STATUS_CLOSED, "recoveredAt": self._clock()}},
            return_document=ReturnDocument.AFTER
        )
        if closed:
            logger.info(f"Closed low-mood alert {alert_id} without credit")
        return closed
