"""
Notification ledger for in-app notifications.

Append-only per-user notification log with read state, pagination and a
cached unread counter.
"""

import logging
from datetime import datetime
from typing import Optional, Dict, Any, Callable

from bson import ObjectId
from bson.errors import InvalidId
from motor.motor_asyncio import AsyncIOMotorDatabase
from pymongo import ReturnDocument

from common.utils.exceptions import NotFoundException
from haven.database import collections
from haven.services.checkin.day_boundary import utcnow
from haven.services.ids import parse_object_id

logger = logging.getLogger(__name__)


FRIEND_LOW_MOOD = "friend-low-mood"
MOOD_IMPROVED = "mood-improved"
ACHIEVEMENT_UNLOCKED = "achievement-unlocked"
FRIEND_REQUEST = "friend-request"
FRIEND_ACCEPTED = "friend-accepted"
NEW_MESSAGE = "new-message"
SYSTEM = "system"


class NotificationLedger:
    """
    Handles in-app notification management.

    Notification types:
    - friend-low-mood: A friend checked in with a low mood
    - mood-improved: A friend you supported is feeling better
    - achievement-unlocked: You earned an achievement
    - friend-request / friend-accepted: Friend graph changes
    - new-message: A support buddy sent you a message
    - system: Platform announcements

    The unread counter lives in its own collection and is only moved by
    documents that actually changed state, so it matches the number of
    unread notifications without counting on every read.
    """

    NOTIFICATION_TYPES = [
        FRIEND_LOW_MOOD,
        MOOD_IMPROVED,
        ACHIEVEMENT_UNLOCKED,
        FRIEND_REQUEST,
        FRIEND_ACCEPTED,
        NEW_MESSAGE,
        SYSTEM,
    ]

    MAX_TITLE_LENGTH = 100
    MAX_MESSAGE_LENGTH = 500

    def __init__(
        self,
        db: AsyncIOMotorDatabase,
        max_page_limit: int = 100,
        clock: Callable[[], datetime] = utcnow
    ):
        """
        Initialize NotificationLedger.

        Args:
            db: MongoDB database connection
            max_page_limit: Upper bound for page sizes
            clock: Returns the current UTC time
        """
        self._db = db
        self._collection = db[collections.NOTIFICATIONS]
        self._counters = db[collections.NOTIFICATION_COUNTERS]
        self._users = db[collections.USERS]
        self._max_page_limit = max_page_limit
        self._clock = clock

    # ─────────────────────────────────────────────────────────────────
    # Writes
    # ─────────────────────────────────────────────────────────────────

    async def append(
        self,
        recipient_id: str,
        notification_type: str,
        title: str,
        message: str,
        related_id: Optional[Any] = None,
        related_user_id: Optional[str] = None
    ) -> Optional[Dict[str, Any]]:
        """
        Append a notification to a user's ledger.

        Args:
            recipient_id: Target user ID
            notification_type: One of NOTIFICATION_TYPES
            title: Short notification title
            message: Full notification message
            related_id: Id of the entity the notification is about
            related_user_id: User the notification is about

        Returns:
            Created notification document, or None if the recipient does not exist
        """
        if notification_type not in self.NOTIFICATION_TYPES:
            raise ValueError(f"Unknown notification type: {notification_type}")

        try:
            recipient_oid = ObjectId(recipient_id)
        except (InvalidId, TypeError):
            logger.info(f"Skipping {notification_type} notification for invalid recipient {recipient_id}")
            return None

        if not await self._users.find_one({"_id": recipient_oid}, {"_id": 1}):
            logger.info(f"Skipping {notification_type} notification for unknown recipient {recipient_id}")
            return None

        now = self._clock()
        notification_doc = {
            "recipientId": recipient_oid,
            "type": notification_type,
            "title": title[:self.MAX_TITLE_LENGTH],
            "message": message[:self.MAX_MESSAGE_LENGTH],
            "relatedId": related_id,
            "relatedUserId": ObjectId(related_user_id) if related_user_id else None,
            "read": False,
            "readAt": None,
            "createdAt": now,
        }

        result = await self._collection.insert_one(notification_doc)
        notification_doc["_id"] = result.inserted_id
        await self._adjust_unread(recipient_oid, 1)

        logger.info(f"Created notification for user {recipient_id}: {notification_type}")
        return notification_doc

    async def mark_read(self, notification_id: str, user_id: str) -> Dict[str, Any]:
        """
        Mark a notification as read. Already-read notifications are returned as-is.

        Args:
            notification_id: Notification ID
            user_id: User ID (for ownership verification)

        Returns:
            Formatted notification

        Raises:
            NotFoundException: If notification not found or doesn't belong to user
        """
        notification_oid = self._notification_oid(notification_id)
        user_oid = parse_object_id(user_id)
        now = self._clock()

        updated = await self._collection.find_one_and_update(
            {"_id": notification_oid, "recipientId": user_oid, "read": False},
            {"$set": {"read": True, "readAt": now}},
            return_document=ReturnDocument.AFTER
        )
        if updated:
            await self._adjust_unread(user_oid, -1)
            logger.info(f"Notification {notification_id} marked as read for user {user_id}")
            return self.format_notification(updated)

        existing = await self._collection.find_one({"_id": notification_oid, "recipientId": user_oid})
        if not existing:
            raise NotFoundException(
                message="Notification not found",
                code="NOTIFICATION_NOT_FOUND"
            )
        return self.format_notification(existing)

    async def mark_all_read(self, user_id: str) -> int:
        """
        Mark all unread notifications as read for a user.

        Returns:
            Number of notifications marked as read
        """
        user_oid = parse_object_id(user_id)
        result = await self._collection.update_many(
            {"recipientId": user_oid, "read": False},
            {"$set": {"read": True, "readAt": self._clock()}}
        )

        if result.modified_count:
            await self._adjust_unread(user_oid, -result.modified_count)

        logger.info(f"Marked {result.modified_count} notifications as read for user {user_id}")
        return result.modified_count

    async def delete(self, notification_id: str, user_id: str) -> None:
        """
        Hard-delete a notification.

        Raises:
            NotFoundException: If notification not found or doesn't belong to user
        """
        user_oid = parse_object_id(user_id)
        deleted = await self._collection.find_one_and_delete({
            "_id": self._notification_oid(notification_id),
            "recipientId": user_oid
        })
        if not deleted:
            raise NotFoundException(
                message="Notification not found",
                code="NOTIFICATION_NOT_FOUND"
            )

        if not deleted.get("read"):
            await self._adjust_unread(user_oid, -1)

        logger.info(f"Notification {notification_id} deleted for user {user_id}")

    # ─────────────────────────────────────────────────────────────────
    # Reads
    # ─────────────────────────────────────────────────────────────────

    async def list(
        self,
        user_id: str,
        page: int = 1,
        limit: int = 20,
        snapshot_id: Optional[str] = None,
        unread_only: bool = False
    ) -> Dict[str, Any]:
        """
        Get a page of notifications, newest first.

        The first page pins a snapshot (the newest id at that moment).
        Passing it back for later pages keeps notifications created in the
        meantime from shifting items across page boundaries.

        Args:
            user_id: User ID
            page: 1-based page number
            limit: Page size (capped)
            snapshot_id: snapshotId returned with the first page
            unread_only: If True, only return unread notifications

        Returns:
            dict with notifications, total, page, limit, hasMore, snapshotId
        """
        page = max(page, 1)
        limit = max(1, min(limit, self._max_page_limit))

        query: Dict[str, Any] = {"recipientId": parse_object_id(user_id)}
        if unread_only:
            query["read"] = False

        if snapshot_id:
            snapshot_oid = parse_object_id(snapshot_id, message="Invalid snapshot", code="INVALID_SNAPSHOT")
        else:
            newest = await self._collection.find(query, {"_id": 1}).sort("_id", -1).limit(1).to_list(length=1)
            snapshot_oid = newest[0]["_id"] if newest else None

        if snapshot_oid is None:
            return {
                "notifications": [],
                "total": 0,
                "page": page,
                "limit": limit,
                "hasMore": False,
                "snapshotId": None,
            }

        query["_id"] = {"$lte": snapshot_oid}

        total = await self._collection.count_documents(query)

        cursor = self._collection.find(query).sort("_id", -1)
        cursor = cursor.skip((page - 1) * limit).limit(limit)
        notifications = await cursor.to_list(length=limit)

        return {
            "notifications": [self.format_notification(n) for n in notifications],
            "total": total,
            "page": page,
            "limit": limit,
            "hasMore": ((page - 1) * limit + len(notifications)) < total,
            "snapshotId": str(snapshot_oid),
        }

    async def list_since(
        self,
        user_id: str,
        cursor_id: Optional[str] = None,
        limit: int = 50
    ) -> Dict[str, Any]:
        """
        Get notifications created after a cursor, oldest first.

        Pull-based replacement for periodic re-fetching. Without a cursor
        nothing is returned, only the cursor of the newest notification to
        poll from.

        Returns:
            dict with notifications and the next cursor
        """
        limit = max(1, min(limit, self._max_page_limit))
        user_oid = parse_object_id(user_id)

        if not cursor_id:
            newest = await self._collection.find(
                {"recipientId": user_oid}, {"_id": 1}
            ).sort("_id", -1).limit(1).to_list(length=1)
            return {
                "notifications": [],
                "cursor": str(newest[0]["_id"]) if newest else None,
            }

        cursor_oid = parse_object_id(cursor_id, message="Invalid cursor", code="INVALID_CURSOR")
        cursor = self._collection.find({"recipientId": user_oid, "_id": {"$gt": cursor_oid}})
        cursor = cursor.sort("_id", 1).limit(limit)
        notifications = await cursor.to_list(length=limit)

        next_cursor = str(notifications[-1]["_id"]) if notifications else cursor_id
        return {
            "notifications": [self.format_notification(n) for n in notifications],
            "cursor": next_cursor,
        }

    async def unread_count(self, user_id: str) -> int:
        """
        Get count of unread notifications for a user.

        Reads the cached counter; a user without one gets it rebuilt.
        """
        user_oid = parse_object_id(user_id)
        counter = await self._counters.find_one({"userId": user_oid})
        if counter is None:
            return await self.reconcile_unread_count(user_id)
        return max(counter.get("unread", 0), 0)

    async def reconcile_unread_count(self, user_id: str) -> int:
        """
        Recount unread notifications and overwrite the cached counter.

        Returns:
            The recounted value
        """
        user_oid = parse_object_id(user_id)
        count = await self._collection.count_documents({"recipientId": user_oid, "read": False})
        await self._counters.update_one(
            {"userId": user_oid},
            {"$set": {"unread": count, "updatedAt": self._clock()}},
            upsert=True
        )
        return count

    async def _adjust_unread(self, user_oid: ObjectId, delta: int) -> None:
        await self._counters.update_one(
            {"userId": user_oid},
            {"$inc": {"unread": delta}, "$set": {"updatedAt": self._clock()}},
            upsert=True
        )

    @staticmethod
    def _notification_oid(notification_id: str) -> ObjectId:
        return parse_object_id(
            notification_id,
            message="Notification not found",
            code="NOTIFICATION_NOT_FOUND"
        )

    @staticmethod
    def format_notification(notif: Dict[str, Any]) -> Dict[str, Any]:
        """Format a notification document for API responses."""
        related_id = notif.get("relatedId")
        related_user_id = notif.get("relatedUserId")
        return {
            "id": str(notif["_id"]),
            "type": notif["type"],
            "title": notif["title"],
            "message": notif["message"],
            "relatedId": str(related_id) if related_id is not None else None,
            "relatedUserId": str(related_user_id) if related_user_id else None,
            "read": notif["read"],
            "readAt": notif["readAt"].isoformat() if notif.get("readAt") else None,
            "createdAt": notif["createdAt"].isoformat() if notif.get("createdAt") else None,
        }

    # ─────────────────────────────────────────────────────────────────
    # Typed notifications
    # ─────────────────────────────────────────────────────────────────

    async def notify_friend_low_mood(
        self,
        friend_id: str,
        user_id: str,
        user_name: str,
        score: int,
        entry_id: Any
    ) -> Optional[Dict[str, Any]]:
        """
        Tell a friend that a user in their Support Circle is feeling down.
        """
        feeling = "having a really hard time" if score == 1 else "feeling down"
        return await self.append(
            recipient_id=friend_id,
            notification_type=FRIEND_LOW_MOOD,
            title="A Friend Needs Support",
            message=f"{user_name} is {feeling} today. Consider reaching out!",
            related_id=entry_id,
            related_user_id=user_id
        )

    async def notify_mood_improved(
        self,
        friend_id: str,
        user_id: str,
        user_name: str,
        entry_id: Any
    ) -> Optional[Dict[str, Any]]:
        """
        Tell a friend who was alerted that the user is feeling better.
        """
        return await self.append(
            recipient_id=friend_id,
            notification_type=MOOD_IMPROVED,
            title="You Made a Difference!",
            message=f"{user_name} is feeling better. Thanks for being there for them!",
            related_id=entry_id,
            related_user_id=user_id
        )

    async def notify_achievement_unlocked(
        self,
        user_id: str,
        achievement_id: str,
        name: str,
        description: str
    ) -> Optional[Dict[str, Any]]:
        """
        Tell a user they earned an achievement.
        """
        return await self.append(
            recipient_id=user_id,
            notification_type=ACHIEVEMENT_UNLOCKED,
            title="Achievement Unlocked!",
            message=f'You earned "{name}" - {description}',
            related_id=achievement_id
        )
