"""
Check-in service.

Stores one mood entry per user per day. Check-in and same-day update are
the same idempotent upsert: the first submission of the day creates the
entry, every later one (including a concurrent double submit) updates it.
"""

import logging
from datetime import datetime
from typing import Optional, List, Dict, Any, Callable

from motor.motor_asyncio import AsyncIOMotorDatabase
from pymongo import ReturnDocument
from pymongo.errors import DuplicateKeyError

from common.utils.exceptions import ValidationException, NotFoundException
from haven.database import collections
from haven.services.checkin.day_boundary import day_key, shift_day_key, utcnow
from haven.services.checkin.mood_validator import MoodValidator
from haven.services.ids import parse_object_id

logger = logging.getLogger(__name__)


class CheckInService:
    """
    Handles mood entry storage and retrieval.
    """

    MAX_LIMIT = 90

    # Insert + fallback update; a second round only happens if the entry
    # was deleted between the failed insert and the update.
    UPSERT_ROUNDS = 2

    def __init__(
        self,
        db: AsyncIOMotorDatabase,
        clock: Callable[[], datetime] = utcnow
    ):
        """
        Initialize CheckInService.

        Args:
            db: MongoDB database connection
            clock: Returns the current UTC time
        """
        self._db = db
        self._entries = db[collections.MOOD_ENTRIES]
        self._users = db[collections.USERS]
        self._clock = clock

    def today_key(self) -> str:
        """Date key of the current day."""
        return day_key(self._clock())

    async def check_in(self, user_id: str, mood_input: Dict[str, Any]) -> Dict[str, Any]:
        """
        Submit today's mood.

        Args:
            user_id: MongoDB user ID
            mood_input: dict with score and optional activities, tags, notes

        Returns:
            dict with "entry" (saved document), "previous" (entry before this
            submission or None) and "created" (False when today's entry was updated)

        Raises:
            ValidationException: Invalid mood input
            NotFoundException: Unknown user
        """
        return await self._upsert(user_id, mood_input, reason=None)

    async def update_todays_mood(
        self,
        user_id: str,
        mood_input: Dict[str, Any],
        reason: Optional[str] = None
    ) -> Dict[str, Any]:
        """
        Update today's mood. Creates the entry if none exists yet.

        Same contract as check_in; `reason` is kept in the entry's update history.
        Activities, tags and notes left out of `mood_input` keep their stored values.
        """
        return await self._upsert(user_id, mood_input, reason=reason)

    async def _upsert(
        self,
        user_id: str,
        mood_input: Dict[str, Any],
        reason: Optional[str]
    ) -> Dict[str, Any]:
        is_valid, error = MoodValidator.validate(mood_input)
        if not is_valid:
            raise ValidationException(message=error, code="VALIDATION_ERROR")

        user_oid = await self._require_user(user_id)

        now = self._clock()
        today = day_key(now)
        fields = self._mutable_fields(mood_input)

        for _ in range(self.UPSERT_ROUNDS):
            entry = {
                "userId": user_oid,
                "dateKey": today,
                "activities": [],
                "tags": [],
                "notes": "",
                **fields,
                "updates": [],
                "createdAt": now,
                "updatedAt": now,
            }
            try:
                result = await self._entries.insert_one(entry)
            except DuplicateKeyError:
                pass
            else:
                entry["_id"] = result.inserted_id
                previous = await self.get_previous_entry(user_id, before_key=today)
                logger.info(f"Check-in created for user {user_id} on {today}")
                return {"entry": entry, "previous": previous, "created": True}

            update_record = {
                "score": fields["score"],
                "reason": reason or "Mood changed",
                "updatedAt": now,
            }
            before = await self._entries.find_one_and_update(
                {"userId": user_oid, "dateKey": today},
                {
                    "$set": {**fields, "updatedAt": now},
                    "$push": {"updates": update_record},
                },
                return_document=ReturnDocument.BEFORE
            )
            if before is None:
                logger.warning(f"Entry for user {user_id} on {today} vanished during upsert, retrying")
                continue

            entry = {
                **before,
                **fields,
                "updates": list(before.get("updates", [])) + [update_record],
                "updatedAt": now,
            }
            logger.info(f"Check-in updated for user {user_id} on {today}")
            return {"entry": entry, "previous": before, "created": False}

        raise RuntimeError(f"Could not upsert mood entry for user {user_id} on {today}")

    @staticmethod
    def _mutable_fields(mood_input: Dict[str, Any]) -> Dict[str, Any]:
        """Score and label always; activities, tags and notes only when given."""
        score = mood_input["score"]
        fields: Dict[str, Any] = {
            "score": score,
            "moodLabel": MoodValidator.score_to_label(score),
        }
        if mood_input.get("activities") is not None:
            fields["activities"] = list(mood_input["activities"])
        if mood_input.get("tags") is not None:
            fields["tags"] = [tag.strip() for tag in mood_input["tags"]]
        if mood_input.get("notes") is not None:
            fields["notes"] = mood_input["notes"].strip()
        return fields

    async def _require_user(self, user_id: str):
        user_oid = parse_object_id(user_id, message="User not found", code="USER_NOT_FOUND")
        user = await self._users.find_one({"_id": user_oid}, {"_id": 1})
        if not user:
            raise NotFoundException(message="User not found", code="USER_NOT_FOUND")
        return user_oid

    async def get_today_entry(self, user_id: str) -> Optional[Dict[str, Any]]:
        """
        Get today's entry for a user if it exists.
        """
        return await self._entries.find_one({
            "userId": parse_object_id(user_id),
            "dateKey": self.today_key()
        })

    async def get_previous_entry(self, user_id: str, before_key: str) -> Optional[Dict[str, Any]]:
        """
        Get the most recent entry strictly before a date key.

        Args:
            user_id: MongoDB user ID
            before_key: Exclusive upper bound date key
        """
        cursor = self._entries.find({
            "userId": parse_object_id(user_id),
            "dateKey": {"$lt": before_key}
        })
        cursor = cursor.sort("dateKey", -1).limit(1)
        entries = await cursor.to_list(length=1)
        return entries[0] if entries else None

    async def get_date_keys(self, user_id: str) -> List[str]:
        """
        Get every date key the user has an entry for.
        Used for streak recomputation.
        """
        cursor = self._entries.find(
            {"userId": parse_object_id(user_id)},
            {"dateKey": 1}
        )
        cursor = cursor.sort("dateKey", -1)
        entries = await cursor.to_list(length=None)
        return [entry["dateKey"] for entry in entries]

    async def get_recent_entries(self, user_id: str, days: int) -> List[Dict[str, Any]]:
        """
        Get entries from the last N days (including today), newest first.
        """
        start_key = shift_day_key(self.today_key(), -(days - 1))
        cursor = self._entries.find({
            "userId": parse_object_id(user_id),
            "dateKey": {"$gte": start_key}
        })
        cursor = cursor.sort("dateKey", -1)
        return await cursor.to_list(length=days)

    async def get_history(
        self,
        user_id: str,
        limit: int = 30,
        offset: int = 0
    ) -> List[Dict[str, Any]]:
        """
        Get paginated entry history, newest first.

        Args:
            user_id: MongoDB user ID
            limit: Max records to return (capped at 90)
            offset: Number of records to skip
        """
        limit = min(limit, self.MAX_LIMIT)

        cursor = self._entries.find({"userId": parse_object_id(user_id)})
        cursor = cursor.sort("dateKey", -1)
        cursor = cursor.skip(offset)
        cursor = cursor.limit(limit)

        return await cursor.to_list(length=limit)

    async def get_total_count(self, user_id: str) -> int:
        """Get total number of entries for a user."""
        return await self._entries.count_documents({"userId": parse_object_id(user_id)})
