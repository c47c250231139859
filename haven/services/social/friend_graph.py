"""
Friend graph reader.

Friendships are created and accepted elsewhere. Every call reads the
collection again so a removed friend is never notified from a stale copy.
"""

import logging
from typing import List, Dict, Any

from motor.motor_asyncio import AsyncIOMotorDatabase

from haven.database import collections
from haven.services.ids import parse_object_id

logger = logging.getLogger(__name__)


class FriendGraphReader:
    """
    Reads accepted friendships (the user's Support Circle).
    """

    ACCEPTED = "accepted"

    def __init__(self, db: AsyncIOMotorDatabase):
        """
        Initialize FriendGraphReader.

        Args:
            db: MongoDB database connection
        """
        self._collection = db[collections.FRIENDSHIPS]

    def _accepted_query(self, user_id: str) -> Dict[str, Any]:
        user_oid = parse_object_id(user_id)
        return {
            "status": self.ACCEPTED,
            "$or": [{"requester": user_oid}, {"recipient": user_oid}],
        }

    async def get_accepted_friends(self, user_id: str) -> List[str]:
        """
        Get the ids of all accepted friends of a user.

        Friendships are undirected once accepted, so the user may be either
        the requester or the recipient.

        Args:
            user_id: MongoDB user ID

        Returns:
            Friend ids as strings, without duplicates
        """
        user_oid = parse_object_id(user_id)
        cursor = self._collection.find(
            self._accepted_query(user_id),
            {"requester": 1, "recipient": 1}
        )
        friendships = await cursor.to_list(length=None)

        friends: List[str] = []
        for friendship in friendships:
            other = friendship["recipient"] if friendship["requester"] == user_oid else friendship["requester"]
            other_id = str(other)
            if other_id != user_id and other_id not in friends:
                friends.append(other_id)

        return friends

    async def count_accepted_friends(self, user_id: str) -> int:
        """Count distinct accepted friends (a mirrored pair counts once)."""
        return len(await self.get_accepted_friends(user_id))
