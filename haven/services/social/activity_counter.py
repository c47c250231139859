"""
Activity counts from other platform areas.

Forum posts and messages feed the community achievements but are owned by
the forum and messaging services.
"""

from motor.motor_asyncio import AsyncIOMotorDatabase

from haven.database import collections
from haven.services.ids import parse_object_id


class ActivityCounter:
    """Counts a user's forum posts and sent messages."""

    def __init__(self, db: AsyncIOMotorDatabase):
        self._posts = db[collections.FORUM_POSTS]
        self._messages = db[collections.MESSAGES]

    async def count_posts(self, user_id: str) -> int:
        return await self._posts.count_documents({"author": parse_object_id(user_id)})

    async def count_messages(self, user_id: str) -> int:
        return await self._messages.count_documents({"sender": parse_object_id(user_id)})
