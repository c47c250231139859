"""
Social graph readers.

Read-only access to data owned by the friends, forum and messaging parts
of the platform.
"""

from haven.services.social.friend_graph import FriendGraphReader
from haven.services.social.activity_counter import ActivityCounter

__all__ = ["FriendGraphReader", "ActivityCounter"]
