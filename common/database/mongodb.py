"""
MongoDB connection holder for the API process.

Services receive the raw `AsyncIOMotorDatabase`; this class only owns the
client's lifetime and answers health checks.
"""

import logging
from typing import Optional

from motor.motor_asyncio import AsyncIOMotorClient, AsyncIOMotorDatabase
from pymongo.errors import PyMongoError

logger = logging.getLogger(__name__)


def mask_uri(uri: str) -> str:
    """Drop credentials from a connection string before logging it."""
    scheme, _, rest = uri.partition("://")
    host = rest.rsplit("@", 1)[-1]
    return f"{scheme}://{host}" if rest else uri


class MongoDB:
    """
    One Motor client per process.

    The client is created with tz_aware=True so every datetime read back is
    UTC-aware, matching what the services write.
    """

    def __init__(self):
        self._client: Optional[AsyncIOMotorClient] = None
        self._database_name: Optional[str] = None

    async def connect(
        self,
        uri: str,
        database_name: str,
        server_selection_timeout_ms: int = 5000
    ) -> None:
        """
        Create the client and wait for the server to answer a ping.

        Raises:
            PyMongoError: Server not reachable within the selection timeout
        """
        logger.info(f"Connecting to MongoDB: {mask_uri(uri)}")

        client = AsyncIOMotorClient(
            uri,
            tz_aware=True,
            serverSelectionTimeoutMS=server_selection_timeout_ms,
        )
        try:
            await client.admin.command("ping")
        except PyMongoError:
            client.close()
            logger.exception(f"MongoDB at {mask_uri(uri)} did not answer")
            raise

        self._client = client
        self._database_name = database_name
        logger.info(f"Using MongoDB database: {database_name}")

    async def disconnect(self) -> None:
        if self._client:
            logger.info(f"Disconnecting from MongoDB database: {self._database_name}")
            self._client.close()
            self._client = None
            self._database_name = None

    async def ping(self) -> bool:
        """True if connected and the server answers right now."""
        if self._client is None:
            return False
        try:
            await self._client.admin.command("ping")
        except PyMongoError as e:
            logger.warning(f"MongoDB ping failed: {e}")
            return False
        return True

    @property
    def db(self) -> AsyncIOMotorDatabase:
        """The application database."""
        if self._client is None or self._database_name is None:
            raise RuntimeError("Database not connected")
        return self._client[self._database_name]
