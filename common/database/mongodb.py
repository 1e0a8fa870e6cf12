"""
Async MongoDB connection for the gateway's users and sessions collections.

One Motor client per process. Services receive the database handle from
``MongoDB.db`` and own their collections and indexes.

Example:
    from common.database import MongoDB

    store = MongoDB()
    await store.connect("mongodb://localhost:27017", "gemini_gateway")
    init_auth_services(db=store.db, settings=settings)
    ...
    await store.disconnect()
"""

import logging
from typing import Optional

from motor.motor_asyncio import AsyncIOMotorClient, AsyncIOMotorDatabase
from pymongo.errors import PyMongoError

logger = logging.getLogger(__name__)


def _redact(uri: str) -> str:
    """Strip credentials from a connection string before it is logged."""
    return uri.rsplit("@", 1)[-1]


class MongoDB:
    """Owns the Motor client for the lifetime of the application."""

    def __init__(self):
        self._client: Optional[AsyncIOMotorClient] = None
        self._database_name: Optional[str] = None

    async def connect(
        self,
        uri: str,
        database_name: str,
        server_selection_timeout_ms: int = 5000,
    ) -> None:
        """
        Open the client and fail fast if no server answers a ping.

        Datetimes come back timezone-aware (UTC) so session expiry
        comparisons never mix naive and aware values.
        """
        logger.info(f"Connecting to MongoDB at {_redact(uri)} (db={database_name})")

        client = AsyncIOMotorClient(
            uri,
            tz_aware=True,
            serverSelectionTimeoutMS=server_selection_timeout_ms,
        )
        try:
            await client.admin.command("ping")
        except PyMongoError as e:
            client.close()
            logger.error(f"MongoDB unreachable at {_redact(uri)}: {e}")
            raise

        self._client = client
        self._database_name = database_name
        logger.info("MongoDB connection ready")

    async def disconnect(self) -> None:
        if self._client is None:
            return
        self._client.close()
        self._client = None
        self._database_name = None
        logger.info("MongoDB connection closed")

    async def ping(self) -> bool:
        """True when connected and the server answers; never raises."""
        if self._client is None:
            return False
        try:
            await self._client.admin.command("ping")
        except PyMongoError as e:
            logger.warning(f"MongoDB ping failed: {e}")
            return False
        return True

    @property
    def is_connected(self) -> bool:
        return self._client is not None

    @property
    def db(self) -> AsyncIOMotorDatabase:
        if self._client is None or self._database_name is None:
            raise RuntimeError("Database not connected")
        return self._client[self._database_name]
