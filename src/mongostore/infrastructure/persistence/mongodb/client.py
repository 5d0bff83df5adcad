"""MongoDB async client using Motor.

Owns the connection pool shared by all store commands and resolves
databases and collections by name.
"""

import logging
from typing import Any, Dict, Optional

from motor.motor_asyncio import (
    AsyncIOMotorClient,
    AsyncIOMotorCollection,
    AsyncIOMotorDatabase,
)

logger = logging.getLogger(__name__)


class MongoDBClient:
    """MongoDB client for async database operations.

    Attributes:
        url: MongoDB connection URL
        options: Extra keyword arguments for the Motor client (pool sizing etc.)
        client: Motor async client
    """

    def __init__(self, url: str, options: Optional[Dict[str, Any]] = None):
        """Initialize MongoDB client.

        Args:
            url: MongoDB connection URL
            options: Extra keyword arguments for AsyncIOMotorClient
        """
        self.url = url
        self.options = options or {}
        self.client: Optional[AsyncIOMotorClient] = None

    async def connect(self) -> None:
        """Create MongoDB client connection."""
        if self.client is None:
            self.client = AsyncIOMotorClient(self.url, **self.options)
            logger.info("MongoDB client created")

    async def disconnect(self) -> None:
        """Close MongoDB client connection and release its pool."""
        if self.client is not None:
            self.client.close()
            self.client = None
            logger.info("MongoDB connection pool closed")

    def get_client(self) -> AsyncIOMotorClient:
        """Get the underlying Motor client.

        Raises:
            RuntimeError: If not connected
        """
        if self.client is None:
            raise RuntimeError("Client not connected. Call connect() first.")

        return self.client

    def get_database(self, database_name: str) -> AsyncIOMotorDatabase:
        """Get MongoDB database by name.

        Args:
            database_name: Database name

        Returns:
            AsyncIOMotorDatabase instance
        """
        return self.get_client()[database_name]

    def get_collection(
        self, database_name: str, collection: str
    ) -> AsyncIOMotorCollection:
        """Get a collection within a database.

        Args:
            database_name: Database name
            collection: Collection name

        Returns:
            AsyncIOMotorCollection instance
        """
        return self.get_database(database_name)[collection]
