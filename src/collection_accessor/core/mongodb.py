import logging

from motor.motor_asyncio import AsyncIOMotorClient, AsyncIOMotorDatabase
from pymongo.errors import ConnectionFailure

from collection_accessor.core.config import Settings, settings
from collection_accessor.core.exceptions import StoreConnectionError

logger = logging.getLogger(__name__)


class MongoDB:
    def __init__(self, config: Settings | None = None):
        self.config = config or settings
        self.client: AsyncIOMotorClient | None = None
        self.db: AsyncIOMotorDatabase | None = None

    async def connect_to_storage(self) -> AsyncIOMotorDatabase:
        logger.info("Connecting to MongoDB...")
        self.client = AsyncIOMotorClient(
            self.config.MONGODB_URL,
            serverSelectionTimeoutMS=self.config.MONGODB_SERVER_SELECTION_TIMEOUT_MS,
        )
        self.db = self.client[self.config.MONGODB_DB_NAME]
        logger.info("Connected to MongoDB.")
        return self.db

    async def close_storage_connection(self) -> None:
        logger.info("Closing MongoDB connection...")
        if self.client:
            self.client.close()
        self.client = None
        self.db = None
        logger.info("MongoDB connection closed.")

    async def ping(self) -> None:
        if self.client is None:
            raise StoreConnectionError("MongoDB client is not initialized")
        try:
            await self.client.admin.command("ping")
        except ConnectionFailure as e:
            raise StoreConnectionError(
                "MongoDB is unreachable", details={"reason": str(e)}
            ) from e

    async def __aenter__(self) -> AsyncIOMotorDatabase:
        return await self.connect_to_storage()

    async def __aexit__(self, *exc_info: object) -> None:
        await self.close_storage_connection()


mongodb = MongoDB()


async def get_mongodb() -> AsyncIOMotorDatabase:
    if mongodb.db is None:
        raise StoreConnectionError("MongoDB client is not initialized")
    return mongodb.db
