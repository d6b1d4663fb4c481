from collections.abc import Sequence
from typing import Any

from motor.motor_asyncio import AsyncIOMotorDatabase
from pymongo import ReturnDocument


class MongoRepository:
    def __init__(self, db: AsyncIOMotorDatabase, collection_name: str):
        self.db = db
        self.collection = db[collection_name]

    async def find_one(self, filter: dict[str, Any]) -> dict[str, Any] | None:
        return await self.collection.find_one(filter)

    async def find_many(
        self,
        filter: dict[str, Any],
        sort: tuple[str, int] | None = None,
        skip: int = 0,
        limit: int = 0,
    ) -> list[dict[str, Any]]:
        # The server sorts before it skips and limits, whatever the call order.
        cursor = self.collection.find(
            filter, sort=[sort] if sort else None, skip=skip, limit=limit
        )
        return [document async for document in cursor]

    async def insert_one(self, document: dict[str, Any]) -> Any:
        result = await self.collection.insert_one(document)
        return result.inserted_id

    async def insert_many(self, documents: Sequence[dict[str, Any]]) -> list[Any]:
        result = await self.collection.insert_many(list(documents), ordered=True)
        return list(result.inserted_ids)

    async def find_one_and_update(
        self, filter: dict[str, Any], update: dict[str, Any]
    ) -> dict[str, Any] | None:
        return await self.collection.find_one_and_update(
            filter, update, return_document=ReturnDocument.AFTER
        )

    async def find_one_and_delete(self, filter: dict[str, Any]) -> dict[str, Any] | None:
        return await self.collection.find_one_and_delete(filter)

    async def delete_many(self, filter: dict[str, Any]) -> int:
        result = await self.collection.delete_many(filter)
        return result.deleted_count

    async def count(self, filter: dict[str, Any]) -> int:
        return await self.collection.count_documents(filter)

    async def estimated_count(self) -> int:
        return await self.collection.estimated_document_count()

    async def create_index(self, keys: list[tuple[str, int]], **kwargs: Any) -> str:
        return await self.collection.create_index(keys, **kwargs)
