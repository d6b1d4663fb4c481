import logging
from collections.abc import Iterable, Mapping
from typing import Any, Generic, NoReturn

from motor.motor_asyncio import AsyncIOMotorDatabase
from pydantic import BaseModel
from pymongo import ASCENDING
from pymongo.errors import PyMongoError

from collection_accessor.core.exceptions import NotFoundError, translate_store_error
from collection_accessor.repositories.mongo_repo import MongoRepository
from collection_accessor.schemas.entity import (
    VERSION_FIELD,
    EntitySchema,
    IndexKeys,
    ModelT,
    to_object_id,
)
from collection_accessor.schemas.filters import FilterLike, compile_filter
from collection_accessor.schemas.query import QueryOptions

logger = logging.getLogger(__name__)

Payload = Mapping[str, Any] | BaseModel
OptionsLike = QueryOptions | Mapping[str, Any] | None


class CollectionAccessor(Generic[ModelT]):
    """CRUD handle over the collection backing one entity schema.

    Holds no state beyond the schema and the collection reference, so any
    number of accessors may share a collection concurrently.
    """

    def __init__(self, schema: EntitySchema[ModelT], db: AsyncIOMotorDatabase):
        self.schema = schema
        self.repository = MongoRepository(db, schema.collection_name)

    @property
    def name(self) -> str:
        return self.schema.name

    def __repr__(self) -> str:
        return f"<CollectionAccessor {self.schema.name} ({self.schema.collection_name})>"

    async def ensure_indexes(self) -> list[str]:
        created = []
        required = {
            name for name, info in self.schema.model.model_fields.items() if info.is_required()
        }
        for field_name in self.schema.unique_fields:
            index_name = await self.repository.create_index(
                [(field_name, ASCENDING)],
                unique=True,
                sparse=field_name not in required,
                name=f"{field_name}_unique",
            )
            created.append(index_name)
        for keys in self.schema.indexes:
            fields = (keys,) if isinstance(keys, str) else keys
            index_keys = [(self.schema.storage_key(f), ASCENDING) for f in fields]
            created.append(await self.repository.create_index(index_keys))
        if created:
            logger.info(
                "Ensured indexes on %s: %s", self.schema.collection_name, ", ".join(created)
            )
        return created

    async def create(self, data: Payload) -> ModelT:
        document = self.schema.to_storage(data)
        try:
            inserted_id = await self.repository.insert_one(document)
        except PyMongoError as e:
            self._raise_store_error(e)
        logger.debug("Created %s %s", self.name, inserted_id)
        return self.schema.from_storage({**document, "_id": inserted_id})

    async def insert_many(self, data: Iterable[Payload]) -> list[ModelT]:
        documents = [self.schema.to_storage(item) for item in data]
        if not documents:
            return []
        try:
            inserted_ids = await self.repository.insert_many(documents)
        except PyMongoError as e:
            self._raise_store_error(e)
        logger.debug("Inserted %d %s documents", len(inserted_ids), self.name)
        return [
            self.schema.from_storage({**document, "_id": inserted_id})
            for document, inserted_id in zip(documents, inserted_ids)
        ]

    async def read_all(self) -> list[ModelT]:
        return await self._find({})

    async def read(self, options: OptionsLike = None, **kwargs: Any) -> list[ModelT]:
        return await self._find({}, QueryOptions.coerce(options, **kwargs))

    async def read_all_by(
        self, filter: FilterLike, options: OptionsLike = None, **kwargs: Any
    ) -> list[ModelT]:
        query = compile_filter(filter, self.schema)
        return await self._find(query, QueryOptions.coerce(options, **kwargs))

    async def read_one(self, filter: FilterLike) -> ModelT | None:
        raw = await self.repository.find_one(compile_filter(filter, self.schema))
        return self.schema.from_storage(raw) if raw is not None else None

    async def read_by_id(self, id: Any) -> ModelT | None:
        oid = to_object_id(id)
        if oid is None:
            return None
        raw = await self.repository.find_one({"_id": oid})
        return self.schema.from_storage(raw) if raw is not None else None

    async def update(self, id: Any, data: Payload) -> ModelT:
        to_set, to_unset = self.schema.to_patch(data)
        oid = to_object_id(id)
        if oid is None:
            raise NotFoundError(self.name, str(id))

        update: dict[str, Any] = {"$inc": {VERSION_FIELD: 1}}
        if to_set:
            update["$set"] = to_set
        if to_unset:
            update["$unset"] = {name: "" for name in to_unset}

        try:
            raw = await self.repository.find_one_and_update({"_id": oid}, update)
        except PyMongoError as e:
            self._raise_store_error(e)
        if raw is None:
            raise NotFoundError(self.name, str(id))
        logger.debug("Updated %s %s (%s)", self.name, oid, ", ".join([*to_set, *to_unset]))
        return self.schema.from_storage(raw)

    async def delete_one(self, id: Any) -> ModelT:
        oid = to_object_id(id)
        raw = None
        if oid is not None:
            raw = await self.repository.find_one_and_delete({"_id": oid})
        if raw is None:
            raise NotFoundError(self.name, str(id))
        logger.debug("Deleted %s %s", self.name, oid)
        return self.schema.from_storage(raw)

    async def delete_all(self) -> int:
        deleted = await self.repository.delete_many({})
        logger.debug("Deleted %d %s documents", deleted, self.name)
        return deleted

    async def get_total_count(self, filter: FilterLike = None) -> int:
        return await self.repository.count(compile_filter(filter, self.schema))

    async def get_estimated_count(self) -> int:
        return await self.repository.estimated_count()

    async def _find(
        self, query: dict[str, Any], options: QueryOptions | None = None
    ) -> list[ModelT]:
        options = options or QueryOptions()
        sort = None
        if options.sort_by:
            sort = (self.schema.storage_key(options.sort_by), options.direction)
        raws = await self.repository.find_many(
            query, sort=sort, skip=options.offset, limit=options.limit
        )
        return [self.schema.from_storage(raw) for raw in raws]

    def _raise_store_error(self, exc: PyMongoError) -> NoReturn:
        translated = translate_store_error(exc, self.name)
        if translated is exc:
            raise exc
        logger.warning("Rejected %s write: %s", self.name, translated)
        raise translated from exc


async def create_model(
    name: str,
    model: type[ModelT],
    db: AsyncIOMotorDatabase,
    *,
    collection_name: str | None = None,
    indexes: Iterable[IndexKeys] = (),
) -> CollectionAccessor[ModelT]:
    """Build the accessor for ``model`` and make sure its indexes exist."""
    schema = EntitySchema.from_model(name, model, collection_name=collection_name, indexes=indexes)
    accessor = CollectionAccessor(schema, db)
    await accessor.ensure_indexes()
    return accessor
