"""Store command handlers.

Each handler receives a validated request and issues one MongoDB call chain:
select database, select collection, filter or get-by-id, operation, optional
cursor shaping. Driver errors propagate unchanged; the RPC server turns them
into STORE_ERROR replies.
"""

import logging
from typing import Any, Dict, List, Optional

from mongostore.constants import (
    DATABASE_MARKER_COLLECTION,
    DEFAULT_CHANGES_LIMIT,
    MONGO_PRIMARY_KEY,
)
from mongostore.exception.store_exceptions import StoreError
from mongostore.infrastructure.persistence.mongodb.client import MongoDBClient
from mongostore.schemas.requests import (
    REQUEST_MODELS,
    ChangesRequest,
    CountRequest,
    CreateDatabaseRequest,
    CreateRequest,
    CreateTableRequest,
    ExistsRequest,
    FindByIdRequest,
    FindRequest,
    RemoveByIdRequest,
    RemoveDatabaseRequest,
    RemoveRequest,
    RemoveTableRequest,
    ReplaceByIdRequest,
    ReplaceRequest,
    TruncateTableRequest,
    UpdateByIdRequest,
    UpdateRequest,
)
from mongostore.store.changes import ChangeFeed, open_change_feed
from mongostore.store.documents import (
    find_pipeline,
    from_storage,
    patch_update,
    replace_pipeline,
    strip_key,
    to_storage,
    translate_filter,
)
from mongostore.store.registry import PatternRegistry

logger = logging.getLogger(__name__)


def _write_counts(result: Any, by_id: bool = False) -> Dict[str, int]:
    replaced = result.modified_count
    reply = {"replaced": replaced, "unchanged": result.matched_count - replaced}
    if by_id:
        reply["skipped"] = 0 if result.matched_count else 1
    return reply


class StoreCommandHandlers:
    """Translates store commands into MongoDB driver calls.

    Attributes:
        mongo: Shared MongoDB client
        change_stream_pre_images: Create collections with pre/post images
    """

    def __init__(self, mongo: MongoDBClient, change_stream_pre_images: bool = True):
        self.mongo = mongo
        self.change_stream_pre_images = change_stream_pre_images

    def register(self, registry: PatternRegistry, topic: str) -> None:
        """Register a handler for every store command under ``topic``."""
        handlers = {
            "createDatabase": self.create_database,
            "removeDatabase": self.remove_database,
            "createTable": self.create_table,
            "removeTable": self.remove_table,
            "truncateTable": self.truncate_table,
            "changes": self.changes,
            "create": self.create,
            "update": self.update,
            "updateById": self.update_by_id,
            "remove": self.remove,
            "removeById": self.remove_by_id,
            "replace": self.replace,
            "replaceById": self.replace_by_id,
            "findById": self.find_by_id,
            "count": self.count,
            "exists": self.exists,
            "find": self.find,
        }
        for cmd, handler in handlers.items():
            registry.add(topic, cmd, REQUEST_MODELS[cmd], handler)
        logger.info(f"Registered {len(handlers)} store patterns on topic '{topic}'")

    def _collection(self, request):
        return self.mongo.get_collection(request.database_name, request.collection)

    # Database and table lifecycle

    async def create_database(self, request: CreateDatabaseRequest) -> Dict[str, int]:
        client = self.mongo.get_client()
        if request.database_name in await client.list_database_names():
            raise StoreError(
                f"Database `{request.database_name}` already exists.",
                details={"database": request.database_name},
            )
        # MongoDB only lists a database once it holds a collection.
        await client[request.database_name].create_collection(
            DATABASE_MARKER_COLLECTION
        )
        return {"dbs_created": 1}

    async def remove_database(self, request: RemoveDatabaseRequest) -> Dict[str, int]:
        client = self.mongo.get_client()
        if request.database_name not in await client.list_database_names():
            raise StoreError(
                f"Database `{request.database_name}` does not exist.",
                details={"database": request.database_name},
            )
        tables = await client[request.database_name].list_collection_names()
        await client.drop_database(request.database_name)
        dropped = [name for name in tables if name != DATABASE_MARKER_COLLECTION]
        return {"dbs_dropped": 1, "tables_dropped": len(dropped)}

    async def create_table(self, request: CreateTableRequest) -> Dict[str, int]:
        options = {}
        if self.change_stream_pre_images:
            options["changeStreamPreAndPostImages"] = {"enabled": True}
        database = self.mongo.get_database(request.database_name)
        await database.create_collection(request.collection, **options)
        return {"tables_created": 1}

    async def remove_table(self, request: RemoveTableRequest) -> Dict[str, int]:
        database = self.mongo.get_database(request.database_name)
        # drop succeeds on a missing collection since MongoDB 7.0
        existing = await database.list_collection_names(
            filter={"name": request.collection}
        )
        if not existing:
            raise StoreError(
                f"Table `{request.database_name}.{request.collection}` does not exist.",
                details={
                    "database": request.database_name,
                    "collection": request.collection,
                },
            )
        await database.command("drop", request.collection)
        return {"tables_dropped": 1}

    async def truncate_table(self, request: TruncateTableRequest) -> Dict[str, int]:
        result = await self._collection(request).delete_many({})
        return {"deleted": result.deleted_count}

    # Subscriptions

    async def changes(self, request: ChangesRequest) -> ChangeFeed:
        options = request.options
        if (
            options.limit != DEFAULT_CHANGES_LIMIT
            or options.offset
            or options.order_by
        ):
            logger.debug(
                f"changes on '{request.collection}' ignores limit={options.limit} "
                f"offset={options.offset} orderBy={options.order_by}"
            )
        return await open_change_feed(
            self._collection(request),
            request.query,
            fields=options.projection,
        )

    # Store interface

    async def create(self, request: CreateRequest) -> Dict[str, Any]:
        data = request.data if isinstance(request.data, list) else [request.data]
        documents = [to_storage(document) for document in data]
        result = await self._collection(request).insert_many(documents)
        return {
            "inserted": len(result.inserted_ids),
            "generated_keys": list(result.inserted_ids),
        }

    async def update(self, request: UpdateRequest) -> Dict[str, int]:
        result = await self._collection(request).update_many(
            translate_filter(request.query), patch_update(request.data)
        )
        return _write_counts(result)

    async def update_by_id(self, request: UpdateByIdRequest) -> Dict[str, int]:
        result = await self._collection(request).update_one(
            {MONGO_PRIMARY_KEY: request.id}, patch_update(request.data)
        )
        return _write_counts(result, by_id=True)

    async def remove(self, request: RemoveRequest) -> Dict[str, int]:
        result = await self._collection(request).delete_many(
            translate_filter(request.query)
        )
        return {"deleted": result.deleted_count}

    async def remove_by_id(self, request: RemoveByIdRequest) -> Dict[str, int]:
        result = await self._collection(request).delete_one(
            {MONGO_PRIMARY_KEY: request.id}
        )
        return {"deleted": result.deleted_count, "skipped": 1 - result.deleted_count}

    async def replace(self, request: ReplaceRequest) -> Dict[str, int]:
        result = await self._collection(request).update_many(
            translate_filter(request.query), replace_pipeline(request.data)
        )
        return _write_counts(result)

    async def replace_by_id(self, request: ReplaceByIdRequest) -> Dict[str, int]:
        result = await self._collection(request).replace_one(
            {MONGO_PRIMARY_KEY: request.id}, strip_key(request.data)
        )
        return _write_counts(result, by_id=True)

    async def find_by_id(self, request: FindByIdRequest) -> Optional[Dict[str, Any]]:
        document = await self._collection(request).find_one(
            {MONGO_PRIMARY_KEY: request.id}
        )
        return from_storage(document)

    async def count(self, request: CountRequest) -> int:
        return await self._collection(request).count_documents(
            translate_filter(request.query)
        )

    async def exists(self, request: ExistsRequest) -> bool:
        count = await self._collection(request).count_documents(
            translate_filter(request.query)
        )
        return count > 0

    async def find(self, request: FindRequest) -> List[Dict[str, Any]]:
        pipeline = find_pipeline(request.query, request.options)
        cursor = self._collection(request).aggregate(pipeline)
        documents = await cursor.to_list(length=None)
        return [from_storage(document) for document in documents]
