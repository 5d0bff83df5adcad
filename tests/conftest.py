"""Root-level pytest configuration and shared fixtures.

Adds the src/ directory to sys.path so mongostore can be imported without installation.
Provides mock factories for the Motor driver objects and the RabbitMQ
exchange used across the unit test suites.

Key exports:
    - Mock factory functions (make_collection, make_mongo_client, etc.)
    - Pytest fixtures for every mock dependency
"""

import sys
from pathlib import Path
from typing import Any, Dict, List, Optional
from unittest.mock import AsyncMock, MagicMock

import pytest
from bson import json_util

sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

TEST_DATABASE = "test"
TEST_COLLECTION = "users"
TEST_TOPIC = "mongodb-store"


# ---------------------------------------------------------------------------
# Driver result factories
# ---------------------------------------------------------------------------


def make_insert_result(inserted_ids: List[Any]) -> MagicMock:
    """Build a mock InsertManyResult."""
    result = MagicMock()
    result.inserted_ids = list(inserted_ids)
    return result


def make_update_result(matched: int = 1, modified: int = 1) -> MagicMock:
    """Build a mock UpdateResult."""
    result = MagicMock()
    result.matched_count = matched
    result.modified_count = modified
    return result


def make_delete_result(deleted: int = 1) -> MagicMock:
    """Build a mock DeleteResult."""
    result = MagicMock()
    result.deleted_count = deleted
    return result


# ---------------------------------------------------------------------------
# Motor object factories
# ---------------------------------------------------------------------------


def make_change_stream(
    changes: Optional[List[Dict[str, Any]]] = None,
    first: Optional[Dict[str, Any]] = None,
) -> MagicMock:
    """Build a mock Motor change stream.

    Args:
        changes: Changes produced by async iteration after the first try_next.
        first: Change returned by the establishing try_next call.

    Returns:
        MagicMock supporting try_next, async iteration and close.
    """
    stream = MagicMock()
    stream.try_next = AsyncMock(return_value=first)
    stream.__aiter__.return_value = list(changes or [])
    stream.close = AsyncMock(return_value=None)
    return stream


def make_collection(
    name: str = TEST_COLLECTION,
    documents: Optional[List[Dict[str, Any]]] = None,
) -> MagicMock:
    """Build a mock AsyncIOMotorCollection with sensible defaults.

    Args:
        name: Collection name.
        documents: Documents returned by aggregate().to_list().

    Returns:
        Configured MagicMock with all async methods set up.
    """
    collection = MagicMock()
    collection.name = name
    collection.insert_many = AsyncMock(return_value=make_insert_result(["key-1"]))
    collection.update_many = AsyncMock(return_value=make_update_result())
    collection.update_one = AsyncMock(return_value=make_update_result())
    collection.replace_one = AsyncMock(return_value=make_update_result())
    collection.delete_many = AsyncMock(return_value=make_delete_result())
    collection.delete_one = AsyncMock(return_value=make_delete_result())
    collection.find_one = AsyncMock(return_value=None)
    collection.count_documents = AsyncMock(return_value=0)

    cursor = MagicMock()
    cursor.to_list = AsyncMock(return_value=list(documents or []))
    collection.aggregate = MagicMock(return_value=cursor)

    collection.watch = MagicMock(return_value=make_change_stream())
    return collection


def make_database(collections: Optional[List[str]] = None) -> MagicMock:
    """Build a mock AsyncIOMotorDatabase."""
    database = MagicMock()
    database.create_collection = AsyncMock(return_value=MagicMock())
    database.command = AsyncMock(return_value={"ok": 1.0})
    database.list_collection_names = AsyncMock(return_value=list(collections or []))
    return database


def make_mongo_client(
    collection: Optional[MagicMock] = None,
    database: Optional[MagicMock] = None,
    database_names: Optional[List[str]] = None,
) -> MagicMock:
    """Build a mock MongoDBClient wrapper around mock Motor objects.

    Args:
        collection: Collection returned by get_collection.
        database: Database returned by get_database and client[name].
        database_names: Names reported by list_database_names.

    Returns:
        Configured MagicMock mirroring the MongoDBClient interface.
    """
    collection = collection or make_collection()
    database = database or make_database()

    motor_client = MagicMock()
    motor_client.list_database_names = AsyncMock(
        return_value=list(database_names or ["admin", "local"])
    )
    motor_client.drop_database = AsyncMock(return_value=None)
    motor_client.__getitem__.return_value = database

    mongo = MagicMock()
    mongo.get_client = MagicMock(return_value=motor_client)
    mongo.get_database = MagicMock(return_value=database)
    mongo.get_collection = MagicMock(return_value=collection)
    return mongo


# ---------------------------------------------------------------------------
# RabbitMQ factories
# ---------------------------------------------------------------------------


def make_exchange() -> MagicMock:
    """Build a mock aio_pika exchange recording published messages."""
    exchange = MagicMock()
    exchange.publish = AsyncMock(return_value=None)
    return exchange


def published_replies(exchange: MagicMock) -> List[Dict[str, Any]]:
    """Decode every reply published on a mock exchange, in order."""
    return [
        json_util.loads(call.args[0].body) for call in exchange.publish.call_args_list
    ]


def encode_request(**payload: Any) -> bytes:
    """Encode a request body the way callers publish it."""
    payload.setdefault("topic", TEST_TOPIC)
    return json_util.dumps(payload).encode("utf-8")


# ---------------------------------------------------------------------------
# Pytest fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def collection() -> MagicMock:
    """Provide a mock Motor collection named 'users'."""
    return make_collection()


@pytest.fixture
def database() -> MagicMock:
    """Provide a mock Motor database."""
    return make_database()


@pytest.fixture
def mongo_client(collection: MagicMock, database: MagicMock) -> MagicMock:
    """Provide a mock MongoDBClient wired to the collection and database fixtures."""
    return make_mongo_client(collection=collection, database=database)


@pytest.fixture
def exchange() -> MagicMock:
    """Provide a mock default exchange."""
    return make_exchange()
