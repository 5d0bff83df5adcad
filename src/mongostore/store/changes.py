"""Change feeds for the ``changes`` command.

A subscription has two phases. ``open_change_feed`` establishes the MongoDB
change stream and fails with SubscriptionSetupError if it cannot; only then
is the caller acknowledged. SubscriptionManager then pumps events to the
caller in a background task until the stream ends, the caller goes away or
the adapter shuts down.
"""

import asyncio
import logging
from typing import Any, AsyncIterator, Dict, Mapping, Optional, Protocol, Set

from motor.motor_asyncio import AsyncIOMotorChangeStream, AsyncIOMotorCollection
from pymongo.errors import PyMongoError

from mongostore.exception.store_exceptions import (
    MongoStoreException,
    ReplyUndeliverableError,
    StoreError,
    SubscriptionSetupError,
)
from mongostore.store.documents import Fields, change_event, change_stream_pipeline

logger = logging.getLogger(__name__)


class Replier(Protocol):
    async def send_result(self, result: Any) -> None: ...

    async def send_error(self, exc: MongoStoreException) -> None: ...


class ChangeFeed:
    """An established change stream on one collection.

    Attributes:
        stream: Underlying Motor change stream
        collection: Collection name, for logging
        fields: Projection applied to both images of every event
    """

    def __init__(
        self,
        stream: AsyncIOMotorChangeStream,
        collection: str,
        fields: Optional[Fields] = None,
        pending: Optional[Mapping[str, Any]] = None,
    ):
        self.stream = stream
        self.collection = collection
        self.fields = fields
        self._pending = pending

    async def events(self) -> AsyncIterator[Dict[str, Any]]:
        """Yield ``{new_val, old_val}`` events until the stream ends."""
        if self._pending is not None:
            pending, self._pending = self._pending, None
            if pending.get("operationType") == "invalidate":
                return
            yield change_event(pending, self.fields)

        async for change in self.stream:
            if change.get("operationType") == "invalidate":
                logger.info(f"Change stream on '{self.collection}' invalidated")
                return
            yield change_event(change, self.fields)

    async def close(self) -> None:
        await self.stream.close()


async def open_change_feed(
    collection: AsyncIOMotorCollection,
    query: Optional[Mapping[str, Any]],
    fields: Optional[Fields] = None,
) -> ChangeFeed:
    """Open and establish a change stream filtered by ``query``.

    The first ``try_next`` opens the server-side cursor without waiting for
    a change; a change that is already available is held back so it is
    delivered after the acknowledgment.

    Raises:
        SubscriptionSetupError: If the stream cannot be established
    """
    stream = collection.watch(
        pipeline=change_stream_pipeline(query),
        full_document="updateLookup",
        full_document_before_change="whenAvailable",
    )
    try:
        pending = await stream.try_next()
    except PyMongoError as exc:
        logger.warning(f"Failed to open change stream on '{collection.name}': {exc}")
        await stream.close()
        raise SubscriptionSetupError(
            str(exc),
            collection=collection.name,
            details=StoreError.from_driver(exc).details,
        ) from exc

    logger.info(f"Change stream opened on '{collection.name}'")
    return ChangeFeed(stream, collection.name, fields=fields, pending=pending)


class SubscriptionManager:
    """Tracks live change feed subscriptions.

    Attributes:
        _tasks: Background tasks pumping events to subscribers
    """

    def __init__(self):
        self._tasks: Set[asyncio.Task] = set()

    def start(self, feed: ChangeFeed, replier: Replier) -> asyncio.Task:
        """Start pumping ``feed`` events to ``replier`` in the background."""
        task = asyncio.create_task(self._pump(feed, replier))
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return task

    async def _pump(self, feed: ChangeFeed, replier: Replier) -> None:
        try:
            async for event in feed.events():
                await replier.send_result(event)
        except ReplyUndeliverableError as exc:
            logger.info(f"Subscriber on '{feed.collection}' went away: {exc.message}")
        except PyMongoError as exc:
            logger.warning(f"Change stream on '{feed.collection}' failed: {exc}")
            try:
                await replier.send_error(StoreError.from_driver(exc))
            except ReplyUndeliverableError:
                logger.info(f"Subscriber on '{feed.collection}' went away")
        except Exception as exc:
            logger.error(
                f"Subscription on '{feed.collection}' stopped: {exc}", exc_info=True
            )
        finally:
            await feed.close()
            logger.info(f"Change stream on '{feed.collection}' closed")

    async def close_all(self) -> None:
        """Cancel every subscription and wait for its stream to close."""
        tasks = list(self._tasks)
        for task in tasks:
            task.cancel()
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)
        logger.info(f"Closed {len(tasks)} change feed subscription(s)")

    def __len__(self) -> int:
        return len(self._tasks)
