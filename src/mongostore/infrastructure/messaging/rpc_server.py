"""RabbitMQ RPC server for the store patterns.

Consumes request messages from the queue named after the topic, routes each
to the registered pattern and publishes the ``{error, result}`` reply to the
caller's ``reply_to`` queue with the request's correlation id. The
``changes`` command replies once with ``true`` and then once per change.
"""

import logging
from typing import Any, Dict, Optional

from aio_pika import Message
from aio_pika.abc import (
    AbstractChannel,
    AbstractExchange,
    AbstractIncomingMessage,
)
from aio_pika.exceptions import DeliveryError
from bson import json_util
from pymongo.errors import PyMongoError

from mongostore.constants import REPLY_CONTENT_TYPE
from mongostore.exception.store_exceptions import (
    MalformedMessageError,
    MongoStoreException,
    PatternNotFoundError,
    ReplyUndeliverableError,
    StoreError,
)
from mongostore.infrastructure.messaging.rabbitmq_client import RabbitMQClient
from mongostore.schemas.replies import encode_reply, error_reply, success_reply
from mongostore.schemas.requests import validate_request
from mongostore.store.changes import ChangeFeed, SubscriptionManager
from mongostore.store.registry import PatternRegistry

logger = logging.getLogger(__name__)


def decode_request(body: bytes) -> Dict[str, Any]:
    """Decode an Extended JSON request body.

    Raises:
        MalformedMessageError: If the body is not a JSON object
    """
    try:
        payload = json_util.loads(body)
    except (ValueError, TypeError) as exc:
        raise MalformedMessageError(f"Message body is not valid JSON: {exc}") from exc

    if not isinstance(payload, dict):
        raise MalformedMessageError()
    return payload


class ReplySender:
    """Publishes replies for one request.

    Attributes:
        exchange: Exchange replies are published to (the default exchange)
        reply_to: Caller's reply queue
        correlation_id: Correlation id copied from the request
    """

    def __init__(
        self,
        exchange: AbstractExchange,
        reply_to: str,
        correlation_id: Optional[str] = None,
    ):
        self.exchange = exchange
        self.reply_to = reply_to
        self.correlation_id = correlation_id

    async def send(self, reply: Dict[str, Any]) -> None:
        """Publish a reply envelope.

        Raises:
            ReplyUndeliverableError: If the reply queue no longer exists
        """
        message = Message(
            body=encode_reply(reply),
            content_type=REPLY_CONTENT_TYPE,
            correlation_id=self.correlation_id,
        )
        try:
            await self.exchange.publish(message, routing_key=self.reply_to)
        except DeliveryError as exc:
            raise ReplyUndeliverableError(self.reply_to) from exc

    async def send_result(self, result: Any) -> None:
        await self.send(success_reply(result))

    async def send_error(self, exc: MongoStoreException) -> None:
        await self.send(error_reply(exc))


class RpcServer:
    """Consumes store requests from RabbitMQ and replies to each.

    Attributes:
        client: RabbitMQClient instance
        registry: Registered store patterns
        subscriptions: Live change feed subscriptions
        default_database: Database used when a request omits databaseName
        queue_name: Request queue, named after the topic
        prefetch_count: Requests processed concurrently
    """

    def __init__(
        self,
        client: RabbitMQClient,
        registry: PatternRegistry,
        default_database: str,
        queue_name: str,
        prefetch_count: int,
        subscriptions: Optional[SubscriptionManager] = None,
    ):
        self.client = client
        self.registry = registry
        self.default_database = default_database
        self.queue_name = queue_name
        self.prefetch_count = prefetch_count
        self.subscriptions = subscriptions or SubscriptionManager()
        self._channel: Optional[AbstractChannel] = None
        self._queue = None
        self._consumer_tag = None

    async def start(self) -> None:
        """Declare the request queue and begin consuming."""
        self._channel = await self.client.open_channel(self.prefetch_count)
        self._queue = await self._channel.declare_queue(self.queue_name)
        self._consumer_tag = await self._queue.consume(self._on_message)
        logger.info(
            f"RPC server consuming '{self.queue_name}' "
            f"({len(self.registry)} patterns, prefetch={self.prefetch_count})"
        )

    async def stop(self) -> None:
        """Stop consuming, close subscriptions and the channel."""
        if self._queue is not None and self._consumer_tag:
            await self._queue.cancel(self._consumer_tag)
            self._consumer_tag = None

        await self.subscriptions.close_all()

        if self._channel and not self._channel.is_closed:
            await self._channel.close()
        logger.info("RPC server stopped")

    async def _on_message(self, message: AbstractIncomingMessage) -> None:
        async with message.process(requeue=False):
            replier = None
            if message.reply_to:
                replier = ReplySender(
                    self._channel.default_exchange,
                    message.reply_to,
                    message.correlation_id,
                )
            await self.handle(message.body, replier)

    async def handle(self, body: bytes, replier: Optional[ReplySender]) -> None:
        """Execute one request and publish its reply.

        Args:
            body: Raw message body
            replier: Reply publisher, or None when the caller expects no reply
        """
        try:
            payload = decode_request(body)
            topic, cmd = payload.get("topic"), payload.get("cmd")
            pattern = self.registry.lookup(topic, cmd)
            if pattern is None:
                raise PatternNotFoundError(topic, cmd)

            logger.debug(f"Dispatching topic={topic} cmd={cmd}")
            request = validate_request(pattern.model, payload, self.default_database)
            result = await pattern.handler(request)
        except MongoStoreException as exc:
            logger.warning(f"Request failed [{exc.code}]: {exc.message}")
            await self._reply(replier, error_reply(exc))
            return
        except PyMongoError as exc:
            logger.warning(f"Store call failed: {exc}")
            await self._reply(replier, error_reply(StoreError.from_driver(exc)))
            return
        except Exception as exc:
            logger.error(f"Unexpected error handling request: {exc}", exc_info=True)
            await self._reply(replier, error_reply(MongoStoreException(str(exc))))
            return

        if isinstance(result, ChangeFeed):
            await self._subscribe(result, replier)
            return

        await self._reply(replier, success_reply(result))

    async def _subscribe(self, feed: ChangeFeed, replier: Optional[ReplySender]) -> None:
        # the acknowledgment is published before the pump task exists
        if not await self._reply(replier, success_reply(True)):
            await feed.close()
            return
        self.subscriptions.start(feed, replier)

    @staticmethod
    async def _reply(replier: Optional[ReplySender], reply: Dict[str, Any]) -> bool:
        if replier is None:
            logger.debug("Request has no reply_to; dropping reply")
            return False
        try:
            await replier.send(reply)
        except ReplyUndeliverableError as exc:
            logger.info(f"Dropping reply: {exc.message}")
            return False
        return True
