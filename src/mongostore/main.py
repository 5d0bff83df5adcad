"""mongostore service entry point.

Wires settings, the MongoDB pool, the RabbitMQ connection and the RPC server
together, runs until SIGINT/SIGTERM and tears everything down in reverse
order. The adapter counts as stopped only once the MongoDB pool is closed.
"""

import asyncio
import logging
import signal
from contextlib import asynccontextmanager
from typing import AsyncIterator, Optional

from dotenv import load_dotenv

from mongostore.config.app_settings import AppSettings, get_settings
from mongostore.exception.store_exceptions import ConfigurationError
from mongostore.infrastructure.messaging.rabbitmq_client import RabbitMQClient
from mongostore.infrastructure.messaging.rpc_server import RpcServer
from mongostore.infrastructure.persistence.mongodb.client import MongoDBClient
from mongostore.store.handlers import StoreCommandHandlers
from mongostore.store.registry import PatternRegistry

logger = logging.getLogger(__name__)

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"


def configure_logging(app_settings: AppSettings) -> None:
    """Configure root logging from settings."""
    level = logging.DEBUG if app_settings.debug else app_settings.log_level.upper()
    logging.basicConfig(level=level, format=LOG_FORMAT)


def check_production_config(app_settings: AppSettings) -> None:
    """Refuse to start in production with a development configuration.

    Raises:
        ConfigurationError: If production validation reports problems
    """
    if not app_settings.is_production():
        return

    errors = app_settings.validate_production_config()
    if errors:
        raise ConfigurationError(
            "Invalid production configuration", details={"errors": errors}
        )


def create_registry(mongo_client: MongoDBClient, app_settings: AppSettings) -> PatternRegistry:
    """Create the pattern registry with every store command registered."""
    registry = PatternRegistry()
    handlers = StoreCommandHandlers(
        mongo_client,
        change_stream_pre_images=app_settings.change_stream_pre_images,
    )
    handlers.register(registry, app_settings.topic)
    return registry


@asynccontextmanager
async def lifespan(app_settings: AppSettings) -> AsyncIterator[RpcServer]:
    """Adapter lifespan manager.

    Yields the running RPC server. On exit the server stops consuming and
    closes its subscriptions, then RabbitMQ and finally the MongoDB pool are
    closed.
    """
    logger.info("=== mongostore Startup ===")

    mongo_client = MongoDBClient(
        app_settings.mongo_url, app_settings.mongo_client_options()
    )
    await mongo_client.connect()

    rabbitmq_client = RabbitMQClient(app_settings.rabbitmq_url)
    try:
        await rabbitmq_client.connect()

        server = RpcServer(
            client=rabbitmq_client,
            registry=create_registry(mongo_client, app_settings),
            default_database=app_settings.mongo_default_database,
            queue_name=app_settings.topic,
            prefetch_count=app_settings.rabbitmq_prefetch_count,
        )
        await server.start()
        logger.info("=== mongostore Ready ===")

        try:
            yield server
        finally:
            logger.info("=== mongostore Shutdown ===")
            await server.stop()
    finally:
        await rabbitmq_client.disconnect()
        await mongo_client.disconnect()
        logger.info("=== mongostore Stopped ===")


async def serve(
    app_settings: AppSettings, stop_event: Optional[asyncio.Event] = None
) -> None:
    """Run the adapter until ``stop_event`` is set or a stop signal arrives."""
    stop_event = stop_event or asyncio.Event()
    loop = asyncio.get_running_loop()
    for signum in (signal.SIGINT, signal.SIGTERM):
        try:
            loop.add_signal_handler(signum, stop_event.set)
        except (NotImplementedError, RuntimeError):
            logger.debug(f"Signal handler for {signum} not supported here")

    async with lifespan(app_settings):
        await stop_event.wait()


def main() -> None:
    """Console entry point."""
    load_dotenv()
    app_settings = get_settings()
    configure_logging(app_settings)
    check_production_config(app_settings)
    asyncio.run(serve(app_settings))


if __name__ == "__main__":
    main()
