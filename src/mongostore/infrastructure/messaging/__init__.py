"""RabbitMQ messaging: connection management and the store RPC server."""

from .rabbitmq_client import RabbitMQClient
from .rpc_server import ReplySender, RpcServer

__all__ = [
    "RabbitMQClient",
    "ReplySender",
    "RpcServer",
]
