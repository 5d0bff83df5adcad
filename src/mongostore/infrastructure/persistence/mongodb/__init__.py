"""MongoDB persistence layer.

A single Motor client (and its connection pool) is shared by every command;
databases and collections are resolved per request.
"""

from .client import MongoDBClient

__all__ = [
    "MongoDBClient",
]
