"""Exception handling package.

This package provides the exception classes whose instances are turned into
RPC error replies.
"""

from mongostore.exception.store_exceptions import MongoStoreException

__all__ = ["MongoStoreException"]
