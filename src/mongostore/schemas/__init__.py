"""Request and reply schemas for the store RPC surface."""

from mongostore.schemas.replies import ErrorDetail, encode_reply, error_reply, success_reply
from mongostore.schemas.requests import REQUEST_MODELS, StoreCommand, validate_request

__all__ = [
    "ErrorDetail",
    "REQUEST_MODELS",
    "StoreCommand",
    "encode_reply",
    "error_reply",
    "success_reply",
    "validate_request",
]
