"""Reply envelopes for the store RPC surface.

Every reply is ``{"error": ..., "result": ...}`` with exactly one side
populated. Bodies are encoded as relaxed Extended JSON so BSON values
(dates, ObjectIds, decimals) survive the trip to the caller.
"""

from __future__ import annotations

from typing import Any, Dict, Optional

from bson import json_util
from pydantic import BaseModel, Field

from mongostore.exception.store_exceptions import MongoStoreException


class ErrorDetail(BaseModel):
    """Detailed error information."""

    name: str = Field(..., description="Exception class name")
    code: str = Field(..., description="Error code for programmatic handling")
    message: str = Field(..., description="Human-readable error message")
    field: Optional[str] = Field(None, description="Field name if validation error")
    details: Optional[Dict[str, Any]] = Field(
        None, description="Additional error context"
    )


def success_reply(result: Any) -> Dict[str, Any]:
    """Create a success reply."""
    return {"error": None, "result": result}


def error_reply(exc: MongoStoreException) -> Dict[str, Any]:
    """Create an error reply from a mongostore exception."""
    detail = ErrorDetail(
        name=type(exc).__name__,
        code=exc.code,
        message=exc.message,
        field=exc.field,
        details=exc.details or None,
    )
    return {"error": detail.model_dump(exclude_none=True), "result": None}


def encode_reply(reply: Dict[str, Any]) -> bytes:
    """Serialize a reply envelope to relaxed Extended JSON bytes."""
    return json_util.dumps(reply, json_options=json_util.RELAXED_JSON_OPTIONS).encode(
        "utf-8"
    )
