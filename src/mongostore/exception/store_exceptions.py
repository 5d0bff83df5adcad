"""Custom exceptions for the mongostore adapter.

All custom exceptions inherit from MongoStoreException so the RPC server can
turn any of them into an error reply with a stable code.
"""

from typing import Any, Dict, List, Optional

from pymongo.errors import OperationFailure, PyMongoError


class MongoStoreException(Exception):
    """Base exception for all mongostore errors."""

    def __init__(
        self,
        message: str,
        code: str = "INTERNAL_ERROR",
        field: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
    ):
        """Initialize mongostore exception.

        Args:
            message: Human-readable error message
            code: Error code for programmatic handling
            field: Field name if validation error
            details: Additional error context
        """
        self.message = message
        self.code = code
        self.field = field
        self.details = details or {}
        super().__init__(message)


# Request errors
class ValidationError(MongoStoreException):
    """Request failed its declared shape or type constraints."""

    def __init__(self, message: str, field: Optional[str] = None, **kwargs):
        super().__init__(
            message=message,
            code=kwargs.pop("code", "VALIDATION_ERROR"),
            field=field,
            **kwargs,
        )


class InvalidRequestError(ValidationError):
    """Request rejected before any database call was attempted."""

    def __init__(
        self,
        message: str = "Invalid request",
        errors: Optional[List[Dict[str, Any]]] = None,
        **kwargs,
    ):
        details = kwargs.pop("details", {})
        if errors:
            details["validation_errors"] = errors
            if "field" not in kwargs and len(errors) == 1:
                kwargs["field"] = errors[0].get("field")

        super().__init__(
            message=message, code="INVALID_REQUEST", details=details, **kwargs
        )


class MalformedMessageError(MongoStoreException):
    """Message body is not a JSON object."""

    def __init__(self, message: str = "Message body must be a JSON object", **kwargs):
        super().__init__(message=message, code="MALFORMED_MESSAGE", **kwargs)


class PatternNotFoundError(MongoStoreException):
    """No handler is registered for the requested pattern."""

    def __init__(self, topic: Optional[str], cmd: Optional[str], **kwargs):
        super().__init__(
            message=f"No pattern registered for topic={topic!r} cmd={cmd!r}",
            code="PATTERN_NOT_FOUND",
            details={"topic": topic, "cmd": cmd},
            **kwargs,
        )


# Database errors
class StoreError(MongoStoreException):
    """Database operation failed; carries the driver error unchanged."""

    def __init__(self, message: str, **kwargs):
        super().__init__(
            message=message,
            code=kwargs.pop("code", "STORE_ERROR"),
            **kwargs,
        )

    @classmethod
    def from_driver(cls, exc: PyMongoError) -> "StoreError":
        """Wrap a pymongo error without translating it.

        Args:
            exc: Error raised by the driver

        Returns:
            StoreError with the driver error name, server code and details
        """
        details: Dict[str, Any] = {"driver_error": type(exc).__name__}
        if isinstance(exc, OperationFailure):
            details["server_code"] = exc.code
            if exc.details:
                details["server_details"] = exc.details
        return cls(str(exc), details=details)


class SubscriptionSetupError(StoreError):
    """Change feed could not be established."""

    def __init__(self, message: str, collection: Optional[str] = None, **kwargs):
        details = kwargs.pop("details", {})
        if collection:
            details["collection"] = collection

        super().__init__(
            message=message,
            code="SUBSCRIPTION_SETUP_ERROR",
            details=details,
            **kwargs,
        )


# Configuration errors
class ConfigurationError(MongoStoreException):
    """Configuration error."""

    def __init__(self, message: str, **kwargs):
        super().__init__(message=message, code="CONFIGURATION_ERROR", **kwargs)


# Transport errors
class ReplyUndeliverableError(MongoStoreException):
    """Reply could not be routed back to the caller."""

    def __init__(self, reply_to: Optional[str], **kwargs):
        super().__init__(
            message=f"Reply queue is gone: {reply_to}",
            code="REPLY_UNDELIVERABLE",
            details={"reply_to": reply_to},
            **kwargs,
        )
