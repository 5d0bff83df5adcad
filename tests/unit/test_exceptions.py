"""Unit tests for the exception hierarchy in mongostore.exception.store_exceptions.

Verifies that every exception class carries the correct error code and
message, that the inheritance chain is intact, and that driver errors are
wrapped without losing their server code or details.
"""

from pymongo.errors import CollectionInvalid, OperationFailure

from mongostore.exception.store_exceptions import (
    ConfigurationError,
    InvalidRequestError,
    MalformedMessageError,
    MongoStoreException,
    PatternNotFoundError,
    ReplyUndeliverableError,
    StoreError,
    SubscriptionSetupError,
    ValidationError,
)

# ---------------------------------------------------------------------------
# MongoStoreException – base class contract
# ---------------------------------------------------------------------------


class TestMongoStoreException:
    """Tests for the MongoStoreException base class."""

    def test_stores_message(self) -> None:
        """MongoStoreException stores the provided message on the message attribute."""
        exception = MongoStoreException("something broke")

        assert exception.message == "something broke"

    def test_default_error_code_is_internal_error(self) -> None:
        """MongoStoreException defaults to 'INTERNAL_ERROR' when no code is given."""
        assert MongoStoreException("error").code == "INTERNAL_ERROR"

    def test_default_details_is_empty_dict(self) -> None:
        """MongoStoreException initializes details to an empty dict by default."""
        assert MongoStoreException("error").details == {}

    def test_str_representation_is_message(self) -> None:
        """str(MongoStoreException) returns the human-readable message."""
        exception = MongoStoreException("something went wrong")

        assert str(exception) == "something went wrong"


# ---------------------------------------------------------------------------
# Request errors
# ---------------------------------------------------------------------------


class TestValidationErrors:
    """Tests for ValidationError and InvalidRequestError."""

    def test_validation_error_code(self) -> None:
        """ValidationError uses 'VALIDATION_ERROR' as its error code."""
        assert ValidationError("bad").code == "VALIDATION_ERROR"

    def test_invalid_request_code(self) -> None:
        """InvalidRequestError uses 'INVALID_REQUEST' as its error code."""
        assert InvalidRequestError().code == "INVALID_REQUEST"

    def test_invalid_request_is_validation_error(self) -> None:
        """InvalidRequestError inherits from ValidationError."""
        assert isinstance(InvalidRequestError(), ValidationError)

    def test_single_error_sets_field(self) -> None:
        """A single field error is promoted to the exception's field attribute."""
        exception = InvalidRequestError(
            errors=[{"field": "collection", "message": "Field required"}]
        )

        assert exception.field == "collection"
        assert exception.details["validation_errors"][0]["message"] == "Field required"

    def test_multiple_errors_leave_field_unset(self) -> None:
        """Several field errors are reported only in details."""
        exception = InvalidRequestError(
            errors=[{"field": "collection"}, {"field": "query"}]
        )

        assert exception.field is None
        assert len(exception.details["validation_errors"]) == 2

    def test_malformed_message_code(self) -> None:
        """MalformedMessageError uses 'MALFORMED_MESSAGE' as its error code."""
        assert MalformedMessageError().code == "MALFORMED_MESSAGE"

    def test_pattern_not_found_carries_pattern(self) -> None:
        """PatternNotFoundError records the unmatched topic and cmd."""
        exception = PatternNotFoundError("mongodb-store", "explode")

        assert exception.code == "PATTERN_NOT_FOUND"
        assert exception.details == {"topic": "mongodb-store", "cmd": "explode"}


# ---------------------------------------------------------------------------
# Store errors
# ---------------------------------------------------------------------------


class TestStoreError:
    """Tests for StoreError and its driver wrapping."""

    def test_default_code(self) -> None:
        """StoreError uses 'STORE_ERROR' as its error code."""
        assert StoreError("boom").code == "STORE_ERROR"

    def test_from_driver_keeps_message_and_class(self) -> None:
        """Driver errors are wrapped with their message and class name."""
        exception = StoreError.from_driver(
            CollectionInvalid("collection users already exists")
        )

        assert exception.message == "collection users already exists"
        assert exception.details["driver_error"] == "CollectionInvalid"

    def test_from_driver_keeps_server_code(self) -> None:
        """OperationFailure server codes and details are forwarded."""
        failure = OperationFailure(
            "ns not found", code=26, details={"codeName": "NamespaceNotFound"}
        )

        exception = StoreError.from_driver(failure)

        assert exception.details["server_code"] == 26
        assert exception.details["server_details"]["codeName"] == "NamespaceNotFound"

    def test_subscription_setup_error(self) -> None:
        """SubscriptionSetupError has its own code and records the collection."""
        exception = SubscriptionSetupError("no replica set", collection="users")

        assert exception.code == "SUBSCRIPTION_SETUP_ERROR"
        assert exception.details["collection"] == "users"
        assert isinstance(exception, StoreError)


class TestOtherErrors:
    """Tests for transport and configuration errors."""

    def test_reply_undeliverable(self) -> None:
        """ReplyUndeliverableError records the reply queue."""
        exception = ReplyUndeliverableError("amq.gen-abc")

        assert exception.code == "REPLY_UNDELIVERABLE"
        assert exception.details["reply_to"] == "amq.gen-abc"

    def test_configuration_error(self) -> None:
        """ConfigurationError uses 'CONFIGURATION_ERROR' as its error code."""
        assert ConfigurationError("bad").code == "CONFIGURATION_ERROR"
