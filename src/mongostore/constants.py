"""Shared constants for the mongostore adapter."""

DEFAULT_TOPIC = "mongodb-store"

PRIMARY_KEY = "id"
MONGO_PRIMARY_KEY = "_id"

# created by createDatabase so the database exists before its first table
DATABASE_MARKER_COLLECTION = "__mongostore__"

DEFAULT_DATABASE_NAME = "test"
DEFAULT_CHANGES_LIMIT = 1
DEFAULT_PREFETCH_COUNT = 10

ENV_DEVELOPMENT = "development"
ENV_PRODUCTION = "production"
LOCALHOST = "localhost"

REPLY_CONTENT_TYPE = "application/json"
