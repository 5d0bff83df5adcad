"""mongostore - MongoDB store adapter for RabbitMQ RPC.

Exposes a uniform store contract (create, read, update, replace, delete,
count, exists and change subscriptions) over MongoDB collections to any
service that can publish request messages on RabbitMQ.

Architecture:
- store: pattern registry, request translation and change feeds
- schemas: request validation (one model per command) and reply envelopes
- infrastructure: RabbitMQ RPC server and MongoDB client

Version: 1.0.0
"""

__version__ = "1.0.0"
