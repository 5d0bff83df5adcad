"""Store contract: pattern registry, command handlers and change feeds."""

from mongostore.store.changes import ChangeFeed, SubscriptionManager
from mongostore.store.handlers import StoreCommandHandlers
from mongostore.store.registry import Pattern, PatternRegistry

__all__ = [
    "ChangeFeed",
    "Pattern",
    "PatternRegistry",
    "StoreCommandHandlers",
    "SubscriptionManager",
]
