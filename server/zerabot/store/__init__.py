"""
zerabot.store — Redis-backed subscription registry.

Public API:
    SubscriptionStore — subscribe / unsubscribe / list operations
"""
from .subscription_store import SubscriptionStore

__all__ = ["SubscriptionStore"]
