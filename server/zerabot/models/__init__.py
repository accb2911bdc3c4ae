"""
ZeraBot Data Models

Frozen dataclasses with validation.
"""
from zerabot.models.block import (
    Block,
    Proposal,
    TxnStatus,
    TxnStatusEntry,
)
from zerabot.models.subscription import (
    ALL_SYMBOLS,
    Subscription,
    SubscriptionKind,
)

__all__ = [
    "ALL_SYMBOLS",
    "Block",
    "Proposal",
    "Subscription",
    "SubscriptionKind",
    "TxnStatus",
    "TxnStatusEntry",
]
