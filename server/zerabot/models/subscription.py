"""
Subscription Data Models

A subscription ties one chat to one symbol for one kind of notification.
"""
from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Any, Mapping, Optional

# Sentinel symbol meaning "every symbol"
ALL_SYMBOLS = "all"


class SubscriptionKind(str, Enum):
    """Category of notification a chat subscribes to."""

    PROPOSAL = "proposal"

    @classmethod
    def from_string(cls, value: str) -> Optional["SubscriptionKind"]:
        """Convert string to SubscriptionKind, returning None if not found."""
        for member in cls:
            if member.value == value.lower():
                return member
        return None


@dataclass(frozen=True)
class Subscription:
    """One (chat, symbol, kind) row of the subscription registry."""

    id: str
    chat_id: int
    symbol: str
    kind: SubscriptionKind
    created_at: datetime
    updated_at: datetime

    def __post_init__(self) -> None:
        if not self.id:
            raise ValueError("id must be non-empty string")
        if not self.symbol:
            raise ValueError("symbol must be non-empty string")
        if self.created_at.tzinfo is None or self.updated_at.tzinfo is None:
            raise ValueError("timestamps must be timezone-aware")

    @property
    def is_all(self) -> bool:
        return self.symbol == ALL_SYMBOLS

    @classmethod
    def from_hash(cls, row: Mapping[str, Any]) -> "Subscription":
        """Build a Subscription from a decoded Redis hash."""
        kind = SubscriptionKind.from_string(str(row["kind"]))
        if kind is None:
            raise ValueError(f"unknown subscription kind: {row['kind']!r}")
        return cls(
            id=str(row["id"]),
            chat_id=int(row["chat_id"]),
            symbol=str(row["symbol"]),
            kind=kind,
            created_at=datetime.fromisoformat(str(row["created_at"])),
            updated_at=datetime.fromisoformat(str(row["updated_at"])),
        )
