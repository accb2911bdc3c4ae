"""
Notification Fan-out

Resolves the chats subscribed to a symbol and delivers one message to each,
concurrently and independently. A failing chat is logged and counted; it
never stops delivery to the rest.

Usage:
    fanout = NotificationFanout(store, gateway)
    result = await fanout.notify("$ZRA+0000", SubscriptionKind.PROPOSAL, text)
"""
from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import AbstractSet, Optional

from zerabot.core.types import GatewayError
from zerabot.models.subscription import SubscriptionKind
from zerabot.store import SubscriptionStore
from zerabot.telegram.interface import MessagingGateway

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class FanoutResult:
    """Outcome of one notify() call."""

    recipients: int
    delivered: int
    failed: int


@dataclass
class FanoutStats:
    notifications: int = 0
    messages_delivered: int = 0
    messages_failed: int = 0


class NotificationFanout:
    """
    Delivers rendered notifications to every matching subscriber.

    Args:
        store:                Subscription registry used to resolve recipients.
        gateway:              Messaging gateway used for delivery.
        allowed_chat_ids:     When not None, only these chats are notified; an
                              empty set notifies nobody
                              (development mode keeps traffic on test chats).
        max_concurrent_sends: Upper bound on in-flight sends per call.
    """

    def __init__(
        self,
        store: SubscriptionStore,
        gateway: MessagingGateway,
        *,
        allowed_chat_ids: Optional[AbstractSet[int]] = None,
        max_concurrent_sends: int = 10,
    ) -> None:
        if max_concurrent_sends < 1:
            raise ValueError("max_concurrent_sends must be at least 1")
        self._store = store
        self._gateway = gateway
        self._allowed = frozenset(allowed_chat_ids) if allowed_chat_ids is not None else None
        self._max_concurrent_sends = max_concurrent_sends
        self._stats = FanoutStats()

    @property
    def stats(self) -> FanoutStats:
        return self._stats

    async def notify(self, symbol: str, kind: SubscriptionKind, message: str) -> FanoutResult:
        """
        Send message to every chat subscribed to symbol (or to "all").

        Raises:
            StoreUnavailableError: If the subscriber set cannot be resolved.
                Per-chat delivery failures are logged, never raised.
        """
        chat_ids = await self._store.list_subscribers(symbol, kind)

        if self._allowed is not None:
            chat_ids = {c for c in chat_ids if c in self._allowed}

        self._stats.notifications += 1
        if not chat_ids:
            logger.debug(f"No subscribers for {symbol} ({kind.value})")
            return FanoutResult(recipients=0, delivered=0, failed=0)

        semaphore = asyncio.Semaphore(self._max_concurrent_sends)

        async def _bounded(chat_id: int) -> bool:
            async with semaphore:
                return await self._send_to_chat(chat_id, message)

        results = await asyncio.gather(
            *[_bounded(chat_id) for chat_id in sorted(chat_ids)],
            return_exceptions=True,
        )

        delivered = sum(1 for r in results if r is True)
        failed = len(results) - delivered
        self._stats.messages_delivered += delivered
        self._stats.messages_failed += failed

        logger.info(
            f"Notified {delivered}/{len(results)} chat(s) about {symbol}",
            extra={"symbol": symbol, "kind": kind.value, "failed": failed},
        )
        return FanoutResult(recipients=len(results), delivered=delivered, failed=failed)

    async def _send_to_chat(self, chat_id: int, message: str) -> bool:
        """Send to a single chat, return True on success."""
        try:
            await self._gateway.send_message(chat_id, message)
            return True
        except GatewayError as e:
            logger.warning(f"Failed to send notification to chat {chat_id}: {e}")
            return False
        except Exception as e:
            logger.error(f"Unexpected error notifying chat {chat_id}: {e!r}")
            return False
