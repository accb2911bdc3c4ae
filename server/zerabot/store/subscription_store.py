"""
Subscription Store

Redis-backed registry of (chat, symbol, kind) subscriptions.

Key layout (prefix defaults to "zerabot"):
  {prefix}:sub:{chat_id}:{kind}:{symbol}   hash   — one subscription row
  {prefix}:chat:{chat_id}                  zset   — "{kind}:{symbol}" scored by created_at
  {prefix}:subscribers:{kind}:{symbol}     set    — chat ids, backs subscriber lookup

Every mutation runs as a single MULTI/EXEC transaction. Operations that
read the chat index before acting on it (unsubscribe_all, subscribe_all,
list_subscriptions) WATCH it and retry when a concurrent writer touches it.
list_subscribers is a single SUNION.

Usage:
    store = SubscriptionStore(redis_url="redis://localhost:6379/0")
    await store.connect()

    await store.subscribe(chat_id, SubscriptionKind.PROPOSAL, "$ZRA+0000")
    chat_ids = await store.list_subscribers("$ZRA+0000", SubscriptionKind.PROPOSAL)

    await store.close()
"""
from __future__ import annotations

import logging
import uuid
from datetime import datetime, timezone
from typing import Any, Callable

from redis.asyncio import Redis
from redis.asyncio.client import Pipeline
from redis.exceptions import RedisError, WatchError

from zerabot.core.types import NotFoundError, StoreUnavailableError
from zerabot.models.subscription import ALL_SYMBOLS, Subscription, SubscriptionKind

logger = logging.getLogger(__name__)

Clock = Callable[[], datetime]


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class SubscriptionStore:
    """
    Durable set of subscriptions with dedupe and bulk clear.

    Args:
        redis_url:  Redis connection URL, used by connect() when no client is injected.
        key_prefix: Namespace for every key the store writes.
        redis:      Pre-built client (tests pass a fakeredis instance). Must
                    decode responses to str.
        clock:      Source of timezone-aware timestamps.
    """

    def __init__(
        self,
        redis_url: str = "",
        *,
        key_prefix: str = "zerabot",
        redis: Redis | None = None,
        clock: Clock | None = None,
    ) -> None:
        self._redis_url = redis_url
        self._prefix = key_prefix
        self._redis = redis
        self._owns_client = redis is None
        self._clock = clock or _utcnow

    # ── Lifecycle ─────────────────────────────────────────────────────────────

    async def connect(self) -> None:
        """Open the Redis connection (unless one was injected) and ping it."""
        if self._redis is None:
            self._redis = Redis.from_url(self._redis_url, decode_responses=True)
            self._owns_client = True
        try:
            await self._redis.ping()
        except RedisError as exc:
            raise StoreUnavailableError(
                f"Cannot connect to Redis: {exc}", operation="connect"
            ) from exc
        logger.info("SubscriptionStore connected to Redis (prefix=%s)", self._prefix)

    async def close(self) -> None:
        """Close the Redis connection if the store opened it."""
        if self._redis is not None and self._owns_client:
            await self._redis.aclose()
            self._redis = None
            logger.info("SubscriptionStore disconnected from Redis")

    async def __aenter__(self) -> SubscriptionStore:
        await self.connect()
        return self

    async def __aexit__(self, *_: object) -> None:
        await self.close()

    async def ping(self) -> bool:
        """Health check used by the webhook server."""
        try:
            return bool(await self._client("ping").ping())
        except (RedisError, StoreUnavailableError):
            return False

    # ── Keys ──────────────────────────────────────────────────────────────────

    def _row_key(self, chat_id: int, kind: SubscriptionKind, symbol: str) -> str:
        return f"{self._prefix}:sub:{chat_id}:{kind.value}:{symbol}"

    def _chat_key(self, chat_id: int) -> str:
        return f"{self._prefix}:chat:{chat_id}"

    def _subscribers_key(self, kind: SubscriptionKind, symbol: str) -> str:
        return f"{self._prefix}:subscribers:{kind.value}:{symbol}"

    @staticmethod
    def _member(kind: SubscriptionKind, symbol: str) -> str:
        return f"{kind.value}:{symbol}"

    def _client(self, operation: str) -> Redis:
        if self._redis is None:
            raise StoreUnavailableError(
                "SubscriptionStore is not connected — call connect() first",
                operation=operation,
            )
        return self._redis

    def _queue_upsert(
        self,
        pipe: Pipeline,
        chat_id: int,
        kind: SubscriptionKind,
        symbol: str,
        now: datetime,
    ) -> None:
        """Buffer the commands that insert or refresh one row; the last result is the row."""
        key = self._row_key(chat_id, kind, symbol)
        stamp = now.isoformat()
        pipe.hsetnx(key, "id", uuid.uuid4().hex)
        pipe.hsetnx(key, "created_at", stamp)
        pipe.hset(
            key,
            mapping={
                "chat_id": str(chat_id),
                "symbol": symbol,
                "kind": kind.value,
                "updated_at": stamp,
            },
        )
        pipe.zadd(self._chat_key(chat_id), {self._member(kind, symbol): now.timestamp()}, nx=True)
        pipe.sadd(self._subscribers_key(kind, symbol), str(chat_id))
        pipe.hgetall(key)

    # ── Mutations ─────────────────────────────────────────────────────────────

    async def subscribe(
        self, chat_id: int, kind: SubscriptionKind, symbol: str
    ) -> Subscription:
        """
        Insert a subscription, or refresh updated_at if it already exists.

        Returns:
            The stored row (original id and created_at on re-subscribe).

        Raises:
            StoreUnavailableError: If Redis fails.
        """
        redis = self._client("subscribe")
        try:
            async with redis.pipeline(transaction=True) as pipe:
                self._queue_upsert(pipe, chat_id, kind, symbol, self._clock())
                results = await pipe.execute()
        except RedisError as exc:
            raise StoreUnavailableError(
                f"Failed to subscribe: {exc}",
                operation="subscribe",
                context={"chat_id": chat_id, "symbol": symbol},
            ) from exc

        subscription = Subscription.from_hash(results[-1])
        logger.debug(
            "Subscribed chat %d to %s (%s)", chat_id, symbol, kind.value,
            extra={"subscription_id": subscription.id},
        )
        return subscription

    async def unsubscribe(self, chat_id: int, kind: SubscriptionKind, symbol: str) -> None:
        """
        Delete exactly one subscription.

        Raises:
            NotFoundError: If the chat was not subscribed to the symbol.
            StoreUnavailableError: If Redis fails.
        """
        redis = self._client("unsubscribe")
        try:
            async with redis.pipeline(transaction=True) as pipe:
                pipe.delete(self._row_key(chat_id, kind, symbol))
                pipe.zrem(self._chat_key(chat_id), self._member(kind, symbol))
                pipe.srem(self._subscribers_key(kind, symbol), str(chat_id))
                deleted, _, _ = await pipe.execute()
        except RedisError as exc:
            raise StoreUnavailableError(
                f"Failed to unsubscribe: {exc}",
                operation="unsubscribe",
                context={"chat_id": chat_id, "symbol": symbol},
            ) from exc

        if not deleted:
            raise NotFoundError("subscription not found", chat_id=chat_id, symbol=symbol)
        logger.debug("Unsubscribed chat %d from %s (%s)", chat_id, symbol, kind.value)

    async def unsubscribe_all(self, chat_id: int, kind: SubscriptionKind) -> int:
        """
        Delete every subscription of the chat for this kind.

        Returns:
            Number of rows removed (zero is not an error).
        """
        removed, _ = await self._clear_kind(chat_id, kind, replace_with_all=False)
        logger.debug("Cleared %d %s subscription(s) for chat %d", removed, kind.value, chat_id)
        return removed

    async def subscribe_all(self, chat_id: int, kind: SubscriptionKind) -> Subscription:
        """
        Replace every subscription of the chat for this kind with the "all" row.

        The clear and the insert commit in one transaction, so readers see
        either the old rows or the single "all" row, never a mix or nothing.
        """
        _, subscription = await self._clear_kind(chat_id, kind, replace_with_all=True)
        if subscription is None:
            raise StoreUnavailableError(
                "subscribe_all committed without returning the 'all' row",
                operation="subscribe_all",
                context={"chat_id": chat_id},
            )
        logger.debug("Chat %d subscribed to all %s notifications", chat_id, kind.value)
        return subscription

    async def _clear_kind(
        self,
        chat_id: int,
        kind: SubscriptionKind,
        *,
        replace_with_all: bool,
    ) -> tuple[int, Subscription | None]:
        operation = "subscribe_all" if replace_with_all else "unsubscribe_all"
        redis = self._client(operation)
        chat_key = self._chat_key(chat_id)
        prefix = f"{kind.value}:"

        try:
            async with redis.pipeline(transaction=True) as pipe:
                while True:
                    try:
                        await pipe.watch(chat_key)
                        members: list[str] = await pipe.zrange(chat_key, 0, -1)
                        symbols = [m[len(prefix):] for m in members if m.startswith(prefix)]

                        pipe.multi()
                        for symbol in symbols:
                            pipe.delete(self._row_key(chat_id, kind, symbol))
                            pipe.zrem(chat_key, self._member(kind, symbol))
                            pipe.srem(self._subscribers_key(kind, symbol), str(chat_id))
                        if replace_with_all:
                            self._queue_upsert(pipe, chat_id, kind, ALL_SYMBOLS, self._clock())
                        results = await pipe.execute()
                        break
                    except WatchError:
                        logger.debug("Chat %d index changed during %s, retrying", chat_id, operation)
                        continue
        except RedisError as exc:
            raise StoreUnavailableError(
                f"Failed to {operation.replace('_', ' ')}: {exc}",
                operation=operation,
                context={"chat_id": chat_id},
            ) from exc

        removed = sum(int(results[i * 3]) for i in range(len(symbols)))
        subscription = Subscription.from_hash(results[-1]) if replace_with_all else None
        return removed, subscription

    # ── Queries ───────────────────────────────────────────────────────────────

    async def list_subscriptions(self, chat_id: int) -> list[Subscription]:
        """
        All subscriptions of a chat, newest first.

        The index and the rows are read under WATCH on the chat index and
        retried if a writer changes it in between.
        """
        redis = self._client("list_subscriptions")
        chat_key = self._chat_key(chat_id)
        try:
            async with redis.pipeline(transaction=True) as pipe:
                while True:
                    try:
                        await pipe.watch(chat_key)
                        members: list[str] = await pipe.zrevrange(chat_key, 0, -1)
                        if not members:
                            await pipe.unwatch()
                            return []

                        pipe.multi()
                        for member in members:
                            kind_value, _, symbol = member.partition(":")
                            pipe.hgetall(f"{self._prefix}:sub:{chat_id}:{kind_value}:{symbol}")
                        rows: list[dict[str, Any]] = await pipe.execute()
                        break
                    except WatchError:
                        logger.debug("Chat %d index changed during list_subscriptions, retrying", chat_id)
                        continue
        except RedisError as exc:
            raise StoreUnavailableError(
                f"Failed to query user subscriptions: {exc}",
                operation="list_subscriptions",
                context={"chat_id": chat_id},
            ) from exc

        subscriptions: list[Subscription] = []
        for member, row in zip(members, rows):
            if not row:
                # Dangling index entry without a row
                continue
            try:
                subscriptions.append(Subscription.from_hash(row))
            except (KeyError, ValueError) as exc:
                logger.warning(f"Skipping malformed subscription {member!r} for chat {chat_id}: {exc}")
        return subscriptions

    async def list_subscribers(self, symbol: str, kind: SubscriptionKind) -> set[int]:
        """
        Chat ids that should be notified about symbol.

        Matches (symbol = s OR symbol = 'all') AND kind = k: subscribers of the
        exact symbol plus subscribers of the "all" sentinel, both for this kind.
        """
        redis = self._client("list_subscribers")
        keys = [self._subscribers_key(kind, symbol)]
        if symbol != ALL_SYMBOLS:
            keys.append(self._subscribers_key(kind, ALL_SYMBOLS))
        try:
            members = await redis.sunion(keys)
        except RedisError as exc:
            raise StoreUnavailableError(
                f"Failed to get subscribers: {exc}",
                operation="list_subscribers",
                context={"symbol": symbol},
            ) from exc
        return {int(m) for m in members}
