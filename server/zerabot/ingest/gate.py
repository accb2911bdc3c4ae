"""
Ingestion Gate

Decides whether a block pushed by a validator is processed:

  1. rate limit  — shared token bucket, excess blocks are dropped
  2. sender auth — the sender's IP must be one of the trusted domain's
                   current DNS addresses (resolved fresh on every block)
  3. hand-off    — non-blocking put onto the bounded proposal queue

Nothing is raised back to the sender; every rejection is logged.
"""
from __future__ import annotations

import asyncio
import ipaddress
import logging
import socket
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Optional

from zerabot.core.types import AuthRejectedError, RateLimitedError
from zerabot.ingest.rate_limiter import TokenBucket
from zerabot.models.block import Block

logger = logging.getLogger(__name__)

IPAddress = ipaddress.IPv4Address | ipaddress.IPv6Address
Resolver = Callable[[str], Awaitable[set[str]]]


@dataclass(frozen=True)
class SenderContext:
    """Network origin of an ingestion call."""

    remote_address: Any

    def __str__(self) -> str:
        return str(self.remote_address)


def _normalize_ip(host: str) -> IPAddress:
    host = host.strip().strip("[]").split("%", 1)[0]
    ip = ipaddress.ip_address(host)
    if isinstance(ip, ipaddress.IPv6Address) and ip.ipv4_mapped is not None:
        return ip.ipv4_mapped
    return ip


def parse_sender_ip(remote_address: Any) -> IPAddress:
    """
    Extract the IP from a socket peer address.

    Accepts the tuples asyncio/websockets report ((host, port) or the IPv6
    4-tuple) and "host:port" / "[v6]:port" strings.

    Raises:
        ValueError: If no IP can be parsed.
    """
    if isinstance(remote_address, tuple) and remote_address:
        return _normalize_ip(str(remote_address[0]))

    if isinstance(remote_address, str) and remote_address:
        if remote_address.startswith("["):
            host, sep, _ = remote_address[1:].partition("]")
            if not sep:
                raise ValueError(f"unparseable address: {remote_address!r}")
            return _normalize_ip(host)
        host, sep, port = remote_address.rpartition(":")
        if not sep or not port.isdigit():
            raise ValueError(f"missing port in address: {remote_address!r}")
        return _normalize_ip(host)

    raise ValueError(f"unparseable address: {remote_address!r}")


async def resolve_host(domain: str) -> set[str]:
    """Resolve domain to all of its current IP addresses."""
    loop = asyncio.get_running_loop()
    infos = await loop.getaddrinfo(domain, None, type=socket.SOCK_STREAM)
    return {str(info[4][0]) for info in infos}


class SenderAuthenticator:
    """
    Accepts a sender only if its IP matches the trusted domain's DNS records.

    Args:
        trusted_domain: Hostname of the validator allowed to push blocks.
        allow_all:      Accept every sender (development mode only).
        resolver:       DNS lookup coroutine; defaults to getaddrinfo.
    """

    def __init__(
        self,
        trusted_domain: str,
        *,
        allow_all: bool = False,
        resolver: Optional[Resolver] = None,
    ) -> None:
        self._trusted_domain = trusted_domain.strip()
        self._allow_all = allow_all
        self._resolver = resolver or resolve_host

    async def verify(self, sender: SenderContext) -> None:
        """
        Raises:
            AuthRejectedError: If the sender cannot be matched to the domain.
        """
        if self._allow_all:
            return

        if not self._trusted_domain:
            raise AuthRejectedError("No trusted domain configured", sender=str(sender))

        try:
            sender_ip = parse_sender_ip(sender.remote_address)
        except ValueError as e:
            raise AuthRejectedError(f"Failed to parse sender IP: {e}", sender=str(sender)) from e

        try:
            addresses = await self._resolver(self._trusted_domain)
        except (OSError, UnicodeError) as e:
            raise AuthRejectedError(
                f"Failed to resolve domain {self._trusted_domain}: {e}",
                sender=str(sender),
            ) from e

        for address in addresses:
            try:
                if _normalize_ip(address) == sender_ip:
                    return
            except ValueError:
                continue

        raise AuthRejectedError(
            f"Sender IP does not match the domain {self._trusted_domain}",
            sender=str(sender_ip),
        )

    async def is_trusted(self, sender: SenderContext) -> bool:
        try:
            await self.verify(sender)
        except AuthRejectedError as e:
            logger.warning(f"Rejected block sender: {e}")
            return False
        return True


@dataclass
class GateStats:
    admitted: int = 0
    rate_limited: int = 0
    auth_rejected: int = 0
    queue_full: int = 0


class IngestionGate:
    """
    Rate-limits and authenticates inbound blocks before queueing them.

    The caller (the ingestion server) gets a bool back immediately; proposal
    processing happens later on the worker consuming the queue.
    """

    def __init__(
        self,
        limiter: TokenBucket,
        authenticator: SenderAuthenticator,
        queue: asyncio.Queue[Block],
    ) -> None:
        self._limiter = limiter
        self._authenticator = authenticator
        self._queue = queue
        self._stats = GateStats()

    @property
    def stats(self) -> GateStats:
        return self._stats

    def _check_rate(self) -> None:
        if not self._limiter.allow():
            raise RateLimitedError(
                f"Broadcast rate limit exceeded (1 per {self._limiter.interval:g} seconds)",
                context={"burst": self._limiter.burst},
            )

    async def admit(self, sender: SenderContext, block: Block) -> bool:
        """Return True if the block was queued for proposal processing."""
        try:
            self._check_rate()
            await self._authenticator.verify(sender)
        except RateLimitedError as e:
            self._stats.rate_limited += 1
            logger.info(f"{e}, rejecting broadcast from {sender}")
            return False
        except AuthRejectedError as e:
            self._stats.auth_rejected += 1
            logger.warning(f"Rejected block sender: {e}")
            return False

        try:
            self._queue.put_nowait(block)
        except asyncio.QueueFull:
            self._stats.queue_full += 1
            logger.warning(
                "Proposal queue full, dropping block",
                extra={"block_height": block.height, "queue_size": self._queue.qsize()},
            )
            return False

        self._stats.admitted += 1
        logger.debug(
            f"Admitted block with {len(block.proposals)} proposal(s)",
            extra={"block_height": block.height, "sender": str(sender)},
        )
        return True
