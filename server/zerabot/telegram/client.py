"""
Telegram Bot API Client

Thin aiohttp wrapper over the Bot API methods the bot needs: sending
messages, membership lookups, identity, and webhook registration.
"""
from __future__ import annotations

import asyncio
import logging
from typing import Any, Optional

import aiohttp

from zerabot.core.types import GatewayError, GatewayRejectedError
from zerabot.telegram.interface import MARKDOWN

logger = logging.getLogger(__name__)

ADMIN_STATUSES = frozenset({"administrator", "creator"})

# Telegram answers 400 when message entities cannot be parsed
BAD_REQUEST = 400


class TelegramGateway:
    """
    Telegram Bot API client backed by a shared aiohttp session.

    Usage:
        async with TelegramGateway(token) as gateway:
            await gateway.send_message(chat_id, "*hello*")
    """

    def __init__(
        self,
        token: str,
        *,
        api_base_url: str = "https://api.telegram.org",
        timeout: float = 10.0,
        session: aiohttp.ClientSession | None = None,
    ) -> None:
        if not token:
            raise ValueError("token must be non-empty string")
        self._token = token
        self._api_base_url = api_base_url.rstrip("/")
        self._timeout = aiohttp.ClientTimeout(total=timeout)
        self._session = session
        self._owns_session = session is None
        self._username: Optional[str] = None

    # ── Lifecycle ─────────────────────────────────────────────────────────────

    async def connect(self) -> None:
        """Open the HTTP session."""
        if self._session is None:
            self._session = aiohttp.ClientSession(timeout=self._timeout)
            self._owns_session = True

    async def close(self) -> None:
        """Close the HTTP session if this client opened it."""
        if self._session is not None and self._owns_session:
            await self._session.close()
            self._session = None

    async def __aenter__(self) -> TelegramGateway:
        await self.connect()
        return self

    async def __aexit__(self, *_: object) -> None:
        await self.close()

    # ── Transport ─────────────────────────────────────────────────────────────

    async def _call(self, method: str, payload: Optional[dict[str, Any]] = None) -> Any:
        """
        Invoke a Bot API method and return its "result" field.

        Raises:
            GatewayRejectedError: Telegram answered ok=false.
            GatewayError: Transport failure or undecodable response.
        """
        if self._session is None:
            raise GatewayError("TelegramGateway is not connected — call connect() first", method=method)

        url = f"{self._api_base_url}/bot{self._token}/{method}"
        try:
            async with self._session.post(url, json=payload or {}) as resp:
                data = await resp.json(content_type=None)
        except (aiohttp.ClientError, asyncio.TimeoutError) as exc:
            raise GatewayError(f"Telegram request failed: {exc!r}", method=method) from exc
        except ValueError as exc:
            raise GatewayError(f"Telegram returned invalid JSON: {exc}", method=method) from exc

        if not isinstance(data, dict):
            raise GatewayError("Telegram returned a non-object response", method=method)

        if not data.get("ok"):
            error_code = int(data.get("error_code") or 0)
            description = str(data.get("description") or "")
            raise GatewayRejectedError(
                f"Telegram rejected {method}: {description}",
                method=method,
                error_code=error_code,
                description=description,
            )
        return data.get("result")

    # ── Messaging ─────────────────────────────────────────────────────────────

    async def send_message(
        self,
        chat_id: int,
        text: str,
        parse_mode: Optional[str] = MARKDOWN,
    ) -> None:
        """
        Send text to a chat, degrading to plain text if the markup is rejected.
        """
        payload: dict[str, Any] = {"chat_id": chat_id, "text": text}
        if parse_mode:
            payload["parse_mode"] = parse_mode

        try:
            await self._call("sendMessage", payload)
        except GatewayRejectedError as exc:
            if not parse_mode or exc.error_code != BAD_REQUEST:
                raise
            logger.warning(
                "Markdown parsing failed for chat %d, retrying without parsing: %s",
                chat_id,
                exc.description,
            )
            payload.pop("parse_mode", None)
            await self._call("sendMessage", payload)

    # ── Membership / identity ─────────────────────────────────────────────────

    async def get_chat_member(self, chat_id: int, user_id: int) -> dict[str, Any]:
        return await self._call("getChatMember", {"chat_id": chat_id, "user_id": user_id})

    async def is_chat_admin(self, chat_id: int, user_id: int) -> bool:
        member = await self.get_chat_member(chat_id, user_id)
        return str(member.get("status", "")) in ADMIN_STATUSES

    async def get_me(self) -> dict[str, Any]:
        me = await self._call("getMe")
        self._username = me.get("username") or None
        return me

    @property
    def username(self) -> Optional[str]:
        """Bot username, known after get_me()."""
        return self._username

    # ── Webhook ───────────────────────────────────────────────────────────────

    async def delete_webhook(self) -> None:
        await self._call("deleteWebhook")

    async def set_webhook(self, url: str) -> None:
        await self._call("setWebhook", {"url": url})

    async def get_webhook_info(self) -> dict[str, Any]:
        return await self._call("getWebhookInfo")

    async def setup_webhook(self, url: str) -> dict[str, Any]:
        """Replace any existing webhook with url and log what Telegram reports."""
        await self.delete_webhook()
        await self.set_webhook(url)
        info = await self.get_webhook_info()
        if info.get("last_error_date"):
            logger.warning(f"Telegram callback failed: {info.get('last_error_message', '')}")
        logger.info("Webhook set to: %s", info.get("url", ""))
        return info
