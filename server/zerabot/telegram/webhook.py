"""
Telegram Webhook Server

aiohttp.web application receiving Telegram updates.

Routes:
  POST /<webhook secret>   Telegram update; 400 if the body is not JSON
  GET  /healthz            {"ok": true|false, "redis": true|false}

Only message updates whose text starts with "/" are routed; everything else
is accepted and ignored so Telegram does not redeliver it.
"""
from __future__ import annotations

import logging
from typing import Any, Awaitable, Callable, Optional

from aiohttp import web

from zerabot.telegram.commands import CommandRouter, InboundCommand

logger = logging.getLogger(__name__)

HealthCheck = Callable[[], Awaitable[bool]]


def command_from_update(update: dict[str, Any]) -> Optional[InboundCommand]:
    """Extract a command from a Telegram update, or None if it carries none."""
    message = update.get("message")
    if not isinstance(message, dict):
        return None

    text = message.get("text")
    chat = message.get("chat") or {}
    sender = message.get("from") or {}
    if not isinstance(text, str) or "id" not in chat or "id" not in sender:
        return None

    return InboundCommand.parse_message_text(text, int(chat["id"]), int(sender["id"]))


class WebhookServer:
    """
    Serves the Telegram webhook and a health endpoint.

    Args:
        router:       Command router handling parsed commands.
        secret_path:  Unguessable path segment Telegram posts to.
        host, port:   Bind address.
        health_check: Coroutine reporting backing store health.
    """

    def __init__(
        self,
        router: CommandRouter,
        secret_path: str,
        host: str = "0.0.0.0",
        port: int = 8080,
        health_check: Optional[HealthCheck] = None,
    ) -> None:
        if not secret_path:
            raise ValueError("secret_path must be non-empty string")
        self._router = router
        self._path = "/" + secret_path.strip("/")
        self._host = host
        self._port = port
        self._health_check = health_check
        self._runner: Optional[web.AppRunner] = None
        self._updates_received = 0
        self._commands_handled = 0

    @property
    def updates_received(self) -> int:
        return self._updates_received

    @property
    def commands_handled(self) -> int:
        return self._commands_handled

    def create_app(self) -> web.Application:
        app = web.Application()
        app.router.add_post(self._path, self.update_handler)
        app.router.add_get("/healthz", self.health_handler)
        return app

    # ── Handlers ──────────────────────────────────────────────────────────────

    async def update_handler(self, request: web.Request) -> web.Response:
        try:
            update = await request.json()
        except ValueError:
            logger.warning("Failed to decode Telegram update")
            return web.json_response({"error": "invalid json body"}, status=400)

        self._updates_received += 1
        if not isinstance(update, dict):
            return web.Response(status=200)

        command = command_from_update(update)
        if command is None:
            return web.Response(status=200)

        try:
            await self._router.handle(command)
            self._commands_handled += 1
        except Exception as e:
            logger.error(f"Error handling update: {e!r}", extra={"chat_id": command.chat_id})

        return web.Response(status=200)

    async def health_handler(self, request: web.Request) -> web.Response:
        redis_ok = True
        if self._health_check is not None:
            redis_ok = await self._health_check()
        return web.json_response({"ok": redis_ok, "redis": redis_ok}, status=200 if redis_ok else 503)

    # ── Lifecycle ─────────────────────────────────────────────────────────────

    async def start(self) -> None:
        self._runner = web.AppRunner(self.create_app())
        await self._runner.setup()
        site = web.TCPSite(self._runner, host=self._host, port=self._port)
        await site.start()
        logger.info(f"Webhook server listening on http://{self._host}:{self._port}")

    async def stop(self) -> None:
        if self._runner is not None:
            await self._runner.cleanup()
            self._runner = None
            logger.info("Webhook server stopped")
