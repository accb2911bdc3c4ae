"""
Tests for zerabot.telegram.client

A fake Bot API runs on aiohttp's TestServer; every request it receives is
recorded so tests can assert on payloads.
"""
import pytest
from aiohttp import test_utils, web

from zerabot.core.types import GatewayError, GatewayRejectedError
from zerabot.telegram.client import TelegramGateway
from zerabot.telegram.interface import MARKDOWN, MessagingGateway

TOKEN = "123:abc"


# ── Fake Bot API ──────────────────────────────────────────────────────────────

class FakeBotApi:
    def __init__(self) -> None:
        self.calls: list[tuple[str, dict]] = []
        self.reject_markdown = False
        self.member_status = "member"
        self.webhook_info = {"url": "https://bot.example/secret", "pending_update_count": 0}

    def app(self) -> web.Application:
        app = web.Application()
        app.router.add_post("/bot{token}/{method}", self.handle)
        return app

    async def handle(self, request: web.Request) -> web.Response:
        if request.match_info["token"] != TOKEN:
            return web.json_response({"ok": False, "error_code": 401, "description": "Unauthorized"}, status=401)

        method = request.match_info["method"]
        payload = await request.json()
        self.calls.append((method, payload))

        if method == "sendMessage":
            if self.reject_markdown and "parse_mode" in payload:
                return web.json_response(
                    {"ok": False, "error_code": 400, "description": "Bad Request: can't parse entities"},
                    status=400,
                )
            if payload["chat_id"] == 403:
                return web.json_response(
                    {"ok": False, "error_code": 403, "description": "Forbidden: bot was blocked by the user"},
                    status=403,
                )
            return web.json_response({"ok": True, "result": {"message_id": 1}})
        if method == "getChatMember":
            return web.json_response({"ok": True, "result": {"status": self.member_status}})
        if method == "getMe":
            return web.json_response({"ok": True, "result": {"id": 1, "is_bot": True, "username": "zerabot"}})
        if method in ("setWebhook", "deleteWebhook"):
            return web.json_response({"ok": True, "result": True})
        if method == "getWebhookInfo":
            return web.json_response({"ok": True, "result": self.webhook_info})
        if method == "garbage":
            return web.Response(text="<html>oops</html>", content_type="text/html")
        return web.json_response({"ok": False, "error_code": 404, "description": "Not Found"}, status=404)


# ── Fixtures ──────────────────────────────────────────────────────────────────

@pytest.fixture
def api():
    return FakeBotApi()


@pytest.fixture
async def gateway(api):
    server = test_utils.TestServer(api.app())
    await server.start_server()
    gw = TelegramGateway(TOKEN, api_base_url=str(server.make_url("")))
    await gw.connect()
    yield gw
    await gw.close()
    await server.close()


# ── Construction ──────────────────────────────────────────────────────────────

def test_empty_token_rejected():
    with pytest.raises(ValueError):
        TelegramGateway("")


def test_implements_messaging_gateway():
    assert isinstance(TelegramGateway(TOKEN), MessagingGateway)


async def test_call_before_connect_raises():
    with pytest.raises(GatewayError, match="not connected"):
        await TelegramGateway(TOKEN).get_me()


# ── send_message() ────────────────────────────────────────────────────────────

async def test_send_message_uses_markdown(gateway, api):
    await gateway.send_message(7, "*hi*")

    assert api.calls == [("sendMessage", {"chat_id": 7, "text": "*hi*", "parse_mode": MARKDOWN})]


async def test_markdown_rejection_falls_back_to_plain_text(gateway, api):
    api.reject_markdown = True

    await gateway.send_message(7, "*broken_markdown")

    assert [payload for _, payload in api.calls] == [
        {"chat_id": 7, "text": "*broken_markdown", "parse_mode": MARKDOWN},
        {"chat_id": 7, "text": "*broken_markdown"},
    ]


async def test_non_markup_rejection_raises(gateway, api):
    with pytest.raises(GatewayRejectedError) as exc_info:
        await gateway.send_message(403, "hi")

    assert exc_info.value.error_code == 403
    assert len(api.calls) == 1


async def test_plain_text_rejection_not_retried(gateway, api):
    api.reject_markdown = True
    await gateway.send_message(7, "plain", parse_mode=None)
    assert len(api.calls) == 1


async def test_invalid_json_response_raises_gateway_error(gateway):
    with pytest.raises(GatewayError, match="invalid JSON"):
        await gateway._call("garbage")


# ── Membership / identity ─────────────────────────────────────────────────────

@pytest.mark.parametrize("status, expected", [("administrator", True), ("creator", True), ("member", False), ("left", False)])
async def test_is_chat_admin(gateway, api, status, expected):
    api.member_status = status

    assert await gateway.is_chat_admin(-100, 42) is expected
    assert api.calls == [("getChatMember", {"chat_id": -100, "user_id": 42})]


async def test_get_me_caches_username(gateway):
    assert gateway.username is None
    me = await gateway.get_me()
    assert me["username"] == "zerabot"
    assert gateway.username == "zerabot"


# ── Webhook ───────────────────────────────────────────────────────────────────

async def test_setup_webhook_replaces_existing(gateway, api):
    info = await gateway.setup_webhook("https://bot.example/secret")

    assert [method for method, _ in api.calls] == ["deleteWebhook", "setWebhook", "getWebhookInfo"]
    assert api.calls[1][1] == {"url": "https://bot.example/secret"}
    assert info["url"] == "https://bot.example/secret"


async def test_setup_webhook_logs_last_error(gateway, api, caplog):
    api.webhook_info = {"url": "https://bot.example/secret", "last_error_date": 1, "last_error_message": "Connection refused"}

    await gateway.setup_webhook("https://bot.example/secret")

    assert "Connection refused" in caplog.text
