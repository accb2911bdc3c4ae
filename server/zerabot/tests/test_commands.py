"""
Tests for zerabot.telegram.commands

Store and gateway are AsyncMock stand-ins; every test checks the single reply.
"""
from datetime import datetime, timezone
from unittest.mock import AsyncMock

import pytest

from zerabot.core.types import GatewayError, NotFoundError, StoreUnavailableError
from zerabot.models.subscription import Subscription, SubscriptionKind
from zerabot.telegram.commands import (
    ADMIN_CHECK_FAILED,
    ADMIN_ONLY,
    HELP_TEXT,
    NO_SUBSCRIPTIONS,
    UNKNOWN_COMMAND,
    Command,
    CommandRouter,
    InboundCommand,
)

GROUP = -100123
USER = 42
PROPOSAL = SubscriptionKind.PROPOSAL


# ── Helpers ───────────────────────────────────────────────────────────────────

def _sub(symbol: str, n: int = 1) -> Subscription:
    ts = datetime(2025, 1, 1, 0, 0, n, tzinfo=timezone.utc)
    return Subscription(id=f"id{n}", chat_id=USER, symbol=symbol, kind=PROPOSAL, created_at=ts, updated_at=ts)


def _cmd(text: str, chat_id: int = USER, user_id: int = USER) -> InboundCommand:
    command = InboundCommand.parse_message_text(text, chat_id, user_id)
    assert command is not None
    return command


def _only_reply(gateway) -> str:
    gateway.send_message.assert_awaited_once()
    return gateway.send_message.await_args.args[1]


# ── Fixtures ──────────────────────────────────────────────────────────────────

@pytest.fixture
def store():
    s = AsyncMock()
    s.subscribe = AsyncMock(side_effect=lambda chat_id, kind, symbol: _sub(symbol))
    s.subscribe_all = AsyncMock(return_value=_sub("all"))
    s.unsubscribe = AsyncMock(return_value=None)
    s.unsubscribe_all = AsyncMock(return_value=3)
    s.list_subscriptions = AsyncMock(return_value=[])
    return s


@pytest.fixture
def gateway():
    g = AsyncMock()
    g.send_message = AsyncMock(return_value=None)
    g.is_chat_admin = AsyncMock(return_value=True)
    return g


@pytest.fixture
def router(store, gateway):
    return CommandRouter(store, gateway, bot_username="zerabot")


# ── Parsing ───────────────────────────────────────────────────────────────────

@pytest.mark.parametrize(
    "name, expected",
    [
        ("start", Command.START),
        ("HELP", Command.HELP),
        ("subscribe", Command.SUBSCRIBE),
        ("proposalSubscribe", Command.SUBSCRIBE),
        ("unsubscribe", Command.UNSUBSCRIBE),
        ("proposalUnsubscribe", Command.UNSUBSCRIBE),
        ("mySubscriptions", Command.LIST_SUBSCRIPTIONS),
        ("list_subscriptions", Command.LIST_SUBSCRIPTIONS),
        ("listsubscriptions", Command.LIST_SUBSCRIPTIONS),
        ("list-subscriptions", Command.LIST_SUBSCRIPTIONS),
        ("frobnicate", Command.UNKNOWN),
    ],
)
def test_command_parse(name, expected):
    assert Command.parse(name) is expected


def test_parse_message_text():
    command = InboundCommand.parse_message_text("/subscribe@ZeraBot  $zra+0001, $eth+0002 ", GROUP, USER)

    assert command == InboundCommand(
        chat_id=GROUP, user_id=USER, name="subscribe", args="$zra+0001, $eth+0002", addressee="ZeraBot"
    )
    assert command.command is Command.SUBSCRIBE
    assert not command.is_private


@pytest.mark.parametrize("text", ["hello", "", "/", "/@bot"])
def test_parse_message_text_non_commands(text):
    assert InboundCommand.parse_message_text(text, USER, USER) is None


# ── Help / start / unknown ────────────────────────────────────────────────────

@pytest.mark.parametrize("text", ["/start", "/help", "/help@zerabot", "/HELP@ZeraBot"])
async def test_help_replies_once(router, gateway, text):
    reply = await router.handle(_cmd(text, chat_id=GROUP))

    assert reply == HELP_TEXT
    assert _only_reply(gateway) == HELP_TEXT


async def test_command_for_another_bot_is_ignored(router, gateway, store):
    assert await router.handle(_cmd("/subscribe@otherbot $zra+0001", chat_id=GROUP)) is None
    gateway.send_message.assert_not_awaited()
    store.subscribe.assert_not_awaited()


async def test_unknown_command(router, gateway):
    await router.handle(_cmd("/frobnicate"))
    assert _only_reply(gateway) == UNKNOWN_COMMAND


# ── Admin gating ──────────────────────────────────────────────────────────────

async def test_private_chat_skips_admin_check(router, gateway, store):
    await router.handle(_cmd("/subscribe $zra+0001"))

    gateway.is_chat_admin.assert_not_awaited()
    store.subscribe.assert_awaited_once_with(USER, PROPOSAL, "$ZRA+0001")


async def test_group_admin_allowed(router, gateway, store):
    await router.handle(_cmd("/subscribe $zra+0001", chat_id=GROUP))

    gateway.is_chat_admin.assert_awaited_once_with(GROUP, USER)
    store.subscribe.assert_awaited_once()


@pytest.mark.parametrize("text", ["/subscribe $zra+0001", "/unsubscribe all", "/proposalSubscribe all"])
async def test_non_admin_denied_without_mutation(router, gateway, store, text):
    gateway.is_chat_admin.return_value = False

    reply = await router.handle(_cmd(text, chat_id=GROUP))

    assert reply == ADMIN_ONLY
    assert _only_reply(gateway) == ADMIN_ONLY
    store.subscribe.assert_not_awaited()
    store.subscribe_all.assert_not_awaited()
    store.unsubscribe.assert_not_awaited()
    store.unsubscribe_all.assert_not_awaited()


async def test_admin_lookup_error_yields_denial(router, gateway, store):
    gateway.is_chat_admin.side_effect = GatewayError("timeout", method="getChatMember")

    reply = await router.handle(_cmd("/subscribe $zra+0001", chat_id=GROUP))

    assert reply == ADMIN_CHECK_FAILED
    store.subscribe.assert_not_awaited()


async def test_list_is_not_restricted(router, gateway):
    await router.handle(_cmd("/mysubscriptions", chat_id=GROUP))
    gateway.is_chat_admin.assert_not_awaited()


# ── Subscribe ─────────────────────────────────────────────────────────────────

async def test_subscribe_single(router, gateway):
    await router.handle(_cmd("/subscribe $zra+0001"))
    assert _only_reply(gateway) == "✅ Successfully subscribed to $ZRA+0001"


async def test_subscribe_many_in_one_reply(router, gateway, store):
    await router.handle(_cmd("/subscribe $zra+0001, $eth+0002"))

    assert [c.args[2] for c in store.subscribe.await_args_list] == ["$ZRA+0001", "$ETH+0002"]
    assert _only_reply(gateway) == "✅ Successfully subscribed to 2 symbols"


async def test_subscribe_partial_failure_reported(router, gateway, store):
    async def _subscribe(chat_id, kind, symbol):
        if symbol == "$ETH+0002":
            raise StoreUnavailableError("down", operation="subscribe")
        return _sub(symbol)

    store.subscribe.side_effect = _subscribe

    await router.handle(_cmd("/subscribe $zra+0001, $eth+0002"))

    assert _only_reply(gateway) == "✅ Successfully subscribed to $ZRA+0001\n❌ Failed to subscribe to $ETH+0002"


async def test_subscribe_all(router, gateway, store):
    await router.handle(_cmd("/subscribe ALL"))

    store.subscribe_all.assert_awaited_once_with(USER, PROPOSAL)
    store.subscribe.assert_not_awaited()
    assert _only_reply(gateway) == "✅ Subscribed to all proposals."


async def test_subscribe_invalid_format(router, gateway, store):
    await router.handle(_cmd("/subscribe $zra+0001, ZRA"))

    store.subscribe.assert_not_awaited()
    assert _only_reply(gateway).startswith("❌ Invalid symbol format")


async def test_subscribe_without_args_shows_usage(router, gateway):
    await router.handle(_cmd("/subscribe"))
    assert _only_reply(gateway).startswith("Please provide a symbol to subscribe to")


async def test_subscribe_all_store_failure(router, gateway, store):
    store.subscribe_all.side_effect = StoreUnavailableError("down", operation="subscribe_all")

    await router.handle(_cmd("/subscribe all"))

    assert _only_reply(gateway) == "❌ Failed to subscribe. Please try again later."


# ── Unsubscribe ───────────────────────────────────────────────────────────────

async def test_unsubscribe_single(router, gateway, store):
    await router.handle(_cmd("/unsubscribe $zra+0001"))

    store.unsubscribe.assert_awaited_once_with(USER, PROPOSAL, "$ZRA+0001")
    assert _only_reply(gateway) == "✅ Successfully unsubscribed from $ZRA+0001"


async def test_unsubscribe_not_found_reported(router, gateway, store):
    store.unsubscribe.side_effect = NotFoundError("subscription not found", chat_id=USER, symbol="$ZRA+0001")

    await router.handle(_cmd("/unsubscribe $zra+0001"))

    assert _only_reply(gateway) == "❌ You are not subscribed to $ZRA+0001"


async def test_unsubscribe_all(router, gateway, store):
    await router.handle(_cmd("/unsubscribe all"))

    store.unsubscribe_all.assert_awaited_once_with(USER, PROPOSAL)
    assert _only_reply(gateway) == "✅ Unsubscribed from all proposals (3 removed)"


async def test_unsubscribe_without_args_shows_usage(router, gateway):
    await router.handle(_cmd("/proposalUnsubscribe"))
    assert _only_reply(gateway).startswith("Please provide a symbol to unsubscribe from")


# ── List ──────────────────────────────────────────────────────────────────────

async def test_list_empty(router, gateway):
    await router.handle(_cmd("/mysubscriptions"))
    assert _only_reply(gateway) == NO_SUBSCRIPTIONS


async def test_list_subscriptions(router, gateway, store):
    store.list_subscriptions.return_value = [_sub("$ETH+0002", 2), _sub("$ZRA+0001", 1)]

    await router.handle(_cmd("/list_subscriptions"))

    assert _only_reply(gateway) == "📋 Your subscriptions (2):\n• $ETH+0002 (proposal)\n• $ZRA+0001 (proposal)"


async def test_list_store_failure(router, gateway, store):
    store.list_subscriptions.side_effect = StoreUnavailableError("down", operation="list_subscriptions")

    await router.handle(_cmd("/mysubscriptions"))

    assert _only_reply(gateway) == "❌ Failed to list subscriptions. Please try again later."


# ── Reply delivery ────────────────────────────────────────────────────────────

async def test_reply_failure_is_logged_not_raised(router, gateway):
    gateway.send_message.side_effect = GatewayError("down", method="sendMessage")
    assert await router.handle(_cmd("/help")) == HELP_TEXT
