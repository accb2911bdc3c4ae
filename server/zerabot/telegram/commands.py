"""
Command Router

Maps chat commands onto subscription store operations and answers each
handled command with exactly one reply.

    Received → AdminCheck (subscribe/unsubscribe only) → Dispatch → Reply

Private chats (chat_id == user_id) count as self-administered. In groups the
caller must be an administrator; a failed admin lookup is reported to the
chat rather than silently dropped.

Usage:
    router = CommandRouter(store, gateway, bot_username="zerabot")
    command = InboundCommand.parse_message_text("/subscribe $zra+0001", chat_id, user_id)
    if command is not None:
        await router.handle(command)
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Optional

from zerabot.core.types import (
    GatewayError,
    InvalidFormatError,
    NotFoundError,
    StoreUnavailableError,
)
from zerabot.models.subscription import ALL_SYMBOLS, SubscriptionKind
from zerabot.store import SubscriptionStore
from zerabot.symbols import FORMAT_HINT, normalize_symbols
from zerabot.telegram.interface import MessagingGateway

logger = logging.getLogger(__name__)


class Command(str, Enum):
    START = "start"
    HELP = "help"
    SUBSCRIBE = "subscribe"
    UNSUBSCRIBE = "unsubscribe"
    LIST_SUBSCRIPTIONS = "list_subscriptions"
    UNKNOWN = "unknown"

    @classmethod
    def parse(cls, name: str) -> Command:
        """Resolve a command name or alias, case-insensitively."""
        return _ALIASES.get(name.strip().lower(), cls.UNKNOWN)

    @property
    def restricted(self) -> bool:
        return self in (Command.SUBSCRIBE, Command.UNSUBSCRIBE)


_ALIASES: dict[str, Command] = {
    "start": Command.START,
    "help": Command.HELP,
    "subscribe": Command.SUBSCRIBE,
    "proposalsubscribe": Command.SUBSCRIBE,
    "unsubscribe": Command.UNSUBSCRIBE,
    "proposalunsubscribe": Command.UNSUBSCRIBE,
    "list_subscriptions": Command.LIST_SUBSCRIPTIONS,
    "list-subscriptions": Command.LIST_SUBSCRIPTIONS,
    "listsubscriptions": Command.LIST_SUBSCRIPTIONS,
    "mysubscriptions": Command.LIST_SUBSCRIPTIONS,
}


@dataclass(frozen=True)
class InboundCommand:
    """A command extracted from a Telegram message."""

    chat_id: int
    user_id: int
    name: str
    args: str = ""
    addressee: Optional[str] = None

    @property
    def command(self) -> Command:
        return Command.parse(self.name)

    @property
    def is_private(self) -> bool:
        return self.chat_id == self.user_id

    @classmethod
    def parse_message_text(cls, text: str, chat_id: int, user_id: int) -> Optional[InboundCommand]:
        """
        Parse "/name@bot args" into an InboundCommand.

        Returns None if text is not a command.
        """
        text = text.strip()
        if not text.startswith("/") or len(text) == 1:
            return None

        head, _, args = text[1:].partition(" ")
        name, _, addressee = head.partition("@")
        if not name:
            return None

        return cls(
            chat_id=chat_id,
            user_id=user_id,
            name=name,
            args=args.strip(),
            addressee=addressee or None,
        )


HELP_TEXT = """🤖 *Zera Bot Help* 🤖

*Available commands:*
/start - Start the bot
/help - Show this help message
/subscribe [symbols] - Subscribe to proposal updates
/unsubscribe [symbols] - Unsubscribe from proposal updates
/mysubscriptions - List all your current subscriptions

*Examples:*
- Subscribe to multiple tokens: /subscribe $ZRA+0000,$ETH+0001
- Unsubscribe from all: /unsubscribe all
- Unsubscribe from specific tokens: /unsubscribe $ETH+0001
- Check your subscriptions: /mysubscriptions

*Note:* Use 'all' to manage all subscriptions at once."""

ADMIN_ONLY = "❌ This command is only available to group administrators."
ADMIN_CHECK_FAILED = "❌ Failed to verify admin status. Please try again later."
UNKNOWN_COMMAND = "❌ Unknown command. Use /help to see available commands."
INVALID_FORMAT = f"❌ Invalid symbol format. Please use format {FORMAT_HINT}"
SUBSCRIBE_USAGE = (
    "Please provide a symbol to subscribe to "
    "(e.g., /subscribe $ZRA+0000 or /subscribe $ZRA+0000,$ZIP+0000)"
)
UNSUBSCRIBE_USAGE = (
    "Please provide a symbol to unsubscribe from "
    "(e.g., /unsubscribe $ZRA+0000 or /unsubscribe $ZRA+0000,$ZIP+0000)"
)
NO_SUBSCRIPTIONS = "You are not subscribed to any proposals yet.\nUse /subscribe [symbol] to subscribe."

_STORE_FAILURE_REPLIES = {
    Command.SUBSCRIBE: "❌ Failed to subscribe. Please try again later.",
    Command.UNSUBSCRIBE: "❌ Failed to unsubscribe. Please try again later.",
    Command.LIST_SUBSCRIPTIONS: "❌ Failed to list subscriptions. Please try again later.",
}


class CommandRouter:
    """
    Dispatches inbound commands and sends one reply per handled command.

    Args:
        store:        Subscription registry.
        gateway:      Messaging gateway used for replies and admin lookups.
        bot_username: This bot's username; commands addressed to any other
                      bot (/help@otherbot) are ignored.
        kind:         Subscription kind managed by the commands.
    """

    def __init__(
        self,
        store: SubscriptionStore,
        gateway: MessagingGateway,
        bot_username: Optional[str] = None,
        kind: SubscriptionKind = SubscriptionKind.PROPOSAL,
    ) -> None:
        self._store = store
        self._gateway = gateway
        self._bot_username = (bot_username or "").lstrip("@").lower() or None
        self._kind = kind

    def is_addressed_to_me(self, command: InboundCommand) -> bool:
        if command.addressee is None or self._bot_username is None:
            return True
        return command.addressee.lower() == self._bot_username

    async def handle(self, command: InboundCommand) -> Optional[str]:
        """
        Run command and send its reply.

        Returns the reply text, or None when the command was addressed to
        another bot and therefore ignored.
        """
        if not self.is_addressed_to_me(command):
            logger.debug(f"Ignoring /{command.name} addressed to @{command.addressee}")
            return None

        kind = command.command
        logger.info(
            f"Received /{command.name} from chat {command.chat_id}",
            extra={"chat_id": command.chat_id, "user_id": command.user_id, "command": kind.value},
        )

        if kind.restricted:
            denial = await self._check_admin(command)
            if denial is not None:
                return await self._reply(command.chat_id, denial)

        try:
            text = await self._dispatch(kind, command)
        except StoreUnavailableError as e:
            logger.error(f"Error handling /{command.name}: {e}", extra={"chat_id": command.chat_id})
            text = _STORE_FAILURE_REPLIES.get(kind, "❌ Something went wrong. Please try again later.")

        return await self._reply(command.chat_id, text)

    # ── Admin gating ──────────────────────────────────────────────────────────

    async def _check_admin(self, command: InboundCommand) -> Optional[str]:
        """Return a denial reply, or None if the caller may proceed."""
        if command.is_private:
            return None
        try:
            is_admin = await self._gateway.is_chat_admin(command.chat_id, command.user_id)
        except GatewayError as e:
            logger.error(f"Error checking admin status: {e}", extra={"chat_id": command.chat_id})
            return ADMIN_CHECK_FAILED
        if not is_admin:
            return ADMIN_ONLY
        return None

    # ── Dispatch ──────────────────────────────────────────────────────────────

    async def _dispatch(self, kind: Command, command: InboundCommand) -> str:
        if kind in (Command.START, Command.HELP):
            return HELP_TEXT
        if kind is Command.SUBSCRIBE:
            return await self._subscribe(command.chat_id, command.args)
        if kind is Command.UNSUBSCRIBE:
            return await self._unsubscribe(command.chat_id, command.args)
        if kind is Command.LIST_SUBSCRIPTIONS:
            return await self._list_subscriptions(command.chat_id)
        return UNKNOWN_COMMAND

    async def _subscribe(self, chat_id: int, args: str) -> str:
        try:
            symbols = normalize_symbols(args)
        except InvalidFormatError:
            return INVALID_FORMAT
        if not symbols:
            return SUBSCRIBE_USAGE

        if ALL_SYMBOLS in symbols:
            await self._store.subscribe_all(chat_id, self._kind)
            return "✅ Subscribed to all proposals."

        lines: list[str] = []
        succeeded: list[str] = []
        for symbol in symbols:
            try:
                await self._store.subscribe(chat_id, self._kind, symbol)
            except StoreUnavailableError as e:
                logger.error(f"Failed to subscribe chat {chat_id} to {symbol}: {e}")
                lines.append(f"❌ Failed to subscribe to {symbol}")
                continue
            succeeded.append(symbol)

        if len(succeeded) == 1:
            lines.insert(0, f"✅ Successfully subscribed to {succeeded[0]}")
        elif succeeded:
            lines.insert(0, f"✅ Successfully subscribed to {len(succeeded)} symbols")
        return "\n".join(lines)

    async def _unsubscribe(self, chat_id: int, args: str) -> str:
        try:
            symbols = normalize_symbols(args)
        except InvalidFormatError:
            return INVALID_FORMAT
        if not symbols:
            return UNSUBSCRIBE_USAGE

        if ALL_SYMBOLS in symbols:
            removed = await self._store.unsubscribe_all(chat_id, self._kind)
            return f"✅ Unsubscribed from all proposals ({removed} removed)"

        lines: list[str] = []
        succeeded: list[str] = []
        for symbol in symbols:
            try:
                await self._store.unsubscribe(chat_id, self._kind, symbol)
            except NotFoundError:
                lines.append(f"❌ You are not subscribed to {symbol}")
                continue
            except StoreUnavailableError as e:
                logger.error(f"Failed to unsubscribe chat {chat_id} from {symbol}: {e}")
                lines.append(f"❌ Failed to unsubscribe from {symbol}")
                continue
            succeeded.append(symbol)

        if len(succeeded) == 1:
            lines.insert(0, f"✅ Successfully unsubscribed from {succeeded[0]}")
        elif succeeded:
            lines.insert(0, f"✅ Successfully unsubscribed from {len(succeeded)} symbols")
        return "\n".join(lines)

    async def _list_subscriptions(self, chat_id: int) -> str:
        subscriptions = await self._store.list_subscriptions(chat_id)
        if not subscriptions:
            return NO_SUBSCRIPTIONS
        entries = "\n".join(f"• {s.symbol} ({s.kind.value})" for s in subscriptions)
        return f"📋 Your subscriptions ({len(subscriptions)}):\n{entries}"

    # ── Reply ─────────────────────────────────────────────────────────────────

    async def _reply(self, chat_id: int, text: str) -> str:
        try:
            await self._gateway.send_message(chat_id, text)
        except GatewayError as e:
            logger.error(f"Failed to send reply to chat {chat_id}: {e}")
        return text
