"""
zerabot.telegram — Telegram Bot API surface.

Public API:
    TelegramGateway  — aiohttp Bot API client
    MessagingGateway — protocol the router and fan-out depend on
    CommandRouter    — chat command dispatch with admin gating
    InboundCommand   — parsed "/name@bot args" message
    WebhookServer    — aiohttp.web endpoint Telegram posts updates to
"""
from .client import TelegramGateway
from .commands import Command, CommandRouter, InboundCommand
from .interface import MARKDOWN, MessagingGateway
from .webhook import WebhookServer, command_from_update

__all__ = [
    "MARKDOWN",
    "Command",
    "CommandRouter",
    "InboundCommand",
    "MessagingGateway",
    "TelegramGateway",
    "WebhookServer",
    "command_from_update",
]
