"""
Messaging Gateway Protocol

The narrow surface the router and fan-out depend on. TelegramGateway
implements it; tests substitute AsyncMock objects.
"""
from __future__ import annotations

from typing import Optional, Protocol, runtime_checkable

MARKDOWN = "Markdown"


@runtime_checkable
class MessagingGateway(Protocol):
    """Sends chat messages and answers membership questions."""

    async def send_message(
        self,
        chat_id: int,
        text: str,
        parse_mode: Optional[str] = MARKDOWN,
    ) -> None:
        """
        Deliver text to a chat.

        Rich formatting is attempted first; the gateway falls back to plain
        text when the markup is rejected. Raises GatewayError otherwise.
        """
        ...

    async def is_chat_admin(self, chat_id: int, user_id: int) -> bool:
        """True if user_id administers (or created) chat_id."""
        ...
