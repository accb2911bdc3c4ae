"""
Core Type Definitions and Exceptions

Every failure the bot can report is a ZeraBotError subclass carrying a
message and a context dict that is rendered into str() for logging.
"""
from __future__ import annotations

from typing import Any, Optional


class ZeraBotError(Exception):
    """Base exception for all ZeraBot errors."""

    def __init__(
        self,
        message: str,
        context: Optional[dict[str, Any]] = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.context = context or {}

    def __str__(self) -> str:
        if self.context:
            ctx_str = ", ".join(f"{k}={v}" for k, v in self.context.items())
            return f"{self.message} [{ctx_str}]"
        return self.message


class InvalidFormatError(ZeraBotError):
    """Raised when a symbol token does not match $LETTERS+NNNN."""

    def __init__(
        self,
        message: str,
        token: Optional[str] = None,
        context: Optional[dict[str, Any]] = None,
    ) -> None:
        ctx = context or {}
        if token is not None:
            ctx["token"] = repr(token)[:50]
        super().__init__(message, ctx)
        self.token = token


class NotFoundError(ZeraBotError):
    """Raised when an unsubscribe target does not exist."""

    def __init__(
        self,
        message: str,
        chat_id: int,
        symbol: str,
        context: Optional[dict[str, Any]] = None,
    ) -> None:
        ctx = context or {}
        ctx["chat_id"] = chat_id
        ctx["symbol"] = symbol
        super().__init__(message, ctx)
        self.chat_id = chat_id
        self.symbol = symbol


class StoreUnavailableError(ZeraBotError):
    """Raised when the subscription store cannot complete an operation."""

    def __init__(
        self,
        message: str,
        operation: str,
        context: Optional[dict[str, Any]] = None,
    ) -> None:
        ctx = context or {}
        ctx["operation"] = operation
        super().__init__(message, ctx)
        self.operation = operation


class LookupFailureError(ZeraBotError):
    """Raised when a proposal's transaction has no status entry in its block."""

    def __init__(
        self,
        message: str,
        txn_hash: str,
        context: Optional[dict[str, Any]] = None,
    ) -> None:
        ctx = context or {}
        ctx["txn_hash"] = txn_hash
        super().__init__(message, ctx)
        self.txn_hash = txn_hash


class AuthRejectedError(ZeraBotError):
    """Raised when a block sender is not the trusted validator."""

    def __init__(
        self,
        message: str,
        sender: str,
        context: Optional[dict[str, Any]] = None,
    ) -> None:
        ctx = context or {}
        ctx["sender"] = sender
        super().__init__(message, ctx)
        self.sender = sender


class RateLimitedError(ZeraBotError):
    """Raised when a block arrives before the ingestion bucket has refilled."""


class GatewayError(ZeraBotError):
    """Raised when the Telegram Bot API call fails."""

    def __init__(
        self,
        message: str,
        method: str,
        context: Optional[dict[str, Any]] = None,
    ) -> None:
        ctx = context or {}
        ctx["method"] = method
        super().__init__(message, ctx)
        self.method = method


class GatewayRejectedError(GatewayError):
    """Raised when Telegram answers with ok=false (bad request, bad markup, ...)."""

    def __init__(
        self,
        message: str,
        method: str,
        error_code: int,
        description: str,
        context: Optional[dict[str, Any]] = None,
    ) -> None:
        ctx = context or {}
        ctx["error_code"] = error_code
        ctx["description"] = description
        super().__init__(message, method, ctx)
        self.error_code = error_code
        self.description = description


class BlockDecodeError(ZeraBotError):
    """Raised when a block frame from a validator cannot be decoded."""
