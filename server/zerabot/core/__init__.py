"""
ZeraBot Core Utilities

Exception taxonomy shared by every component.
"""
from zerabot.core.types import (
    AuthRejectedError,
    BlockDecodeError,
    GatewayError,
    GatewayRejectedError,
    InvalidFormatError,
    LookupFailureError,
    NotFoundError,
    RateLimitedError,
    StoreUnavailableError,
    ZeraBotError,
)

__all__ = [
    "AuthRejectedError",
    "BlockDecodeError",
    "GatewayError",
    "GatewayRejectedError",
    "InvalidFormatError",
    "LookupFailureError",
    "NotFoundError",
    "RateLimitedError",
    "StoreUnavailableError",
    "ZeraBotError",
]
