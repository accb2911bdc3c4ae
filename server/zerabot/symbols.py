"""
Symbol Normalizer

Parses free-text symbol lists typed by users into canonical ZERA tickers.

Canonical form: "$" + upper-cased letters + "+" + four digits, e.g. $ZRA+0000.
The literal "all" (any case) is passed through as the sentinel.
"""
from __future__ import annotations

import re

from zerabot.core.types import InvalidFormatError
from zerabot.models.subscription import ALL_SYMBOLS

# Shorter tokens cannot be a ticker
MIN_SYMBOL_LENGTH = 6

# Letters are any Unicode letter; the suffix is exactly four ASCII digits
SYMBOL_PATTERN = re.compile(r"\$([^\W\d_]+)\+([0-9]{4})")
LETTERS_PATTERN = re.compile(r"[^\W\d_]+")

FORMAT_HINT = "$SYMBOL+NNNN (e.g., $ZRA+0000) or 'all'"


def is_all(token: str) -> bool:
    """True if the token is the 'all' sentinel (case-insensitive)."""
    return token.strip().lower() == ALL_SYMBOLS


def is_valid_symbol(token: str) -> bool:
    """Check whether a token has the $LETTERS+NNNN shape."""
    return len(token) >= MIN_SYMBOL_LENGTH and SYMBOL_PATTERN.fullmatch(token) is not None


def _canonical_letters(letters: str) -> str | None:
    """Upper-case letters, or None if the result is no longer a stable run of letters."""
    upper = letters.upper()
    # Some letters upper-case into a base letter plus a combining mark
    if LETTERS_PATTERN.fullmatch(upper) is None or upper.upper() != upper:
        return None
    return upper


def normalize_symbol(token: str) -> str:
    """
    Canonicalize a single symbol token.

    Args:
        token: One symbol, e.g. "$zra+0001" or "ALL"

    Returns:
        "$ZRA+0001", or the "all" sentinel

    Raises:
        InvalidFormatError: If the token is not a valid ticker
    """
    token = token.strip()
    if is_all(token):
        return ALL_SYMBOLS

    if len(token) < MIN_SYMBOL_LENGTH:
        raise InvalidFormatError(f"Invalid symbol format: {token}", token=token)

    match = SYMBOL_PATTERN.fullmatch(token)
    if match is None:
        raise InvalidFormatError(f"Invalid symbol format: {token}", token=token)

    letters, digits = match.groups()
    upper = _canonical_letters(letters)
    if upper is None:
        raise InvalidFormatError(f"Invalid symbol format: {token}", token=token)
    return f"${upper}+{digits}"


def normalize_symbols(raw: str) -> list[str]:
    """
    Split a comma-separated symbol list and canonicalize every token.

    Whitespace around tokens is trimmed and empty tokens are dropped.
    Duplicates collapse onto their first occurrence. The whole batch is
    rejected if any single token is invalid.

    Raises:
        InvalidFormatError: On the first invalid token
    """
    result: list[str] = []
    for part in raw.split(","):
        part = part.strip()
        if not part:
            continue
        symbol = normalize_symbol(part)
        if symbol not in result:
            result.append(symbol)
    return result
