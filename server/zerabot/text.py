"""
Text helpers for message rendering.
"""
from __future__ import annotations

ELLIPSIS = "..."


def truncate(s: str, max_len: int) -> str:
    """
    Shorten s to at most max_len characters, marking the cut with "...".

    Lengths count code points, so multi-byte characters are never split.
    """
    max_len = max(max_len, 0)
    if len(s) <= max_len:
        return s
    if max_len <= len(ELLIPSIS):
        return ELLIPSIS[:max_len]
    return s[: max_len - len(ELLIPSIS)] + ELLIPSIS
