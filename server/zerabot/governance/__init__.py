"""
zerabot.governance — proposal extraction and rendering.

Public API:
    TxnStatusIndex    — per-block hash -> status lookup
    extract_proposals — yield the OK proposals of a block
    render_proposal   — notification text for one proposal
"""
from .extractor import (
    MAX_SYNOPSIS_LENGTH,
    MAX_TITLE_LENGTH,
    TxnStatusIndex,
    explorer_link,
    extract_proposals,
    render_proposal,
)

__all__ = [
    "MAX_SYNOPSIS_LENGTH",
    "MAX_TITLE_LENGTH",
    "TxnStatusIndex",
    "explorer_link",
    "extract_proposals",
    "render_proposal",
]
