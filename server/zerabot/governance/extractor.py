"""
Proposal Extractor

Picks the governance proposals out of a block that the ledger accepted, and
renders each one into the notification text sent to subscribers.

A proposal is surfaced only when its transaction hash appears in the block's
status table with status OK. Failed or rejected proposals are dropped
silently; a proposal with no status entry is logged and skipped without
aborting the rest of the block.
"""
from __future__ import annotations

import logging
from typing import Iterator, Mapping, Optional

from zerabot.core.types import LookupFailureError
from zerabot.models.block import Block, Proposal, TxnStatus
from zerabot.text import truncate

logger = logging.getLogger(__name__)

# Display bounds for rendered notifications
MAX_TITLE_LENGTH = 100
MAX_SYNOPSIS_LENGTH = 500


class TxnStatusIndex:
    """
    Lookup from transaction hash to status for a single block.

    Build a fresh index for every block; entries never carry over.
    """

    __slots__ = ("_statuses",)

    def __init__(self, statuses: Mapping[bytes, TxnStatus]) -> None:
        self._statuses = dict(statuses)

    @classmethod
    def from_block(cls, block: Block) -> TxnStatusIndex:
        return cls({entry.txn_hash: entry.status for entry in block.txn_statuses})

    def status_for(self, txn_hash: bytes) -> TxnStatus:
        """
        Raises:
            LookupFailureError: If the block has no status entry for txn_hash.
        """
        try:
            return self._statuses[txn_hash]
        except KeyError:
            raise LookupFailureError(
                f"txnStatus not found for {txn_hash.hex()}",
                txn_hash=txn_hash.hex(),
            ) from None

    def __len__(self) -> int:
        return len(self._statuses)


def extract_proposals(block: Block, status_index: TxnStatusIndex) -> Iterator[Proposal]:
    """
    Lazily yield the proposals of block whose transaction status is OK.
    """
    for proposal in block.proposals:
        try:
            status = status_index.status_for(proposal.txn_hash)
        except LookupFailureError as e:
            logger.warning(
                f"Error getting status for proposal {proposal.proposal_id}: {e}",
                extra={"block_height": block.height},
            )
            continue

        if status is not TxnStatus.OK:
            continue

        yield proposal


def explorer_link(proposal: Proposal, explorer_txn_url: str) -> str:
    """Fill the explorer URL template with the proposal id."""
    if "{proposal_id}" in explorer_txn_url:
        return explorer_txn_url.format(proposal_id=proposal.proposal_id)
    return f"{explorer_txn_url.rstrip('/')}/{proposal.proposal_id}"


def render_proposal(proposal: Proposal, explorer_txn_url: Optional[str] = None) -> str:
    """
    Build the Markdown notification for a proposal.

    Title and synopsis are truncated to their display bounds.
    """
    lines = [
        f"🗳 *New governance proposal* for {proposal.symbol}",
        "",
        f"*{truncate(proposal.title.strip(), MAX_TITLE_LENGTH)}*",
    ]

    synopsis = proposal.synopsis.strip()
    if synopsis:
        lines += ["", truncate(synopsis, MAX_SYNOPSIS_LENGTH)]

    lines += ["", f"ID: `{proposal.proposal_id}`"]
    if explorer_txn_url:
        lines.append(f"[View on explorer]({explorer_link(proposal, explorer_txn_url)})")

    return "\n".join(lines)
