"""
Proposal Worker

Consumes admitted blocks from the bounded queue and turns each OK proposal
into a subscriber notification. Runs as one background task so ingestion
latency never depends on Redis or Telegram latency. Failures are logged and
the worker moves on to the next proposal.
"""
from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import Optional

from zerabot.core.types import InvalidFormatError, StoreUnavailableError
from zerabot.fanout import NotificationFanout
from zerabot.governance import TxnStatusIndex, extract_proposals, render_proposal
from zerabot.models.block import Block
from zerabot.models.subscription import SubscriptionKind
from zerabot.symbols import normalize_symbol

logger = logging.getLogger(__name__)


def _subscription_symbol(contract_id: str) -> str:
    """Canonical form of the proposal's contract so it matches stored rows."""
    try:
        return normalize_symbol(contract_id)
    except InvalidFormatError:
        return contract_id.strip()


@dataclass
class WorkerStats:
    blocks_processed: int = 0
    proposals_notified: int = 0
    errors: int = 0


class ProposalWorker:
    """
    Drains the proposal queue into the fan-out.

    Args:
        queue:            Queue filled by IngestionGate.admit().
        fanout:           Notification fan-out.
        explorer_txn_url: Optional explorer link template for rendered messages.
    """

    def __init__(
        self,
        queue: asyncio.Queue[Block],
        fanout: NotificationFanout,
        *,
        explorer_txn_url: Optional[str] = None,
    ) -> None:
        self._queue = queue
        self._fanout = fanout
        self._explorer_txn_url = explorer_txn_url or None
        self._stats = WorkerStats()
        self._task: Optional[asyncio.Task[None]] = None

    @property
    def stats(self) -> WorkerStats:
        return self._stats

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def start(self) -> None:
        """Spawn the consumer task."""
        if self.running:
            return
        self._task = asyncio.create_task(self.run(), name="proposal-worker")
        logger.info("Proposal worker started")

    async def stop(self, timeout: float = 10.0) -> None:
        """
        Let queued blocks drain for up to timeout seconds, then cancel.
        """
        if self._task is None:
            return
        try:
            await asyncio.wait_for(self._queue.join(), timeout=timeout)
        except asyncio.TimeoutError:
            logger.warning(f"Proposal queue not drained after {timeout:g}s, {self._queue.qsize()} block(s) dropped")

        self._task.cancel()
        try:
            await self._task
        except asyncio.CancelledError:
            pass
        self._task = None
        logger.info(
            "Proposal worker stopped",
            extra={
                "blocks_processed": self._stats.blocks_processed,
                "proposals_notified": self._stats.proposals_notified,
                "errors": self._stats.errors,
            },
        )

    async def run(self) -> None:
        """Consume blocks until cancelled."""
        while True:
            block = await self._queue.get()
            try:
                await self.process_block(block)
            except Exception as e:
                self._stats.errors += 1
                logger.error(f"Failed to process block: {e!r}", extra={"block_height": block.height})
            finally:
                self._queue.task_done()

    async def process_block(self, block: Block) -> int:
        """
        Notify subscribers about every OK proposal in block.

        Returns the number of proposals that were fanned out.
        """
        status_index = TxnStatusIndex.from_block(block)
        notified = 0

        for proposal in extract_proposals(block, status_index):
            message = render_proposal(proposal, self._explorer_txn_url)
            symbol = _subscription_symbol(proposal.symbol)
            try:
                await self._fanout.notify(symbol, SubscriptionKind.PROPOSAL, message)
            except StoreUnavailableError as e:
                self._stats.errors += 1
                logger.error(
                    f"Could not resolve subscribers for proposal {proposal.proposal_id}: {e}",
                    extra={"symbol": symbol},
                )
                continue
            notified += 1

        self._stats.blocks_processed += 1
        self._stats.proposals_notified += notified
        return notified
