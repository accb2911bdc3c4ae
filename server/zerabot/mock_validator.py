"""
Mock validator for exercising the ingestion endpoint without a chain.

Builds blocks carrying random governance proposals (most OK, some failed)
and pushes them to a running zerabot over the block ingestion socket.
Start the bot with ENVIRONMENT=development so sender auth is skipped.

Usage:
    cd server
    python -m zerabot.mock_validator                      # ws://localhost:50051
    python -m zerabot.mock_validator --url ws://host:50051 --count 5 --interval 4
"""
from __future__ import annotations

import argparse
import asyncio
import json
import logging
import os
import random

from websockets.asyncio.client import connect

from zerabot.models.block import Block, Proposal, TxnStatus, TxnStatusEntry
from zerabot.ingest.serializer import encode_block_frame

logger = logging.getLogger("zerabot.mock_validator")

SYMBOLS = ["$ZRA+0000", "$ZIP+0000", "$ETH+0001", "$BTC+0002", "$SOL+0003"]

PROPOSALS: list[tuple[str, str]] = [
    # (title, synopsis)
    ("Increase validator reward share", "Raise the validator share of block rewards from 40% to 45% to offset rising infrastructure costs."),
    ("Fund ecosystem grants round 4", "Allocate 2,000,000 tokens from the treasury to the fourth community grants round."),
    ("Reduce minimum stake", "Lower the minimum validator stake to encourage decentralization of the validator set."),
    ("Adopt new fee schedule", "Replace flat contract fees with a size-based fee schedule."),
    ("Burn unclaimed airdrop", "Burn tokens left unclaimed from the 2024 airdrop after the claim window closed."),
    ("Extend voting period", "Extend the governance voting period from 7 to 10 days."),
    ("Treasury diversification", "Swap 10% of treasury holdings into stable assets over six months."),
    ("Upgrade bridge contract", ""),
]

FAILED_STATUSES = [
    TxnStatus.FAULTY_TXN,
    TxnStatus.INSUFFICIENT_AMOUNT,
    TxnStatus.INSUFFICIENT_CONTRACT_FEES,
    TxnStatus.INVALID_CONTRACT,
]


def make_block(height: int, *, max_proposals: int = 3, failure_rate: float = 0.2) -> Block:
    """Random block with 1..max_proposals proposals and matching statuses."""
    proposals: list[Proposal] = []
    statuses: list[TxnStatusEntry] = []

    for _ in range(random.randint(1, max_proposals)):
        title, synopsis = random.choice(PROPOSALS)
        txn_hash = os.urandom(32)
        proposals.append(
            Proposal(txn_hash=txn_hash, symbol=random.choice(SYMBOLS), title=title, synopsis=synopsis)
        )
        status = random.choice(FAILED_STATUSES) if random.random() < failure_rate else TxnStatus.OK
        statuses.append(TxnStatusEntry(txn_hash=txn_hash, status=status))

    return Block(proposals=tuple(proposals), txn_statuses=tuple(statuses), height=height)


async def run_mock_validator(
    url: str,
    *,
    count: int = 0,
    interval: float = 3.5,
    start_height: int = 1,
) -> int:
    """
    Push blocks to url every interval seconds; count=0 runs until cancelled.

    Returns the number of blocks acknowledged.
    """
    acked = 0
    height = start_height

    async with connect(url) as websocket:
        logger.info(f"Connected to {url}")
        while count == 0 or acked < count:
            block = make_block(height)
            await websocket.send(encode_block_frame(block))
            reply = json.loads(await websocket.recv())
            if reply.get("type") == "ack":
                acked += 1
            logger.info(
                f"Block {height}: {len(block.proposals)} proposal(s) "
                f"[{', '.join(p.symbol for p in block.proposals)}] → {reply.get('type')}"
            )
            height += 1
            await asyncio.sleep(interval)

    return acked


def cli() -> None:
    parser = argparse.ArgumentParser(description="Push mock governance blocks to zerabot")
    parser.add_argument("--url", default="ws://localhost:50051", help="block ingestion endpoint")
    parser.add_argument("--count", type=int, default=0, help="blocks to send (0 = forever)")
    parser.add_argument("--interval", type=float, default=3.5, help="seconds between blocks")
    args = parser.parse_args()

    logging.basicConfig(level=logging.INFO, format="%(asctime)s [%(name)s] %(levelname)s — %(message)s")
    try:
        asyncio.run(run_mock_validator(args.url, count=args.count, interval=args.interval))
    except KeyboardInterrupt:
        pass


if __name__ == "__main__":
    cli()
