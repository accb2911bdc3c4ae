"""
Tests for zerabot.ingest.server

Runs a real BlockIngestServer on an ephemeral port and talks to it with the
websockets client. The gate is an AsyncMock.
"""
import json
from unittest.mock import AsyncMock

import pytest
from websockets.asyncio.client import connect

from zerabot.ingest.server import BlockIngestServer
from zerabot.ingest.serializer import encode_block_frame
from zerabot.models.block import Block, Proposal, TxnStatus, TxnStatusEntry


def _block() -> Block:
    p = Proposal(txn_hash=b"\xaa\xbb", symbol="$ZRA+0001", title="Raise rewards")
    return Block(proposals=(p,), txn_statuses=(TxnStatusEntry(p.txn_hash, TxnStatus.OK),), height=3)


# ── Fixtures ──────────────────────────────────────────────────────────────────

@pytest.fixture
def gate():
    g = AsyncMock()
    g.admit = AsyncMock(return_value=True)
    return g


@pytest.fixture
async def server(gate):
    s = BlockIngestServer(gate, host="127.0.0.1", port=0)
    await s.start()
    yield s
    await s.stop()


async def _exchange(server: BlockIngestServer, *frames: str) -> list[dict]:
    replies = []
    async with connect(f"ws://127.0.0.1:{server.port}") as ws:
        for frame in frames:
            await ws.send(frame)
            replies.append(json.loads(await ws.recv()))
    return replies


# ── Frames ────────────────────────────────────────────────────────────────────

async def test_block_frame_is_admitted_and_acked(server, gate):
    block = _block()

    replies = await _exchange(server, encode_block_frame(block))

    assert replies == [{"type": "ack"}]
    gate.admit.assert_awaited_once()
    sender, admitted = gate.admit.await_args.args
    assert admitted == block
    assert sender.remote_address[0] == "127.0.0.1"
    assert server.get_stats().blocks_admitted == 1


async def test_rejected_block_still_acked(server, gate):
    gate.admit.return_value = False

    replies = await _exchange(server, encode_block_frame(_block()))

    assert replies == [{"type": "ack"}]
    stats = server.get_stats()
    assert stats.blocks_received == 1
    assert stats.blocks_admitted == 0


async def test_ping_answered_with_pong(server, gate):
    assert await _exchange(server, '{"type": "ping"}') == [{"type": "pong"}]
    gate.admit.assert_not_awaited()


async def test_malformed_frames_acked_and_counted(server, gate):
    replies = await _exchange(
        server,
        "not json",
        json.dumps({"type": "block", "data": {"proposals": [{"hash": "zz"}]}}),
    )

    assert replies == [{"type": "ack"}, {"type": "ack"}]
    gate.admit.assert_not_awaited()
    assert server.get_stats().malformed_frames == 2


async def test_connection_keeps_working_after_bad_frame(server, gate):
    replies = await _exchange(server, "garbage", encode_block_frame(_block()))

    assert replies == [{"type": "ack"}, {"type": "ack"}]
    gate.admit.assert_awaited_once()


async def test_deeply_nested_frame_acked_and_connection_survives(server, gate):
    depth = 100_000
    nested = '{"type": "block", "data": {"proposals": ' + "[" * depth + "]" * depth + "}}"

    replies = await _exchange(server, nested, encode_block_frame(_block()))

    assert replies == [{"type": "ack"}, {"type": "ack"}]
    assert server.get_stats().malformed_frames == 1
    gate.admit.assert_awaited_once()


async def test_port_resolved_after_start(server):
    assert server.port != 0
