"""
Block Ingestion Server

WebSocket endpoint validators push finalized blocks to. Every frame is
acknowledged immediately, malformed ones included. Whether a block is
processed is decided by the IngestionGate and never reported back.

Frames (client -> server):
  {"type": "block", "data": {...}}   see zerabot.ingest.serializer
  {"type": "ping"}

Frames (server -> client):
  {"type": "ack"}                    after every non-ping frame, even rejected ones
  {"type": "pong"}
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Optional

import websockets
from websockets.asyncio.server import Server, ServerConnection, serve

from zerabot.core.types import BlockDecodeError
from zerabot.ingest.gate import IngestionGate, SenderContext
from zerabot.ingest.serializer import ACK, PONG, block_from_dict, decode_frame

logger = logging.getLogger(__name__)


@dataclass
class IngestServerStats:
    connected_validators: int
    total_connections: int
    blocks_received: int
    blocks_admitted: int
    malformed_frames: int
    start_time: datetime


class BlockIngestServer:
    """
    Accepts block frames from validators and hands them to the gate.

    Args:
        gate: Rate limiter / sender auth / queue hand-off.
        host: Interface to bind.
        port: Port to bind; 0 picks a free one (see .port after start()).
    """

    def __init__(self, gate: IngestionGate, host: str = "0.0.0.0", port: int = 50051) -> None:
        self._gate = gate
        self._host = host
        self._port = port
        self._server: Optional[Server] = None
        self._connections: set[ServerConnection] = set()
        self._total_connections = 0
        self._blocks_received = 0
        self._blocks_admitted = 0
        self._malformed_frames = 0
        self._start_time: Optional[datetime] = None

    @property
    def port(self) -> int:
        """Bound port (resolved once the server is listening)."""
        if self._server is not None:
            for sock in self._server.sockets:
                return sock.getsockname()[1]
        return self._port

    # ── Lifecycle ─────────────────────────────────────────────────────

    async def start(self) -> None:
        self._start_time = datetime.now(timezone.utc)
        self._server = await serve(
            self._handle_connection,
            self._host,
            self._port,
            ping_interval=30,
            ping_timeout=10,
        )
        logger.info(f"Block ingestion server listening on ws://{self._host}:{self.port}")

    async def stop(self) -> None:
        if self._server is None:
            return
        self._server.close()
        await self._server.wait_closed()
        self._server = None
        logger.info("Block ingestion server stopped")

    # ── Connection handling ───────────────────────────────────────────

    async def _handle_connection(self, websocket: ServerConnection) -> None:
        sender = SenderContext(remote_address=websocket.remote_address)
        self._connections.add(websocket)
        self._total_connections += 1
        logger.info(f"Validator connected: {sender} (total: {len(self._connections)})")

        try:
            async for message in websocket:
                await websocket.send(await self._handle_frame(sender, message))
        except websockets.ConnectionClosed:
            pass
        finally:
            self._connections.discard(websocket)
            logger.info(f"Validator disconnected: {sender} (total: {len(self._connections)})")

    async def _handle_frame(self, sender: SenderContext, message: str | bytes) -> str:
        """Process one frame and return the reply frame."""
        try:
            frame_type, data = decode_frame(message)
        except BlockDecodeError as e:
            self._malformed_frames += 1
            logger.warning(f"Malformed frame from {sender}: {e}")
            return ACK

        if frame_type == "ping":
            return PONG

        if frame_type != "block":
            logger.debug(f"Ignoring frame of type {frame_type!r} from {sender}")
            return ACK

        self._blocks_received += 1
        try:
            block = block_from_dict(data)
        except BlockDecodeError as e:
            self._malformed_frames += 1
            logger.warning(f"Failed to decode block from {sender}: {e}")
            return ACK

        if await self._gate.admit(sender, block):
            self._blocks_admitted += 1
        return ACK

    def get_stats(self) -> IngestServerStats:
        return IngestServerStats(
            connected_validators=len(self._connections),
            total_connections=self._total_connections,
            blocks_received=self._blocks_received,
            blocks_admitted=self._blocks_admitted,
            malformed_frames=self._malformed_frames,
            start_time=self._start_time or datetime.now(timezone.utc),
        )
