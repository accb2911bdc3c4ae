"""
zerabot.ingest — validator block ingestion.

Public API:
    BlockIngestServer  — WebSocket endpoint validators push blocks to
    IngestionGate      — rate limit, sender auth, queue hand-off
    SenderAuthenticator
    TokenBucket
    ProposalWorker     — queue consumer driving extraction and fan-out
"""
from .gate import IngestionGate, SenderAuthenticator, SenderContext, parse_sender_ip, resolve_host
from .rate_limiter import TokenBucket
from .serializer import ACK, PONG, block_from_dict, decode_block, decode_frame, encode_block_frame
from .server import BlockIngestServer
from .worker import ProposalWorker

__all__ = [
    "ACK",
    "PONG",
    "BlockIngestServer",
    "IngestionGate",
    "ProposalWorker",
    "SenderAuthenticator",
    "SenderContext",
    "TokenBucket",
    "block_from_dict",
    "decode_block",
    "decode_frame",
    "encode_block_frame",
    "parse_sender_ip",
    "resolve_host",
]
