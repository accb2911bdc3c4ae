"""
Block Frame Serializer

Decodes the JSON frames validators push over the ingestion socket into
Block models, and encodes the acknowledgement frames sent back.

Wire format (envelope):
  {
    "type": "block",
    "data": {
      "height": 1234,
      "proposals": [
        {"hash": "<hex>", "symbol": "$ZRA+0000", "title": "...", "synopsis": "..."}
      ],
      "txnStatuses": [
        {"txnHash": "<hex>", "status": "OK"}
      ]
    }
  }
"""
from __future__ import annotations

import json
from typing import Any

from zerabot.core.types import BlockDecodeError
from zerabot.models.block import Block, Proposal, TxnStatus, TxnStatusEntry

ACK = json.dumps({"type": "ack"})
PONG = json.dumps({"type": "pong"})


def decode_frame(raw: str | bytes) -> tuple[str, dict[str, Any]]:
    """
    Decode a frame into (type, data).

    Raises BlockDecodeError if decoding fails or the envelope is malformed.
    """
    if isinstance(raw, bytes):
        try:
            raw = raw.decode("utf-8")
        except UnicodeDecodeError as exc:
            raise BlockDecodeError(f"Frame is not UTF-8: {exc}") from exc
    try:
        envelope = json.loads(raw)
    except (ValueError, RecursionError) as exc:
        raise BlockDecodeError(f"Failed to deserialize frame: {exc}") from exc

    if not isinstance(envelope, dict) or not isinstance(envelope.get("type"), str):
        raise BlockDecodeError("Malformed frame envelope — expected {type, data}")

    data = envelope.get("data", {})
    if not isinstance(data, dict):
        raise BlockDecodeError("Malformed frame envelope — data must be an object")

    return envelope["type"], data


def _decode_hash(value: Any, field: str) -> bytes:
    if not isinstance(value, str) or not value:
        raise BlockDecodeError(f"Missing {field}")
    try:
        decoded = bytes.fromhex(value.removeprefix("0x"))
    except ValueError as exc:
        raise BlockDecodeError(f"Invalid hex in {field}: {value[:80]}") from exc
    if not decoded:
        raise BlockDecodeError(f"Empty {field}")
    return decoded


def block_from_dict(data: dict[str, Any]) -> Block:
    """
    Build a Block from the "data" field of a block frame.

    Raises BlockDecodeError on missing or mistyped fields.
    """
    raw_proposals = data.get("proposals", [])
    raw_statuses = data.get("txnStatuses", [])
    if not isinstance(raw_proposals, list) or not isinstance(raw_statuses, list):
        raise BlockDecodeError("proposals and txnStatuses must be lists")

    proposals: list[Proposal] = []
    for item in raw_proposals:
        if not isinstance(item, dict):
            raise BlockDecodeError("proposal entries must be objects")
        proposals.append(
            Proposal(
                txn_hash=_decode_hash(item.get("hash"), "proposal hash"),
                symbol=str(item.get("symbol", "")),
                title=str(item.get("title", "")),
                synopsis=str(item.get("synopsis", "")),
            )
        )

    statuses: list[TxnStatusEntry] = []
    for item in raw_statuses:
        if not isinstance(item, dict):
            raise BlockDecodeError("txnStatuses entries must be objects")
        statuses.append(
            TxnStatusEntry(
                txn_hash=_decode_hash(item.get("txnHash"), "txnHash"),
                status=TxnStatus.from_string(str(item.get("status", ""))),
            )
        )

    height = data.get("height")
    if height is not None and not isinstance(height, int):
        raise BlockDecodeError(f"height must be an integer, got {height!r}")

    return Block(proposals=tuple(proposals), txn_statuses=tuple(statuses), height=height)


def decode_block(raw: str | bytes) -> Block:
    """
    Decode a full block frame.

    Raises BlockDecodeError if the frame is not a block frame or is malformed.
    """
    frame_type, data = decode_frame(raw)
    if frame_type != "block":
        raise BlockDecodeError(f"Expected a block frame, got {frame_type!r}")
    return block_from_dict(data)


def block_to_dict(block: Block) -> dict[str, Any]:
    """Inverse of block_from_dict, used by the dev block sender."""
    return {
        "height": block.height,
        "proposals": [
            {
                "hash": p.txn_hash.hex(),
                "symbol": p.symbol,
                "title": p.title,
                "synopsis": p.synopsis,
            }
            for p in block.proposals
        ],
        "txnStatuses": [
            {"txnHash": s.txn_hash.hex(), "status": s.status.value}
            for s in block.txn_statuses
        ],
    }


def encode_block_frame(block: Block) -> str:
    return json.dumps({"type": "block", "data": block_to_dict(block)})
