"""
Ledger Block Models

Read-only view of the parts of a broadcast block the bot cares about:
governance proposals and the per-transaction status table.
"""
from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Optional


class TxnStatus(str, Enum):
    """Final status the ledger assigned to a transaction."""

    OK = "OK"
    FAULTY_TXN = "FAULTY_TXN"
    INSUFFICIENT_AMOUNT = "INSUFFICIENT_AMOUNT"
    INSUFFICIENT_CONTRACT_FEES = "INSUFFICIENT_CONTRACT_FEES"
    INVALID_CONTRACT = "INVALID_CONTRACT"
    INVALID_UTXO = "INVALID_UTXO"
    UNKNOWN = "UNKNOWN"

    @classmethod
    def from_string(cls, value: str) -> "TxnStatus":
        """Convert a wire status name to TxnStatus, defaulting to UNKNOWN."""
        v = value.strip().upper()
        if v.startswith("TXN_STATUS_"):
            v = v[len("TXN_STATUS_"):]
        for member in cls:
            if member.value == v:
                return member
        return cls.UNKNOWN


@dataclass(frozen=True)
class Proposal:
    """A governance proposal embedded in a block."""

    txn_hash: bytes
    symbol: str
    title: str
    synopsis: str = ""

    def __post_init__(self) -> None:
        if not self.txn_hash:
            raise ValueError("txn_hash must be non-empty")

    @property
    def proposal_id(self) -> str:
        """Hex-encoded content hash, used for display and explorer links."""
        return self.txn_hash.hex()


@dataclass(frozen=True)
class TxnStatusEntry:
    """One row of a block's transaction status table."""

    txn_hash: bytes
    status: TxnStatus


@dataclass(frozen=True)
class Block:
    """Proposals plus the parallel status table of one broadcast block."""

    proposals: tuple[Proposal, ...] = ()
    txn_statuses: tuple[TxnStatusEntry, ...] = ()
    height: Optional[int] = None
