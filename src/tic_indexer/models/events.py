"""Feed event models: inscriptions, transfers and reorg notices."""

from __future__ import annotations

from dataclasses import dataclass

ZERO_ADDRESS = "0x0000000000000000000000000000000000000000"

# Upper bound for a transaction index; used to address "end of block".
MAX_TX_INDEX = 2**31 - 1


@dataclass(frozen=True, order=True)
class Sequence:
    """Canonical ordering key ``(block, index)`` of an on-chain event."""

    block: int
    index: int

    @classmethod
    def end_of_block(cls, block: int) -> Sequence:
        """The last possible position in ``block``."""
        return cls(block, MAX_TX_INDEX)

    @classmethod
    def from_dict(cls, data: dict) -> Sequence:
        return cls(int(data["block"]), int(data["index"]))

    def to_dict(self) -> dict:
        return {"block": self.block, "index": self.index}

    def __str__(self) -> str:
        return f"{self.block}:{self.index}"


@dataclass(frozen=True)
class InscriptionEvent:
    """An ethscription creation observed by the inscription layer."""

    ethscription_id: str
    creator: str
    block_number: int
    transaction_index: int
    mime_type: str
    raw_payload: str

    @property
    def sequence(self) -> Sequence:
        return Sequence(self.block_number, self.transaction_index)


@dataclass(frozen=True)
class TransferEvent:
    """An ethscription transfer. Only zero-address transfers matter."""

    ethscription_id: str
    from_address: str
    to_address: str
    block_number: int
    transaction_index: int

    @property
    def sequence(self) -> Sequence:
        return Sequence(self.block_number, self.transaction_index)

    @property
    def is_burn(self) -> bool:
        return self.to_address.lower() == ZERO_ADDRESS


@dataclass(frozen=True)
class ReorgNotice:
    """Emitted by the feed before it redelivers events after ``sequence``."""

    sequence: Sequence
