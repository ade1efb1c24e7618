"""Beacon API response types."""

from dataclasses import dataclass


@dataclass(frozen=True)
class SyncStatus:
    """Node sync status from /eth/v1/node/syncing."""

    head_slot: int
    sync_distance: int
    is_syncing: bool

    @classmethod
    def from_json(cls, data: dict) -> "SyncStatus":
        return cls(
            head_slot=int(data["head_slot"]),
            sync_distance=int(data.get("sync_distance", 0)),
            is_syncing=bool(data["is_syncing"]),
        )


@dataclass(frozen=True)
class ProposerDuty:
    """Proposer duty for a slot."""

    validator_index: int
    slot: int
    pubkey: bytes

    @classmethod
    def from_json(cls, data: dict) -> "ProposerDuty":
        return cls(
            validator_index=int(data["validator_index"]),
            slot=int(data["slot"]),
            pubkey=bytes.fromhex(data["pubkey"].replace("0x", "")),
        )


@dataclass(frozen=True)
class BlockHeader:
    """Canonical block header observed at a slot."""

    slot: int
    proposer_index: int
    root: bytes

    @classmethod
    def from_json(cls, data: dict) -> "BlockHeader":
        message = data["header"]["message"]
        return cls(
            slot=int(message["slot"]),
            proposer_index=int(message["proposer_index"]),
            root=bytes.fromhex(data["root"].replace("0x", "")),
        )
