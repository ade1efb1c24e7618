"""Beacon API client for reading chain state from a beacon node."""

from .exceptions import (
    BeaconAPIError,
    BlockNotFoundError,
    MalformedResponseError,
    StateNotFoundError,
)
from .client import BeaconClient
from .types import BlockHeader, ProposerDuty, SyncStatus

__all__ = [
    "BeaconClient",
    "BeaconAPIError",
    "BlockNotFoundError",
    "MalformedResponseError",
    "StateNotFoundError",
    "BlockHeader",
    "ProposerDuty",
    "SyncStatus",
]
