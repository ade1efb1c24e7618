"""Consensus layer types, constants and the versioned state accessor."""

from .accessors import (
    StateAccessError,
    VersionedBeaconState,
    get_balances,
    get_current_sync_committee_keys,
    get_epoch,
    get_previous_epoch_participation,
    get_slot,
    get_timestamp,
    get_validators,
)
from .network_config import NetworkConfig
from .participation import ParticipationFlags

__all__ = [
    "StateAccessError",
    "VersionedBeaconState",
    "NetworkConfig",
    "ParticipationFlags",
    "get_balances",
    "get_current_sync_committee_keys",
    "get_epoch",
    "get_previous_epoch_participation",
    "get_slot",
    "get_timestamp",
    "get_validators",
]
