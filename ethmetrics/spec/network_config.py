"""Network parameters read from the beacon node at startup."""

import logging
from dataclasses import dataclass, field

from .constants import FAR_FUTURE_EPOCH, KNOWN_REVISIONS, PHASE0

logger = logging.getLogger(__name__)


class StartupError(Exception):
    """The beacon node did not provide a parameter required to run."""


@dataclass
class NetworkConfig:
    """Network timing and fork schedule."""

    genesis_time: int
    slots_per_epoch: int
    seconds_per_slot: int
    fork_epochs: dict[str, int] = field(default_factory=dict)

    @classmethod
    def from_beacon_node(cls, genesis: dict, spec: dict) -> "NetworkConfig":
        """Build the config from /eth/v1/beacon/genesis and /eth/v1/config/spec data.

        Raises:
            StartupError: if a required field is missing or not an integer
        """
        def required(source: dict, key: str) -> int:
            if key not in source:
                raise StartupError(f"{key} not found in beacon node response")
            try:
                return int(source[key])
            except (TypeError, ValueError) as e:
                raise StartupError(f"Invalid {key}: {source[key]!r}") from e

        fork_epochs = {}
        for revision in KNOWN_REVISIONS:
            if revision == PHASE0:
                continue
            key = f"{revision.upper()}_FORK_EPOCH"
            if key in spec:
                fork_epochs[revision] = int(spec[key])

        config = cls(
            genesis_time=required(genesis, "genesis_time"),
            slots_per_epoch=required(spec, "SLOTS_PER_EPOCH"),
            seconds_per_slot=required(spec, "SECONDS_PER_SLOT"),
            fork_epochs=fork_epochs,
        )
        if config.slots_per_epoch <= 0:
            raise StartupError(f"Invalid SLOTS_PER_EPOCH: {config.slots_per_epoch}")
        return config

    def fork_at_epoch(self, epoch: int) -> str:
        """Name of the fork revision active at the given epoch."""
        active = PHASE0
        for revision in KNOWN_REVISIONS:
            fork_epoch = self.fork_epochs.get(revision, FAR_FUTURE_EPOCH)
            if revision != PHASE0 and epoch >= fork_epoch:
                active = revision
        return active

