"""Records produced once per epoch per pool."""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Optional


@dataclass(frozen=True)
class ValidatorPerformanceMetrics:
    """Attestation and balance summary of one pool at one epoch.

    Balances are in Gwei. lost_balance is the magnitude of the summed
    negative deltas, so it is never negative.
    """

    epoch: int
    pool_name: str
    time: datetime
    n_validating_keys: int
    n_total_votes: int
    n_incorrect_source: int
    n_incorrect_target: int
    n_incorrect_head: int
    indexes_less_balance: tuple[int, ...]
    indexes_missed_att: tuple[int, ...]
    earned_balance: int
    lost_balance: int
    total_balance: int
    effective_balance: int
    total_rewards: int
    delta_epoch_balance: int


@dataclass(frozen=True)
class Duty:
    """A scheduled proposal duty or an observed proposed block."""

    validator_index: int
    slot: int
    graffiti: Optional[str] = None


@dataclass(frozen=True)
class ProposalDutiesMetrics:
    epoch: int
    scheduled: tuple[Duty, ...] = field(default_factory=tuple)
    proposed: tuple[Duty, ...] = field(default_factory=tuple)
    missed: tuple[Duty, ...] = field(default_factory=tuple)
