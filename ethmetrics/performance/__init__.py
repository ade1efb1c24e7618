"""Per-epoch validator and proposal performance of a pool."""

from .exceptions import InconsistentStateError, ProposalDataError
from .schemas import Duty, ProposalDutiesMetrics, ValidatorPerformanceMetrics
from .proposals import (
    ProposalDuties,
    get_missed_duties,
    get_pool_proposal_duties,
    log_proposal_duties,
)
from .validators import (
    build_pubkey_index,
    count_slashed_validators,
    get_active_indexes,
    get_indexes_from_keys,
    get_pool_sync_committee_indexes,
    log_metrics,
    populate_participation_and_balance,
)

__all__ = [
    "InconsistentStateError",
    "ProposalDataError",
    "Duty",
    "ProposalDutiesMetrics",
    "ValidatorPerformanceMetrics",
    "ProposalDuties",
    "get_missed_duties",
    "get_pool_proposal_duties",
    "log_proposal_duties",
    "build_pubkey_index",
    "count_slashed_validators",
    "get_active_indexes",
    "get_indexes_from_keys",
    "get_pool_sync_committee_indexes",
    "log_metrics",
    "populate_participation_and_balance",
]
