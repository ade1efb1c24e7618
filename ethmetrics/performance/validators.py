"""Validator performance calculator.

Compares a pool's validators across two consecutive beacon states: the
participation flags of the previous epoch as recorded in the current state,
and the balance change between the states.
"""

import logging
from datetime import datetime, timezone
from typing import Sequence

from ..spec.accessors import (
    VersionedBeaconState,
    get_balances,
    get_current_sync_committee_keys,
    get_epoch,
    get_previous_epoch_participation,
    get_timestamp,
    get_validators,
    is_active_validator,
)
from ..spec.constants import VOTES_PER_VALIDATOR
from ..spec.participation import ParticipationFlags
from .exceptions import InconsistentStateError
from .schemas import ValidatorPerformanceMetrics

logger = logging.getLogger(__name__)


def build_pubkey_index(state: VersionedBeaconState) -> dict[bytes, int]:
    """Map every validator public key in the registry to its index.

    Rebuilt for every epoch since new deposits append indexes.
    """
    return {v.pubkey: i for i, v in enumerate(get_validators(state))}


def get_indexes_from_keys(keys: Sequence[bytes], key_to_index: dict[bytes, int]) -> list[int]:
    """Resolve public keys to validator indexes.

    Indexes may belong to active, exited or slashed validators. Keys that
    are not in the registry yet (pending deposits) are skipped.
    """
    indexes = []
    for key in keys:
        index = key_to_index.get(key)
        if index is None:
            logger.debug(f"Index for key 0x{key.hex()} not found in beacon state")
            continue
        indexes.append(index)
    return indexes


def get_active_indexes(
    indexes: Sequence[int],
    state: VersionedBeaconState,
    slots_per_epoch: int,
) -> list[int]:
    """Keep the indexes that are active at the state's epoch.

    An index beyond the registry is dropped.
    """
    validators = get_validators(state)
    epoch = get_epoch(state, slots_per_epoch)
    return [
        i for i in indexes
        if i < len(validators) and is_active_validator(validators[i], epoch)
    ]


def get_participation(
    active_indexes: Sequence[int],
    state: VersionedBeaconState,
    slots_per_epoch: int,
) -> tuple[int, int, int, list[int]]:
    """Count incorrect source, target and head votes of the previous epoch.

    Slashed and not yet activated validators are skipped. A validator
    without the source flag is reported as having missed its attestation.

    Returns:
        (n_incorrect_source, n_incorrect_target, n_incorrect_head, missed_indexes)
    """
    validators = get_validators(state)
    participation = get_previous_epoch_participation(state)
    epoch = get_epoch(state, slots_per_epoch)

    n_incorrect_source = 0
    n_incorrect_target = 0
    n_incorrect_head = 0
    missed = []

    for index in active_indexes:
        validator = validators[index]
        if validator.slashed:
            continue
        if validator.activation_epoch > epoch:
            continue

        flags = ParticipationFlags(participation[index])
        if not flags.has_correct_source:
            n_incorrect_source += 1
            missed.append(index)
        if not flags.has_correct_target:
            n_incorrect_target += 1
        if not flags.has_correct_head:
            n_incorrect_head += 1

    return n_incorrect_source, n_incorrect_target, n_incorrect_head, missed


def get_total_balance_and_effective(
    active_indexes: Sequence[int],
    state: VersionedBeaconState,
) -> tuple[int, int]:
    """Sum balance and effective balance of the given indexes in a state."""
    validators = get_validators(state)
    balances = get_balances(state)

    total_balance = 0
    effective_balance = 0
    for index in active_indexes:
        if index >= len(balances):
            logger.warning(f"Validator index {index} goes beyond the beacon state indexes")
            continue
        total_balance += balances[index]
        effective_balance += validators[index].effective_balance
    return total_balance, effective_balance


def get_validators_with_less_balance(
    active_indexes: Sequence[int],
    prev_state: VersionedBeaconState,
    state: VersionedBeaconState,
    slots_per_epoch: int,
) -> tuple[list[int], int, int]:
    """Classify each validator's balance change between two consecutive states.

    Returns:
        (indexes_with_less_balance, earned_balance, lost_balance), where
        lost_balance is the positive magnitude of the summed losses

    Raises:
        InconsistentStateError: if the states are not one epoch apart
    """
    prev_epoch = get_epoch(prev_state, slots_per_epoch)
    epoch = get_epoch(state, slots_per_epoch)
    if prev_epoch + 1 != epoch:
        raise InconsistentStateError(
            f"Epochs are not consecutive: {prev_epoch} vs {epoch}"
        )

    prev_balances = get_balances(prev_state)
    balances = get_balances(state)

    less_balance = []
    earned = 0
    lost = 0
    for index in active_indexes:
        # Validator registered after the previous state
        if index >= len(prev_balances):
            logger.warning(f"Validator index {index} not present in previous beacon state")
            continue

        delta = balances[index] - prev_balances[index]
        if delta < 0:
            less_balance.append(index)
            lost += -delta
        else:
            earned += delta

    return less_balance, earned, lost


def populate_participation_and_balance(
    pool_name: str,
    active_indexes: Sequence[int],
    state: VersionedBeaconState,
    prev_state: VersionedBeaconState,
    slots_per_epoch: int,
) -> ValidatorPerformanceMetrics:
    """Compute the performance record of a pool for the state's epoch.

    Args:
        pool_name: Name the record is stored under
        active_indexes: Pool validator indexes active at the state's epoch
        state: State at the last slot of the epoch
        prev_state: State at the last slot of the epoch before
        slots_per_epoch: Network SLOTS_PER_EPOCH

    Raises:
        InconsistentStateError: if the effective balance of the set differs
            between the two states, or the states are not consecutive
        StateAccessError: if a state lacks a required field
    """
    n_incorrect_source, n_incorrect_target, n_incorrect_head, missed = get_participation(
        active_indexes, state, slots_per_epoch
    )

    total_balance, effective_balance = get_total_balance_and_effective(active_indexes, state)
    prev_total_balance, prev_effective_balance = get_total_balance_and_effective(
        active_indexes, prev_state
    )

    if effective_balance != prev_effective_balance:
        raise InconsistentStateError(
            f"Can't calculate delta balances for {pool_name}, effective balances "
            f"are different: {effective_balance} vs {prev_effective_balance}"
        )

    rewards = total_balance - effective_balance
    delta_epoch_balance = total_balance - prev_total_balance

    less_balance, earned, lost = get_validators_with_less_balance(
        active_indexes, prev_state, state, slots_per_epoch
    )

    return ValidatorPerformanceMetrics(
        epoch=get_epoch(state, slots_per_epoch),
        pool_name=pool_name,
        time=datetime.fromtimestamp(get_timestamp(state), tz=timezone.utc),
        n_validating_keys=len(active_indexes),
        n_total_votes=len(active_indexes) * VOTES_PER_VALIDATOR,
        n_incorrect_source=n_incorrect_source,
        n_incorrect_target=n_incorrect_target,
        n_incorrect_head=n_incorrect_head,
        indexes_less_balance=tuple(less_balance),
        indexes_missed_att=tuple(missed),
        earned_balance=earned,
        lost_balance=lost,
        total_balance=total_balance,
        effective_balance=effective_balance,
        total_rewards=rewards,
        delta_epoch_balance=delta_epoch_balance,
    )


def get_pool_sync_committee_indexes(
    state: VersionedBeaconState,
    key_to_index: dict[bytes, int],
    active_indexes: Sequence[int],
) -> list[int]:
    """Pool validators that are members of the current sync committee."""
    committee_indexes = get_indexes_from_keys(get_current_sync_committee_keys(state), key_to_index)
    active = set(active_indexes)
    return [i for i in committee_indexes if i in active]


def count_slashed_validators(state: VersionedBeaconState) -> tuple[int, int]:
    """Return (total validators, slashed validators) of the registry."""
    validators = get_validators(state)
    slashed = sum(1 for v in validators if v.slashed)
    return len(validators), slashed


def _percent(part: int, total: int) -> float:
    if total == 0:
        return 0.0
    return part / total * 100


def log_metrics(metrics: ValidatorPerformanceMetrics) -> None:
    """Log a pool's performance record as key=value fields."""
    n = metrics.n_validating_keys
    logger.info(
        f"{metrics.pool_name} stats: epoch={metrics.epoch} "
        f"validators={n} total_votes={metrics.n_total_votes} "
        f"incorrect_source={metrics.n_incorrect_source} "
        f"({_percent(metrics.n_incorrect_source, n):.2f}%) "
        f"incorrect_target={metrics.n_incorrect_target} "
        f"({_percent(metrics.n_incorrect_target, n):.2f}%) "
        f"incorrect_head={metrics.n_incorrect_head} "
        f"({_percent(metrics.n_incorrect_head, n):.2f}%) "
        f"decreased_balance={len(metrics.indexes_less_balance)} "
        f"({_percent(len(metrics.indexes_less_balance), n):.2f}%) "
        f"earned={metrics.earned_balance} lost={metrics.lost_balance} "
        f"total_balance={metrics.total_balance} "
        f"effective_balance={metrics.effective_balance} "
        f"rewards={metrics.total_rewards} delta={metrics.delta_epoch_balance}"
    )
    if metrics.indexes_missed_att:
        logger.info(f"{metrics.pool_name} missed attestations: {list(metrics.indexes_missed_att)}")
    if metrics.indexes_less_balance:
        logger.info(f"{metrics.pool_name} decreased balance: {list(metrics.indexes_less_balance)}")
