"""Epoch sequencing and backfill.

Every tick the controller works out the newest epoch that is safe to
process, backfills the stored epochs missing below it in ascending order and
then processes the target epoch itself. Each epoch is computed from the state
at its last slot and the state at the last slot of the epoch before; the
state of one epoch is handed on as the previous state of the next as long as
the two are adjacent.
"""

import asyncio
import logging
import sqlite3
import time
from dataclasses import dataclass
from typing import Optional, Sequence

import aiohttp

from . import metrics
from .beacon import BeaconAPIError, BeaconClient
from .performance import (
    InconsistentStateError,
    ProposalDataError,
    ProposalDuties,
    ProposalDutiesMetrics,
    ValidatorPerformanceMetrics,
    build_pubkey_index,
    count_slashed_validators,
    get_active_indexes,
    get_indexes_from_keys,
    get_pool_proposal_duties,
    get_pool_sync_committee_indexes,
    log_metrics,
    log_proposal_duties,
    populate_participation_and_balance,
)
from .pools import Pool, PoolError, resolve_keys
from .spec import NetworkConfig, StateAccessError, VersionedBeaconState, get_epoch
from .spec.constants import SAFETY_MARGIN_EPOCHS
from .store import Database

logger = logging.getLogger(__name__)

# Errors that abort a single epoch; it stays missing and is retried later
EPOCH_ERRORS = (
    BeaconAPIError,
    aiohttp.ClientError,
    asyncio.TimeoutError,
    StateAccessError,
    InconsistentStateError,
    ProposalDataError,
    PoolError,
    sqlite3.Error,
)


class EpochProcessingError(Exception):
    """Processing of one epoch failed."""

    def __init__(self, epoch: int, message: str):
        self.epoch = epoch
        super().__init__(f"Epoch {epoch}: {message}")


@dataclass(frozen=True)
class PipelineCursor:
    """Progress carried from one tick to the next."""

    last_processed_epoch: int = 0
    previous_state: Optional[VersionedBeaconState] = None


class EpochController:
    """Decides which epochs to process and runs the pipeline on them."""

    def __init__(
        self,
        client: BeaconClient,
        database: Database,
        network: NetworkConfig,
        pools: Sequence[str],
        backfill_epochs: int = 0,
        epoch_debug: Optional[int] = None,
        state_timeout: float = 60.0,
        poll_interval: float = 5.0,
    ):
        self.client = client
        self.database = database
        self.network = network
        self.pools = list(pools)
        self.backfill_epochs = backfill_epochs
        self.epoch_debug = epoch_debug
        self.state_timeout = state_timeout
        self.poll_interval = poll_interval
        self.proposal_duties = ProposalDuties(client, network.slots_per_epoch)

    @property
    def slots_per_epoch(self) -> int:
        return self.network.slots_per_epoch

    def state_slot(self, epoch: int) -> int:
        """Last slot of the epoch, where all its attestations are included."""
        return (epoch + 1) * self.slots_per_epoch - 1

    async def fetch_state(self, epoch: int) -> VersionedBeaconState:
        """Fetch the state at the last slot of the epoch.

        Raises:
            InconsistentStateError: if the node returns a state of another epoch
        """
        slot = self.state_slot(epoch)
        logger.info(f"Fetching beacon state for epoch {epoch} (slot {slot})")
        state = await self.client.get_state(
            str(slot),
            timeout=self.state_timeout,
            fallback_version=self.network.fork_at_epoch(epoch),
        )
        state_epoch = get_epoch(state, self.slots_per_epoch)
        if state_epoch != epoch:
            raise InconsistentStateError(
                f"Requested state of epoch {epoch}, got epoch {state_epoch}"
            )
        logger.info(f"Got beacon state for epoch {epoch} ({state.version})")
        return state

    async def get_target_epoch(self) -> Optional[int]:
        """Newest epoch to process, or None while the node is syncing."""
        status = await self.client.get_syncing()
        if status.is_syncing:
            logger.warning(f"Beacon node is syncing (distance {status.sync_distance} slots)")
            return None
        metrics.update_head(status.head_slot)

        if self.epoch_debug is not None:
            logger.warning(f"Debugging mode, calculating metrics for epoch {self.epoch_debug}")
            return self.epoch_debug
        return status.head_slot // self.slots_per_epoch - SAFETY_MARGIN_EPOCHS

    async def tick(self, cursor: PipelineCursor) -> PipelineCursor:
        """Run one pass of the pipeline and return the updated cursor."""
        try:
            target = await self.get_target_epoch()
        except (BeaconAPIError, aiohttp.ClientError, asyncio.TimeoutError) as e:
            logger.error(f"Could not get node sync status: {e}")
            return cursor

        if target is None or target < 1:
            return cursor
        metrics.update_target_epoch(target)
        if target <= cursor.last_processed_epoch:
            return cursor

        try:
            missing = self.database.get_missing_epochs(target, self.backfill_epochs)
        except sqlite3.Error as e:
            logger.error(f"Could not read missing epochs: {e}")
            return cursor

        # Epoch 0 has no previous state; the target is processed last
        backfill = [e for e in missing if 1 <= e < target]
        if backfill:
            logger.info(f"Backfilling epochs: {backfill}")

        previous_state = cursor.previous_state
        for epoch in backfill:
            try:
                previous_state = await self.process_epoch(epoch, previous_state)
            except EpochProcessingError as e:
                logger.error(str(e))

        try:
            state = await self.process_epoch(target, previous_state)
        except EpochProcessingError as e:
            logger.error(str(e))
            return PipelineCursor(cursor.last_processed_epoch, previous_state)

        metrics.update_last_processed_epoch(target)
        return PipelineCursor(last_processed_epoch=target, previous_state=state)

    async def process_epoch(
        self,
        epoch: int,
        previous_state: Optional[VersionedBeaconState],
    ) -> VersionedBeaconState:
        """Compute and store the metrics of every pool for one epoch.

        Args:
            epoch: Epoch to process
            previous_state: State of the epoch before, if already fetched

        Returns:
            The state of the processed epoch

        Raises:
            EpochProcessingError: if any step fails; nothing is stored
        """
        start = time.monotonic()
        try:
            state = await self._process_epoch(epoch, previous_state)
        except EPOCH_ERRORS as e:
            metrics.record_epoch_processed("failure", time.monotonic() - start)
            raise EpochProcessingError(epoch, f"{type(e).__name__}: {e}") from e

        elapsed = time.monotonic() - start
        metrics.record_epoch_processed("success", elapsed)
        logger.info(f"Processed epoch {epoch} in {elapsed:.1f}s")
        return state

    async def _process_epoch(
        self,
        epoch: int,
        previous_state: Optional[VersionedBeaconState],
    ) -> VersionedBeaconState:
        if previous_state is not None:
            previous_epoch = get_epoch(previous_state, self.slots_per_epoch)
            if previous_epoch != epoch - 1:
                logger.debug(f"Cached state of epoch {previous_epoch} is not adjacent to {epoch}, refetching")
                previous_state = None

        duties = await self.proposal_duties.get_proposal_duties(epoch)
        blocks = await self.proposal_duties.get_proposed_blocks(epoch)
        proposal_metrics = self.proposal_duties.get_proposal_metrics(duties, blocks)

        state = await self.fetch_state(epoch)
        if previous_state is None:
            previous_state = await self.fetch_state(epoch - 1)

        key_to_index = build_pubkey_index(state)
        total, slashed = count_slashed_validators(state)
        logger.info(f"Network stats: total_validators={total} slashed_validators={slashed}")

        results = []
        for identifier in self.pools:
            pool = resolve_keys(identifier)
            results.append(
                self._process_pool(pool, state, previous_state, key_to_index, proposal_metrics)
            )

        # Stored only once every pool succeeded
        for performance, pool_duties in results:
            self.database.store_validator_performance(performance)
            self.database.store_proposal_duties(
                pool_duties.epoch,
                performance.pool_name,
                len(pool_duties.scheduled),
                len(pool_duties.proposed),
            )
            metrics.update_pool_performance(
                performance.pool_name,
                performance.n_validating_keys,
                len(performance.indexes_missed_att),
            )
            metrics.update_pool_proposals(
                performance.pool_name,
                len(pool_duties.scheduled),
                len(pool_duties.proposed),
                len(pool_duties.missed),
            )

        return state

    def _process_pool(
        self,
        pool: Pool,
        state: VersionedBeaconState,
        previous_state: VersionedBeaconState,
        key_to_index: dict[bytes, int],
        proposal_metrics: ProposalDutiesMetrics,
    ) -> tuple[ValidatorPerformanceMetrics, ProposalDutiesMetrics]:
        indexes = get_indexes_from_keys(pool.pubkeys, key_to_index)
        active = get_active_indexes(indexes, state, self.slots_per_epoch)

        performance = populate_participation_and_balance(
            pool.name, active, state, previous_state, self.slots_per_epoch
        )
        sync_indexes = get_pool_sync_committee_indexes(state, key_to_index, active)

        logger.info(
            f"Pool {pool.name}: keys={len(pool.pubkeys)} in_state={len(indexes)} "
            f"active={len(active)} sync_committee={sync_indexes}"
        )
        log_metrics(performance)

        pool_duties = get_pool_proposal_duties(proposal_metrics, active)
        log_proposal_duties(pool_duties, pool.name)
        return performance, pool_duties

    async def run(self, stop_event: asyncio.Event) -> None:
        """Tick until stopped.

        In debug mode runs a single tick for the pinned epoch.

        Raises:
            EpochProcessingError: in debug mode, if the pinned epoch was not processed
        """
        cursor = PipelineCursor()
        if self.epoch_debug is not None:
            cursor = await self.tick(cursor)
            if cursor.last_processed_epoch != self.epoch_debug:
                raise EpochProcessingError(self.epoch_debug, "debug run could not process the epoch")
            logger.warning("Running in debug mode, exiting ok")
            return

        while not stop_event.is_set():
            cursor = await self.tick(cursor)
            try:
                await asyncio.wait_for(stop_event.wait(), timeout=self.poll_interval)
            except asyncio.TimeoutError:
                pass
