"""Proposal duty reconciler.

Matches the proposer schedule of an epoch against the block headers that
were actually included, then splits the result per pool.
"""

import logging
from typing import Optional, Sequence

from ..beacon import BeaconClient, BlockHeader, BlockNotFoundError, ProposerDuty
from ..spec.accessors import compute_epoch_at_slot
from .exceptions import ProposalDataError
from .schemas import Duty, ProposalDutiesMetrics

logger = logging.getLogger(__name__)


class ProposalDuties:
    """Fetches proposer duties and proposed blocks from a beacon node."""

    def __init__(self, client: BeaconClient, slots_per_epoch: int):
        self.client = client
        self.slots_per_epoch = slots_per_epoch

    async def get_proposal_duties(self, epoch: int) -> list[ProposerDuty]:
        """Proposer schedule of the epoch for all validators."""
        logger.info(f"Fetching proposal duties for epoch {epoch}")
        return await self.client.get_proposer_duties(epoch)

    async def get_proposed_blocks(self, epoch: int) -> list[BlockHeader]:
        """Headers of the blocks included in every slot of the epoch.

        Empty slots (missed or orphaned blocks) are skipped. Any other
        error aborts the whole epoch.
        """
        logger.info(f"Fetching proposed blocks for epoch {epoch}")
        headers = []
        start = epoch * self.slots_per_epoch
        for slot in range(start, start + self.slots_per_epoch):
            try:
                header = await self.client.get_header(str(slot))
            except BlockNotFoundError:
                logger.warning(f"Block at slot {slot} was not found")
                continue
            headers.append(header)
        return headers

    def get_proposal_metrics(
        self,
        duties: Optional[Sequence[ProposerDuty]],
        blocks: Optional[Sequence[BlockHeader]],
    ) -> ProposalDutiesMetrics:
        """Zip scheduled duties with observed blocks.

        Raises:
            ProposalDataError: if either input is missing or there are no duties
        """
        if duties is None or blocks is None:
            raise ProposalDataError("Duties and blocks can't be None")
        if not duties:
            raise ProposalDataError("No proposer duties to derive the epoch from")

        if len(duties) != len(blocks):
            logger.warning(
                f"Duties and blocks have different sizes ({len(duties)} vs {len(blocks)}), "
                f"ok if blocks were missed or orphaned"
            )

        return ProposalDutiesMetrics(
            epoch=compute_epoch_at_slot(duties[0].slot, self.slots_per_epoch),
            scheduled=tuple(Duty(validator_index=d.validator_index, slot=d.slot) for d in duties),
            proposed=tuple(Duty(validator_index=b.proposer_index, slot=b.slot) for b in blocks),
        )


def get_missed_duties(scheduled: Sequence[Duty], proposed: Sequence[Duty]) -> list[Duty]:
    """Scheduled duties without a proposed block for the same (slot, index)."""
    seen = {(d.slot, d.validator_index) for d in proposed}
    return [d for d in scheduled if (d.slot, d.validator_index) not in seen]


def get_pool_proposal_duties(
    metrics: ProposalDutiesMetrics,
    active_indexes: Sequence[int],
) -> ProposalDutiesMetrics:
    """Restrict an epoch's duties to a pool's active validators."""
    pool = set(active_indexes)
    scheduled = [d for d in metrics.scheduled if d.validator_index in pool]
    proposed = [d for d in metrics.proposed if d.validator_index in pool]
    return ProposalDutiesMetrics(
        epoch=metrics.epoch,
        scheduled=tuple(scheduled),
        proposed=tuple(proposed),
        missed=tuple(get_missed_duties(scheduled, proposed)),
    )


def log_proposal_duties(pool_duties: ProposalDutiesMetrics, pool_name: str) -> None:
    for d in pool_duties.scheduled:
        logger.info(
            f"Scheduled duty: pool={pool_name} index={d.validator_index} slot={d.slot} "
            f"epoch={pool_duties.epoch} total_scheduled={len(pool_duties.scheduled)}"
        )
    for d in pool_duties.proposed:
        logger.info(
            f"Proposed duty: pool={pool_name} index={d.validator_index} slot={d.slot} "
            f"epoch={pool_duties.epoch} total_proposed={len(pool_duties.proposed)}"
        )
    for d in pool_duties.missed:
        logger.info(
            f"Missed duty: pool={pool_name} index={d.validator_index} slot={d.slot} "
            f"epoch={pool_duties.epoch} total_missed={len(pool_duties.missed)}"
        )
