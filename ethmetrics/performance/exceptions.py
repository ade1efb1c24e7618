"""Errors raised while computing per-epoch performance."""


class InconsistentStateError(Exception):
    """The current and previous states cannot be compared for a validator set."""


class ProposalDataError(Exception):
    """Proposer duties or proposed blocks are missing for an epoch."""
