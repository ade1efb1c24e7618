"""Participation flags.

Reference: https://github.com/ethereum/consensus-specs/blob/master/specs/altair/beacon-chain.md#participation-flag-indices
"""

from dataclasses import dataclass

from .constants import (
    TIMELY_SOURCE_FLAG_INDEX,
    TIMELY_TARGET_FLAG_INDEX,
    TIMELY_HEAD_FLAG_INDEX,
)


def has_flag(flags: int, flag_index: int) -> bool:
    """Check if the flag_index is set in flags.

    Args:
        flags: Participation flags
        flag_index: Flag index to check (0-7)

    Returns:
        True if flag is set
    """
    flag = 2**flag_index
    return (flags & flag) == flag


@dataclass(frozen=True)
class ParticipationFlags:
    """One validator's participation byte for one epoch."""

    value: int

    @property
    def has_correct_source(self) -> bool:
        return has_flag(self.value, TIMELY_SOURCE_FLAG_INDEX)

    @property
    def has_correct_target(self) -> bool:
        return has_flag(self.value, TIMELY_TARGET_FLAG_INDEX)

    @property
    def has_correct_head(self) -> bool:
        return has_flag(self.value, TIMELY_HEAD_FLAG_INDEX)
