"""Tests for participation flag decoding."""

import pytest

from ethmetrics.spec import ParticipationFlags
from ethmetrics.spec.participation import has_flag


class TestParticipationFlags:
    """Bit 0 is source, bit 1 is target, bit 2 is head."""

    def test_no_flags(self):
        flags = ParticipationFlags(0b000)
        assert not flags.has_correct_source
        assert not flags.has_correct_target
        assert not flags.has_correct_head

    def test_all_flags(self):
        flags = ParticipationFlags(0b111)
        assert flags.has_correct_source
        assert flags.has_correct_target
        assert flags.has_correct_head

    @pytest.mark.parametrize(
        "value,source,target,head",
        [
            (0b001, True, False, False),
            (0b010, False, True, False),
            (0b100, False, False, True),
            (0b110, False, True, True),
        ],
    )
    def test_single_bits(self, value, source, target, head):
        flags = ParticipationFlags(value)
        assert flags.has_correct_source is source
        assert flags.has_correct_target is target
        assert flags.has_correct_head is head

    def test_higher_bits_ignored(self):
        flags = ParticipationFlags(0b1000)
        assert not flags.has_correct_source
        assert not flags.has_correct_target
        assert not flags.has_correct_head

    def test_has_flag(self):
        assert has_flag(0b101, 0)
        assert not has_flag(0b101, 1)
        assert has_flag(0b101, 2)
