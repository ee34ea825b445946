"""
Tests for strategy tags and sequence enumeration.
"""

import pytest

from planner.strategy.strategies import (
    MAX_HORIZON_HOURS,
    Strategy,
    permutation_at,
    permutation_count,
    permute,
)


class TestStrategy:
    def test_tags(self):
        assert [s.tag for s in Strategy] == ["default", "preserve", "charge", "discharge"]
        assert str(Strategy.CHARGE) == "charge"

    def test_from_tag(self):
        assert Strategy.from_tag("discharge") is Strategy.DISCHARGE
        assert Strategy.from_tag(" Preserve ") is Strategy.PRESERVE

    @pytest.mark.parametrize("tag", ["", "idle", None])
    def test_from_tag_rejects_unknown(self, tag):
        with pytest.raises(ValueError, match="Unknown strategy"):
            Strategy.from_tag(tag)

    def test_is_valid(self):
        assert Strategy.is_valid(0)
        assert Strategy.is_valid(3)
        assert not Strategy.is_valid(4)
        assert not Strategy.is_valid(-1)


class TestPermute:
    def test_count(self):
        assert permutation_count(1) == 4
        assert permutation_count(3) == 64
        assert permutation_count(0) == 1
        assert permutation_count(MAX_HORIZON_HOURS + 1) == 1

    def test_single_hour_order(self):
        assert list(permute(1)) == [
            (Strategy.DEFAULT,),
            (Strategy.PRESERVE,),
            (Strategy.CHARGE,),
            (Strategy.DISCHARGE,),
        ]

    def test_hour_zero_is_most_significant(self):
        sequences = list(permute(2))
        assert sequences[1] == (Strategy.DEFAULT, Strategy.PRESERVE)
        assert sequences[4] == (Strategy.PRESERVE, Strategy.DEFAULT)
        assert sequences[-1] == (Strategy.DISCHARGE, Strategy.DISCHARGE)

    def test_all_sequences_unique(self):
        sequences = list(permute(3))
        assert len(sequences) == 64
        assert len(set(sequences)) == 64
        assert all(len(seq) == 3 for seq in sequences)

    def test_permutation_at_matches_permute(self):
        for index, sequence in enumerate(permute(3)):
            assert permutation_at(index, 3) == sequence

    @pytest.mark.parametrize("hours", [0, -1, 25])
    def test_unsupported_horizon_yields_single_empty_sequence(self, hours):
        assert list(permute(hours)) == [()]
        assert permutation_at(0, hours) == ()

    def test_max_horizon_is_lazy(self):
        first = next(iter(permute(MAX_HORIZON_HOURS)))
        assert first == (Strategy.DEFAULT,) * MAX_HORIZON_HOURS
        assert permutation_at(permutation_count(MAX_HORIZON_HOURS) - 1, MAX_HORIZON_HOURS) == (
            (Strategy.DISCHARGE,) * MAX_HORIZON_HOURS
        )
