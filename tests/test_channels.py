"""Tests for the channel group model."""

from dataclasses import replace

import numpy as np
import pytest

from f2heal.config import Mode, StimulationConfig
from f2heal.core.channels import (
    CHANNELS,
    Channel,
    Side,
    group_channels,
    group_errors,
    group_timings,
    ms_to_samples,
    resolve_groups,
    shuffled_order,
)
from f2heal.errors import ConfigurationError


class TestChannel:
    """Tests for channel index mapping."""

    def test_eight_channels_in_index_order(self):
        assert len(CHANNELS) == 8
        assert [c.index for c in CHANNELS] == list(range(8))

    def test_from_index_maps_group_slot_side(self):
        channel = Channel.from_index(5)

        assert channel.group == 1
        assert channel.slot == 1
        assert channel.side is Side.RIGHT

    def test_first_group_is_left(self):
        for channel in CHANNELS[:4]:
            assert channel.side is Side.LEFT
            assert channel.group == 0

    @pytest.mark.parametrize("index", [-1, 8, 42])
    def test_out_of_range_index_rejected(self, index):
        with pytest.raises(ConfigurationError):
            Channel.from_index(index)

    def test_group_channels(self):
        assert [c.index for c in group_channels(1)] == [4, 5, 6, 7]
        assert [c.slot for c in group_channels(0)] == [0, 1, 2, 3]

    def test_unknown_group_rejected(self):
        with pytest.raises(ConfigurationError):
            group_channels(2)


class TestMsToSamples:
    """Tests for millisecond conversion."""

    def test_default_block_length(self):
        assert ms_to_samples(166.5, 44100) == 7343

    def test_exact_conversion(self):
        assert ms_to_samples(250, 1000) == 250


class TestGroupTimings:
    """Tests for per-group timing resolution."""

    def test_symmetric_groups_match(self, blocked_config):
        left, right = group_timings(blocked_config)

        assert left.group == 0
        assert right.group == 1
        assert left.block_length == right.block_length == 250
        assert left.cycle_length == 1000
        assert group_errors(left, right) == []

    def test_right_overrides(self, blocked_config):
        config = replace(
            blocked_config, right_frequency=80.0, right_offset_ms=10.0, asymmetric=True
        )
        left, right = group_timings(config)

        assert left.frequency == 50.0
        assert right.frequency == 80.0
        assert left.start_offset == 0
        assert right.start_offset == 10

    def test_asymmetry_needs_opt_in(self, blocked_config):
        left, right = group_timings(replace(blocked_config, right_frequency=80.0))

        errors = group_errors(left, right, asymmetric=False)
        assert any(e.startswith("frequency") for e in errors)
        assert group_errors(left, right, asymmetric=True) == []

    def test_mirroring_is_always_allowed(self, blocked_config):
        left, right = group_timings(replace(blocked_config, mirror_right=True))

        assert right.mirrored
        assert group_errors(left, right) == []

    def test_timing_slot_reversed_when_mirrored(self, blocked_config):
        _, right = group_timings(replace(blocked_config, mirror_right=True))

        assert [right.timing_slot(c) for c in group_channels(1)] == [3, 2, 1, 0]

    def test_pauses_sorted_and_deduplicated(self, blocked_config):
        left, _ = group_timings(replace(blocked_config, pauses=(3, 1, 3)))

        assert left.pauses == (1, 3)


class TestShuffledOrder:
    """Tests for randomized channel order."""

    def test_each_round_is_a_permutation(self):
        order = shuffled_order(np.random.default_rng(0), 50)

        assert len(order) == 50
        for row in order:
            assert sorted(row) == [0, 1, 2, 3]

    def test_no_slot_repeats_across_rounds(self):
        order = shuffled_order(np.random.default_rng(1), 200)

        for previous, current in zip(order, order[1:]):
            assert current[0] != previous[-1]

    def test_same_seed_same_order(self):
        a = shuffled_order(np.random.default_rng(9), 20)
        b = shuffled_order(np.random.default_rng(9), 20)

        np.testing.assert_array_equal(a, b)

    def test_long_table_is_one_array(self):
        order = shuffled_order(np.random.default_rng(4), 250_000)

        assert order.shape == (250_000, 4)
        assert not order.flags.writeable
        assert (np.sort(order, axis=1) == np.arange(4)).all()
        assert (order[1:, 0] != order[:-1, -1]).all()


class TestResolveGroups:
    """Tests for validated group resolution."""

    def test_round_robin_without_shuffle(self, blocked_config):
        left, right = resolve_groups(blocked_config)

        assert left.order is None
        assert left.order_table is None
        assert right.order is None

    def test_shuffle_needs_seed(self, blocked_config):
        with pytest.raises(ConfigurationError):
            resolve_groups(replace(blocked_config, shuffle=True))

    def test_shuffle_covers_every_round(self, blocked_config):
        config = replace(blocked_config, shuffle=True, seed=5, duration=20.0)
        left, right = resolve_groups(config)

        # 20 s at 1000 Hz over 1000-sample rounds
        assert left.order_table.shape == (20, 4)
        assert right.order_table.shape == (20, 4)

    def test_groups_shuffle_independently(self, blocked_config):
        config = replace(blocked_config, shuffle=True, seed=5, duration=20.0)
        left, right = resolve_groups(config)

        assert not np.array_equal(left.order_table, right.order_table)

    def test_shuffle_is_reproducible(self, blocked_config):
        config = replace(blocked_config, shuffle=True, seed=123)

        first, second = resolve_groups(config), resolve_groups(config)

        assert first == second
        for a, b in zip(first, second):
            np.testing.assert_array_equal(a.order_table, b.order_table)

    def test_order_table_is_read_only(self, blocked_config):
        left, _ = resolve_groups(replace(blocked_config, shuffle=True, seed=5))

        with pytest.raises(ValueError):
            left.order_table[0, 0] = 3

    def test_invalid_config_rejected(self):
        with pytest.raises(ConfigurationError):
            resolve_groups(StimulationConfig(mode=Mode.FIXED_PHASE_SHIFTED))
