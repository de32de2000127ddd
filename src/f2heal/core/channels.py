"""
Channel group model.

The eight output channels form two groups of four, one per hand. This
module maps a global channel index onto its group, slot and side, and turns
a stimulation config into the concrete per-group timing the waveform policy
evaluates.
"""

import logging
import math
from dataclasses import dataclass, field, replace
from enum import Enum
from typing import TYPE_CHECKING

import numpy as np

from f2heal.errors import ConfigurationError

if TYPE_CHECKING:
    from f2heal.config import StimulationConfig

logger = logging.getLogger(__name__)

CHANNEL_COUNT = 8
GROUP_COUNT = 2
GROUP_SIZE = 4

# Timing fields that must match across hands unless asymmetry is allowed.
# Mirroring is a layout choice and may always differ.
SYMMETRIC_FIELDS = (
    "frequency",
    "block_length",
    "pulse_width",
    "phase_fraction",
    "phase_offset",
    "start_offset",
    "pauses",
    "pause_period",
)


class Side(str, Enum):
    LEFT = "left"
    RIGHT = "right"


@dataclass(frozen=True)
class Channel:
    """One output channel driving one actuator."""

    index: int
    group: int
    slot: int
    side: Side

    @classmethod
    def from_index(cls, index: int) -> "Channel":
        if not 0 <= index < CHANNEL_COUNT:
            raise ConfigurationError(
                f"channel index must be in [0, {CHANNEL_COUNT - 1}], got {index}"
            )
        group, slot = divmod(index, GROUP_SIZE)
        side = Side.LEFT if group == 0 else Side.RIGHT
        return cls(index=index, group=group, slot=slot, side=side)


CHANNELS = tuple(Channel.from_index(i) for i in range(CHANNEL_COUNT))


def group_channels(group: int) -> tuple[Channel, ...]:
    """Return the four channels of a group, in slot order."""
    if not 0 <= group < GROUP_COUNT:
        raise ConfigurationError(f"group must be 0 or 1, got {group}")
    return CHANNELS[group * GROUP_SIZE:(group + 1) * GROUP_SIZE]


def ms_to_samples(ms: float, sample_rate: int) -> int:
    """Convert milliseconds to a whole number of samples (half-to-even)."""
    return round(ms * sample_rate / 1000.0)


@dataclass(frozen=True)
class GroupTiming:
    """Resolved timing for one group, all durations in samples."""

    group: int
    frequency: float
    block_length: int
    pulse_width: int
    phase_fraction: float = 0.25
    phase_offset: int = 0
    start_offset: int = 0
    mirrored: bool = False
    pauses: tuple[int, ...] = ()
    pause_period: int = 1
    # (n_rounds, 4) read-only array: the order in which the four slots are
    # visited in each round. None means plain round-robin (0, 1, 2, 3).
    order: np.ndarray | None = field(default=None, compare=False, repr=False)

    @property
    def cycle_length(self) -> int:
        """Samples in one full round over the group."""
        return self.block_length * GROUP_SIZE

    @property
    def order_table(self) -> np.ndarray | None:
        return self.order

    def timing_slot(self, channel: Channel) -> int:
        """Slot used for timing; mirrored groups run their slots in reverse."""
        if self.mirrored:
            return GROUP_SIZE - 1 - channel.slot
        return channel.slot


def group_timings(config: "StimulationConfig") -> tuple[GroupTiming, GroupTiming]:
    """
    Map config fields onto left and right group timing.

    No validation and no order tables; see resolve_groups().
    """
    sr = config.sample_rate
    block_length = config.block_samples()
    pulse_width = config.pulse_samples()
    phase_offset = config.phase_offset_samples()

    left = GroupTiming(
        group=0,
        frequency=config.frequency,
        block_length=block_length,
        pulse_width=pulse_width,
        phase_fraction=config.phase_fraction,
        phase_offset=phase_offset,
        pauses=tuple(sorted(set(config.pauses))),
        pause_period=config.pause_period,
    )
    right_frequency = (
        config.frequency if config.right_frequency is None else config.right_frequency
    )
    right = replace(
        left,
        group=1,
        frequency=right_frequency,
        start_offset=ms_to_samples(config.right_offset_ms, sr),
        mirrored=config.mirror_right,
    )
    return left, right


def group_errors(
    left: GroupTiming,
    right: GroupTiming,
    asymmetric: bool = False,
) -> list[str]:
    """
    Check that two group timings can run side by side.

    Returns a list of problems; empty when the groups reconcile.
    """
    errors = []
    for timing in (left, right):
        if not timing.frequency > 0:
            errors.append(
                f"group {timing.group}: frequency must be positive, got {timing.frequency}"
            )
    if not asymmetric:
        for name in SYMMETRIC_FIELDS:
            a, b = getattr(left, name), getattr(right, name)
            if a != b:
                errors.append(
                    f"{name}: left ({a}) and right ({b}) differ; "
                    "enable asymmetric group settings to allow this"
                )
    return errors


def shuffled_order(rng: np.random.Generator, n_rounds: int) -> np.ndarray:
    """
    Draw a random slot order for each round.

    A round never starts with the slot that ended the previous round, so the
    same finger is not stimulated twice in a row. A round that would is fixed
    by swapping its first slot with its second or third, which leaves its
    last slot (and so the next round's constraint) unchanged.

    Returns:
        Read-only (n_rounds, 4) int64 array.
    """
    table = rng.permuted(np.tile(np.arange(GROUP_SIZE, dtype=np.int64), (n_rounds, 1)), axis=1)

    clash = np.flatnonzero(table[1:, 0] == table[:-1, -1]) + 1
    swap_with = rng.integers(1, GROUP_SIZE - 1, size=len(clash))
    first = table[clash, 0].copy()
    table[clash, 0] = table[clash, swap_with]
    table[clash, swap_with] = first

    table.flags.writeable = False
    return table


def resolve_groups(config: "StimulationConfig") -> tuple[GroupTiming, GroupTiming]:
    """
    Validate a config and produce the timing for both groups.

    When shuffling, each group gets an independent order table seeded from
    (seed, group) that covers every round of the stream.

    Raises:
        ConfigurationError: If the config is invalid or the groups do not
            reconcile, or if shuffling is requested without a seed.
    """
    config.validate()
    left, right = group_timings(config)

    if config.shuffle:
        if config.seed is None:
            raise ConfigurationError(
                "seed: shuffled channel order needs a seed (see with_resolved_seed())"
            )
        n_rounds = max(1, math.ceil(config.total_frames / left.cycle_length))
        left = replace(
            left, order=shuffled_order(np.random.default_rng([config.seed, 0]), n_rounds)
        )
        right = replace(
            right, order=shuffled_order(np.random.default_rng([config.seed, 1]), n_rounds)
        )
        logger.debug("Drew %d shuffled rounds per group (seed %d)", n_rounds, config.seed)

    for timing in (left, right):
        logger.debug(
            "Group %d: %.6g Hz, block %d, pulse %d, offset %d, start %d%s",
            timing.group,
            timing.frequency,
            timing.block_length,
            timing.pulse_width,
            timing.phase_offset,
            timing.start_offset,
            " (mirrored)" if timing.mirrored else "",
        )
    return left, right
