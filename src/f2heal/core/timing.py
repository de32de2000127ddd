"""
Timing mode policy.

Pure functions mapping (mode, group timing, channel, sample index) to an
amplitude. Nothing here holds state: the channel order table and every other
parameter arrive through the immutable GroupTiming, so the same inputs always
produce the same samples.

All functions are vectorized over sample indices with numpy; amplitude() is
the scalar form.
"""

import numpy as np

from f2heal.config import Mode
from f2heal.core.channels import GROUP_SIZE, Channel, GroupTiming
from f2heal.errors import InternalInvariantError

TWO_PI = 2.0 * np.pi


def sine(phase: np.ndarray) -> np.ndarray:
    """Stimulation waveform, in [-1.0, 1.0]."""
    return np.sin(phase)


def full_scale(bit_depth: int) -> int:
    """Largest positive sample value at a bit depth."""
    return 2 ** (bit_depth - 1) - 1


def _blocked(t: np.ndarray, slot: int, timing: GroupTiming, sample_rate: int) -> np.ndarray:
    block_index = t // timing.block_length
    rel = t - block_index * timing.block_length
    position = block_index % GROUP_SIZE

    table = timing.order_table
    if table is None:
        active = position
    else:
        rounds = np.minimum(block_index // GROUP_SIZE, len(table) - 1)
        active = table[rounds, position]

    on = (active == slot) & (rel < timing.pulse_width)
    # Each burst starts at phase zero at its block start.
    burst = sine(TWO_PI * timing.frequency * rel / sample_rate)
    return np.where(on, burst, 0.0)


def _phase_shifted(t: np.ndarray, slot: int, timing: GroupTiming, sample_rate: int) -> np.ndarray:
    phase = TWO_PI * timing.frequency * t / sample_rate
    return sine(phase + slot * TWO_PI * timing.phase_fraction)


def _fixed_phase_shifted(t: np.ndarray, slot: int, timing: GroupTiming, sample_rate: int) -> np.ndarray:
    shifted = t - slot * timing.phase_offset
    # Silent until the channel's effective start; no wrap-around.
    return np.where(
        shifted >= 0,
        sine(TWO_PI * timing.frequency * shifted / sample_rate),
        0.0,
    )


def paused(t: np.ndarray, timing: GroupTiming) -> np.ndarray:
    """Mask of samples that fall in a paused cycle."""
    if not timing.pauses:
        return np.zeros(t.shape, dtype=bool)
    cycle = t // timing.cycle_length
    return np.isin(cycle % timing.pause_period, timing.pauses)


def levels(
    mode: Mode,
    timing: GroupTiming,
    channel: Channel,
    sample_indices: np.ndarray,
    sample_rate: int,
) -> np.ndarray:
    """
    Waveform level of one channel at each sample index.

    Args:
        mode: Active timing mode.
        timing: Resolved timing of the channel's group.
        channel: Output channel; must belong to timing.group.
        sample_indices: Non-negative sample indices.
        sample_rate: Samples per second.

    Returns:
        float64 array in [-1.0, 1.0], same length as sample_indices.
    """
    if channel.group != timing.group:
        raise InternalInvariantError(
            f"channel {channel.index} belongs to group {channel.group}, "
            f"not group {timing.group}"
        )

    indices = np.asarray(sample_indices, dtype=np.int64)
    t = indices - timing.start_offset
    started = t >= 0
    t = np.maximum(t, 0)
    slot = timing.timing_slot(channel)

    if mode is Mode.BLOCKED:
        out = _blocked(t, slot, timing, sample_rate)
    elif mode is Mode.PHASE_SHIFTED:
        out = _phase_shifted(t, slot, timing, sample_rate)
    elif mode is Mode.FIXED_PHASE_SHIFTED:
        out = _fixed_phase_shifted(t, slot, timing, sample_rate)
    else:
        raise InternalInvariantError(f"unhandled timing mode: {mode!r}")

    silent = ~started | paused(t, timing)
    return np.where(silent, 0.0, out)


def quantize(values: np.ndarray, bit_depth: int = 16, gain: float = 1.0) -> np.ndarray:
    """
    Scale [-1, 1] levels to signed integer samples.

    Rounds half-to-even so long runs carry no DC bias from rounding.
    """
    scaled = np.clip(values, -1.0, 1.0) * (gain * full_scale(bit_depth))
    return np.rint(scaled).astype(np.int32)


def amplitude(
    mode: Mode,
    timing: GroupTiming,
    channel: Channel,
    sample_index: int,
    sample_rate: int,
    bit_depth: int = 16,
    gain: float = 1.0,
) -> int:
    """Integer sample of one channel at one sample index."""
    if sample_index < 0:
        raise InternalInvariantError(f"sample index must not be negative, got {sample_index}")
    level = levels(mode, timing, channel, np.array([sample_index]), sample_rate)
    return int(quantize(level, bit_depth, gain)[0])
