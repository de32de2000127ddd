"""
Stimulation configuration.

A single frozen dataclass holds every parameter of a run. It is validated
once, before synthesis, and reports every invalid field together.
"""

import math
from dataclasses import asdict, dataclass, field, fields, replace
from enum import Enum
from typing import Any

import numpy as np

from f2heal.core.channels import (
    CHANNEL_COUNT,
    GROUP_SIZE,
    group_errors,
    group_timings,
    ms_to_samples,
)
from f2heal.errors import ConfigurationError

SUPPORTED_BIT_DEPTHS = (16, 24)


class Mode(str, Enum):
    """How channels are activated over time."""

    BLOCKED = "blocked"
    PHASE_SHIFTED = "phase-shifted"
    FIXED_PHASE_SHIFTED = "fixed-phase-shifted"


# File name tags per mode
MODE_TAGS = {
    Mode.BLOCKED: "Blocked",
    Mode.PHASE_SHIFTED: "PhaseShifted",
    Mode.FIXED_PHASE_SHIFTED: "FixedPhaseShifted",
}


def _is_int(value: Any) -> bool:
    return isinstance(value, (int, np.integer)) and not isinstance(value, bool)


def _is_number(value: Any) -> bool:
    return (
        isinstance(value, (int, float, np.integer, np.floating))
        and not isinstance(value, bool)
        and math.isfinite(value)
    )


@dataclass(frozen=True)
class StimulationConfig:
    """Configuration for one stimulation render."""

    sample_rate: int = 44100
    duration: float = 10.0  # seconds
    mode: Mode = Mode.BLOCKED

    # Stimulation sine
    frequency: float = 250.0  # Hz

    # Block (one channel's slot in a round). block_length in samples wins
    # over block_ms when given. 166.5 ms is a 666 ms round over four fingers.
    block_length: int | None = None
    block_ms: float | None = 166.5

    # Active part of each block (Blocked mode). None = whole block.
    pulse_ms: float | None = None

    # Phase-Shifted: fraction of a cycle between neighbouring slots
    phase_fraction: float = 0.25

    # Fixed-Phase-Shifted: absolute offset between neighbouring slots
    phase_offset: int | None = None  # samples
    phase_offset_ms: float | None = None

    # Right-hand group settings
    right_frequency: float | None = None
    right_offset_ms: float = 0.0
    mirror_right: bool = False
    asymmetric: bool = False

    # Pauses: silent cycles within each pause period
    pauses: tuple[int, ...] = field(default_factory=tuple)
    pause_period: int = 5

    # Randomized channel order (Blocked mode)
    shuffle: bool = False
    seed: int | None = None

    # Output format
    bit_depth: int = 16
    gain: float = 1.0
    compression_level: int = 8

    def __post_init__(self):
        # Accept plain strings and lists from CLI/JSON callers.
        if not isinstance(self.mode, Mode):
            try:
                object.__setattr__(self, "mode", Mode(self.mode))
            except ValueError:
                pass
        if isinstance(self.pauses, list):
            object.__setattr__(self, "pauses", tuple(self.pauses))

    # -- Derived values ------------------------------------------------------

    @property
    def total_frames(self) -> int:
        """Number of frames in the stream: round(duration * sample_rate)."""
        return round(self.duration * self.sample_rate)

    def block_samples(self) -> int:
        if self.block_length is not None:
            return int(self.block_length)
        if self.block_ms is None:
            return 0
        return ms_to_samples(self.block_ms, self.sample_rate)

    def pulse_samples(self) -> int:
        if self.pulse_ms is None:
            return self.block_samples()
        return ms_to_samples(self.pulse_ms, self.sample_rate)

    def phase_offset_samples(self) -> int:
        if self.phase_offset is not None:
            return int(self.phase_offset)
        if self.phase_offset_ms is not None:
            return ms_to_samples(self.phase_offset_ms, self.sample_rate)
        return 0

    # -- Validation ----------------------------------------------------------

    def _field_errors(self) -> list[str]:
        errors = []

        if not _is_int(self.sample_rate) or self.sample_rate <= 0:
            errors.append(f"sample_rate must be a positive integer, got {self.sample_rate!r}")
            # Everything below converts with the sample rate.
            return errors

        if not _is_number(self.duration) or self.duration < 0:
            errors.append(f"duration must be zero or a positive number of seconds, got {self.duration!r}")

        if not isinstance(self.mode, Mode):
            choices = ", ".join(m.value for m in Mode)
            errors.append(f"mode must be one of {choices}, got {self.mode!r}")

        if not _is_number(self.frequency) or self.frequency <= 0:
            errors.append(f"frequency must be positive, got {self.frequency!r}")

        block_ok = False
        if self.block_length is not None:
            if not _is_int(self.block_length) or self.block_length <= 0:
                errors.append(f"block_length must be a positive number of samples, got {self.block_length!r}")
            else:
                block_ok = True
        elif self.block_ms is None:
            errors.append("block length is required: set block_length or block_ms")
        elif not _is_number(self.block_ms) or self.block_ms <= 0:
            errors.append(f"block_ms must be positive, got {self.block_ms!r}")
        elif self.block_samples() < 1:
            errors.append(
                f"block_ms={self.block_ms} is shorter than one sample at {self.sample_rate} Hz"
            )
        else:
            block_ok = True

        if self.pulse_ms is not None:
            if not _is_number(self.pulse_ms) or self.pulse_ms <= 0:
                errors.append(f"pulse_ms must be positive, got {self.pulse_ms!r}")
            elif self.mode is not Mode.BLOCKED:
                errors.append("pulse_ms is only used in blocked mode")
            elif block_ok and self.pulse_samples() > self.block_samples():
                errors.append(
                    f"pulse_ms ({self.pulse_samples()} samples) exceeds the block "
                    f"({self.block_samples()} samples)"
                )

        if not _is_number(self.phase_fraction) or not 0 < self.phase_fraction < 1:
            errors.append(f"phase_fraction must be in (0, 1), got {self.phase_fraction!r}")

        has_offset = self.phase_offset is not None or self.phase_offset_ms is not None
        if self.phase_offset is not None and self.phase_offset_ms is not None:
            errors.append("set only one of phase_offset and phase_offset_ms")
        elif self.phase_offset is not None:
            if not _is_int(self.phase_offset) or self.phase_offset < 0:
                errors.append(f"phase_offset must be a non-negative number of samples, got {self.phase_offset!r}")
        elif self.phase_offset_ms is not None:
            if not _is_number(self.phase_offset_ms) or self.phase_offset_ms < 0:
                errors.append(f"phase_offset_ms must not be negative, got {self.phase_offset_ms!r}")
        if self.mode is Mode.FIXED_PHASE_SHIFTED and not has_offset:
            errors.append("fixed-phase-shifted mode needs phase_offset or phase_offset_ms")
        if isinstance(self.mode, Mode) and self.mode is not Mode.FIXED_PHASE_SHIFTED and has_offset:
            errors.append("phase_offset is only used in fixed-phase-shifted mode")

        if self.right_frequency is not None and (
            not _is_number(self.right_frequency) or self.right_frequency <= 0
        ):
            errors.append(f"right_frequency must be positive, got {self.right_frequency!r}")
        if not _is_number(self.right_offset_ms) or self.right_offset_ms < 0:
            errors.append(f"right_offset_ms must not be negative, got {self.right_offset_ms!r}")

        if not _is_int(self.pause_period) or self.pause_period < 1:
            errors.append(f"pause_period must be a positive number of cycles, got {self.pause_period!r}")
        if not isinstance(self.pauses, tuple):
            errors.append(f"pauses must be a list of cycle numbers, got {self.pauses!r}")
        else:
            for pause in self.pauses:
                if not _is_int(pause) or pause < 0:
                    errors.append(f"pauses must be non-negative cycle numbers, got {pause!r}")

        if self.shuffle and isinstance(self.mode, Mode) and self.mode is not Mode.BLOCKED:
            errors.append("shuffle is only used in blocked mode")
        if self.seed is not None and (not _is_int(self.seed) or self.seed < 0):
            errors.append(f"seed must be a non-negative integer, got {self.seed!r}")

        if self.bit_depth not in SUPPORTED_BIT_DEPTHS:
            errors.append(f"bit_depth must be 16 or 24, got {self.bit_depth!r}")
        if not _is_number(self.gain) or not 0 < self.gain <= 1:
            errors.append(f"gain must be in (0, 1], got {self.gain!r}")
        if not _is_int(self.compression_level) or not 0 <= self.compression_level <= 8:
            errors.append(f"compression_level must be 0-8, got {self.compression_level!r}")

        return errors

    def errors(self) -> list[str]:
        """Every problem with this config; empty when valid."""
        errors = self._field_errors()
        if not errors:
            left, right = group_timings(self)
            errors.extend(group_errors(left, right, self.asymmetric))
        return errors

    def validate(self) -> "StimulationConfig":
        """
        Check every field.

        Returns:
            self, for chaining.

        Raises:
            ConfigurationError: Listing every invalid field.
        """
        errors = self.errors()
        if errors:
            raise ConfigurationError(errors)
        return self

    def warnings(self) -> list[str]:
        """Non-fatal advisories about parameter combinations."""
        messages = []

        if self.mode is Mode.BLOCKED and self.pulse_samples() > 0:
            cycles = self.frequency * self.pulse_samples() / self.sample_rate
            if not math.isclose(cycles, round(cycles), abs_tol=1e-6):
                messages.append(
                    "Stimulation period and frequency do not match: "
                    f"{cycles:.3f} sine cycles per pulse"
                )

        for pause in self.pauses:
            if pause >= self.pause_period:
                messages.append(f"This pause will have no effect: {pause}")

        if self.mode is Mode.FIXED_PHASE_SHIFTED:
            last_start = (GROUP_SIZE - 1) * self.phase_offset_samples()
            cycle = self.block_samples() * GROUP_SIZE
            if last_start >= cycle:
                messages.append(
                    f"Phase shift is too large: the last channel starts after "
                    f"{last_start} samples, beyond the {cycle}-sample cycle"
                )

        if self.total_frames and self.block_samples() > self.total_frames:
            messages.append(
                f"Block ({self.block_samples()} samples) is longer than the output "
                f"({self.total_frames} samples); only the first block will play"
            )

        return messages

    def with_resolved_seed(self) -> "StimulationConfig":
        """
        Return a config with a concrete seed.

        Shuffled orders need one; when none was given it is drawn from OS
        entropy here, once, so the stream can be reproduced from the result.
        """
        if not self.shuffle or self.seed is not None:
            return self
        seed = int(np.random.default_rng().integers(0, 2**32))
        return replace(self, seed=seed)

    # -- Serialization -------------------------------------------------------

    def to_dict(self) -> dict[str, Any]:
        data = asdict(self)
        data["mode"] = self.mode.value if isinstance(self.mode, Mode) else self.mode
        data["pauses"] = list(self.pauses)
        return data

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "StimulationConfig":
        if not isinstance(data, dict):
            raise ConfigurationError(f"config must be a JSON object, got {type(data).__name__}")
        known = {f.name for f in fields(cls)}
        unknown = sorted(set(data) - known)
        if unknown:
            raise ConfigurationError([f"unknown config key: {key}" for key in unknown])
        try:
            return cls(**data)
        except TypeError as e:
            raise ConfigurationError(str(e)) from e

    def filename(self) -> str:
        """
        Build an output file name that records every stimulation parameter.

        Example: Sine-Blocked-250SFREQ-7343BLK-7343SPER--8CH-44100Hz-10s.flac
        """
        parts = ["Sine"]

        if self.mode is Mode.PHASE_SHIFTED:
            parts.append(f"{self.phase_fraction:g}{MODE_TAGS[self.mode]}")
        elif self.mode is Mode.FIXED_PHASE_SHIFTED:
            parts.append(f"{self.phase_offset_samples()}{MODE_TAGS[self.mode]}")
        else:
            parts.append(MODE_TAGS[Mode.BLOCKED])

        parts.append(f"{self.frequency:g}SFREQ")
        parts.append(f"{self.block_samples()}BLK")
        if self.mode is Mode.BLOCKED:
            parts.append(f"{self.pulse_samples()}SPER")
        name = "-".join(parts)

        if self.right_frequency is not None:
            name += f"-{self.right_frequency:g}RFREQ"
        if self.right_offset_ms:
            name += f"-{self.right_offset_ms:g}ROFF"
        if self.mirror_right:
            name += "-MIRROR"

        if self.pauses:
            name += "-" + "_".join(str(p) for p in self.pauses)
            name += f"P{self.pause_period}"

        if self.shuffle and self.seed is not None:
            name += f"-{self.seed}RSEED"

        name += f"--{CHANNEL_COUNT}CH-{self.sample_rate}Hz-{self.duration:g}s"
        return name + ".flac"
