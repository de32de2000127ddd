"""
Sample buffer builder.

Drives the timing policy over the whole duration and assembles interleaved
8-channel integer PCM. Output is yielded chunk by chunk so long renders never
hold the full buffer in memory.
"""

import logging
from typing import Iterator, NamedTuple

import numpy as np

from f2heal.config import StimulationConfig
from f2heal.core.channels import CHANNEL_COUNT, CHANNELS, GroupTiming, resolve_groups
from f2heal.core.timing import levels, quantize
from f2heal.errors import InternalInvariantError

logger = logging.getLogger(__name__)

DEFAULT_CHUNK_SIZE = 4096


class SampleFrame(NamedTuple):
    """One time instant: the sample index and 8 channel amplitudes."""

    index: int
    amplitudes: tuple[int, ...]


class PcmStream:
    """
    Restartable stream of PCM chunks for one configuration.

    Every iteration starts a fresh generator, so the same stream can be
    replayed (or resumed at any frame with chunks(start=...)) and always
    yields identical samples.
    """

    def __init__(
        self,
        config: StimulationConfig,
        groups: tuple[GroupTiming, GroupTiming],
        chunk_size: int = DEFAULT_CHUNK_SIZE,
    ):
        if chunk_size <= 0:
            raise ValueError(f"chunk_size must be positive, got {chunk_size}")
        self.config = config
        self.groups = groups
        self.chunk_size = chunk_size

    @property
    def total_frames(self) -> int:
        return self.config.total_frames

    def __iter__(self) -> Iterator[np.ndarray]:
        return self.chunks()

    def __len__(self) -> int:
        return self.total_frames

    def render_chunk(self, start: int, stop: int) -> np.ndarray:
        """
        Render frames [start, stop).

        Returns:
            (stop - start, 8) int32 array, one column per channel.
        """
        cfg = self.config
        indices = np.arange(start, stop, dtype=np.int64)

        columns = []
        for channel in CHANNELS:
            timing = self.groups[channel.group]
            values = levels(cfg.mode, timing, channel, indices, cfg.sample_rate)
            columns.append(quantize(values, cfg.bit_depth, cfg.gain))
        chunk = np.column_stack(columns)

        if chunk.shape != (stop - start, CHANNEL_COUNT):
            raise InternalInvariantError(
                f"chunk [{start}, {stop}) has shape {chunk.shape}, "
                f"expected {(stop - start, CHANNEL_COUNT)}"
            )
        return chunk

    def chunks(self, start: int = 0) -> Iterator[np.ndarray]:
        """
        Yield PCM chunks from frame `start` to the end of the stream.

        Args:
            start: First frame to produce, for resuming a stream.

        Yields:
            (n, 8) int32 arrays with n <= chunk_size, in time order.
        """
        total = self.total_frames
        if not 0 <= start <= total:
            raise ValueError(f"start must be in [0, {total}], got {start}")

        produced = start
        for chunk_start in range(start, total, self.chunk_size):
            chunk_stop = min(chunk_start + self.chunk_size, total)
            chunk = self.render_chunk(chunk_start, chunk_stop)
            produced += len(chunk)
            yield chunk

        if produced != total:
            raise InternalInvariantError(
                f"produced {produced} frames, expected {total}"
            )

    def frames(self, start: int = 0) -> Iterator[SampleFrame]:
        """Yield one SampleFrame per time instant."""
        index = start
        for chunk in self.chunks(start):
            for row in chunk:
                yield SampleFrame(index, tuple(int(v) for v in row))
                index += 1

    def to_array(self) -> np.ndarray:
        """Materialize the whole stream as one (n, 8) int32 array."""
        chunks = list(self.chunks())
        if not chunks:
            return np.zeros((0, CHANNEL_COUNT), dtype=np.int32)
        return np.concatenate(chunks)


def build(config: StimulationConfig, chunk_size: int = DEFAULT_CHUNK_SIZE) -> PcmStream:
    """
    Validate a config and return its PCM stream.

    Raises:
        ConfigurationError: If the config is invalid.
    """
    config = config.with_resolved_seed()
    groups = resolve_groups(config)
    logger.debug(
        "Building %d frames (%s mode, %d Hz, chunks of %d)",
        config.total_frames,
        config.mode.value,
        config.sample_rate,
        chunk_size,
    )
    return PcmStream(config, groups, chunk_size)
