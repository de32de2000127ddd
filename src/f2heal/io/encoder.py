"""
FLAC encoder adapter.

Streams interleaved 8-channel PCM chunks into a FLAC file through libsndfile
(via soundfile). No intermediate buffers: each chunk goes straight from the
builder to the encoder.
"""

import logging
from pathlib import Path
from typing import Callable, Iterable

import numpy as np
import soundfile as sf

from f2heal.core.channels import CHANNEL_COUNT
from f2heal.errors import ConfigurationError, EncodingError, InternalInvariantError

logger = logging.getLogger(__name__)

# libsndfile subtype per bit depth
SUBTYPES = {
    16: "PCM_16",
    24: "PCM_24",
}


def _to_sndfile(chunk: np.ndarray, bit_depth: int) -> np.ndarray:
    """
    Convert samples to the integer width libsndfile reads them at.

    int16 data is written as-is; int32 data is treated as full 32-bit scale,
    so 24-bit samples are left-justified.
    """
    if bit_depth == 16:
        return chunk.astype(np.int16)
    return chunk.astype(np.int32) << (32 - bit_depth)


def encode_flac(
    chunks: Iterable[np.ndarray],
    output_path: Path,
    sample_rate: int,
    bit_depth: int = 16,
    compression_level: int = 8,
    total_frames: int | None = None,
    progress_callback: Callable[[int, int], None] | None = None,
) -> Path:
    """
    Encode PCM chunks to an 8-channel FLAC file.

    Args:
        chunks: Yields (n, 8) integer arrays in time order.
        output_path: Output FLAC path.
        sample_rate: Samples per second.
        bit_depth: 16 or 24.
        compression_level: FLAC compression level, 0-8.
        total_frames: Total frame count for progress reporting.
        progress_callback: Optional callback(frames_written, total_frames).

    Returns:
        Path to the output file.

    Raises:
        EncodingError: If the output directory cannot be created or libsndfile
            fails to open or write the file. The partial file is left in
            place and should be treated as corrupt.
        InternalInvariantError: If a chunk does not have 8 channels.
    """
    subtype = SUBTYPES.get(bit_depth)
    if subtype is None:
        raise ConfigurationError(f"bit_depth must be 16 or 24, got {bit_depth!r}")

    output_path = Path(output_path)

    frames_written = 0
    try:
        output_path.parent.mkdir(parents=True, exist_ok=True)
        with sf.SoundFile(
            output_path,
            mode="w",
            samplerate=sample_rate,
            channels=CHANNEL_COUNT,
            format="FLAC",
            subtype=subtype,
            compression_level=compression_level / 8,
        ) as flac:
            logger.info("Opened %s (%d Hz, %s)", output_path, sample_rate, subtype)

            for chunk in chunks:
                if chunk.ndim != 2 or chunk.shape[1] != CHANNEL_COUNT:
                    raise InternalInvariantError(
                        f"chunk at frame {frames_written} has shape {chunk.shape}, "
                        f"expected (n, {CHANNEL_COUNT})"
                    )
                flac.write(_to_sndfile(chunk, bit_depth))
                frames_written += len(chunk)

                if progress_callback and total_frames:
                    progress_callback(frames_written, total_frames)

    except (sf.SoundFileError, OSError) as exc:
        raise EncodingError(
            f"FLAC encoding to {output_path} failed: {exc}",
            frame_offset=frames_written,
        ) from exc

    logger.info("Wrote %d frames to %s", frames_written, output_path)
    return output_path
