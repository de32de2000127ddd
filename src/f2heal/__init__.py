"""Multi-channel tactile stimulation waveform generator with FLAC output."""

from f2heal.config import Mode, StimulationConfig
from f2heal.core.builder import PcmStream, SampleFrame, build
from f2heal.errors import (
    ConfigurationError,
    EncodingError,
    F2HealError,
    InternalInvariantError,
)
from f2heal.io.encoder import encode_flac
from f2heal.pipeline import StimulationPipeline

__version__ = "0.1.0"
__all__ = [
    "Mode",
    "StimulationConfig",
    "PcmStream",
    "SampleFrame",
    "build",
    "encode_flac",
    "StimulationPipeline",
    "F2HealError",
    "ConfigurationError",
    "EncodingError",
    "InternalInvariantError",
]
