"""
Main stimulation pipeline.

Orchestrates the complete flow from configuration to FLAC file.
"""

import logging
from pathlib import Path
from typing import Any, Callable, Union

from f2heal.config import StimulationConfig
from f2heal.core.builder import DEFAULT_CHUNK_SIZE, PcmStream, build
from f2heal.io.encoder import encode_flac
from f2heal.io.manifest import ManifestExporter, manifest_path_for

logger = logging.getLogger(__name__)

DEFAULT_OUTPUT_DIR = Path("output")


class StimulationPipeline:
    """
    Complete configuration-to-FLAC pipeline.

    Combines validation, synthesis, encoding and manifest export into a
    single interface.
    """

    def __init__(
        self,
        config: StimulationConfig,
        chunk_size: int = DEFAULT_CHUNK_SIZE,
    ):
        """
        Initialize the pipeline.

        The config is validated here, before any synthesis, and its seed
        resolved so every stream drawn from this pipeline is identical.

        Args:
            config: Stimulation configuration.
            chunk_size: Frames per chunk handed to the encoder.

        Raises:
            ConfigurationError: If the config is invalid.
        """
        self.config = config.with_resolved_seed().validate()
        self.chunk_size = chunk_size
        self.exporter = ManifestExporter()

    def default_output_path(self) -> Path:
        return DEFAULT_OUTPUT_DIR / self.config.filename()

    def stream(self) -> PcmStream:
        """Return the (restartable) PCM stream for the config."""
        return build(self.config, self.chunk_size)

    def render(
        self,
        output_path: Union[str, Path, None] = None,
        progress_callback: Callable[[int, int], None] | None = None,
        write_manifest: bool = False,
    ) -> dict[str, Any]:
        """
        Synthesize the stream and encode it to FLAC.

        Args:
            output_path: FLAC path. Defaults to output/<config.filename()>.
            progress_callback: Optional callback(frames_written, total_frames).
            write_manifest: Also write a JSON sidecar next to the FLAC file.

        Returns:
            Dictionary describing the render.

        Raises:
            EncodingError: If the encoder fails. The partial file is left for
                the caller to remove.
        """
        output_path = Path(output_path) if output_path else self.default_output_path()
        stream = self.stream()

        encode_flac(
            stream.chunks(),
            output_path,
            sample_rate=self.config.sample_rate,
            bit_depth=self.config.bit_depth,
            compression_level=self.config.compression_level,
            total_frames=stream.total_frames,
            progress_callback=progress_callback,
        )

        result = {
            "output_path": str(output_path),
            "n_frames": stream.total_frames,
            "duration": stream.total_frames / self.config.sample_rate,
            "sample_rate": self.config.sample_rate,
            "mode": self.config.mode.value,
            "seed": self.config.seed,
        }

        if write_manifest:
            manifest_path = self.exporter.export_json(
                self.config,
                stream.total_frames,
                manifest_path_for(output_path),
                audio_path=output_path,
            )
            result["manifest_path"] = str(manifest_path)
            logger.info("Wrote manifest %s", manifest_path)

        return result
