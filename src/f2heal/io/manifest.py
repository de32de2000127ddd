"""
Manifest serialization module.

Writes a JSON sidecar next to a rendered FLAC file describing exactly how it
was produced, so the stream can be regenerated bit for bit.
"""

import json
from dataclasses import asdict, dataclass
from pathlib import Path
from typing import Any, Union

from f2heal.config import StimulationConfig
from f2heal.core.channels import CHANNEL_COUNT, CHANNELS


@dataclass
class ManifestMetadata:
    """Metadata header for the stimulation manifest."""

    sample_rate: int
    channels: int
    bit_depth: int
    n_frames: int
    duration: float
    audio_file: str | None = None
    version: str = "1.0"
    schema_version: str = "1.0"


def manifest_path_for(audio_path: Union[str, Path]) -> Path:
    """Sidecar path for an audio file: same name, .json suffix."""
    return Path(audio_path).with_suffix(".json")


class ManifestExporter:
    """
    Exports stimulation render details to a JSON manifest.

    The manifest holds the metadata header, the full configuration (enough to
    rebuild the stream) and the channel layout.
    """

    def __init__(self, precision: int = 6):
        """
        Initialize the exporter.

        Args:
            precision: Decimal places for floating point metadata.
        """
        self.precision = precision

    def _round(self, value: float) -> float:
        return round(float(value), self.precision)

    def build_manifest(
        self,
        config: StimulationConfig,
        n_frames: int,
        audio_path: Union[str, Path, None] = None,
    ) -> dict[str, Any]:
        """
        Build the complete manifest dictionary.

        Args:
            config: Configuration the stream was rendered from.
            n_frames: Frames actually written.
            audio_path: Rendered audio file, if any.

        Returns:
            Manifest dictionary ready for serialization.
        """
        metadata = ManifestMetadata(
            sample_rate=config.sample_rate,
            channels=CHANNEL_COUNT,
            bit_depth=config.bit_depth,
            n_frames=n_frames,
            duration=self._round(n_frames / config.sample_rate),
            audio_file=Path(audio_path).name if audio_path else None,
        )

        return {
            "metadata": asdict(metadata),
            "config": config.to_dict(),
            "channels": [
                {
                    "index": channel.index,
                    "group": channel.group,
                    "slot": channel.slot,
                    "side": channel.side.value,
                }
                for channel in CHANNELS
            ],
        }

    def export_json(
        self,
        config: StimulationConfig,
        n_frames: int,
        output_path: Union[str, Path],
        audio_path: Union[str, Path, None] = None,
        indent: int = 2,
    ) -> Path:
        """
        Export manifest to a JSON file.

        Returns:
            Path to written file.
        """
        manifest = self.build_manifest(config, n_frames, audio_path)
        output_path = Path(output_path)

        with open(output_path, "w", encoding="utf-8") as f:
            json.dump(manifest, f, indent=indent)

        return output_path

    @staticmethod
    def load_config(manifest_path: Union[str, Path]) -> StimulationConfig:
        """Rebuild the configuration recorded in a manifest."""
        with open(manifest_path, "r", encoding="utf-8") as f:
            manifest = json.load(f)
        return StimulationConfig.from_dict(manifest["config"])
