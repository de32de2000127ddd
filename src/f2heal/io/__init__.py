"""FLAC output and manifest export."""

from f2heal.io.encoder import encode_flac
from f2heal.io.manifest import ManifestExporter

__all__ = ["encode_flac", "ManifestExporter"]
