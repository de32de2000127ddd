"""Tests for the FLAC encoder adapter."""

from dataclasses import replace

import numpy as np
import pytest
import soundfile as sf

from f2heal.config import StimulationConfig
from f2heal.core.builder import build
from f2heal.errors import ConfigurationError, EncodingError, InternalInvariantError
from f2heal.io.encoder import encode_flac


@pytest.fixture
def encoder_config() -> StimulationConfig:
    """Quarter second of blocked output at 8 kHz, 2000 frames."""
    return StimulationConfig(
        sample_rate=8000,
        duration=0.25,
        frequency=100.0,
        block_length=400,
        block_ms=None,
    )


def _encode(config, path, chunk_size=512, **kwargs):
    stream = build(config, chunk_size=chunk_size)
    return encode_flac(
        stream.chunks(),
        path,
        sample_rate=config.sample_rate,
        bit_depth=config.bit_depth,
        compression_level=config.compression_level,
        total_frames=stream.total_frames,
        **kwargs,
    )


class TestEncodeFlac:
    """Tests for writing FLAC files."""

    def test_file_properties(self, encoder_config, tmp_path):
        path = _encode(encoder_config, tmp_path / "out.flac")
        info = sf.info(str(path))

        assert info.format == "FLAC"
        assert info.subtype == "PCM_16"
        assert info.channels == 8
        assert info.samplerate == 8000
        assert info.frames == 2000

    def test_lossless_16_bit(self, encoder_config, tmp_path):
        path = _encode(encoder_config, tmp_path / "out.flac")
        data, _ = sf.read(str(path), dtype="int16")

        np.testing.assert_array_equal(data, build(encoder_config).to_array())

    def test_lossless_24_bit(self, encoder_config, tmp_path):
        config = replace(encoder_config, bit_depth=24)
        path = _encode(config, tmp_path / "out.flac")
        data, _ = sf.read(str(path), dtype="int32")

        assert sf.info(str(path)).subtype == "PCM_24"
        np.testing.assert_array_equal(data >> 8, build(config).to_array())

    def test_compression_level_zero(self, encoder_config, tmp_path):
        config = replace(encoder_config, compression_level=0)
        path = _encode(config, tmp_path / "out.flac")
        data, _ = sf.read(str(path), dtype="int16")

        np.testing.assert_array_equal(data, build(config).to_array())

    def test_creates_parent_directory(self, encoder_config, tmp_path):
        path = _encode(encoder_config, tmp_path / "nested" / "dir" / "out.flac")

        assert path.exists()

    def test_progress_callback(self, encoder_config, tmp_path):
        calls = []
        _encode(
            encoder_config,
            tmp_path / "out.flac",
            chunk_size=512,
            progress_callback=lambda done, total: calls.append((done, total)),
        )

        assert calls == [(512, 2000), (1024, 2000), (1536, 2000), (2000, 2000)]

    def test_unsupported_bit_depth(self, tmp_path):
        with pytest.raises(ConfigurationError):
            encode_flac([], tmp_path / "out.flac", sample_rate=8000, bit_depth=8)

    def test_wrong_channel_count(self, tmp_path):
        chunks = [np.zeros((10, 4), dtype=np.int32)]

        with pytest.raises(InternalInvariantError):
            encode_flac(chunks, tmp_path / "out.flac", sample_rate=8000)


class TestEncodingErrors:
    """Tests for encoder failure reporting."""

    def test_open_failure(self, tmp_path):
        target = tmp_path / "taken"
        target.mkdir()

        with pytest.raises(EncodingError) as exc_info:
            encode_flac([], target, sample_rate=8000)

        assert exc_info.value.frame_offset == 0

    def test_output_directory_failure(self, tmp_path):
        blocker = tmp_path / "blocker"
        blocker.write_bytes(b"")

        with pytest.raises(EncodingError) as exc_info:
            encode_flac([], blocker / "out.flac", sample_rate=8000)

        assert exc_info.value.frame_offset == 0
        assert isinstance(exc_info.value.__cause__, OSError)

    def test_write_failure_reports_frame_offset(self, encoder_config, tmp_path, monkeypatch):
        class FailingSoundFile:
            def __init__(self, *args, **kwargs):
                self.writes = 0

            def __enter__(self):
                return self

            def __exit__(self, *exc):
                return False

            def write(self, data):
                self.writes += 1
                if self.writes == 2:
                    raise OSError("disk full")

        monkeypatch.setattr(sf, "SoundFile", FailingSoundFile)

        with pytest.raises(EncodingError, match="disk full") as exc_info:
            _encode(encoder_config, tmp_path / "out.flac", chunk_size=512)

        assert exc_info.value.frame_offset == 512
        assert "after 512 frames" in str(exc_info.value)
        assert isinstance(exc_info.value.__cause__, OSError)
