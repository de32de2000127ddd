"""Pytest configuration and shared fixtures."""

import pytest

from f2heal.config import Mode, StimulationConfig

# Low sample rate keeps the expected sample positions easy to reason about
TEST_SR = 1000


@pytest.fixture
def sample_rate() -> int:
    """Default sample rate for tests."""
    return TEST_SR


@pytest.fixture
def blocked_config(sample_rate: int) -> StimulationConfig:
    """
    Two seconds of blocked stimulation with 250-sample blocks.

    At 50 Hz a burst crosses zero every 10 samples and peaks at sample 5.
    """
    return StimulationConfig(
        sample_rate=sample_rate,
        duration=2.0,
        mode=Mode.BLOCKED,
        frequency=50.0,
        block_length=250,
        block_ms=None,
    )


@pytest.fixture
def phase_config(sample_rate: int) -> StimulationConfig:
    """
    One second of phase-shifted stimulation at 10 Hz.

    A quarter period is 25 samples, so slot spacing lands on whole samples.
    """
    return StimulationConfig(
        sample_rate=sample_rate,
        duration=1.0,
        mode=Mode.PHASE_SHIFTED,
        frequency=10.0,
        block_length=250,
        block_ms=None,
    )


@pytest.fixture
def fixed_config(sample_rate: int) -> StimulationConfig:
    """One second of fixed-phase-shifted stimulation, 30 samples per slot."""
    return StimulationConfig(
        sample_rate=sample_rate,
        duration=1.0,
        mode=Mode.FIXED_PHASE_SHIFTED,
        frequency=10.0,
        block_length=250,
        block_ms=None,
        phase_offset=30,
    )
