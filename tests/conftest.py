"""Shared fixtures: synthetic buffers and frames with known metrics."""

import numpy as np
import pytest

from meterscope.core.config import AnalyzerConfig
from meterscope.core.stream import SpectralFrame

TEST_SR = 44100
N_BINS = 2048
# bin 41 of 2048 at 44.1 kHz is centred on ~441 Hz
A4_BIN = 41


@pytest.fixture
def config():
    return AnalyzerConfig(fft_size=2 * N_BINS)


@pytest.fixture
def silent_frame():
    """All-zero time buffer, frequency buffer at the decibel floor."""
    return SpectralFrame(
        time_data=np.zeros(N_BINS, dtype=np.float32),
        freq_data=np.full(N_BINS, -90.0, dtype=np.float32),
        sample_rate=TEST_SR,
    )


@pytest.fixture
def sine_wave():
    """Full-scale 441 Hz sine, N samples (peak 1.0, RMS ~0.707)."""
    t = np.arange(N_BINS) / TEST_SR
    return np.sin(2 * np.pi * 441.0 * t).astype(np.float32)


@pytest.fixture
def a440_spectrum():
    """One strong bin at ~441 Hz, everything else at the floor."""
    freq = np.full(N_BINS, -90.0, dtype=np.float32)
    freq[A4_BIN] = -10.0
    return freq


@pytest.fixture
def a440_frame(sine_wave, a440_spectrum):
    return SpectralFrame(
        time_data=sine_wave,
        freq_data=a440_spectrum,
        sample_rate=TEST_SR,
    )


@pytest.fixture
def impulse_train():
    """
    Clicks every 400 samples at 1 kHz: (time_data, sample_rate).

    A period of 400 samples at 1 kHz is exactly 150 BPM.
    """
    sr = 1000
    x = np.zeros(N_BINS, dtype=np.float32)
    x[::400] = 1.0
    return x, sr
