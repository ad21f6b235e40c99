"""Chroma key estimator."""

import numpy as np
import pytest

from meterscope.core.key import (
    PITCH_CLASSES,
    chroma_vector,
    detect_key,
    frequency_to_pitch_class,
    pitch_class_name,
)

from conftest import A4_BIN, N_BINS, TEST_SR


class TestPitchClass:

    @pytest.mark.parametrize(
        "freq, expected",
        [
            (440.0, "A"),
            (261.63, "C"),
            (277.18, "C#"),
            (466.16, "A#"),
            (493.88, "B"),
            (880.0, "A"),
            (110.0, "A"),
        ],
    )
    def test_equal_tempered_notes(self, freq, expected):
        index = int(frequency_to_pitch_class(np.array([freq]))[0])
        assert PITCH_CLASSES[index] == expected

    def test_indices_never_negative(self):
        freqs = np.geomspace(80.0, 5000.0, 500)
        classes = frequency_to_pitch_class(freqs)
        assert classes.min() >= 0
        assert classes.max() <= 11
        # every pitch class is reachable
        assert set(classes.tolist()) == set(range(12))

    def test_pitch_class_name_wraps(self):
        assert pitch_class_name(9) == "A"
        assert pitch_class_name(21) == "A"


class TestChromaVector:

    def test_shape(self, a440_spectrum):
        assert chroma_vector(a440_spectrum, TEST_SR).shape == (12,)

    def test_energy_is_linear_magnitude(self):
        freq = np.full(N_BINS, -np.inf)
        freq[A4_BIN] = -20.0
        chroma = chroma_vector(freq, TEST_SR)
        assert chroma[9] == pytest.approx(0.1)
        assert chroma.sum() == pytest.approx(0.1)

    def test_dc_bin_ignored(self):
        freq = np.full(N_BINS, -np.inf)
        freq[0] = 0.0
        assert not chroma_vector(freq, TEST_SR).any()

    def test_bins_outside_window_ignored(self):
        freq = np.full(N_BINS, -np.inf)
        bin_size = TEST_SR / (2 * N_BINS)
        freq[int(60 / bin_size)] = 0.0      # below 80 Hz
        freq[int(8000 / bin_size)] = 0.0    # above 5 kHz
        assert not chroma_vector(freq, TEST_SR).any()


class TestDetectKey:

    def test_a440(self, a440_spectrum):
        assert detect_key(a440_spectrum, TEST_SR) == "A"

    def test_silence_returns_none(self):
        assert detect_key(np.full(N_BINS, -np.inf), TEST_SR) is None

    def test_window_out_of_range_returns_none(self):
        # Nyquist of 50 Hz: no bin reaches 80 Hz
        assert detect_key(np.zeros(64), 100) is None

    def test_empty_buffer(self):
        assert detect_key(np.zeros(0), TEST_SR) is None

    def test_tie_prefers_lowest_index(self):
        freq = np.full(N_BINS, -np.inf)
        freq[24] = -20.0        # ~258 Hz, C
        freq[A4_BIN] = -20.0    # ~441 Hz, A
        assert detect_key(freq, TEST_SR) == "C"

    def test_strongest_class_wins(self):
        freq = np.full(N_BINS, -np.inf)
        freq[24] = -40.0
        freq[A4_BIN] = -20.0
        assert detect_key(freq, TEST_SR) == "A"
