"""Autocorrelation tempo estimator."""

import numpy as np
import pytest

from meterscope.core.tempo import MAX_BPM, MIN_BPM, autocorrelation, detect_tempo, lag_window


class TestLagWindow:

    def test_bounds_follow_bpm_range(self):
        window = lag_window(1000, 4096)
        assert window.start == 300   # 200 BPM
        assert window.stop == 1000   # 60 BPM, exclusive

    def test_capped_at_half_the_buffer(self):
        window = lag_window(1000, 1000)
        assert window.stop == 500
        assert max(window) < 1000 / 2

    def test_odd_buffer_length(self):
        assert lag_window(1000, 1001).stop == 501

    def test_empty_when_buffer_too_short(self):
        # realistic rates need several seconds of audio to reach 60-200 BPM
        assert len(lag_window(44100, 2048)) == 0
        assert len(lag_window(1000, 100)) == 0

    def test_lower_bound_never_zero(self):
        assert lag_window(1, 64).start >= 1

    def test_bpm_constants(self):
        assert MIN_BPM == 60.0
        assert MAX_BPM == 200.0


class TestAutocorrelation:

    def test_matches_manual_sum(self):
        x = np.array([1.0, 2.0, 3.0, 4.0])
        assert autocorrelation(x, 1) == pytest.approx(1 * 2 + 2 * 3 + 3 * 4)

    def test_out_of_range_lag(self):
        x = np.ones(8)
        assert autocorrelation(x, 0) == 0.0
        assert autocorrelation(x, 8) == 0.0


class TestDetectTempo:

    def test_impulse_train(self, impulse_train):
        x, sr = impulse_train
        assert detect_tempo(x, sr) == pytest.approx(150.0)

    def test_result_is_in_range(self, impulse_train):
        x, sr = impulse_train
        bpm = detect_tempo(x, sr)
        assert MIN_BPM < bpm <= MAX_BPM

    def test_silence_returns_none(self):
        assert detect_tempo(np.zeros(2048), 1000) is None

    def test_empty_buffer_returns_none(self):
        assert detect_tempo(np.zeros(0), 1000) is None

    def test_empty_window_returns_none(self, sine_wave):
        assert detect_tempo(sine_wave, 44100) is None

    def test_tie_prefers_smallest_lag(self):
        # lag 400 pairs (0, 400), lag 800 pairs (400, 1200): equal correlation
        x = np.zeros(2048)
        x[[0, 400, 1200]] = 1.0
        assert detect_tempo(x, 1000) == pytest.approx(150.0)

    def test_deterministic(self, impulse_train):
        x, sr = impulse_train
        assert detect_tempo(x, sr) == detect_tempo(x.copy(), sr)
