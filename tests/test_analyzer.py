"""Metrics engine: level calculations and snapshot assembly."""

import math

import numpy as np
import pytest

from meterscope.core.analyzer import (
    LUFS_OFFSET,
    AnalysisSnapshot,
    MetricsEngine,
    calculate_dbfs,
    calculate_dynamic_range,
    calculate_lufs,
    calculate_peak,
    calculate_rms,
)

from conftest import N_BINS, TEST_SR


@pytest.fixture
def engine():
    return MetricsEngine()


class TestLevels:

    def test_rms_of_sine(self, sine_wave):
        assert calculate_rms(sine_wave) == pytest.approx(1 / math.sqrt(2), abs=0.01)

    def test_rms_of_constant(self):
        assert calculate_rms(np.full(100, -0.5)) == pytest.approx(0.5)

    def test_peak_uses_absolute_value(self):
        x = np.array([0.1, -0.8, 0.3])
        assert calculate_peak(x) == pytest.approx(0.8)

    def test_empty_buffer(self):
        assert calculate_rms(np.zeros(0)) == 0.0
        assert calculate_peak(np.zeros(0)) == 0.0

    def test_lufs(self):
        assert calculate_lufs(1.0) == pytest.approx(-LUFS_OFFSET)
        assert calculate_lufs(0.1) == pytest.approx(-20.0 - LUFS_OFFSET)

    def test_lufs_of_zero_is_neg_inf(self):
        assert calculate_lufs(0.0) == -math.inf

    def test_dbfs(self):
        assert calculate_dbfs(1.0) == pytest.approx(0.0)
        assert calculate_dbfs(0.5) == pytest.approx(-6.0206, abs=1e-3)
        assert calculate_dbfs(0.0) == -math.inf

    def test_dynamic_range_is_crest_factor(self):
        # full-scale square wave has rms == peak
        assert calculate_dynamic_range(0.0, 1.0) == pytest.approx(0.0)
        assert calculate_dynamic_range(0.0, 0.5) == pytest.approx(6.0206, abs=1e-3)

    def test_dynamic_range_clamped_when_not_finite(self):
        assert calculate_dynamic_range(-math.inf, 0.0) == 0.0
        assert calculate_dynamic_range(0.0, 0.0) == 0.0


class TestMetricsEngine:

    def test_silence(self, engine, silent_frame):
        snapshot = engine.analyze_frame(silent_frame)
        assert snapshot == AnalysisSnapshot.silent()

    @pytest.mark.parametrize("n", [0, 1, 256, 4096])
    def test_silence_any_length(self, engine, n):
        snapshot = engine.analyze(np.zeros(n), np.full(n, -90.0), TEST_SR)
        assert snapshot.rms == 0.0
        assert snapshot.peak == 0.0
        assert snapshot.lufs == -math.inf
        assert snapshot.dbfs == -math.inf
        assert snapshot.dynamic_range == 0.0
        assert snapshot.tempo is None
        assert snapshot.key is None

    def test_full_scale_sine(self, engine, a440_frame):
        snapshot = engine.analyze_frame(a440_frame)
        assert snapshot.peak == pytest.approx(1.0, abs=1e-4)
        assert snapshot.rms == pytest.approx(0.707, abs=0.01)
        assert snapshot.dbfs == pytest.approx(0.0, abs=1e-3)
        assert snapshot.dynamic_range == pytest.approx(3.01, abs=0.1)
        assert snapshot.key == "A"
        # 2048 samples at 44.1 kHz cannot cover a 60-200 BPM period
        assert snapshot.tempo is None

    def test_tempo_delegation(self, engine, impulse_train):
        x, sr = impulse_train
        snapshot = engine.analyze(x, np.full(len(x), -90.0), sr)
        assert snapshot.tempo == pytest.approx(150.0)

    def test_estimators_can_be_disabled(self, a440_frame):
        snapshot = MetricsEngine(estimate_tempo=False, estimate_key=False).analyze_frame(a440_frame)
        assert snapshot.key is None
        assert snapshot.tempo is None
        assert snapshot.peak > 0

    def test_invalid_decibel_range(self, engine, sine_wave, a440_spectrum):
        with pytest.raises(ValueError):
            engine.analyze(sine_wave, a440_spectrum, TEST_SR, decibel_range=(-10.0, -90.0))

    def test_dynamic_range_always_finite(self, engine):
        rng = np.random.RandomState(7)
        for scale in (0.0, 1e-30, 1e-6, 0.5, 1.0):
            x = scale * rng.uniform(-1, 1, N_BINS)
            snapshot = engine.analyze(x, np.full(N_BINS, -90.0), TEST_SR)
            assert math.isfinite(snapshot.dynamic_range)
            assert snapshot.rms >= 0
            assert snapshot.peak >= 0

    def test_pure_function(self, engine, a440_frame):
        assert engine.analyze_frame(a440_frame) == engine.analyze_frame(a440_frame)


class TestAnalysisSnapshot:

    def test_immutable(self):
        snapshot = AnalysisSnapshot.silent()
        with pytest.raises(AttributeError):
            snapshot.rms = 1.0

    def test_key_index(self, engine, a440_frame):
        assert engine.analyze_frame(a440_frame).key_index == 9
        assert AnalysisSnapshot.silent().key_index is None

    def test_as_dict(self):
        data = AnalysisSnapshot.silent().as_dict()
        assert set(data) == {"rms", "peak", "lufs", "dbfs", "tempo", "key", "dynamic_range"}
