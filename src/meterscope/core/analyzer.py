"""
Metrics engine.

Derives loudness, peak level, dynamic range, tempo and key from a pair of
time-domain and frequency-domain buffers.  Every calculation is a pure
function of its inputs; numeric edge cases (silence, log of zero, infinite
differences) are reported with sentinel values instead of exceptions:

* ``lufs`` / ``dbfs`` are ``-inf`` for a zero RMS / peak.
* ``dynamic_range`` is clamped to ``0.0`` whenever it would be non-finite.
* ``tempo`` / ``key`` are ``None`` for a silent buffer or when no
  periodicity / pitch class is found.

Consumers must check ``math.isfinite`` before formatting levels.
"""

import math
from dataclasses import asdict, dataclass
from typing import Optional

import numpy as np

from meterscope.core.key import PITCH_CLASSES, detect_key
from meterscope.core.stream import SpectralFrame
from meterscope.core.tempo import detect_tempo

# Fixed calibration offset of the loudness approximation.  This is a rough
# meter reading derived from RMS, not an ITU-R BS.1770 integrated loudness.
LUFS_OFFSET = 0.691


@dataclass(frozen=True)
class AnalysisSnapshot:
    """Result of one analysis tick."""

    rms: float
    peak: float
    lufs: float                  # -inf for silence
    dbfs: float                  # -inf for silence
    tempo: Optional[float]       # BPM, None if no periodicity was found
    key: Optional[str]           # pitch class label, e.g. "F#"
    dynamic_range: float         # always finite

    @classmethod
    def silent(cls) -> "AnalysisSnapshot":
        return cls(
            rms=0.0,
            peak=0.0,
            lufs=-math.inf,
            dbfs=-math.inf,
            tempo=None,
            key=None,
            dynamic_range=0.0,
        )

    @property
    def key_index(self) -> Optional[int]:
        """Pitch class index (0 = C) of ``key``, or None."""
        if self.key is None:
            return None
        return PITCH_CLASSES.index(self.key)

    def as_dict(self) -> dict:
        return asdict(self)


# ---------------------------------------------------------------------------
# Level calculations
# ---------------------------------------------------------------------------

def calculate_rms(time_data: np.ndarray) -> float:
    """Root mean square of the samples; 0.0 for an empty buffer."""
    x = np.asarray(time_data, dtype=np.float64)
    if x.size == 0:
        return 0.0
    return float(np.sqrt(np.mean(x * x)))


def calculate_peak(time_data: np.ndarray) -> float:
    """Largest absolute sample value; 0.0 for an empty buffer."""
    x = np.asarray(time_data, dtype=np.float64)
    if x.size == 0:
        return 0.0
    return float(np.max(np.abs(x)))


def _to_db(amplitude: float) -> float:
    if amplitude <= 0:
        return -math.inf
    return 20.0 * math.log10(amplitude)


def calculate_lufs(rms: float) -> float:
    """Approximate loudness: ``20 * log10(rms) - 0.691``, ``-inf`` for zero RMS."""
    if rms == 0:
        return -math.inf
    return _to_db(rms) - LUFS_OFFSET


def calculate_dbfs(peak: float) -> float:
    """Peak level relative to full scale, ``-inf`` for a zero peak."""
    if peak == 0:
        return -math.inf
    return _to_db(peak)


def calculate_dynamic_range(dbfs: float, rms: float) -> float:
    """Crest factor in dB, ``dbfs - 20 * log10(rms)``, or 0.0 if not finite."""
    dynamic_range = dbfs - _to_db(rms)
    if not math.isfinite(dynamic_range):
        return 0.0
    return dynamic_range


# ---------------------------------------------------------------------------
# Engine
# ---------------------------------------------------------------------------

class MetricsEngine:
    """
    Turns spectral frames into :class:`AnalysisSnapshot` objects.

    The engine holds no state; smoothing between snapshots is the job of
    :class:`meterscope.core.polisher.SnapshotPolisher`.
    """

    def __init__(self, estimate_tempo: bool = True, estimate_key: bool = True):
        """
        Initialize the engine.

        Args:
            estimate_tempo: Run the autocorrelation tempo search.
            estimate_key: Run the chroma key search.
        """
        self.estimate_tempo = estimate_tempo
        self.estimate_key = estimate_key

    def analyze(
        self,
        time_data: np.ndarray,
        freq_data: np.ndarray,
        sample_rate: float,
        decibel_range: tuple[float, float] = (-90.0, -10.0),
    ) -> AnalysisSnapshot:
        """
        Compute all metrics for one pair of buffers.

        Args:
            time_data: N time-domain samples in [-1, 1].
            freq_data: N decibel magnitudes within *decibel_range*.
            sample_rate: Sample rate in Hz.
            decibel_range: (min_decibels, max_decibels) used to encode
                *freq_data*.

        Returns:
            AnalysisSnapshot with sentinel values for silence.
        """
        min_db, max_db = decibel_range
        if not min_db < max_db:
            raise ValueError(f"Invalid decibel range: {decibel_range}")

        rms = calculate_rms(time_data)
        peak = calculate_peak(time_data)
        lufs = calculate_lufs(rms)
        dbfs = calculate_dbfs(peak)
        dynamic_range = calculate_dynamic_range(dbfs, rms)

        tempo = None
        key = None
        # a floor-clipped spectrum still carries energy, so silence is gated here
        if peak > 0:
            if self.estimate_tempo:
                tempo = detect_tempo(time_data, sample_rate)
            if self.estimate_key:
                key = detect_key(freq_data, sample_rate)

        return AnalysisSnapshot(
            rms=rms,
            peak=peak,
            lufs=lufs,
            dbfs=dbfs,
            tempo=tempo,
            key=key,
            dynamic_range=dynamic_range,
        )

    def analyze_frame(self, frame: SpectralFrame) -> AnalysisSnapshot:
        """Analyze a frame pulled from a frame source."""
        return self.analyze(
            frame.time_data,
            frame.freq_data,
            frame.sample_rate,
            frame.decibel_range,
        )
