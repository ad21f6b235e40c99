"""
Single-frame tempo estimation by autocorrelation.

This is a coarse periodicity estimate over one time-domain buffer, not a
beat tracker: no state is carried between calls.  Only lags corresponding to
60–200 BPM are searched, and never more than half the buffer, so the cost is
bounded by ``O(N * period_range)``.
"""

from typing import Optional

import numpy as np

MIN_BPM = 60.0
MAX_BPM = 200.0


def lag_window(sample_rate: float, n_samples: int) -> range:
    """
    Candidate lag periods (in samples) searched for a buffer of *n_samples*.

    The window is ``[floor(sr * 60 / MAX_BPM), floor(sr * 60 / MIN_BPM))``
    intersected with lags strictly below ``n_samples / 2``.
    """
    min_period = int(np.floor(sample_rate * 60.0 / MAX_BPM))
    max_period = int(np.floor(sample_rate * 60.0 / MIN_BPM))
    lower = max(min_period, 1)
    # period < n / 2  <=>  period < ceil(n / 2)
    upper = min(max_period, -(-n_samples // 2))
    return range(lower, max(upper, lower))


def autocorrelation(time_data: np.ndarray, lag: int) -> float:
    """``sum(x[i] * x[i + lag])`` over the valid overlap."""
    x = np.asarray(time_data, dtype=np.float64)
    if lag <= 0 or lag >= len(x):
        return 0.0
    return float(np.dot(x[:-lag], x[lag:]))


def detect_tempo(time_data: np.ndarray, sample_rate: float) -> Optional[float]:
    """
    Estimate tempo in BPM from the strongest positive autocorrelation lag.

    Args:
        time_data: Time-domain samples in [-1, 1].
        sample_rate: Sample rate in Hz.

    Returns:
        ``sample_rate * 60 / best_lag``, or None when no lag in the window
        has a positive correlation (silence, too short a buffer, noise).
        Among exactly equal correlations the smallest lag wins.
    """
    x = np.asarray(time_data, dtype=np.float64)
    n = len(x)
    if n == 0 or sample_rate <= 0:
        return None

    best_correlation = 0.0
    best_lag = 0
    for lag in lag_window(sample_rate, n):
        correlation = float(np.dot(x[: n - lag], x[lag:]))
        if correlation > best_correlation:
            best_correlation = correlation
            best_lag = lag

    if best_lag == 0:
        return None
    return sample_rate * 60.0 / best_lag
