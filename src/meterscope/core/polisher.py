"""
Snapshot smoothing.

Applies attack/release envelopes to consecutive analysis snapshots so that a
meter display rises quickly and falls slowly instead of flickering at the
sampling cadence.  Only finite level metrics are smoothed; sentinel values
(``-inf`` for silence) pass through unchanged and reset the envelope.
"""

import math
from dataclasses import dataclass, replace
from typing import Optional

from meterscope.core.analyzer import AnalysisSnapshot

_SMOOTHED_FIELDS = ("rms", "peak", "lufs", "dbfs", "dynamic_range")


@dataclass
class EnvelopeParams:
    """Attack/Release envelope parameters in milliseconds."""

    attack_ms: float = 0.0  # Instant attack
    release_ms: float = 750.0


class SnapshotPolisher:
    """
    Smooths level metrics between snapshots produced at a fixed interval.

    Tempo and key are categorical per-tick estimates and are never smoothed.
    """

    def __init__(
        self,
        interval_ms: float = 250.0,
        envelope: Optional[EnvelopeParams] = None,
    ):
        """
        Initialize the polisher.

        Args:
            interval_ms: Time between consecutive snapshots.
            envelope: Attack/release timings (default: 0ms attack, 750ms release).
        """
        if interval_ms <= 0:
            raise ValueError(f"interval_ms must be positive, got {interval_ms}")
        self.interval_ms = interval_ms
        self.envelope = envelope or EnvelopeParams()
        self._previous: Optional[AnalysisSnapshot] = None

    def _ms_to_ticks(self, ms: float) -> int:
        """Convert milliseconds to a whole number of snapshot intervals."""
        return max(1, int(round(ms / self.interval_ms)))

    def _step(self, current: float, target: float) -> float:
        """Move *current* one tick towards *target*."""
        if not (math.isfinite(current) and math.isfinite(target)):
            return target
        if target > current:
            ticks = self._ms_to_ticks(self.envelope.attack_ms)
        else:
            ticks = self._ms_to_ticks(self.envelope.release_ms)
        if ticks <= 1:
            return target
        return current + (target - current) / ticks

    def polish(self, snapshot: AnalysisSnapshot) -> AnalysisSnapshot:
        """
        Return *snapshot* with its level metrics smoothed against the
        previously polished snapshot.
        """
        previous = self._previous
        if previous is None:
            polished = snapshot
        else:
            polished = replace(
                snapshot,
                **{
                    name: self._step(getattr(previous, name), getattr(snapshot, name))
                    for name in _SMOOTHED_FIELDS
                },
            )
            if not math.isfinite(polished.dynamic_range):
                polished = replace(polished, dynamic_range=0.0)
        self._previous = polished
        return polished

    def reset(self) -> None:
        """Drop smoothing history."""
        self._previous = None
