"""
Snapshot serialization and display formatting.

Snapshots carry ``-inf`` sentinels for silence, which JSON cannot encode;
the exporter maps every non-finite float to ``null``.  The ``format_*``
helpers produce the strings a meter display shows, with "N/A" for
non-finite levels and "..." while tempo or key are still unknown.
"""

import json
import math
from pathlib import Path
from typing import Any, Iterable, Optional, Union

from meterscope.core.analyzer import AnalysisSnapshot
from meterscope.core.key import PITCH_CLASSES


class SnapshotExporter:
    """
    Exports analysis snapshots to JSON / JSON Lines.
    """

    def __init__(self, precision: int = 4):
        """
        Initialize the exporter.

        Args:
            precision: Decimal places for floating point values.
        """
        self.precision = precision

    def _safe_float(self, value: Optional[float]) -> Optional[float]:
        """Round *value*, returning None for None, NaN and infinities."""
        if value is None:
            return None
        f = float(value)
        if not math.isfinite(f):
            return None
        return round(f, self.precision)

    def to_dict(
        self,
        snapshot: AnalysisSnapshot,
        timestamp: Optional[float] = None,
    ) -> dict[str, Any]:
        """
        Build a JSON-safe dictionary for one snapshot.

        Args:
            snapshot: Snapshot to export.
            timestamp: Optional time in seconds since analysis started.
        """
        data: dict[str, Any] = {
            "rms": self._safe_float(snapshot.rms),
            "peak": self._safe_float(snapshot.peak),
            "lufs": self._safe_float(snapshot.lufs),
            "dbfs": self._safe_float(snapshot.dbfs),
            "tempo": self._safe_float(snapshot.tempo),
            "key": snapshot.key,
            "dynamic_range": self._safe_float(snapshot.dynamic_range),
        }
        if timestamp is not None:
            data = {"time": self._safe_float(timestamp), **data}
        return data

    def to_json(self, snapshot: AnalysisSnapshot, **kwargs) -> str:
        return json.dumps(self.to_dict(snapshot, **kwargs), allow_nan=False)

    def write_jsonl(
        self,
        snapshots: Iterable[AnalysisSnapshot],
        output_path: Union[str, Path],
        interval: Optional[float] = None,
    ) -> Path:
        """
        Write one JSON object per line.

        Args:
            snapshots: Snapshots in tick order.
            output_path: Destination file; parent directories are created.
            interval: Tick period in seconds; adds a ``time`` field when set.

        Returns:
            Path to the written file.
        """
        output_path = Path(output_path)
        output_path.parent.mkdir(parents=True, exist_ok=True)
        with open(output_path, "w", encoding="utf-8") as f:
            for i, snapshot in enumerate(snapshots):
                timestamp = (i + 1) * interval if interval is not None else None
                f.write(self.to_json(snapshot, timestamp=timestamp))
                f.write("\n")
        return output_path


# ---------------------------------------------------------------------------
# Display formatting
# ---------------------------------------------------------------------------

def format_level(value: Optional[float], unit: str = "dB") -> str:
    """``-12.34`` → "-12.3 dB"; "N/A" for None or non-finite values."""
    if value is None or not math.isfinite(value):
        return "N/A"
    return f"{value:.1f} {unit}"


def format_rms_db(rms: float) -> str:
    """RMS amplitude shown in decibels, "N/A" for silence."""
    if not rms > 0:
        return "N/A"
    return format_level(20.0 * math.log10(rms))


def format_tempo(bpm: Optional[float]) -> str:
    if not bpm:
        return "..."
    return f"{bpm:.0f} BPM"


def format_key_label(key: Optional[str]) -> str:
    return key or "..."


def format_key(key: int, mode: int) -> str:
    """
    Format a numeric key and mode, e.g. ``(1, 0)`` → "C# Minor".

    Args:
        key: Pitch class, 0 = C through 11 = B.
        mode: 1 for major, anything else for minor.

    Returns:
        The formatted key, or "N/A" when *key* is outside 0-11.
    """
    if key < 0 or key > 11:
        return "N/A"
    mode_name = "Major" if mode == 1 else "Minor"
    return f"{PITCH_CLASSES[key]} {mode_name}"


def format_snapshot(snapshot: AnalysisSnapshot) -> dict[str, str]:
    """Ordered display labels for a meter panel."""
    return {
        "LUFS": format_level(snapshot.lufs, "LUFS"),
        "Peak dBFS": format_level(snapshot.dbfs, "dBFS"),
        "Tempo": format_tempo(snapshot.tempo),
        "Key": format_key_label(snapshot.key),
        "Dyn Range": format_level(snapshot.dynamic_range, "dB"),
        "RMS": format_rms_db(snapshot.rms),
    }
