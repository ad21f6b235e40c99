"""
Analyzer configuration.

An :class:`AnalyzerConfig` is supplied once at connect time and fixed for the
lifetime of the session; changing ``fft_size`` would require the source to
produce buffers of a different length.
"""

import json
from dataclasses import dataclass, fields
from pathlib import Path
from typing import Any, Mapping, Union

from meterscope.errors import ConfigError

# camelCase spellings accepted by from_dict(), as exposed by browser analyser nodes
_ALIASES = {
    "fftSize": "fft_size",
    "smoothingTimeConstant": "smoothing_time_constant",
    "minDecibels": "min_decibels",
    "maxDecibels": "max_decibels",
    "samplingIntervalMs": "sampling_interval_ms",
    "snapshotSmoothing": "snapshot_smoothing",
}

MIN_FFT_SIZE = 256
MAX_FFT_SIZE = 32768


@dataclass(frozen=True)
class AnalyzerConfig:
    """
    Settings shared by the frame source, the metrics engine and the scheduler.

    Attributes:
        fft_size: FFT window length. Must be a power of two in [256, 32768].
        smoothing_time_constant: Weight of the previous spectrum in [0, 1].
        min_decibels: Decibel floor of the frequency buffer.
        max_decibels: Decibel ceiling of the frequency buffer.
        sampling_interval_ms: Period of the analysis tick.
        snapshot_smoothing: Apply attack/release smoothing between snapshots.
    """

    fft_size: int = 4096
    smoothing_time_constant: float = 0.3
    min_decibels: float = -90.0
    max_decibels: float = -10.0
    sampling_interval_ms: float = 250.0
    snapshot_smoothing: bool = False

    def __post_init__(self):
        size = self.fft_size
        if isinstance(size, bool) or not isinstance(size, int):
            raise ConfigError(f"fft_size must be an integer, got {size!r}")
        if size < MIN_FFT_SIZE or size > MAX_FFT_SIZE or size & (size - 1):
            raise ConfigError(
                f"fft_size must be a power of two in [{MIN_FFT_SIZE}, {MAX_FFT_SIZE}], "
                f"got {size}"
            )
        if not 0.0 <= self.smoothing_time_constant <= 1.0:
            raise ConfigError(
                "smoothing_time_constant must be in [0, 1], "
                f"got {self.smoothing_time_constant}"
            )
        if not self.min_decibels < self.max_decibels:
            raise ConfigError(
                f"min_decibels ({self.min_decibels}) must be below "
                f"max_decibels ({self.max_decibels})"
            )
        if self.sampling_interval_ms <= 0:
            raise ConfigError(
                f"sampling_interval_ms must be positive, got {self.sampling_interval_ms}"
            )

    @property
    def frequency_bin_count(self) -> int:
        """Length N of both the time-domain and the frequency-domain buffer."""
        return self.fft_size // 2

    @property
    def decibel_range(self) -> tuple[float, float]:
        return (self.min_decibels, self.max_decibels)

    @property
    def sampling_interval(self) -> float:
        """Analysis tick period in seconds."""
        return self.sampling_interval_ms / 1000.0

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "AnalyzerConfig":
        """
        Build a config from a mapping with snake_case or camelCase keys.

        Raises:
            ConfigError: On unknown keys or invalid values.
        """
        known = {f.name for f in fields(cls)}
        kwargs = {}
        for key, value in data.items():
            name = _ALIASES.get(key, key)
            if name not in known:
                raise ConfigError(f"Unknown analyzer setting: {key!r}")
            kwargs[name] = value
        return cls(**kwargs)

    @classmethod
    def from_json(cls, path: Union[str, Path]) -> "AnalyzerConfig":
        """Load a config from a JSON object stored at *path*."""
        with open(path, "r", encoding="utf-8") as f:
            data = json.load(f)
        if not isinstance(data, dict):
            raise ConfigError(f"{path}: expected a JSON object")
        return cls.from_dict(data)
