"""
Real-time spectral frame source.

Architecture Overview
---------------------
::

    Audio device / decoded file
        │
        ▼  (process_chunk, e.g. 1 024 samples @ 44 100 Hz)
    RealtimeAnalyzer ring buffer (fft_size samples)
        │
        ├─► read_frame()  ── analysis tick (every 250 ms)
        │        └─► SpectralFrame → MetricsEngine.analyze()
        │
        └─► read_frame()  ── render tick (every display frame)
                 └─► SpectralFrame → SpectrumRenderer.render_frame()

Each ``read_frame()`` call returns freshly allocated, read-only buffers, so
the two ticks never share a mutable array.

Decibel contract
----------------
``SpectralFrame.freq_data`` holds ``20 * log10(magnitude)`` values clipped to
``[min_decibels, max_decibels]``.  The metrics engine reconstructs linear
magnitudes with ``10 ** (db / 20)`` and relies on the frame declaring the same
floor and ceiling the source used to encode it.
"""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass
from pathlib import Path
from typing import Optional, Protocol, Union, runtime_checkable

import numpy as np
from scipy import signal as scipy_signal

from meterscope.core.config import AnalyzerConfig
from meterscope.errors import SourceUnavailable

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SpectralFrame:
    """
    One pull from a frame source.

    ``time_data`` and ``freq_data`` have the same length N; bin ``i`` of
    ``freq_data`` is centred on ``i * (sample_rate / 2) / N`` Hz.
    """

    time_data: np.ndarray
    freq_data: np.ndarray
    sample_rate: float
    min_decibels: float = -90.0
    max_decibels: float = -10.0

    def __post_init__(self):
        time_data = np.array(self.time_data, dtype=np.float32)
        freq_data = np.array(self.freq_data, dtype=np.float32)
        if time_data.ndim != 1 or freq_data.ndim != 1:
            raise ValueError("Frame buffers must be one-dimensional")
        if len(time_data) != len(freq_data):
            raise ValueError(
                f"Buffer length mismatch: {len(time_data)} time samples, "
                f"{len(freq_data)} frequency bins"
            )
        if self.sample_rate <= 0:
            raise ValueError(f"sample_rate must be positive, got {self.sample_rate}")
        time_data.setflags(write=False)
        freq_data.setflags(write=False)
        object.__setattr__(self, "time_data", time_data)
        object.__setattr__(self, "freq_data", freq_data)

    @property
    def n_bins(self) -> int:
        return len(self.freq_data)

    @property
    def nyquist(self) -> float:
        return self.sample_rate / 2.0

    @property
    def decibel_range(self) -> tuple[float, float]:
        return (self.min_decibels, self.max_decibels)

    def bin_frequencies(self) -> np.ndarray:
        """Centre frequency in Hz of every bin, DC included."""
        return np.arange(self.n_bins) * (self.nyquist / self.n_bins)


@runtime_checkable
class FrameSource(Protocol):
    """Anything the session can pull frames from."""

    sample_rate: float
    config: AnalyzerConfig

    def read_frame(self) -> SpectralFrame:
        ...

    def close(self) -> None:
        ...


class RealtimeAnalyzer:
    """
    Host-side analyser node: buffers incoming audio and produces frames.

    Audio chunks are pushed with :meth:`process_chunk` (safe to call from an
    audio callback thread) and frames are pulled with :meth:`read_frame`.

    Parameters
    ----------
    sample_rate:
        Audio sample rate in Hz.
    config:
        FFT size, spectrum smoothing and decibel range.  Defaults to
        :class:`AnalyzerConfig()`.
    """

    def __init__(
        self,
        sample_rate: float = 44100,
        config: Optional[AnalyzerConfig] = None,
    ):
        if sample_rate <= 0:
            raise ValueError(f"sample_rate must be positive, got {sample_rate}")
        self.sample_rate = float(sample_rate)
        self.config = config or AnalyzerConfig()

        n_fft = self.config.fft_size
        self._lock = threading.Lock()
        self._buffer = np.zeros(n_fft, dtype=np.float32)
        self._write_pos = 0
        self._window = scipy_signal.get_window("blackman", n_fft, fftbins=False).astype(
            np.float64
        )
        self._smoothed = np.zeros(n_fft // 2 + 1, dtype=np.float64)
        self._closed = False
        self.samples_received = 0

    @property
    def closed(self) -> bool:
        return self._closed

    def process_chunk(self, chunk: np.ndarray) -> None:
        """
        Append audio samples to the ring buffer.

        Parameters
        ----------
        chunk:
            Float samples in [-1, 1].  A 2-D ``(frames, channels)`` block is
            down-mixed to mono by averaging the channels.
        """
        data = np.asarray(chunk, dtype=np.float32)
        if data.ndim == 2:
            data = data.mean(axis=1)
        data = data.ravel()
        if data.size == 0:
            return

        n_fft = len(self._buffer)
        with self._lock:
            self.samples_received += data.size
            if data.size >= n_fft:
                self._buffer[:] = data[-n_fft:]
                self._write_pos = 0
                return
            end = self._write_pos + data.size
            if end <= n_fft:
                self._buffer[self._write_pos:end] = data
            else:
                split = n_fft - self._write_pos
                self._buffer[self._write_pos:] = data[:split]
                self._buffer[: end - n_fft] = data[split:]
            self._write_pos = end % n_fft

    def _ordered_samples(self) -> np.ndarray:
        """Ring buffer contents, oldest sample first (caller holds the lock)."""
        return np.concatenate(
            [self._buffer[self._write_pos:], self._buffer[: self._write_pos]]
        )

    def read_frame(self) -> SpectralFrame:
        """
        Produce a frame from the most recent ``fft_size`` samples.

        Time data is the newest ``frequency_bin_count`` samples.  Frequency
        data is a Blackman-windowed FFT, smoothed against the previous call
        with ``smoothing_time_constant`` and converted to clipped decibels.

        Raises
        ------
        SourceUnavailable
            If the analyzer has been closed.
        """
        if self._closed:
            raise SourceUnavailable("Frame source has been closed")

        cfg = self.config
        n_bins = cfg.frequency_bin_count
        tau = cfg.smoothing_time_constant

        with self._lock:
            samples = self._ordered_samples()
            spectrum = np.fft.rfft(samples.astype(np.float64) * self._window)
            magnitude = np.abs(spectrum) / cfg.fft_size
            self._smoothed = tau * self._smoothed + (1.0 - tau) * magnitude
            smoothed = self._smoothed[:n_bins].copy()

        with np.errstate(divide="ignore"):
            decibels = 20.0 * np.log10(smoothed)
        decibels = np.clip(
            np.nan_to_num(decibels, neginf=cfg.min_decibels),
            cfg.min_decibels,
            cfg.max_decibels,
        )

        return SpectralFrame(
            time_data=samples[-n_bins:],
            freq_data=decibels,
            sample_rate=self.sample_rate,
            min_decibels=cfg.min_decibels,
            max_decibels=cfg.max_decibels,
        )

    def reset(self) -> None:
        """Forget buffered audio and spectrum history."""
        with self._lock:
            self._buffer.fill(0.0)
            self._write_pos = 0
            self._smoothed.fill(0.0)
            self.samples_received = 0

    def close(self) -> None:
        self._closed = True


class FilePlayer:
    """
    Feeds a decoded signal into a :class:`RealtimeAnalyzer` chunk by chunk.

    With ``realtime=True`` chunks are delivered at wall-clock pace from a
    background thread, emulating playback; otherwise as fast as possible.
    """

    def __init__(
        self,
        y: np.ndarray,
        analyzer: RealtimeAnalyzer,
        chunk_size: int = 1024,
        realtime: bool = True,
        max_duration: Optional[float] = None,
    ):
        if chunk_size <= 0:
            raise ValueError(f"chunk_size must be positive, got {chunk_size}")
        y = np.asarray(y, dtype=np.float32)
        if max_duration is not None:
            y = y[: int(max_duration * analyzer.sample_rate)]
        self.y = y
        self.analyzer = analyzer
        self.chunk_size = chunk_size
        self.realtime = realtime
        self._stop = threading.Event()
        self._thread: Optional[threading.Thread] = None
        self.position = 0

    @classmethod
    def from_file(
        cls,
        audio_path: Union[str, Path],
        config: Optional[AnalyzerConfig] = None,
        **kwargs,
    ) -> "FilePlayer":
        """
        Decode an audio file (wav, mp3, flac) and wrap it with a new analyzer.

        The file is mixed down to mono at its native sample rate.
        """
        import librosa

        y, sr = librosa.load(audio_path, sr=None, mono=True)
        analyzer = RealtimeAnalyzer(sample_rate=sr, config=config)
        logger.info("Decoded %s: %.2fs at %d Hz", audio_path, len(y) / sr, sr)
        return cls(y, analyzer, **kwargs)

    @property
    def duration(self) -> float:
        return len(self.y) / self.analyzer.sample_rate

    @property
    def finished(self) -> bool:
        return self.position >= len(self.y)

    def feed_next(self) -> bool:
        """Push the next chunk; returns False once the signal is exhausted."""
        if self.finished:
            return False
        end = min(self.position + self.chunk_size, len(self.y))
        self.analyzer.process_chunk(self.y[self.position:end])
        self.position = end
        return True

    def _run(self) -> None:
        period = self.chunk_size / self.analyzer.sample_rate
        while not self._stop.is_set() and self.feed_next():
            if self.realtime:
                self._stop.wait(period)

    def start(self) -> None:
        if self._thread is not None and self._thread.is_alive():
            return
        self._stop.clear()
        self._thread = threading.Thread(target=self._run, name="meterscope-player", daemon=True)
        self._thread.start()

    def stop(self) -> None:
        self._stop.set()
        if self._thread is not None:
            self._thread.join()
            self._thread = None

    def wait(self, timeout: Optional[float] = None) -> bool:
        """Block until playback ends; returns True if it finished."""
        if self._thread is not None:
            self._thread.join(timeout)
        return self.finished


def open_input_stream(
    analyzer: RealtimeAnalyzer,
    device: Optional[Union[int, str]] = None,
    block_size: int = 1024,
):
    """
    Start capturing from an input device into *analyzer*.

    Requires the optional ``sounddevice`` package::

        pip install "meterscope[live]"

    Returns:
        The started ``sounddevice.InputStream``; close it to stop capture.

    Raises:
        ImportError: If sounddevice (or PortAudio) is not installed.
    """
    try:
        import sounddevice as sd
    except (ImportError, OSError) as exc:
        raise ImportError(
            "The 'sounddevice' package is required for live input.\n"
            "Install it with:  pip install 'meterscope[live]'"
        ) from exc

    def _callback(indata, frames, time_info, status):
        if status:
            logger.debug("Input stream status: %s", status)
        analyzer.process_chunk(indata)

    stream = sd.InputStream(
        samplerate=analyzer.sample_rate,
        blocksize=block_size,
        device=device,
        channels=1,
        dtype="float32",
        callback=_callback,
    )
    stream.start()
    logger.info("Capturing from input device %s at %d Hz", device, analyzer.sample_rate)
    return stream
