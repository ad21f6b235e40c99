"""
Analysis session: the handle hosts use to drive the core.

A session couples one frame source with the metrics engine and the spectrum
renderer and owns the two periodic activities:

* the **analysis tick**, run by an :class:`IntervalTicker` every
  ``sampling_interval_ms`` while the session is active, delivering one
  :class:`AnalysisSnapshot` to every registered callback;
* the **render tick**, invoked by the host once per display frame through
  :meth:`AnalyzerSession.render`.

State machine::

    IDLE ──enable()──► ACTIVE ──disable()──► STOPPING ──render()──► IDLE
                          ▲                     │
                          └──────enable()───────┘

While STOPPING exactly one more ``render`` call paints the idle state.
Disabling bumps a generation counter under the session lock, so a snapshot
computed by a tick that was already in flight is discarded instead of
delivered.
"""

import logging
import threading
from typing import Any, Callable, List, Optional

from meterscope.core.analyzer import AnalysisSnapshot, MetricsEngine
from meterscope.core.config import AnalyzerConfig
from meterscope.core.polisher import SnapshotPolisher
from meterscope.core.scheduler import IntervalTicker, RunState
from meterscope.core.stream import FrameSource
from meterscope.errors import ConfigError, RenderUnavailable, SourceUnavailable
from meterscope.visualizers.canvas import as_canvas
from meterscope.visualizers.spectrum import SpectrumRenderer

logger = logging.getLogger(__name__)

SnapshotCallback = Callable[[AnalysisSnapshot], Any]


class AnalyzerSession:
    """
    Handle returned by :func:`connect`.

    Use as a context manager to guarantee :meth:`disconnect`::

        with connect(analyzer) as session:
            session.on_snapshot(print)
            session.enable()
            ...
    """

    def __init__(
        self,
        source: FrameSource,
        config: AnalyzerConfig,
        engine: Optional[MetricsEngine] = None,
        renderer: Optional[SpectrumRenderer] = None,
    ):
        self.source = source
        self.config = config
        self.engine = engine or MetricsEngine()
        self.renderer = renderer or SpectrumRenderer()
        self.polisher = (
            SnapshotPolisher(config.sampling_interval_ms) if config.snapshot_smoothing else None
        )

        self._lock = threading.RLock()
        self._tick_lock = threading.Lock()
        self._state = RunState.IDLE
        self._generation = 0
        self._connected = True
        self._final_frame_pending = False
        self._render_failed = False
        self._callbacks: List[SnapshotCallback] = []
        self._latest: Optional[AnalysisSnapshot] = None
        self._ticker = IntervalTicker(config.sampling_interval, self.tick)

    # ------------------------------------------------------------------
    # Introspection
    # ------------------------------------------------------------------

    @property
    def state(self) -> RunState:
        return self._state

    @property
    def is_connected(self) -> bool:
        return self._connected

    @property
    def active(self) -> bool:
        return self._state is RunState.ACTIVE

    @property
    def latest(self) -> Optional[AnalysisSnapshot]:
        """Most recent delivered snapshot; stale once the session is disabled."""
        return self._latest

    @property
    def render_failed(self) -> bool:
        return self._render_failed

    # ------------------------------------------------------------------
    # Consumer registration
    # ------------------------------------------------------------------

    def on_snapshot(self, callback: SnapshotCallback) -> SnapshotCallback:
        """Register *callback* to receive every snapshot; usable as a decorator."""
        with self._lock:
            self._callbacks.append(callback)
        return callback

    def remove_snapshot_callback(self, callback: SnapshotCallback) -> None:
        with self._lock:
            if callback in self._callbacks:
                self._callbacks.remove(callback)

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def enable(self) -> None:
        """Start (or resume) analysis and live rendering."""
        with self._lock:
            if not self._connected:
                raise SourceUnavailable("Session has been disconnected")
            if self._state is RunState.ACTIVE:
                return
            self._state = RunState.ACTIVE
            self._generation += 1
            self._final_frame_pending = False
            if self.polisher is not None:
                self.polisher.reset()
        self._ticker.start()
        logger.info(
            "Analysis enabled (every %.0f ms)", self.config.sampling_interval_ms
        )

    def disable(self) -> None:
        """
        Stop analysis.

        No snapshot callback fires after this returns.  The next ``render``
        call paints the idle state once; later calls draw nothing.  After a
        render failure there is no final frame and the session goes straight
        to IDLE.
        """
        with self._lock:
            if self._state is not RunState.ACTIVE:
                return
            self._generation += 1
            if self._render_failed:
                # no render call will ever paint the final frame
                self._state = RunState.IDLE
                self._final_frame_pending = False
            else:
                self._state = RunState.STOPPING
                self._final_frame_pending = True
        self._ticker.stop()
        logger.info("Analysis disabled")

    def disconnect(self) -> None:
        """Halt both ticks and release the source.  Idempotent."""
        with self._lock:
            if not self._connected:
                return
            self._connected = False
            self._state = RunState.IDLE
            self._generation += 1
            self._final_frame_pending = False
            self._callbacks.clear()
        self._ticker.stop()
        self.source.close()
        logger.info("Source disconnected")

    def __enter__(self) -> "AnalyzerSession":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.disconnect()

    # ------------------------------------------------------------------
    # Analysis tick
    # ------------------------------------------------------------------

    def tick(self) -> Optional[AnalysisSnapshot]:
        """
        Run one analysis tick synchronously.

        Called by the interval ticker; hosts with their own timer may call it
        directly.  A call made while another tick is still running is
        skipped.  Returns the delivered snapshot, or None when the session is
        not active, the tick was skipped or the result was discarded.
        """
        if not self._tick_lock.acquire(blocking=False):
            logger.debug("Analysis tick already in flight; skipping")
            return None
        try:
            return self._run_tick()
        finally:
            self._tick_lock.release()

    def _run_tick(self) -> Optional[AnalysisSnapshot]:
        with self._lock:
            if self._state is not RunState.ACTIVE:
                return None
            generation = self._generation

        try:
            frame = self.source.read_frame()
        except SourceUnavailable:
            logger.error("Frame source went away; stopping analysis")
            self.disable()
            return None
        snapshot = self.engine.analyze_frame(frame)

        with self._lock:
            if generation != self._generation or self._state is not RunState.ACTIVE:
                logger.debug("Discarding snapshot from a cancelled tick")
                return None
            if self.polisher is not None:
                snapshot = self.polisher.polish(snapshot)
            self._latest = snapshot
            for callback in list(self._callbacks):
                try:
                    callback(snapshot)
                except Exception:
                    logger.exception("Snapshot callback %r failed", callback)
        return snapshot

    # ------------------------------------------------------------------
    # Render tick
    # ------------------------------------------------------------------

    def render(self, surface: Any) -> bool:
        """
        Paint the current spectrum onto *surface*.

        Call once per display frame.  Returns True if something was drawn.

        Raises:
            RenderUnavailable: The first time the surface cannot be painted.
                Further calls return False without drawing until the source
                is connected again.
        """
        with self._lock:
            if self._render_failed or not self._connected:
                return False
            if self._state is RunState.ACTIVE:
                final = False
            elif self._final_frame_pending:
                final = True
                self._final_frame_pending = False
                self._state = RunState.IDLE
            else:
                return False

        try:
            canvas = as_canvas(surface)
        except RenderUnavailable:
            with self._lock:
                self._render_failed = True
            logger.error("Rendering disabled: no usable drawing surface")
            raise

        size = (canvas.width, canvas.height)
        if final:
            cfg = self.config
            pixels = self.renderer.render_idle(
                self.source.sample_rate, cfg.min_decibels, cfg.max_decibels, size=size
            )
        else:
            try:
                frame = self.source.read_frame()
            except SourceUnavailable:
                return False
            pixels = self.renderer.render_frame(frame, size=size)
        canvas.draw(pixels)
        return True


def connect(
    source: Optional[FrameSource],
    config: Optional[AnalyzerConfig] = None,
    engine: Optional[MetricsEngine] = None,
    renderer: Optional[SpectrumRenderer] = None,
) -> AnalyzerSession:
    """
    Begin pulling frames from *source*.

    The returned session starts IDLE; call ``enable()`` to start analysis.

    Args:
        source: Frame-producing source (e.g. a RealtimeAnalyzer).
        config: Session settings.  Defaults to the source's own config.
        engine: Metrics engine override.
        renderer: Spectrum renderer override.

    Raises:
        SourceUnavailable: If *source* is None, is not a frame source or is
            already closed.
        ConfigError: If *config* disagrees with the source's buffer layout.
    """
    if source is None:
        raise SourceUnavailable("No frame source supplied")
    if not isinstance(source, FrameSource):
        raise SourceUnavailable(
            f"{type(source).__name__} is not a frame source "
            "(needs sample_rate, config, read_frame() and close())"
        )
    if getattr(source, "closed", False):
        raise SourceUnavailable("Frame source has been closed")

    source_config = source.config
    if config is None:
        config = source_config
    elif (
        config.fft_size != source_config.fft_size
        or config.decibel_range != source_config.decibel_range
    ):
        raise ConfigError(
            "Session config must match the source's fft_size and decibel range"
        )

    logger.info(
        "Connected source %s (fft_size=%d, %.0f Hz)",
        type(source).__name__,
        config.fft_size,
        source.sample_rate,
    )
    return AnalyzerSession(source, config, engine=engine, renderer=renderer)


def disconnect(handle: Optional[AnalyzerSession]) -> None:
    """Disconnect *handle*; safe to call repeatedly or with None."""
    if handle is not None:
        handle.disconnect()


def on_snapshot(handle: AnalyzerSession, callback: SnapshotCallback) -> SnapshotCallback:
    """Register *callback* for every analysis tick of *handle*."""
    return handle.on_snapshot(callback)


def render(surface: Any, handle: AnalyzerSession) -> bool:
    """Render one display frame of *handle* onto *surface*."""
    return handle.render(surface)
