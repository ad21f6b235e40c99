"""
Periodic task drivers for the analysis and render ticks.

Both drivers run their callback on a dedicated daemon thread and share the
same cancellation rule: the decision to start a tick and the stop flag are
guarded by one lock, so once :meth:`stop` returns no new tick can begin.  A
tick that was already running is allowed to finish.
"""

import enum
import logging
import math
import threading
import time
from typing import Callable, Optional

logger = logging.getLogger(__name__)


class RunState(enum.Enum):
    """Lifecycle of an analysis session."""

    IDLE = "idle"
    ACTIVE = "active"
    STOPPING = "stopping"  # disabled, final render frame still pending


class _PeriodicThread:
    """Shared start/stop plumbing for the two tick drivers."""

    thread_name = "meterscope-tick"

    def __init__(self, period: float, callback: Callable[[], object]):
        if period <= 0:
            raise ValueError(f"period must be positive, got {period}")
        self.period = period
        self.callback = callback
        self._gate = threading.Lock()
        self._run_id = 0
        self._active = False
        self._wake = threading.Event()
        self._thread: Optional[threading.Thread] = None
        self.ticks = 0

    @property
    def running(self) -> bool:
        return self._active

    def start(self) -> None:
        with self._gate:
            if self._active:
                return
            self._active = True
            self._run_id += 1
            # each run gets its own wake event so a lingering old thread exits
            self._wake = threading.Event()
            self._thread = threading.Thread(
                target=self._run,
                args=(self._run_id, self._wake),
                name=self.thread_name,
                daemon=True,
            )
            self._thread.start()

    def stop(self, wait: bool = True) -> None:
        """
        Prevent any further tick from starting.

        Args:
            wait: Join the worker thread, i.e. also wait for an in-flight
                tick.  Ignored when called from the worker thread itself.
        """
        with self._gate:
            self._active = False
            self._wake.set()
            thread = self._thread
        if wait and thread is not None and thread is not threading.current_thread():
            thread.join()

    def _begin_tick(self, run_id: int) -> bool:
        """Atomically check the stop flag before a tick starts."""
        with self._gate:
            if not self._active or run_id != self._run_id:
                return False
            self.ticks += 1
            return True

    def _finish(self, run_id: int) -> None:
        with self._gate:
            if run_id == self._run_id:
                self._active = False

    def _run(self, run_id: int, wake: threading.Event) -> None:  # pragma: no cover
        raise NotImplementedError


class IntervalTicker(_PeriodicThread):
    """
    Calls *callback* every *interval* seconds.

    Deadlines are fixed multiples of the interval from start.  When a tick
    overruns one or more deadlines, the missed invocations are skipped rather
    than queued, so at most one tick is ever in flight.
    """

    thread_name = "meterscope-analysis"

    def __init__(self, interval: float, callback: Callable[[], object]):
        super().__init__(interval, callback)
        self.skipped = 0

    def _run(self, run_id: int, wake: threading.Event) -> None:
        next_deadline = time.monotonic() + self.period
        while True:
            delay = next_deadline - time.monotonic()
            if delay > 0 and wake.wait(delay):
                break
            if not self._begin_tick(run_id):
                break
            try:
                self.callback()
            except Exception:
                logger.exception("Analysis tick failed")

            next_deadline += self.period
            now = time.monotonic()
            if next_deadline <= now:
                missed = math.floor((now - next_deadline) / self.period) + 1
                self.skipped += missed
                next_deadline += missed * self.period
                logger.debug("Analysis tick overran; skipped %d invocation(s)", missed)


class RenderLoop(_PeriodicThread):
    """
    Reference display-refresh driver.

    Calls *callback* roughly *fps* times per second until the callback
    returns False or :meth:`stop` is called.  Hosts with their own refresh
    callback (a GUI toolkit, a pygame clock) call the session's ``render``
    directly instead.
    """

    thread_name = "meterscope-render"

    def __init__(self, callback: Callable[[], object], fps: float = 60.0):
        if fps <= 0:
            raise ValueError(f"fps must be positive, got {fps}")
        super().__init__(1.0 / fps, callback)
        self.fps = fps

    def _run(self, run_id: int, wake: threading.Event) -> None:
        next_deadline = time.monotonic()
        while True:
            delay = next_deadline - time.monotonic()
            if delay > 0 and wake.wait(delay):
                break
            if not self._begin_tick(run_id):
                break
            try:
                keep_going = self.callback()
            except Exception:
                logger.exception("Render tick failed; stopping render loop")
                keep_going = False
            if keep_going is False:
                self._finish(run_id)
                break
            next_deadline = max(next_deadline + self.period, time.monotonic())

    def join(self, timeout: Optional[float] = None) -> None:
        """Wait for the loop to end on its own (callback returned False)."""
        thread = self._thread
        if thread is not None and thread is not threading.current_thread():
            thread.join(timeout)
