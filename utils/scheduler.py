# utils/scheduler.py
"""
Cancellable timers for the monitor.

Scheduler        -- real time, one daemon thread per timer (threading.Event based sleeps)
ManualScheduler  -- simulated clock; nothing runs until advance() is called

Both expose the same surface: now(), call_later(), call_every(), submit(), shutdown().
Every call returns a TimerHandle whose cancel() is idempotent.
"""
import heapq
import itertools
import threading
import time
from typing import Callable, Optional

from utils.logger import logger


class TimerHandle:
    def __init__(self, name: str = ""):
        self.name = name
        self._cancelled = threading.Event()

    def cancel(self):
        self._cancelled.set()

    @property
    def cancelled(self) -> bool:
        return self._cancelled.is_set()


def _run_safely(handle: TimerHandle, fn: Callable, args):
    try:
        fn(*args)
    except Exception as e:
        logger.exception("[scheduler] timer %s failed: %s", handle.name or fn, e)


class Scheduler:
    """Thread-backed scheduler, seconds are wall-clock seconds."""

    def __init__(self):
        self.lock = threading.Lock()
        self._handles = set()
        self._closed = False

    def now(self) -> float:
        return time.monotonic()

    def _track(self, handle: TimerHandle):
        with self.lock:
            if self._closed:
                handle.cancel()
            self._handles.add(handle)

    def _untrack(self, handle: TimerHandle):
        with self.lock:
            self._handles.discard(handle)

    def _spawn(self, handle: TimerHandle, target: Callable):
        self._track(handle)
        t = threading.Thread(target=target, name=handle.name or None, daemon=True)
        t.start()
        return handle

    def call_later(self, delay: float, fn: Callable, *args, name: str = "") -> TimerHandle:
        handle = TimerHandle(name)

        def _loop():
            if not handle._cancelled.wait(delay):
                _run_safely(handle, fn, args)
            self._untrack(handle)

        return self._spawn(handle, _loop)

    def call_every(self, interval: float, fn: Callable, *args, name: str = "") -> TimerHandle:
        handle = TimerHandle(name)

        def _loop():
            while not handle._cancelled.wait(interval):
                _run_safely(handle, fn, args)
            self._untrack(handle)

        return self._spawn(handle, _loop)

    def submit(self, fn: Callable, *args, name: str = "") -> TimerHandle:
        """Run fn in the background right away (used for collaborator requests)."""
        handle = TimerHandle(name)

        def _run():
            if not handle.cancelled:
                _run_safely(handle, fn, args)
            self._untrack(handle)

        return self._spawn(handle, _run)

    def shutdown(self):
        with self.lock:
            self._closed = True
            handles = list(self._handles)
            self._handles.clear()
        for h in handles:
            h.cancel()
        logger.info("[scheduler] shutdown, cancelled %d timer(s)", len(handles))


class ManualScheduler:
    """
    Simulated clock. Timers fire only inside advance(), in due-time order
    (ties broken by scheduling order). submit() runs immediately unless
    defer_submits is set, in which case run_submitted() releases them.
    """

    def __init__(self, start: float = 0.0, defer_submits: bool = False):
        self._now = float(start)
        self._queue = []  # (due, seq, handle, fn, args, interval)
        self._seq = itertools.count()
        self._submitted = []
        self.defer_submits = defer_submits
        self._closed = False

    def now(self) -> float:
        return self._now

    def _push(self, due: float, handle: TimerHandle, fn: Callable, args, interval: Optional[float]):
        if self._closed:
            handle.cancel()
            return handle
        heapq.heappush(self._queue, (due, next(self._seq), handle, fn, args, interval))
        return handle

    def call_later(self, delay: float, fn: Callable, *args, name: str = "") -> TimerHandle:
        return self._push(self._now + delay, TimerHandle(name), fn, args, None)

    def call_every(self, interval: float, fn: Callable, *args, name: str = "") -> TimerHandle:
        if interval <= 0:
            raise ValueError("interval must be positive")
        return self._push(self._now + interval, TimerHandle(name), fn, args, interval)

    def submit(self, fn: Callable, *args, name: str = "") -> TimerHandle:
        handle = TimerHandle(name)
        if self._closed:
            handle.cancel()
        elif self.defer_submits:
            self._submitted.append((handle, fn, args))
        else:
            _run_safely(handle, fn, args)
        return handle

    def run_submitted(self) -> int:
        pending, self._submitted = self._submitted, []
        ran = 0
        for handle, fn, args in pending:
            if not handle.cancelled:
                _run_safely(handle, fn, args)
                ran += 1
        return ran

    @property
    def pending(self) -> int:
        return sum(1 for entry in self._queue if not entry[2].cancelled)

    def advance(self, seconds: float):
        """Move the clock forward, firing every timer that falls due on the way."""
        target = self._now + seconds
        while self._queue and self._queue[0][0] <= target:
            due, _, handle, fn, args, interval = heapq.heappop(self._queue)
            if handle.cancelled:
                continue
            self._now = due
            _run_safely(handle, fn, args)
            if interval is not None and not handle.cancelled:
                self._push(due + interval, handle, fn, args, interval)
        self._now = target

    def shutdown(self):
        self._closed = True
        for entry in self._queue:
            entry[2].cancel()
        for handle, _, _ in self._submitted:
            handle.cancel()
        self._queue.clear()
        self._submitted.clear()
