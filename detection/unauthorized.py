# detection/unauthorized.py
import threading
from collections import deque
from typing import List

from models.events import Event
from utils.logger import logger

MAX_ATTEMPTS = 10
ALERT_PULSE_SECONDS = 1.5


class UnauthorizedAccessTracker:
    """Most recent unauthorized-access attempts plus a short-lived 'new alert' pulse."""

    def __init__(self, scheduler, max_attempts: int = MAX_ATTEMPTS, pulse_seconds: float = ALERT_PULSE_SECONDS):
        self.scheduler = scheduler
        self.pulse_seconds = pulse_seconds
        self.lock = threading.Lock()
        self._attempts = deque(maxlen=max_attempts)
        self._pulse_handle = None
        self._pulse_gen = 0
        self.alert_active = False

    def record(self, event: Event):
        """Track one attempt; every new arrival (re)starts the alert pulse."""
        with self.lock:
            self._attempts.append(event)
            count = len(self._attempts)
            if self._pulse_handle is not None:
                self._pulse_handle.cancel()
            self._pulse_gen += 1
            self.alert_active = True
            self._pulse_handle = self.scheduler.call_later(self.pulse_seconds, self._clear_pulse, self._pulse_gen,
                                                           name="unauthorized-pulse")
        logger.info("[unauthorized] attempt from %s (%d tracked)", event.source_ip, count)

    def _clear_pulse(self, gen: int):
        with self.lock:
            # a newer arrival owns the pulse now
            if gen != self._pulse_gen:
                return
            self.alert_active = False
            self._pulse_handle = None

    def attempts(self) -> List[Event]:
        """Most recent first."""
        with self.lock:
            return list(reversed(self._attempts))

    def stop(self):
        with self.lock:
            if self._pulse_handle is not None:
                self._pulse_handle.cancel()
                self._pulse_handle = None
            self._pulse_gen += 1
            self.alert_active = False

    def __len__(self):
        with self.lock:
            return len(self._attempts)
