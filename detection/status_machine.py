# detection/status_machine.py
import threading
from typing import Callable, Optional

from models.events import SecurityStatus
from utils.logger import logger

# === CONFIG (tweak) ===
SCAN_DURATION = 10.0   # seconds of threat-biased generation per scan
SCAN_INTERVAL = 0.5    # seconds between scan ticks


class SecurityStatusMachine:
    """
    Owns the Secure / Scanning / Threat Found status and the scan timer.

    Transitions:
      start_scan()        any            -> Scanning   (restarts a running scan)
      threat_detected()   any            -> Threat Found (if an unremediated threat exists)
      finish_scan()       Scanning/any   -> Secure | Threat Found
      threats_cleared()   Threat Found   -> Secure     (once every threat is remediated)

    The status is never set directly from outside.
    """

    def __init__(self, scheduler, registry, on_scan_tick: Callable[[], None],
                 guard=None, scan_duration: float = SCAN_DURATION, scan_interval: float = SCAN_INTERVAL,
                 on_transition: Optional[Callable[[SecurityStatus, SecurityStatus], None]] = None):
        self.scheduler = scheduler
        self.registry = registry
        self.on_scan_tick = on_scan_tick
        self.on_transition = on_transition
        self.guard = guard or threading.RLock()
        self.scan_duration = scan_duration
        self.scan_interval = scan_interval
        self._status = SecurityStatus.SECURE
        self._scan_handle = None
        self._scan_gen = 0
        self._scan_end = None

    @property
    def status(self) -> SecurityStatus:
        return self._status

    @property
    def scan_active(self) -> bool:
        return self._scan_handle is not None

    def _set(self, new: SecurityStatus, reason: str):
        old = self._status
        if old == new:
            return
        self._status = new
        logger.info("[status] %s -> %s (%s)", old.value, new.value, reason)
        if self.on_transition is not None:
            try:
                self.on_transition(old, new)
            except Exception as e:
                logger.exception("[status] transition hook failed: %s", e)

    def start_scan(self):
        with self.guard:
            if self._scan_handle is not None:
                logger.info("[status] scan already running, restarting")
                self._scan_handle.cancel()
            self._scan_gen += 1
            self._scan_end = self.scheduler.now() + self.scan_duration
            self._set(SecurityStatus.SCANNING, "scan started")
            self._scan_handle = self.scheduler.call_every(self.scan_interval, self._scan_tick, self._scan_gen,
                                                          name="scan")

    def _scan_tick(self, gen: int):
        with self.guard:
            if gen != self._scan_gen or self._scan_handle is None:
                return
            if self.scheduler.now() >= self._scan_end:
                self.finish_scan()
                return
            self.on_scan_tick()

    def finish_scan(self):
        with self.guard:
            self._cancel_scan()
            if self.registry.all_remediated():
                self._set(SecurityStatus.SECURE, "scan finished clean")
            else:
                self._set(SecurityStatus.THREAT_FOUND, "scan finished with active threats")

    def threat_detected(self):
        with self.guard:
            if self.registry.all_remediated():
                return
            self._set(SecurityStatus.THREAT_FOUND, "threat detected")

    def threats_cleared(self):
        with self.guard:
            if self._status != SecurityStatus.THREAT_FOUND:
                return
            if self.registry.all_remediated():
                self._set(SecurityStatus.SECURE, "all threats remediated")

    def _cancel_scan(self):
        if self._scan_handle is not None:
            self._scan_handle.cancel()
            self._scan_handle = None
        self._scan_gen += 1
        self._scan_end = None

    def stop(self):
        with self.guard:
            self._cancel_scan()
