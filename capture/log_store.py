# capture/log_store.py
import threading
from collections import deque
from typing import List, Optional

from models.events import Event
from utils.logger import log_event

MAX_LOG_ENTRIES = 100


class LogStore:
    """
    Bounded, insertion-ordered event log (oldest first).
    Appends first, then drops the oldest entries, so len(log) <= max_entries at all times.

    On append, detections are forwarded to the registry and the status machine,
    unauthorized-access warnings to the tracker.
    Remediated threats drop out of the registry once their entry leaves the log.
    """

    def __init__(self, registry=None, status_machine=None, tracker=None, max_entries: int = MAX_LOG_ENTRIES):
        self.lock = threading.Lock()
        self.max_entries = max_entries
        self._entries = deque(maxlen=max_entries)
        self.registry = registry
        self.status_machine = status_machine
        self.tracker = tracker

    def append(self, event: Event):
        # registry first: a logged threat is always tracked
        if event.threat is not None:
            if self.registry is not None:
                self.registry.add(event.threat)
            if self.status_machine is not None and not event.threat.remediated:
                self.status_machine.threat_detected()
        elif event.is_unauthorized_attempt and self.tracker is not None:
            self.tracker.record(event)

        with self.lock:
            evicted = len(self._entries) == self.max_entries
            self._entries.append(event)
            live_threats = {e.threat.id for e in self._entries if e.threat is not None} if evicted else None
        if live_threats is not None and self.registry is not None:
            self.registry.forget_remediated(live_threats)
        log_event(event.to_dict())

    def entries(self) -> List[Event]:
        with self.lock:
            return list(self._entries)

    def tail(self, n: int) -> List[Event]:
        with self.lock:
            if n <= 0:
                return []
            return list(self._entries)[-n:]

    def get(self, event_id: str) -> Optional[Event]:
        with self.lock:
            for ev in self._entries:
                if ev.id == event_id:
                    return ev
        return None

    def find_by_threat(self, threat_id: str) -> Optional[Event]:
        with self.lock:
            for ev in self._entries:
                if ev.threat is not None and ev.threat.id == threat_id:
                    return ev
        return None

    def __len__(self):
        with self.lock:
            return len(self._entries)
