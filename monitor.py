#!/usr/bin/env python3
"""
NetWatch security monitor

Wires the simulated sensor together:
 - background tick every BACKGROUND_INTERVAL seconds (non-threat traffic), skipped while a scan runs
 - scans: threat-biased bursts driven by the status machine
 - log / threat registry / unauthorized-access tracker
 - remediation workflow and threat summaries backed by the text-generation client
 - dry-run manual blocks

Every timer callback and command runs under one RLock, so they never interleave.
Collaborator requests run outside it.
"""
from __future__ import annotations
import random
import threading
from typing import Optional

from capture.log_store import LogStore, MAX_LOG_ENTRIES
from detection.status_machine import SecurityStatusMachine, SCAN_DURATION, SCAN_INTERVAL
from detection.summary import summarize_threats
from detection.threat_registry import ThreatRegistry
from detection.unauthorized import UnauthorizedAccessTracker
from enforcement.remediation import RemediationWorkflow, APPLY_DELAY, LOCAL_IP
from enforcement.rule_manager import RuleManager
from models.events import Event, EventKind, SecurityStatus, Severity
from traffic_simulator import generate_event
from utils.alert import send_alert
from utils.logger import logger
from utils.scheduler import Scheduler
from utils.textgen import GeminiClient

# === CONFIG (tweak) ===
BACKGROUND_INTERVAL = 3.0   # seconds between background (non-threat) events
ALERT_ON_CRITICAL = True    # telegram alert for new Critical threats (no-op unless configured)


class SecurityMonitor:
    def __init__(self, scheduler=None, client=None, rng: Optional[random.Random] = None,
                 background_interval: float = BACKGROUND_INTERVAL,
                 scan_duration: float = SCAN_DURATION, scan_interval: float = SCAN_INTERVAL,
                 apply_delay: float = APPLY_DELAY, max_log_entries: int = MAX_LOG_ENTRIES,
                 auto_summary: bool = True, whitelist=None):
        self.scheduler = scheduler or Scheduler()
        self.client = client or GeminiClient()
        self.rng = rng or random.Random()
        self.background_interval = background_interval
        self.auto_summary = auto_summary
        self.lock = threading.RLock()

        self.registry = ThreatRegistry()
        self.tracker = UnauthorizedAccessTracker(self.scheduler)
        self.status_machine = SecurityStatusMachine(
            self.scheduler, self.registry, on_scan_tick=self._scan_tick, guard=self.lock,
            scan_duration=scan_duration, scan_interval=scan_interval)
        self.log = LogStore(self.registry, self.status_machine, self.tracker, max_entries=max_log_entries)
        self.remediation = RemediationWorkflow(
            self.registry, self.client, self.scheduler, append_event=self.append_event,
            after_resolve=self._after_resolve, guard=self.lock, apply_delay=apply_delay)
        self.rules = RuleManager(whitelist=whitelist)

        self.summary = ""
        self.summary_pending = False
        self._summary_key = ()
        self._summary_gen = 0
        self._background = None
        self._running = False

    # ------------ lifecycle -------------
    def start(self):
        with self.lock:
            if self._running:
                return
            self._running = True
            self._background = self.scheduler.call_every(self.background_interval, self._background_tick,
                                                         name="background")
        logger.info("[monitor] started (background every %.1fs)", self.background_interval)

    def shutdown(self):
        with self.lock:
            self._running = False
            if self._background is not None:
                self._background.cancel()
                self._background = None
            self.status_machine.stop()
            self.remediation.stop()
            self.tracker.stop()
        self.scheduler.shutdown()
        logger.info("[monitor] shut down")

    @property
    def running(self) -> bool:
        return self._running

    # ------------ generation -------------
    def _background_tick(self):
        with self.lock:
            if not self._running or self.status_machine.scan_active:
                return
            self.append_event(generate_event(False, self.rng))

    def _scan_tick(self):
        # called by the status machine with the lock held
        if not self._running:
            return
        self.append_event(generate_event(True, self.rng))

    def append_event(self, event: Event):
        with self.lock:
            new_threat = event.threat is not None and self.registry.get(event.threat.id) is None
            self.log.append(event)
            if new_threat:
                self._on_new_threat(event.threat)
            self._refresh_summary()

    def _on_new_threat(self, threat):
        if ALERT_ON_CRITICAL and threat.severity == Severity.CRITICAL:
            self.scheduler.submit(send_alert, threat, name=f"alert-{threat.id}")

    def _after_resolve(self):
        self.status_machine.threats_cleared()
        self._refresh_summary()

    # ------------ summary -------------
    def _refresh_summary(self):
        """Request a new summary whenever the set of active threat ids changes."""
        if not self.auto_summary:
            return
        active = self.registry.active_threats()
        key = tuple(t.id for t in active)
        if key == self._summary_key:
            return
        self._summary_key = key
        self._summary_gen += 1
        if not active:
            self.summary = ""
            self.summary_pending = False
            return
        self.summary_pending = True
        self.scheduler.submit(self._fetch_summary, active, self._summary_gen, name="summary")

    def _fetch_summary(self, threats, gen: int):
        text = summarize_threats(self.client, threats)
        with self.lock:
            if gen != self._summary_gen:
                return
            self.summary = text
            self.summary_pending = False

    # ------------ commands -------------
    def start_scan(self):
        with self.lock:
            self.status_machine.start_scan()

    def resolve_all(self) -> int:
        with self.lock:
            resolved = self.registry.resolve_all()
            self.append_event(Event(EventKind.INFO, "All threats marked as resolved by user.", LOCAL_IP))
            self.status_machine.threats_cleared()
            self._refresh_summary()
            return resolved

    def resolve_one(self, threat_id: str) -> bool:
        """Resolve one threat immediately (no apply delay, no log entry)."""
        with self.lock:
            if self.registry.resolve_one(threat_id) is None:
                return False
            self._after_resolve()
            return True

    def remediate(self, threat_id: str) -> bool:
        return self.remediation.apply_fix(threat_id)

    def request_suggestion(self, threat_id: str) -> bool:
        return self.remediation.request_suggestion(threat_id)

    def block_ip(self, ip: str) -> Optional[str]:
        ip = (ip or "").strip()
        if not ip:
            raise ValueError("ip is required")
        with self.lock:
            rule_id = self.rules.block_ip(ip)
            self.append_event(Event(EventKind.WARNING, f"Manual block initiated for IP: {ip}", ip))
            return rule_id

    # ------------ snapshots -------------
    @property
    def status(self) -> SecurityStatus:
        return self.status_machine.status

    def log_snapshot(self, n: Optional[int] = None):
        with self.lock:
            events = self.log.entries() if n is None else self.log.tail(n)
            return [e.to_dict() for e in events]

    def active_threats_snapshot(self):
        with self.lock:
            return [t.to_dict() for t in self.registry.active_threats()]

    def unauthorized_snapshot(self):
        with self.lock:
            return [e.to_dict() for e in self.tracker.attempts()]

    def threat_snapshot(self, threat_id: str) -> Optional[dict]:
        with self.lock:
            threat = self.registry.get(threat_id)
            if threat is None:
                return None
            d = threat.to_dict()
            d["displayAction"] = self.remediation.suggestion_for(threat_id)
            d["suggestionPending"] = threat_id in self.remediation.pending_suggestions
            d["applying"] = self.remediation.is_applying(threat_id)
            return d

    def snapshot(self) -> dict:
        with self.lock:
            active = self.active_threats_snapshot()
            return {
                "status": self.status.value,
                "scanning": self.status_machine.scan_active,
                "activeThreatCount": len(active),
                "activeThreats": active,
                "summary": self.summary,
                "summaryPending": self.summary_pending,
                "unauthorizedAttempts": self.unauthorized_snapshot(),
                "newUnauthorizedAlert": self.tracker.alert_active,
                "logs": self.log_snapshot(),
            }
