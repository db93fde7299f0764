"""
Unit Tests for the security monitor and its status machine

All timing runs on the ManualScheduler, so "seconds" are simulated seconds.
"""

import pytest

from conftest import FakeTextGen, FixedRandom
from models.events import EventKind, SecurityStatus
from monitor import SecurityMonitor
from utils.scheduler import ManualScheduler

ALWAYS_THREAT = 0.0   # FixedRandom value that makes every scan tick a Critical threat
NEVER_THREAT = 0.99   # ... and one that only ever yields normal traffic


class TestBackgroundTraffic:

    def test_background_tick_every_three_seconds(self, monitor, scheduler):
        scheduler.advance(2.5)
        assert len(monitor.log) == 0
        scheduler.advance(0.5)
        assert len(monitor.log) == 1
        scheduler.advance(6.0)
        assert len(monitor.log) == 3
        assert all(e.kind == EventKind.INFO for e in monitor.log.entries())

    def test_background_never_produces_threats(self, make_monitor, scheduler):
        m = make_monitor(rng=FixedRandom(ALWAYS_THREAT))
        scheduler.advance(30)
        assert len(m.registry) == 0
        assert m.status == SecurityStatus.SECURE
        # 0.0 < 0.05: every background event is an unauthorized attempt
        assert len(m.tracker) == 10

    def test_log_cap_in_long_run(self, monitor, scheduler):
        scheduler.advance(3.0 * 150)
        assert len(monitor.log) == 100


class TestStatusMachine:

    def test_initial_status_is_secure(self, monitor):
        assert monitor.status == SecurityStatus.SECURE

    def test_scan_without_threats_returns_to_secure(self, make_monitor, scheduler):
        m = make_monitor(rng=FixedRandom(NEVER_THREAT))
        m.start_scan()
        assert m.status == SecurityStatus.SCANNING
        scheduler.advance(9.5)
        assert m.status == SecurityStatus.SCANNING
        assert m.status_machine.scan_active
        scheduler.advance(0.5)
        assert m.status == SecurityStatus.SECURE
        assert not m.status_machine.scan_active
        # ticks at 0.5 .. 9.5; background ticks at 3, 6, 9 were skipped
        assert len(m.log) == 19

    def test_scan_with_threats_ends_in_threat_found(self, make_monitor, scheduler):
        m = make_monitor(rng=FixedRandom(ALWAYS_THREAT))
        m.start_scan()
        scheduler.advance(0.5)
        assert m.status == SecurityStatus.THREAT_FOUND
        scheduler.advance(9.5)
        assert m.status == SecurityStatus.THREAT_FOUND
        assert not m.status_machine.scan_active
        assert len(m.registry.active_threats()) == 19

    def test_scan_ends_secure_when_threats_resolved_mid_scan(self, make_monitor, scheduler):
        m = make_monitor(rng=FixedRandom(ALWAYS_THREAT))
        m.start_scan()
        scheduler.advance(9.5)
        m.rng = FixedRandom(NEVER_THREAT)
        m.resolve_all()
        scheduler.advance(0.5)
        assert m.status == SecurityStatus.SECURE

    def test_restarting_scan_does_not_stack_timers(self, make_monitor, scheduler):
        m = make_monitor(rng=FixedRandom(NEVER_THREAT))
        m.start_scan()
        scheduler.advance(5.0)
        m.start_scan()
        assert m.status == SecurityStatus.SCANNING
        before = len(m.log)
        scheduler.advance(5.0)
        # one loop: ten ticks in five seconds, not twenty
        assert len(m.log) - before == 10
        assert m.status == SecurityStatus.SCANNING
        scheduler.advance(5.0)
        assert m.status == SecurityStatus.SECURE

    def test_background_resumes_after_scan(self, make_monitor, scheduler):
        m = make_monitor(rng=FixedRandom(NEVER_THREAT))
        m.start_scan()
        scheduler.advance(10.0)
        n = len(m.log)
        scheduler.advance(2.0)   # background tick at t=12
        assert len(m.log) == n + 1

    def test_threat_then_resolve_one_scenario(self, monitor, threat_event):
        ev = threat_event()
        t1 = ev.threat.id
        monitor.append_event(ev)
        assert monitor.status == SecurityStatus.THREAT_FOUND

        assert monitor.resolve_one(t1) is True
        assert monitor.status == SecurityStatus.SECURE
        entry = monitor.log.find_by_threat(t1)
        assert entry.threat.remediated is True
        assert monitor.registry.get(t1).remediated is True

    def test_resolve_one_keeps_threat_found_while_others_active(self, monitor, threat_event):
        a, b = threat_event(), threat_event(ip="1.1.1.1")
        monitor.append_event(a)
        monitor.append_event(b)
        monitor.resolve_one(a.threat.id)
        assert monitor.status == SecurityStatus.THREAT_FOUND
        monitor.resolve_one(b.threat.id)
        assert monitor.status == SecurityStatus.SECURE

    def test_resolve_unknown_threat_is_noop(self, monitor, threat_event):
        monitor.append_event(threat_event())
        assert monitor.resolve_one("threat-unknown") is False
        assert monitor.status == SecurityStatus.THREAT_FOUND


class TestCommands:

    def test_resolve_all(self, monitor, threat_event):
        for ip in ("1.1.1.1", "8.8.8.8", "192.0.2.3"):
            monitor.append_event(threat_event(ip=ip))
        assert monitor.resolve_all() == 3
        assert monitor.status == SecurityStatus.SECURE
        assert monitor.active_threats_snapshot() == []
        last = monitor.log.entries()[-1]
        assert last.kind == EventKind.INFO
        assert last.message == "All threats marked as resolved by user."
        for entry in monitor.log_snapshot():
            if entry["details"]:
                assert entry["details"]["remediated"] is True

    def test_resolve_all_twice(self, monitor, threat_event):
        monitor.append_event(threat_event())
        monitor.resolve_all()
        assert monitor.resolve_all() == 0
        assert all(t.remediated for t in monitor.registry.all_threats())
        assert monitor.status == SecurityStatus.SECURE

    def test_block_ip_is_logged_not_enforced(self, monitor):
        rule_id = monitor.block_ip("  198.51.100.7 ")
        last = monitor.log.entries()[-1]
        assert last.kind == EventKind.WARNING
        assert last.message == "Manual block initiated for IP: 198.51.100.7"
        assert last.source_ip == "198.51.100.7"
        assert len(monitor.tracker) == 0
        assert monitor.rules.rules()[0]["rule_id"] == rule_id
        assert monitor.status == SecurityStatus.SECURE

    def test_block_ip_requires_value(self, monitor):
        with pytest.raises(ValueError):
            monitor.block_ip("   ")

    def test_whitelisted_ip_still_logged(self, make_monitor):
        m = make_monitor(whitelist={"10.0.0.1"})
        assert m.block_ip("10.0.0.1") is None
        assert m.log.entries()[-1].source_ip == "10.0.0.1"


class TestSummary:

    def test_summary_follows_active_set(self, make_monitor, threat_event):
        client = FakeTextGen(reply="Critical malware from a single Russian source.")
        m = make_monitor(client=client, auto_summary=True)
        m.append_event(threat_event())
        assert m.summary == "Critical malware from a single Russian source."
        assert "- Type: Malware, Source: 203.0.113.1, Severity: Critical" in client.calls[-1]

        m.append_event(threat_event(ip="1.1.1.1", threat_type="DDoS"))
        assert len(client.calls) == 2

        m.resolve_all()
        assert m.summary == ""
        assert len(client.calls) == 2

    def test_summary_fallback(self, make_monitor, threat_event):
        m = make_monitor(client=FakeTextGen(fail=True), auto_summary=True)
        m.append_event(threat_event())
        assert m.summary == "Could not generate threat summary."

    def test_pending_summary_does_not_block_timers(self, threat_event):
        scheduler = ManualScheduler(defer_submits=True)
        m = SecurityMonitor(scheduler=scheduler, client=FakeTextGen(), rng=FixedRandom(NEVER_THREAT))
        m.start()
        m.append_event(threat_event())
        assert m.summary_pending
        scheduler.advance(6.0)
        assert len(m.log) == 3
        scheduler.run_submitted()
        assert not m.summary_pending
        assert m.summary
        m.shutdown()


class TestLifecycle:

    def test_shutdown_cancels_everything(self, make_monitor, scheduler, threat_event, unauthorized_event):
        m = make_monitor(rng=FixedRandom(NEVER_THREAT))
        m.append_event(threat_event())
        m.append_event(unauthorized_event())
        m.start_scan()
        m.remediate(m.registry.active_threats()[0].id)
        m.shutdown()
        assert scheduler.pending == 0
        n = len(m.log)
        scheduler.advance(60)
        assert len(m.log) == n
        assert not m.running

    def test_start_is_idempotent(self, monitor, scheduler):
        monitor.start()
        scheduler.advance(3.0)
        assert len(monitor.log) == 1

    def test_snapshot_shape(self, monitor, threat_event, unauthorized_event):
        monitor.append_event(threat_event())
        monitor.append_event(unauthorized_event())
        snap = monitor.snapshot()
        assert snap["status"] == "Threat Found"
        assert snap["activeThreatCount"] == 1
        assert snap["newUnauthorizedAlert"] is True
        assert len(snap["unauthorizedAttempts"]) == 1
        assert len(snap["logs"]) == 2
