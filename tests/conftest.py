# NetWatch test configuration
# Shared fixtures: simulated clock, fake text-generation client, monitor factory

import pytest

from models.events import Event, EventKind, Severity
from monitor import SecurityMonitor
from traffic_simulator import build_threat, UNAUTHORIZED_MESSAGE
from utils.scheduler import ManualScheduler
from utils.textgen import RequestError


class FakeTextGen:
    """Stands in for the Gemini client; records prompts, optionally fails."""

    def __init__(self, reply="Block the source address at the perimeter firewall.", fail=False):
        self.reply = reply
        self.fail = fail
        self.calls = []

    def summarize(self, prompt):
        self.calls.append(prompt)
        if self.fail:
            raise RequestError("quota exceeded")
        return self.reply


class FixedRandom:
    """random.Random look-alike: random() always returns `value`, choice() picks the first item."""

    def __init__(self, value):
        self.value = value

    def random(self):
        return self.value

    def choice(self, seq):
        return list(seq)[0]


@pytest.fixture(autouse=True)
def no_telegram(monkeypatch):
    """Never talk to Telegram from tests."""
    import utils.alert
    monkeypatch.setattr(utils.alert, "TELEGRAM_TOKEN", None)
    monkeypatch.setattr(utils.alert, "TELEGRAM_CHAT_ID", None)


@pytest.fixture
def scheduler():
    return ManualScheduler()


@pytest.fixture
def textgen():
    return FakeTextGen()


@pytest.fixture
def make_monitor(scheduler, textgen):
    """Factory for monitors on the simulated clock. Monitors are shut down after the test."""
    created = []

    def _make(rng=None, start=True, **kwargs):
        kwargs.setdefault("auto_summary", False)
        m = SecurityMonitor(scheduler=kwargs.pop("scheduler", scheduler),
                            client=kwargs.pop("client", textgen),
                            rng=rng or FixedRandom(0.99), **kwargs)
        if start:
            m.start()
        created.append(m)
        return m

    yield _make
    for m in created:
        m.shutdown()


@pytest.fixture
def monitor(make_monitor):
    return make_monitor()


def make_threat_event(ip="203.0.113.1", threat_type="Malware", severity=Severity.CRITICAL, origin="Russia"):
    threat = build_threat(threat_type, ip, severity, origin)
    return Event(EventKind.ERROR, f"{threat_type} detected", ip, threat=threat)


def make_unauthorized_event(ip="10.255.255.1"):
    return Event(EventKind.WARNING, UNAUTHORIZED_MESSAGE, ip)


@pytest.fixture
def threat_event():
    return make_threat_event


@pytest.fixture
def unauthorized_event():
    return make_unauthorized_event
