import random
from typing import Optional

from models.events import Event, EventKind, Severity, Threat

# Benign-looking public addresses used as traffic sources
FAKE_IPS = [
    "203.0.113.1", "198.51.100.2", "192.0.2.3", "8.8.8.8",
    "1.1.1.1", "104.16.132.229", "172.67.149.54", "23.227.38.32"
]

# Private ranges only, disjoint from FAKE_IPS
UNAUTHORIZED_IPS = ["10.255.255.1", "192.168.1.101", "172.16.31.50"]

THREAT_TYPES = {
    "DDoS": "Distributed Denial of Service attack detected.",
    "Malware": "Malware signature detected in network traffic.",
    "Phishing": "Phishing attempt from a known malicious domain.",
    "SQL Injection": "Potential SQL injection attack against database server.",
}

THREAT_ORIGINS = ["North Korea", "Russia", "China", "USA", "Brazil", "Germany"]

THREAT_PROBABILITY = 0.2        # only when threat_biased
CRITICAL_PROBABILITY = 0.7
UNAUTHORIZED_PROBABILITY = 0.05

NORMAL_MESSAGE = "Normal traffic packet processed."
UNAUTHORIZED_MESSAGE = "Unauthorized access attempt from new device."


def build_threat(threat_type: str, source_ip: str, severity: Severity, origin: str) -> Threat:
    return Threat(
        threat_type=threat_type,
        source_ip=source_ip,
        severity=severity,
        origin=origin,
        description=THREAT_TYPES.get(threat_type, ""),
        recommendation=f"Isolate the source IP ({source_ip}) and patch the vulnerable service.",
        is_remediable=True,
        remediation_action=f"Block IP {source_ip} in firewall.",
    )


def generate_event(threat_biased: bool = False, rng: Optional[random.Random] = None) -> Event:
    """
    Produce one synthetic event.
    threat_biased -> 20% ERROR with a Threat attached; otherwise 5% unauthorized-access WARNING; else INFO.
    """
    rng = rng or random
    ip = rng.choice(FAKE_IPS)

    if threat_biased and rng.random() < THREAT_PROBABILITY:
        threat_type = rng.choice(list(THREAT_TYPES))
        severity = Severity.CRITICAL if rng.random() < CRITICAL_PROBABILITY else Severity.HIGH
        threat = build_threat(threat_type, ip, severity, rng.choice(THREAT_ORIGINS))
        return Event(EventKind.ERROR, f"{threat_type} detected", ip, threat=threat)

    if rng.random() < UNAUTHORIZED_PROBABILITY:
        return Event(EventKind.WARNING, UNAUTHORIZED_MESSAGE, rng.choice(UNAUTHORIZED_IPS))

    return Event(EventKind.INFO, NORMAL_MESSAGE, ip)
