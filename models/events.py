# models/events.py
import itertools
from dataclasses import dataclass, field
from enum import Enum
from typing import Optional

from utils.logger import iso_now

_EVENT_SEQ = itertools.count(1)
_THREAT_SEQ = itertools.count(1)


def next_event_id() -> str:
    # zero-padded so string order == creation order
    return f"log-{next(_EVENT_SEQ):08d}"


def next_threat_id() -> str:
    return f"threat-{next(_THREAT_SEQ):08d}"


class EventKind(str, Enum):
    INFO = "INFO"
    WARNING = "WARNING"
    ERROR = "ERROR"


class Severity(str, Enum):
    HIGH = "High"
    CRITICAL = "Critical"


class SecurityStatus(str, Enum):
    SECURE = "Secure"
    SCANNING = "Scanning"
    THREAT_FOUND = "Threat Found"


@dataclass
class Threat:
    """A detection attached to an ERROR event. Mutable: remediation flips `remediated`."""
    threat_type: str
    source_ip: str
    severity: Severity
    origin: str
    recommendation: str
    is_remediable: bool = True
    remediation_action: str = ""
    description: str = ""
    suggested_action: Optional[str] = None
    remediated: bool = False
    id: str = field(default_factory=next_threat_id)

    def mark_remediated(self) -> bool:
        """Set remediated; returns True only on the first call."""
        if self.remediated:
            return False
        self.remediated = True
        return True

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "threatType": self.threat_type,
            "sourceIp": self.source_ip,
            "severity": self.severity.value,
            "origin": self.origin,
            "description": self.description,
            "recommendation": self.recommendation,
            "isRemediable": self.is_remediable,
            "remediationAction": self.remediation_action,
            "suggestedAction": self.suggested_action,
            "remediated": self.remediated,
        }


@dataclass(frozen=True)
class Event:
    kind: EventKind
    message: str
    source_ip: str
    threat: Optional[Threat] = None
    id: str = field(default_factory=next_event_id)
    timestamp: str = field(default_factory=iso_now)

    def __post_init__(self):
        if (self.threat is not None) != (self.kind == EventKind.ERROR):
            raise ValueError(f"event {self.id}: threat must be set iff kind is ERROR")

    @property
    def is_unauthorized_attempt(self) -> bool:
        return self.kind == EventKind.WARNING and "unauthorized access" in self.message.lower()

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "timestamp": self.timestamp,
            "type": self.kind.value,
            "message": self.message,
            "sourceIp": self.source_ip,
            "details": self.threat.to_dict() if self.threat else None,
        }
