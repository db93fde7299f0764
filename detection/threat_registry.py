# detection/threat_registry.py
import threading
from collections import OrderedDict
from typing import List, Optional

from models.events import Threat
from utils.logger import logger


class ThreatRegistry:
    """
    Authoritative set of threats, keyed by threat id, in insertion order.
    The Threat objects held here are the same objects embedded in the log's
    events, so a mutation through the registry is visible from both views.
    """

    def __init__(self):
        self.lock = threading.Lock()
        self._threats = OrderedDict()  # threat_id -> Threat

    def add(self, threat: Threat):
        with self.lock:
            if threat.id in self._threats:
                logger.debug("[registry] threat %s already tracked", threat.id)
                return
            self._threats[threat.id] = threat
        logger.info("[registry] tracking %s %s from %s (%s)",
                    threat.severity.value, threat.threat_type, threat.source_ip, threat.id)

    def get(self, threat_id: str) -> Optional[Threat]:
        with self.lock:
            return self._threats.get(threat_id)

    def all_threats(self) -> List[Threat]:
        with self.lock:
            return list(self._threats.values())

    def active_threats(self) -> List[Threat]:
        with self.lock:
            return [t for t in self._threats.values() if not t.remediated]

    def all_remediated(self) -> bool:
        with self.lock:
            return all(t.remediated for t in self._threats.values())

    def resolve_all(self) -> int:
        """Mark every threat remediated. Returns how many were newly resolved."""
        with self.lock:
            resolved = sum(1 for t in self._threats.values() if t.mark_remediated())
        logger.info("[registry] resolve_all: %d newly remediated", resolved)
        return resolved

    def resolve_one(self, threat_id: str) -> Optional[Threat]:
        with self.lock:
            threat = self._threats.get(threat_id)
            if threat is None:
                logger.warning("[registry] resolve_one: unknown threat id %s", threat_id)
                return None
            changed = threat.mark_remediated()
        if changed:
            logger.info("[registry] remediated %s", threat_id)
        return threat

    def forget_remediated(self, keep_ids) -> int:
        """Drop remediated threats whose id is not in keep_ids. Active threats are always kept."""
        with self.lock:
            stale = [tid for tid, t in self._threats.items() if t.remediated and tid not in keep_ids]
            for tid in stale:
                del self._threats[tid]
        if stale:
            logger.debug("[registry] forgot %d remediated threat(s)", len(stale))
        return len(stale)

    def __len__(self):
        with self.lock:
            return len(self._threats)
