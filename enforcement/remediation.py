# enforcement/remediation.py
import threading
from typing import Callable, Optional

from models.events import Event, EventKind
from utils.logger import logger
from utils.textgen import RequestError

# === CONFIG (tweak) ===
APPLY_DELAY = 2.0          # simulated seconds to "apply" a fix
LOCAL_IP = "127.0.0.1"


def build_remediation_prompt(threat) -> str:
    return (f'Given the threat type "{threat.threat_type}" from IP "{threat.source_ip}", '
            "suggest a one-sentence, user-friendly remediation action.")


class RemediationWorkflow:
    """
    Per-threat remediation flow:
      request_suggestion() -> background collaborator call -> threat.suggested_action
      apply_fix()          -> APPLY_DELAY later: registry.resolve_one + INFO log entry

    Flows for different threats are independent.
    """

    def __init__(self, registry, client, scheduler, append_event: Callable[[Event], None],
                 after_resolve: Callable[[], None], guard=None, apply_delay: float = APPLY_DELAY):
        self.registry = registry
        self.client = client
        self.scheduler = scheduler
        self.append_event = append_event
        self.after_resolve = after_resolve
        self.guard = guard or threading.RLock()
        self.apply_delay = apply_delay
        self.pending_suggestions = set()  # threat ids with a request in flight
        self.applying = {}                # threat_id -> TimerHandle

    # ---- suggestion ----
    def request_suggestion(self, threat_id: str) -> bool:
        """Start a suggestion request if the threat still needs one. Returns True if a request was started."""
        with self.guard:
            threat = self.registry.get(threat_id)
            if threat is None:
                logger.warning("[remediation] suggestion for unknown threat %s ignored", threat_id)
                return False
            if (not threat.is_remediable or threat.remediated or threat.suggested_action
                    or threat_id in self.pending_suggestions):
                return False
            self.pending_suggestions.add(threat_id)
        # outside the guard: timers keep ticking while the request is pending
        self.scheduler.submit(self._fetch_suggestion, threat, name=f"suggest-{threat_id}")
        return True

    def _fetch_suggestion(self, threat):
        try:
            text = self.client.summarize(build_remediation_prompt(threat)).strip()
        except RequestError as e:
            logger.warning("[remediation] suggestion for %s failed, using template: %s", threat.id, e)
            text = ""
        except Exception as e:
            logger.exception("[remediation] suggestion for %s crashed, using template: %s", threat.id, e)
            text = ""
        with self.guard:
            self.pending_suggestions.discard(threat.id)
            threat.suggested_action = text or threat.remediation_action
        logger.info("[remediation] suggestion for %s: %s", threat.id, threat.suggested_action)

    def suggestion_for(self, threat_id: str) -> Optional[str]:
        threat = self.registry.get(threat_id)
        if threat is None:
            return None
        return threat.suggested_action or threat.remediation_action or None

    # ---- apply ----
    def apply_fix(self, threat_id: str) -> bool:
        """Schedule the fix. Returns False when there is nothing to apply."""
        with self.guard:
            threat = self.registry.get(threat_id)
            if threat is None:
                logger.warning("[remediation] apply_fix for unknown threat %s ignored", threat_id)
                return False
            if threat.remediated or threat_id in self.applying:
                return False
            action = self.suggestion_for(threat_id)
            if not action:
                logger.warning("[remediation] no remediation action available for %s", threat_id)
                return False
            self.applying[threat_id] = self.scheduler.call_later(
                self.apply_delay, self._complete, threat_id, action, name=f"apply-{threat_id}")
        logger.info("[remediation] applying fix for %s: %s", threat_id, action)
        return True

    def _complete(self, threat_id: str, action: str):
        with self.guard:
            if self.applying.pop(threat_id, None) is None:
                return
            threat = self.registry.get(threat_id)
            if threat is None or threat.remediated:
                return
            self.registry.resolve_one(threat_id)
            self.append_event(Event(EventKind.INFO, f"Remediation applied for threat {threat_id}: {action}",
                                    LOCAL_IP))
            self.after_resolve()

    def is_applying(self, threat_id: str) -> bool:
        with self.guard:
            return threat_id in self.applying

    def stop(self):
        with self.guard:
            for handle in self.applying.values():
                handle.cancel()
            self.applying.clear()
            self.pending_suggestions.clear()
