# enforcement/rule_manager.py
import ipaddress
import threading
from typing import Optional

from utils.logger import iso_now, logger


class RuleManager:
    """
    Records block rules without applying them. Nothing here touches the host
    firewall; the rules exist only so the dashboard can list what was requested.
    """

    def __init__(self, whitelist=None):
        self.active_rules = {}  # rule_id -> {"ip", "reason", "created_at", "cmd"}
        self.lock = threading.Lock()
        self.whitelist = set(whitelist or [])
        self._seq = 0

    @staticmethod
    def is_valid_ip(ip: str) -> bool:
        try:
            ipaddress.ip_address(ip)
            return True
        except ValueError:
            return False

    def block_ip(self, ip: str, reason: str = "manual_block") -> Optional[str]:
        """Record a (simulated) DROP rule for ip. Returns rule_id, or None when whitelisted."""
        if ip in self.whitelist:
            logger.info("[rule_manager] skip block, ip whitelisted: %s", ip)
            return None
        if not self.is_valid_ip(ip):
            logger.warning("[rule_manager] %r is not an IP address, recording anyway", ip)
        cmd = f"iptables -I INPUT -s {ip} -j DROP -m comment --comment \"NETWATCH:{reason}\""
        with self.lock:
            self._seq += 1
            rule_id = f"block-{ip}-{self._seq}"
            self.active_rules[rule_id] = {"ip": ip, "reason": reason, "created_at": iso_now(), "cmd": cmd}
        logger.info("[rule_manager] (dry-run) %s rule_id=%s", cmd, rule_id)
        return rule_id

    def rules(self):
        with self.lock:
            return [dict(rule_id=rid, **rule) for rid, rule in self.active_rules.items()]
