#!/usr/bin/env python3
"""
NetWatch main entry point

Modes:
 - dashboard: serve the JSON API with the real-time monitor
 - simulate:  run the monitor headless on a simulated clock and print the final state
"""
from __future__ import annotations
import argparse
import json
import logging
import random

from monitor import SecurityMonitor
from utils.scheduler import ManualScheduler

LOG = logging.getLogger("NETWATCH.main")

STEP_SECONDS = 0.5  # simulated clock resolution for headless runs


def simulate_mode(seconds: float, scan: bool = False, seed: int = None, remediate: bool = False):
    """Drive a monitor on a ManualScheduler for `seconds` simulated seconds."""
    scheduler = ManualScheduler()
    mon = SecurityMonitor(scheduler=scheduler, rng=random.Random(seed))
    mon.start()
    if scan:
        mon.start_scan()

    elapsed = 0.0
    try:
        while elapsed < seconds:
            scheduler.advance(STEP_SECONDS)
            elapsed += STEP_SECONDS
            if remediate:
                for t in mon.registry.active_threats():
                    mon.request_suggestion(t.id)
                    mon.remediate(t.id)
        snap = mon.snapshot()
    finally:
        mon.shutdown()

    LOG.info("[main] simulated %.1fs: status=%s events=%d active_threats=%d",
             seconds, snap["status"], len(snap["logs"]), snap["activeThreatCount"])
    return snap


def parse_args():
    p = argparse.ArgumentParser(description="NetWatch - simulated network security monitor")
    p.add_argument("--mode", choices=["dashboard", "simulate"], required=True)
    p.add_argument("--host", help="Dashboard bind host (default DASHBOARD_HOST or 0.0.0.0)")
    p.add_argument("--port", type=int, help="Dashboard port (default DASHBOARD_PORT or 5000)")
    p.add_argument("--seconds", type=float, default=30.0, help="Simulated seconds for simulate mode")
    p.add_argument("--scan", action="store_true", help="Start a scan at t=0 (simulate mode)")
    p.add_argument("--remediate", action="store_true", help="Apply fixes as threats appear (simulate mode)")
    p.add_argument("--seed", type=int, help="Random seed (simulate mode)")
    return p.parse_args()


def main():
    args = parse_args()
    if args.mode == "dashboard":
        from dashboard import api_server
        api_server.run(host=args.host or api_server.DASHBOARD_HOST, port=args.port or api_server.DASHBOARD_PORT)
    elif args.mode == "simulate":
        if args.seconds <= 0:
            raise ValueError("--seconds must be positive")
        snap = simulate_mode(args.seconds, scan=args.scan, seed=args.seed, remediate=args.remediate)
        print(json.dumps(snap, indent=2))


if __name__ == "__main__":
    main()
