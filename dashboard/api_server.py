# dashboard/api_server.py
import io
import json
import os
import threading
from pathlib import Path

import pandas as pd
from flask import Flask, Response, jsonify, request
from flask_cors import CORS

from monitor import SecurityMonitor
from utils.logger import LOG_DIR, logger

DASHBOARD_PORT = int(os.getenv("DASHBOARD_PORT", 5000))
DASHBOARD_HOST = os.getenv("DASHBOARD_HOST", "0.0.0.0")
PREFS_FILE = Path(os.getenv("NETWATCH_PREFS", os.path.join(LOG_DIR, "preferences.json")))
THEMES = ("dark", "light")
DEFAULT_PREFS = {"theme": "dark"}

app = Flask(__name__)
CORS(app)

monitor_lock = threading.Lock()
monitor = None
prefs_lock = threading.Lock()


def init_monitor(m: SecurityMonitor = None) -> SecurityMonitor:
    """Attach (and start) the monitor the API serves. Creates a real-time one when none is given."""
    global monitor
    with monitor_lock:
        if monitor is not None and monitor is not m:
            monitor.shutdown()
        monitor = m or SecurityMonitor()
        monitor.start()
        return monitor


def get_monitor() -> SecurityMonitor:
    with monitor_lock:
        if monitor is None:
            raise RuntimeError("monitor not initialised, call init_monitor() first")
        return monitor


# ------------ Utilities -------------
def load_prefs(path: Path = None) -> dict:
    path = path or PREFS_FILE
    prefs = dict(DEFAULT_PREFS)
    if not path.exists():
        return prefs
    try:
        with open(path, "r", encoding="utf-8") as f:
            stored = json.load(f)
        if isinstance(stored, dict):
            prefs.update({k: v for k, v in stored.items() if k in DEFAULT_PREFS})
    except (OSError, json.JSONDecodeError) as e:
        logger.warning("Could not read preferences %s: %s", path, e)
    return prefs


def save_prefs(prefs: dict, path: Path = None):
    path = path or PREFS_FILE
    os.makedirs(path.parent, exist_ok=True)
    with open(path, "w", encoding="utf-8") as f:
        json.dump(prefs, f)


def events_to_csv(events) -> str:
    """Flatten log entries (Event.to_dict() shape) into CSV, threat fields prefixed with threat_."""
    rows = []
    for ev in events:
        row = {k: v for k, v in ev.items() if k != "details"}
        for k, v in (ev.get("details") or {}).items():
            row[f"threat_{k}"] = v
        rows.append(row)
    df = pd.DataFrame(rows, columns=None if rows else ["id", "timestamp", "type", "message", "sourceIp"])
    buf = io.StringIO()
    df.to_csv(buf, index=False)
    return buf.getvalue()


def _not_found(threat_id):
    return jsonify({"ok": False, "error": f"unknown threat {threat_id}"}), 404


# ------------ Read-only snapshots -------------
@app.route("/api/status")
def api_status():
    m = get_monitor()
    return jsonify({"ok": True, "status": m.status.value, "scanning": m.status_machine.scan_active,
                    "activeThreatCount": len(m.registry.active_threats())})


@app.route("/api/snapshot")
def api_snapshot():
    return jsonify({"ok": True, **get_monitor().snapshot()})


@app.route("/api/events")
def api_events():
    n = request.args.get("n")
    try:
        n = int(n) if n is not None else None
    except ValueError:
        return jsonify({"ok": False, "error": "n must be an integer"}), 400
    return jsonify({"ok": True, "events": get_monitor().log_snapshot(n)})


@app.route("/api/events/export")
def api_events_export():
    csv_text = events_to_csv(get_monitor().log_snapshot())
    return Response(csv_text, mimetype="text/csv",
                    headers={"Content-Disposition": "attachment; filename=network_log.csv"})


@app.route("/api/threats")
def api_threats():
    return jsonify({"ok": True, "threats": get_monitor().active_threats_snapshot()})


@app.route("/api/threats/<threat_id>")
def api_threat(threat_id):
    """Threat details. Viewing a threat starts its remediation suggestion request."""
    m = get_monitor()
    if m.registry.get(threat_id) is None:
        return _not_found(threat_id)
    m.request_suggestion(threat_id)
    details = m.threat_snapshot(threat_id)
    if details is None:
        return _not_found(threat_id)
    return jsonify({"ok": True, "threat": details})


@app.route("/api/unauthorized")
def api_unauthorized():
    m = get_monitor()
    return jsonify({"ok": True, "attempts": m.unauthorized_snapshot(), "newAlert": m.tracker.alert_active})


@app.route("/api/summary")
def api_summary():
    m = get_monitor()
    return jsonify({"ok": True, "summary": m.summary, "pending": m.summary_pending})


@app.route("/api/blocks")
def api_blocks():
    return jsonify({"ok": True, "blocks": get_monitor().rules.rules()})


# ------------ Commands -------------
@app.route("/api/scan", methods=["POST"])
def api_scan():
    m = get_monitor()
    m.start_scan()
    return jsonify({"ok": True, "status": m.status.value})


@app.route("/api/resolve_all", methods=["POST"])
def api_resolve_all():
    m = get_monitor()
    resolved = m.resolve_all()
    return jsonify({"ok": True, "resolved": resolved, "status": m.status.value})


@app.route("/api/threats/<threat_id>/suggestion", methods=["POST"])
def api_threat_suggestion(threat_id):
    m = get_monitor()
    if m.registry.get(threat_id) is None:
        return _not_found(threat_id)
    started = m.request_suggestion(threat_id)
    return jsonify({"ok": True, "started": started, "threat": m.threat_snapshot(threat_id)})


@app.route("/api/threats/<threat_id>/remediate", methods=["POST"])
def api_threat_remediate(threat_id):
    m = get_monitor()
    if m.registry.get(threat_id) is None:
        return _not_found(threat_id)
    scheduled = m.remediate(threat_id)
    return jsonify({"ok": True, "scheduled": scheduled, "threat": m.threat_snapshot(threat_id)})


@app.route("/api/block", methods=["POST"])
def api_block():
    data = request.get_json(silent=True) or {}
    if not isinstance(data, dict):
        return jsonify({"ok": False, "error": "body must be a JSON object"}), 400
    ip = str(data.get("ip") or "").strip()
    if not ip:
        return jsonify({"ok": False, "error": "provide ip"}), 400
    rule_id = get_monitor().block_ip(ip)
    return jsonify({"ok": True, "ip": ip, "rule_id": rule_id})


# ------------ Preferences (kept outside the monitor) -------------
@app.route("/api/preferences", methods=["GET", "POST"])
def api_preferences():
    with prefs_lock:
        prefs = load_prefs()
        if request.method == "POST":
            data = request.get_json(silent=True) or {}
            if not isinstance(data, dict):
                return jsonify({"ok": False, "error": "body must be a JSON object"}), 400
            theme = data.get("theme")
            if theme not in THEMES:
                return jsonify({"ok": False, "error": f"theme must be one of {list(THEMES)}"}), 400
            prefs["theme"] = theme
            save_prefs(prefs)
    return jsonify({"ok": True, "preferences": prefs})


def run(host=DASHBOARD_HOST, port=DASHBOARD_PORT):
    m = init_monitor()
    logger.info(f"Starting dashboard on {host}:{port}")
    try:
        app.run(host=host, port=port, debug=False)
    finally:
        m.shutdown()


if __name__ == "__main__":
    run()
