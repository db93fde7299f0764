# utils/logger.py
import logging
import os
import json
from datetime import datetime, timezone

LOG_DIR = os.getenv("NETWATCH_LOG_DIR", "logs")
JSON_FILE = os.path.join(LOG_DIR, "events.json")
JOURNAL_ENABLED = os.getenv("NETWATCH_JOURNAL", "").lower() in ("1", "true", "yes")
os.makedirs(LOG_DIR, exist_ok=True)

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s [%(levelname)s] [%(name)s] %(message)s",
    handlers=[
        logging.FileHandler(os.path.join(LOG_DIR, "netwatch.log")),
        logging.StreamHandler()
    ]
)

logger = logging.getLogger("NETWATCH")

_LEVELS = {"INFO": logging.DEBUG, "WARNING": logging.INFO, "ERROR": logging.WARNING}


def iso_now():
    return datetime.now(timezone.utc).isoformat()


def log_event(event: dict, journal: bool = None):
    """
    Log one simulated event (as produced by Event.to_dict()).
    INFO events are logged at DEBUG, unauthorized attempts at INFO, detections at WARNING.
    With NETWATCH_JOURNAL=1 the event is also appended as NDJSON to logs/events.json.
    """
    level = _LEVELS.get(event.get("type"), logging.INFO)
    logger.log(level, "[%s] %s %s", event.get("type"), event.get("sourceIp"), event.get("message"))

    if journal is None:
        journal = JOURNAL_ENABLED
    if not journal:
        return
    try:
        with open(JSON_FILE, "a", encoding="utf-8") as f:
            f.write(json.dumps(event) + "\n")
            f.flush()
            try:
                os.fsync(f.fileno())
            except OSError:
                pass
    except OSError as e:
        logger.warning("Could not write event journal %s: %s", JSON_FILE, e)
