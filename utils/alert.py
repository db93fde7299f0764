import requests
import os

from utils.logger import logger

TELEGRAM_TOKEN = os.getenv("TELEGRAM_TOKEN")  # set in env
TELEGRAM_CHAT_ID = os.getenv("TELEGRAM_CHAT_ID")


def send_alert(threat, token=None, chat_id=None):
    """Push a Telegram message for a new detection. Returns False when alerts are not configured."""
    token = token or TELEGRAM_TOKEN
    chat_id = chat_id or TELEGRAM_CHAT_ID
    if not token or not chat_id:
        return False
    msg = (f"🚨 NETWATCH ALERT 🚨\n{threat.severity.value} {threat.threat_type}\n"
           f"Source IP: {threat.source_ip} ({threat.origin})")
    url = f"https://api.telegram.org/bot{token}/sendMessage"
    try:
        requests.post(url, data={"chat_id": chat_id, "text": msg}, timeout=10)
    except requests.RequestException as e:
        logger.warning("[alert] telegram send failed: %s", e)
        return False
    return True
