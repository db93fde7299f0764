# detection/summary.py
from typing import Iterable

from utils.logger import logger
from utils.textgen import RequestError

SUMMARY_FALLBACK = "Could not generate threat summary."


def build_summary_prompt(threats) -> str:
    lines = "\n".join(f"- Type: {t.threat_type}, Source: {t.source_ip}, Severity: {t.severity.value}"
                      for t in threats)
    return ("Concisely summarize the following active network security threats in one sentence, "
            f"focusing on the most critical patterns or types. Threats:\n{lines}")


def summarize_threats(client, threats: Iterable) -> str:
    """One-sentence summary of the given threats; "" when there are none."""
    threats = list(threats)
    if not threats:
        return ""
    try:
        text = client.summarize(build_summary_prompt(threats)).strip()
    except RequestError as e:
        logger.warning("[summary] falling back, request failed: %s", e)
        return SUMMARY_FALLBACK
    return text or SUMMARY_FALLBACK
