# utils/textgen.py
import os

import requests

from utils.logger import logger

GEMINI_API_KEY = os.getenv("GEMINI_API_KEY") or os.getenv("API_KEY")
GEMINI_MODEL = os.getenv("GEMINI_MODEL", "gemini-2.5-flash")
GEMINI_BASE_URL = os.getenv("GEMINI_BASE_URL", "https://generativelanguage.googleapis.com/v1beta")
REQUEST_TIMEOUT = float(os.getenv("GEMINI_TIMEOUT", 30))


class RequestError(Exception):
    """The text-generation request failed (network, auth, quota or malformed response)."""


class GeminiClient:
    """Minimal generateContent client. summarize(prompt) -> text or RequestError."""

    def __init__(self, api_key=None, model=GEMINI_MODEL, base_url=GEMINI_BASE_URL,
                 timeout=REQUEST_TIMEOUT, session=None):
        self.api_key = api_key if api_key is not None else GEMINI_API_KEY
        self.model = model
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.session = session or requests.Session()

    def summarize(self, prompt: str) -> str:
        if not self.api_key:
            raise RequestError("no Gemini API key configured (set GEMINI_API_KEY)")
        url = f"{self.base_url}/models/{self.model}:generateContent"
        payload = {"contents": [{"parts": [{"text": prompt}]}]}
        try:
            r = self.session.post(url, params={"key": self.api_key}, json=payload, timeout=self.timeout)
            r.raise_for_status()
            data = r.json()
        except requests.RequestException as e:
            logger.warning("[textgen] request failed: %s", e)
            raise RequestError(str(e)) from e
        except ValueError as e:
            raise RequestError(f"invalid JSON in response: {e}") from e

        try:
            parts = data["candidates"][0]["content"]["parts"]
            text = "".join(p.get("text", "") for p in parts).strip()
        except (KeyError, IndexError, TypeError, AttributeError) as e:
            raise RequestError(f"unexpected response shape: {e}") from e
        if not text:
            raise RequestError("empty response text")
        return text
