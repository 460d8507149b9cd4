"""
Client for the external content moderation classifier.

The classifier is given a URL it can fetch and answers with a rating label.
Calls are best effort: callers log and ignore ``ModerationError``.
"""
import logging
from typing import Optional

import httpx

logger = logging.getLogger(__name__)


class ModerationError(Exception):
    """Raised when the classifier cannot produce a label."""


class ModerationClient:
    def __init__(self, api_url: str, api_key: Optional[str] = None, timeout_seconds: float = 20.0):
        self.api_url = api_url
        self.api_key = api_key
        self.timeout_seconds = timeout_seconds

    async def classify(self, url: str) -> str:
        params = {"url": url}
        if self.api_key:
            params["key"] = self.api_key

        try:
            timeout = httpx.Timeout(self.timeout_seconds, connect=10.0)
            async with httpx.AsyncClient(timeout=timeout) as client:
                resp = await client.get(self.api_url, params=params)
        except httpx.TimeoutException:
            raise ModerationError(f"Moderation request timed out after {self.timeout_seconds}s") from None
        except httpx.HTTPError as exc:
            raise ModerationError(f"Moderation request failed: {exc}") from exc

        if resp.status_code >= 400:
            logger.warning(
                "Moderation service returned error: status=%s, body=%s",
                resp.status_code,
                resp.text[:500],
            )
            raise ModerationError(f"Moderation service error: {resp.status_code}")

        try:
            data = resp.json()
        except ValueError as exc:
            raise ModerationError("Moderation service returned invalid JSON") from exc

        label = (data.get("rating_label") or data.get("label")) if isinstance(data, dict) else None
        if not label:
            raise ModerationError(f"Moderation response has no label: {str(data)[:200]}")
        return str(label)
