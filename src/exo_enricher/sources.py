from __future__ import annotations

import logging
import os
from datetime import datetime, timezone
from email.utils import parsedate_to_datetime
from typing import Any

import requests

from exo_enricher.job_queue import CancellationToken, RateLimitedError, TaskCancelledError
from exo_enricher.normalization import safe_float

logger = logging.getLogger(__name__)

GEMINI_IMAGE_ENDPOINT = (
    "https://generativelanguage.googleapis.com/v1beta/models/gemini-2.5-flash-image:generateContent"
)
API_KEY_ENV_VAR = "GEMINI_API_KEY"
RATE_LIMIT_STATUSES = {429, 503}
DEFAULT_BACKOFF_S = 30.0


class ImageGenerationError(RuntimeError):
    def __init__(self, message: str, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code


def _error_summary(error: Exception) -> str:
    message = str(error).strip()
    if message:
        return f"{error.__class__.__name__}: {message}"
    return error.__class__.__name__


def parse_retry_after(value: str | None, default_s: float) -> float:
    """Seconds to wait from a Retry-After header (delta-seconds or HTTP date)."""
    if not value:
        return default_s
    seconds = safe_float(value)
    if seconds is not None:
        return max(0.0, seconds)
    try:
        when = parsedate_to_datetime(value)
    except (TypeError, ValueError):
        return default_s
    if when.tzinfo is None:
        when = when.replace(tzinfo=timezone.utc)
    return max(0.0, (when - datetime.now(timezone.utc)).total_seconds())


class BaseClient:
    def __init__(self, timeout_s: float, session: requests.Session | None = None) -> None:
        self.timeout_s = timeout_s
        self._session = session or requests.Session()
        self._headers = {
            "User-Agent": "exo-enricher/0.1",
            "Content-Type": "application/json",
        }

    def _post_json(
        self,
        url: str,
        payload: dict[str, Any],
        params: dict[str, str] | None = None,
    ) -> requests.Response:
        return self._session.post(
            url,
            json=payload,
            params=params,
            headers=self._headers,
            timeout=self.timeout_s,
        )


class ImageGenerationClient(BaseClient):
    """Single-request client for the image generation endpoint.

    No retries here: rate limits surface as ``RateLimitedError`` so the job
    queue can back off and re-run the same request.
    """

    def __init__(
        self,
        api_key: str | None = None,
        endpoint: str = GEMINI_IMAGE_ENDPOINT,
        timeout_s: float = 60.0,
        default_backoff_s: float = DEFAULT_BACKOFF_S,
        session: requests.Session | None = None,
    ) -> None:
        super().__init__(timeout_s, session)
        self.api_key = api_key or os.getenv(API_KEY_ENV_VAR, "")
        self.endpoint = endpoint
        self.default_backoff_s = default_backoff_s

    def generate(self, prompt: str, token: CancellationToken | None = None) -> str:
        """Return the generated image as a ``data:`` URI."""
        if not isinstance(prompt, str) or not prompt.strip():
            raise ValueError("prompt must be a non-empty string")
        if not self.api_key:
            raise ImageGenerationError(f"missing API key (set {API_KEY_ENV_VAR})")
        if token is not None and token.cancelled:
            raise TaskCancelledError("image request cancelled before sending")

        body = {"contents": [{"role": "user", "parts": [{"text": prompt}]}]}
        try:
            response = self._post_json(self.endpoint, body, params={"key": self.api_key})
        except requests.RequestException as error:
            raise ImageGenerationError(f"image request failed: {_error_summary(error)}") from error

        if token is not None and token.cancelled:
            raise TaskCancelledError("image request cancelled")

        if response.status_code in RATE_LIMIT_STATUSES:
            retry_after = parse_retry_after(response.headers.get("Retry-After"), self.default_backoff_s)
            raise RateLimitedError(retry_after, f"image service returned {response.status_code}")

        if not response.ok:
            detail = (response.text or "").strip() or response.reason or ""
            raise ImageGenerationError(
                f"image service {response.status_code}: {detail[:300]}",
                status_code=response.status_code,
            )

        try:
            payload = response.json()
        except ValueError as error:
            raise ImageGenerationError("image service returned invalid JSON") from error
        return extract_image_data_uri(payload)


def extract_image_data_uri(payload: Any) -> str:
    candidates = payload.get("candidates") if isinstance(payload, dict) else None
    parts: list[Any] = []
    if isinstance(candidates, list) and candidates:
        content = candidates[0].get("content") if isinstance(candidates[0], dict) else None
        if isinstance(content, dict) and isinstance(content.get("parts"), list):
            parts = content["parts"]

    for part in parts:
        inline = part.get("inlineData") if isinstance(part, dict) else None
        if isinstance(inline, dict) and inline.get("data"):
            mime = inline.get("mimeType") or "image/png"
            return f"data:{mime};base64,{inline['data']}"

    text = next(
        (str(part["text"]) for part in parts if isinstance(part, dict) and part.get("text")),
        None,
    )
    message = "response contained no image"
    if text:
        message += f" (text: {text[:120]}...)"
    raise ImageGenerationError(message)


class PersistenceClient(BaseClient):
    """Fire-and-forget POST of one enriched record per call."""

    def __init__(
        self,
        endpoint: str,
        timeout_s: float = 8.0,
        session: requests.Session | None = None,
    ) -> None:
        super().__init__(timeout_s, session)
        self.endpoint = endpoint

    def post_record(self, payload: dict[str, Any]) -> bool:
        try:
            response = self._post_json(self.endpoint, payload)
            response.raise_for_status()
        except requests.RequestException as error:
            logger.warning("Persisting %s failed: %s", payload.get("planet_name"), _error_summary(error))
            return False
        return True
