"""Client for an OpenAI-compatible chat completions endpoint."""

import logging
from typing import Any, Dict, Optional

import requests

from leadintel.core.config import Settings, get_settings
from leadintel.core.errors import RateLimitError

logger = logging.getLogger(__name__)

REQUEST_TIMEOUT = 60


class TextGenerationError(RuntimeError):
    """Raised when the generation service fails or answers without content."""


class TextGenerationRateLimitError(TextGenerationError, RateLimitError):
    """Raised on HTTP 429 from the generation service."""


class TextGenerationClient:
    """Send a single-message prompt and return the reply text verbatim."""

    def __init__(self, settings: Optional[Settings] = None, session: Optional[requests.Session] = None) -> None:
        self.settings = settings or get_settings()
        self.session = session or requests.Session()

    def complete(self, prompt: str, *, max_tokens: Optional[int] = None, temperature: Optional[float] = None) -> str:
        if not self.settings.generation_api_key:
            raise TextGenerationError("GENERATION_API_KEY is required")

        body: Dict[str, Any] = {
            "model": self.settings.generation_model,
            "messages": [{"role": "user", "content": prompt}],
        }
        if max_tokens is not None:
            body["max_tokens"] = max_tokens
        if temperature is not None:
            body["temperature"] = temperature

        try:
            response = self.session.post(
                self.settings.generation_base_url.rstrip("/") + "/chat/completions",
                json=body,
                headers={"Authorization": f"Bearer {self.settings.generation_api_key}"},
                timeout=REQUEST_TIMEOUT,
            )
        except requests.RequestException as exc:
            raise TextGenerationError(f"generation request failed: {exc}") from exc

        if response.status_code == 429:
            raise TextGenerationRateLimitError("generation service rate limited the request")
        if response.status_code >= 400:
            logger.error("Generation failed: status=%s body=%s", response.status_code, response.text[:500])
            raise TextGenerationError(f"generation service returned {response.status_code}")

        payload = response.json()
        try:
            content = payload["choices"][0]["message"]["content"]
        except (KeyError, IndexError, TypeError) as exc:
            raise TextGenerationError("generation response has no content") from exc
        if not content:
            raise TextGenerationError("generation response has no content")
        return content.strip()

    def close(self) -> None:
        self.session.close()
