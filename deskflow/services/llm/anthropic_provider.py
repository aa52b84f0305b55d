from typing import List, Optional

import httpx

from deskflow.logging_config import get_logger
from deskflow.services.errors import ProviderError
from deskflow.services.llm.base import LLMProvider, LLMResponse

logger = get_logger("llm.anthropic")

ANTHROPIC_VERSION = "2023-06-01"


class AnthropicProvider(LLMProvider):
    """Anthropic messages API provider."""

    name = "anthropic"

    def __init__(self, api_key: str, default_model: str, timeout_seconds: float = 20.0):
        self.api_key = api_key
        self.default_model = default_model
        self.timeout_seconds = timeout_seconds
        self.base_url = "https://api.anthropic.com/v1/messages"

    def generate(
        self,
        messages: List[dict],
        model: Optional[str] = None,
        temperature: float = 0.7,
        max_tokens: int = 1000,
        timeout_seconds: Optional[float] = None,
    ) -> LLMResponse:
        if not self.api_key:
            raise ProviderError("Anthropic API key is not configured")

        model = model or self.default_model
        timeout = timeout_seconds if timeout_seconds is not None else self.timeout_seconds

        # System turns travel in a dedicated field.
        system = "\n\n".join(m["content"] for m in messages if m.get("role") == "system")
        payload = {
            "model": model,
            "max_tokens": max_tokens,
            "temperature": min(temperature, 1.0),
            "messages": [m for m in messages if m.get("role") != "system"],
        }
        if system:
            payload["system"] = system

        try:
            with httpx.Client(timeout=timeout) as client:
                response = client.post(
                    self.base_url,
                    headers={
                        "x-api-key": self.api_key,
                        "anthropic-version": ANTHROPIC_VERSION,
                        "content-type": "application/json",
                    },
                    json=payload,
                )
        except httpx.HTTPError as exc:
            logger.warning(f"Anthropic transport error: {exc}")
            raise ProviderError(f"Anthropic request failed: {exc}") from exc

        if response.status_code != 200:
            logger.error(f"Anthropic error: {response.text}")
            raise ProviderError(f"Anthropic API error: {response.status_code} - {response.text}")

        try:
            data = response.json()
            content = "".join(
                block.get("text", "") for block in data.get("content") or [] if block.get("type") == "text"
            )
        except (ValueError, KeyError, TypeError, AttributeError) as exc:
            logger.error(f"Anthropic malformed response: {response.text[:200]}")
            raise ProviderError(f"Anthropic returned a malformed response: {exc}") from exc
        return LLMResponse(
            content=content,
            model=data.get("model", model),
            provider=self.name,
            usage=data.get("usage"),
        )
