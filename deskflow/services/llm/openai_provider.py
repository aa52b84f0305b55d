from typing import List, Optional

import httpx

from deskflow.logging_config import get_logger
from deskflow.services.errors import ProviderError
from deskflow.services.llm.base import LLMProvider, LLMResponse

logger = get_logger("llm.openai")


class OpenAIProvider(LLMProvider):
    """OpenAI chat completions provider."""

    name = "openai"

    def __init__(self, api_key: str, default_model: str = "gpt-5-mini", timeout_seconds: float = 20.0):
        self.api_key = api_key
        self.default_model = default_model
        self.timeout_seconds = timeout_seconds
        self.base_url = "https://api.openai.com/v1/chat/completions"

    def generate(
        self,
        messages: List[dict],
        model: Optional[str] = None,
        temperature: float = 0.7,
        max_tokens: int = 1000,
        timeout_seconds: Optional[float] = None,
    ) -> LLMResponse:
        """Generate response from OpenAI."""
        if not self.api_key:
            raise ProviderError("OpenAI API key is not configured")

        model = model or self.default_model
        timeout = timeout_seconds if timeout_seconds is not None else self.timeout_seconds
        payload = {
            "model": model,
            "messages": messages,
            "temperature": temperature,
            "max_completion_tokens": max_tokens,
        }
        logger.debug(f"OpenAI request: model={model}, messages_count={len(messages)}")

        try:
            with httpx.Client(timeout=timeout) as client:
                response = client.post(
                    self.base_url,
                    headers={
                        "Authorization": f"Bearer {self.api_key}",
                        "Content-Type": "application/json",
                    },
                    json=payload,
                )
        except httpx.HTTPError as exc:
            logger.warning(f"OpenAI transport error: {exc}")
            raise ProviderError(f"OpenAI request failed: {exc}") from exc

        logger.debug(f"OpenAI response status: {response.status_code}")
        if response.status_code != 200:
            logger.error(f"OpenAI error: {response.text}")
            raise ProviderError(f"OpenAI API error: {response.status_code} - {response.text}")

        try:
            data = response.json()
            content = ""
            if data.get("choices"):
                message = data["choices"][0].get("message") or {}
                content = message.get("content") or ""
        except (ValueError, KeyError, TypeError, AttributeError) as exc:
            logger.error(f"OpenAI malformed response: {response.text[:200]}")
            raise ProviderError(f"OpenAI returned a malformed response: {exc}") from exc
        logger.debug(f"OpenAI content: {content[:100] if content else 'EMPTY'}")

        return LLMResponse(
            content=content,
            model=data.get("model", model),
            provider=self.name,
            usage=data.get("usage"),
        )
