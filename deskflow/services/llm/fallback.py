from typing import List, Optional, Sequence

from deskflow.config import settings
from deskflow.logging_config import get_logger
from deskflow.services.errors import ProviderError, ProviderUnavailable
from deskflow.services.llm.anthropic_provider import AnthropicProvider
from deskflow.services.llm.base import LLMProvider, LLMResponse
from deskflow.services.llm.openai_provider import OpenAIProvider

logger = get_logger("llm.fallback")


class FallbackProvider(LLMProvider):
    """Try each provider in order; raise ProviderUnavailable if all fail.

    Each provider keeps its own default model.
    """

    name = "fallback"

    def __init__(self, providers: Sequence[LLMProvider]):
        self.providers = list(providers)

    def generate(
        self,
        messages: List[dict],
        model: Optional[str] = None,
        temperature: float = 0.7,
        max_tokens: int = 1000,
        timeout_seconds: Optional[float] = None,
    ) -> LLMResponse:
        errors = []
        for provider in self.providers:
            try:
                return provider.generate(
                    messages,
                    model=None,
                    temperature=temperature,
                    max_tokens=max_tokens,
                    timeout_seconds=timeout_seconds,
                )
            except ProviderError as exc:
                logger.warning(
                    "Provider failed, trying next",
                    extra={"context": {"provider": provider.name, "error": str(exc)}},
                )
                errors.append(f"{provider.name}: {exc}")
        raise ProviderUnavailable("All AI providers unavailable: " + "; ".join(errors))


def build_default_provider() -> FallbackProvider:
    """OpenAI first, Anthropic second, from settings."""
    return FallbackProvider(
        [
            OpenAIProvider(
                api_key=settings.openai_api_key,
                default_model=settings.openai_model,
                timeout_seconds=settings.llm_timeout_seconds,
            ),
            AnthropicProvider(
                api_key=settings.anthropic_api_key,
                default_model=settings.anthropic_model,
                timeout_seconds=settings.llm_timeout_seconds,
            ),
        ]
    )
