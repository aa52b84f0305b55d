from deskflow.services.llm.anthropic_provider import AnthropicProvider
from deskflow.services.llm.base import LLMProvider, LLMResponse
from deskflow.services.llm.fallback import FallbackProvider, build_default_provider
from deskflow.services.llm.openai_provider import OpenAIProvider

__all__ = [
    "AnthropicProvider",
    "FallbackProvider",
    "LLMProvider",
    "LLMResponse",
    "OpenAIProvider",
    "build_default_provider",
]
