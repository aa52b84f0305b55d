from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import List, Optional


@dataclass
class LLMResponse:
    content: str
    model: str
    provider: str = ""
    usage: Optional[dict] = None


class LLMProvider(ABC):
    """Abstract base class for generative text providers."""

    name = "llm"

    @abstractmethod
    def generate(
        self,
        messages: List[dict],
        model: Optional[str] = None,
        temperature: float = 0.7,
        max_tokens: int = 1000,
        timeout_seconds: Optional[float] = None,
    ) -> LLMResponse:
        """Generate a response. Raises ProviderError on failure."""
        pass

    def complete(self, prompt: str, *, max_tokens: int = 500, timeout_seconds: Optional[float] = None) -> str:
        """Single-prompt convenience wrapper around ``generate``."""
        response = self.generate(
            [{"role": "user", "content": prompt}],
            max_tokens=max_tokens,
            timeout_seconds=timeout_seconds,
        )
        return response.content
