from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import List, Optional

from inboxpilot.errors import UpstreamUnavailable
from inboxpilot.services.result import Result


@dataclass
class LLMResponse:
    content: str
    model: str
    usage: Optional[dict] = None


class LLMProvider(ABC):
    """Abstract base class for LLM providers."""

    @abstractmethod
    def generate(
        self,
        messages: List[dict],
        model: Optional[str] = None,
        temperature: float = 0.7,
        max_tokens: int = 1000,
        timeout_seconds: Optional[float] = None,
    ) -> LLMResponse:
        """Generate a chat completion. Raises UpstreamUnavailable on failure."""

    def complete(
        self,
        system_prompt: str,
        user_prompt: str,
        max_tokens: int,
        temperature: float,
        timeout_seconds: Optional[float] = None,
    ) -> Result[str]:
        """Single-turn completion that never raises for provider failures."""
        messages = [
            {"role": "system", "content": system_prompt},
            {"role": "user", "content": user_prompt},
        ]
        try:
            response = self.generate(
                messages,
                temperature=temperature,
                max_tokens=max_tokens,
                timeout_seconds=timeout_seconds,
            )
        except UpstreamUnavailable as exc:
            return Result.from_exception(exc)

        text = (response.content or "").strip()
        if not text:
            return Result.failure("Model returned no text", "empty_response")
        return Result.success(text)
