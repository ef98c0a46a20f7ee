from inboxpilot.services.llm.base import LLMProvider, LLMResponse
from inboxpilot.services.llm.openai_provider import OpenAIProvider

__all__ = ["LLMProvider", "LLMResponse", "OpenAIProvider"]
