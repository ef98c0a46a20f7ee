from typing import List, Optional

import httpx

from inboxpilot.errors import UpstreamUnavailable
from inboxpilot.logging_config import get_logger
from inboxpilot.services.llm.base import LLMProvider, LLMResponse

logger = get_logger("llm.openai")

DEFAULT_CHAT_URL = "https://api.openai.com/v1/chat/completions"


class OpenAIProvider(LLMProvider):
    """OpenAI-compatible chat completions provider."""

    def __init__(self, api_key: str, default_model: str = "gpt-4o-mini", base_url: str = DEFAULT_CHAT_URL):
        self.api_key = api_key
        self.default_model = default_model
        self.base_url = base_url

    def generate(
        self,
        messages: List[dict],
        model: Optional[str] = None,
        temperature: float = 0.7,
        max_tokens: int = 1000,
        timeout_seconds: Optional[float] = None,
    ) -> LLMResponse:
        model = model or self.default_model
        timeout = timeout_seconds if timeout_seconds is not None else 30.0
        payload = {
            "model": model,
            "messages": messages,
            "temperature": temperature,
            "max_tokens": max_tokens,
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
        except httpx.HTTPError as e:
            logger.error(f"OpenAI request failed: {e}")
            raise UpstreamUnavailable(f"OpenAI request failed: {e}") from e

        logger.debug(f"OpenAI response status: {response.status_code}")
        if response.status_code != 200:
            logger.error(f"OpenAI error: {response.status_code} - {response.text[:200]}")
            raise UpstreamUnavailable(f"OpenAI API error: {response.status_code}")

        try:
            data = response.json()
        except ValueError as e:
            raise UpstreamUnavailable("OpenAI returned invalid JSON") from e
        if not isinstance(data, dict):
            raise UpstreamUnavailable("OpenAI response is not a JSON object")

        content = ""
        choices = data.get("choices")
        if isinstance(choices, list) and choices:
            choice = choices[0]
            message = choice.get("message") if isinstance(choice, dict) else None
            if not isinstance(message, dict):
                raise UpstreamUnavailable("OpenAI response has no message object")
            content = message.get("content")
            if not isinstance(content, str):
                content = ""

        return LLMResponse(
            content=content,
            model=data.get("model", model),
            usage=data.get("usage"),
        )
