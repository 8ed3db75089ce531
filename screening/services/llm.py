"""
Async completion client.

The HTTP call itself is blocking (requests), so it is pushed to the event
loop's default executor; callers only ever see a coroutine. Failures never
propagate: they are logged and turned into ``"{}"`` so the normalizer assigns
default scores.
"""
import asyncio
import functools
from typing import Optional

from screening.models.settings import LLMSettings
from screening.utils.exceptions import ExternalServiceError
from screening.utils.logging_config import get_logger
from screening.utils.utils import ollama_chat

logger = get_logger(__name__)

EMPTY_COMPLETION = "{}"


class CompletionClient:
    """Sends one system+user prompt pair and returns the raw completion text"""

    def __init__(self, settings: Optional[LLMSettings] = None):
        self.settings = settings or LLMSettings()

    async def complete(
        self,
        prompt: str,
        system: str,
        model: Optional[str] = None,
        temperature: Optional[float] = None,
        max_tokens: Optional[int] = None,
    ) -> str:
        model = model or self.settings.model_name
        call = functools.partial(
            ollama_chat,
            self.settings.base_url,
            model,
            system,
            prompt,
            temperature=self.settings.temperature if temperature is None else temperature,
            max_tokens=max_tokens,
            timeout=self.settings.timeout,
        )
        loop = asyncio.get_running_loop()
        try:
            return await loop.run_in_executor(None, call)
        except ExternalServiceError as e:
            logger.error(f"Completion failed for model {model}: {e.message}", extra={"details": e.details})
            return EMPTY_COMPLETION
