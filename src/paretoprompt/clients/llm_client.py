"""OpenAI-compatible chat client with retry on transient failures."""

import asyncio
import time
from typing import Any, Dict, List, Optional

from loguru import logger
from openai import APIConnectionError, APITimeoutError, AsyncOpenAI, RateLimitError

from ..config import Settings
from ..errors import ProviderError
from .base import BaseLLMClient

INITIAL_RETRY_DELAY = 1.0
BACKOFF_MULTIPLIER = 2.0
TRANSIENT_ERRORS = (RateLimitError, APIConnectionError, APITimeoutError)


class LLMClient(BaseLLMClient):
    """Async chat client; rate limits and dropped connections back off exponentially.

    Exhausted retries surface as ``ProviderError`` so the evaluator gateway
    reports them under the same tag as any other backend failure.
    """

    def __init__(self, settings: Settings, max_retries: Optional[int] = None):
        """Initialize LLM client with OpenAI credentials; retries default to the settings."""
        self.settings = settings
        client_kwargs: Dict[str, Any] = {
            "api_key": settings.api_key or "local",
            "timeout": settings.request_timeout,
        }
        if settings.base_url:
            client_kwargs["base_url"] = settings.base_url
        self.async_client = AsyncOpenAI(**client_kwargs)
        self.model = settings.model
        self.temperature = settings.temperature
        self.max_tokens = settings.max_tokens
        self.max_retries = max_retries if max_retries is not None else settings.max_retries
        self.total_tokens = 0

    async def achat_completion(
        self,
        messages: List[Dict[str, str]],
        temperature: Optional[float] = None,
        max_tokens: Optional[int] = None,
        **kwargs,
    ) -> str:
        """Send asynchronous chat completion request with retry logic."""
        request: Dict[str, Any] = {
            "model": self.model,
            "messages": messages,
            "temperature": temperature if temperature is not None else self.temperature,
        }
        if max_tokens or self.max_tokens:
            request["max_tokens"] = max_tokens or self.max_tokens
        request.update(kwargs)

        retry_delay = INITIAL_RETRY_DELAY
        for attempt in range(1, self.max_retries + 1):
            try:
                start_time = time.time()
                response = await self.async_client.chat.completions.create(**request)
            except TRANSIENT_ERRORS as e:
                if attempt == self.max_retries:
                    logger.error(f"{type(e).__name__} persisted after {self.max_retries} attempts")
                    raise ProviderError(f"{type(e).__name__}: {e}") from e
                logger.warning(
                    f"{type(e).__name__}, retrying in {retry_delay}s "
                    f"(attempt {attempt}/{self.max_retries})"
                )
                await asyncio.sleep(retry_delay)
                retry_delay *= BACKOFF_MULTIPLIER
                continue

            latency = (time.time() - start_time) * 1000
            content = response.choices[0].message.content or ""
            tokens_used = response.usage.total_tokens if response.usage else 0
            self.total_tokens += tokens_used
            logger.debug(f"LLM response: {len(content)} chars, {tokens_used} tokens, {latency:.0f}ms")
            return content

        raise ProviderError("No completion attempts were made")
