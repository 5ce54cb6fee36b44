"""Base LLM client interface."""

from abc import ABC, abstractmethod
from typing import Dict, List, Optional

CHARS_PER_TOKEN_ESTIMATE = 4


class BaseLLMClient(ABC):
    """Chat-completion backend behind the LLM evaluator gateway."""

    @abstractmethod
    async def achat_completion(
        self,
        messages: List[Dict[str, str]],
        temperature: Optional[float] = None,
        max_tokens: Optional[int] = None,
        **kwargs,
    ) -> str:
        """Send asynchronous chat completion request."""

    async def complete(self, prompt: str, temperature: Optional[float] = None) -> str:
        """Single-turn completion of a rendered prompt, whitespace-trimmed.

        ``temperature=None`` leaves sampling to the client's configured default.
        """
        response = await self.achat_completion(
            messages=[{"role": "user", "content": prompt}],
            temperature=temperature,
        )
        return response.strip()

    def count_tokens(self, text: str) -> int:
        """Prompt cost estimate from a character-based approximation."""
        return len(text) // CHARS_PER_TOKEN_ESTIMATE
