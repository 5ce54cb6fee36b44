"""Evaluator gateway contract."""

import asyncio
import inspect
from abc import ABC, abstractmethod
from typing import Any, Awaitable, Callable, Union

from ..models import EvaluationOutcome, PromptTemplate

EvaluateFn = Callable[[PromptTemplate, Any], Union[EvaluationOutcome, Awaitable[EvaluationOutcome]]]


class EvaluatorGateway(ABC):
    """Scores prompt content against an evaluation suite.

    Implementations must be safe to call concurrently and keep no mutable
    state shared across calls. Failures are reported by raising an
    ``EvaluationError`` subclass (``EvaluationTimeout``, ``ProviderError``,
    ``EvaluationCancelled``).
    """

    @abstractmethod
    async def evaluate(self, content: PromptTemplate, suite: Any) -> EvaluationOutcome:
        """Return fitness and execution trace for one prompt."""


class FunctionEvaluator(EvaluatorGateway):
    """Adapts a plain sync or async callable to the gateway contract.

    Sync callables run in the default executor so they do not block the
    event loop.
    """

    def __init__(self, fn: EvaluateFn):
        self.fn = fn

    async def evaluate(self, content: PromptTemplate, suite: Any) -> EvaluationOutcome:
        if inspect.iscoroutinefunction(self.fn):
            return await self.fn(content, suite)
        loop = asyncio.get_running_loop()
        result = await loop.run_in_executor(None, self.fn, content, suite)
        if inspect.isawaitable(result):
            result = await result
        return result
