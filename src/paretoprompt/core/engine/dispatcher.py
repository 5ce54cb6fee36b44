"""Concurrent fan-out of candidate evaluations."""

import asyncio
from typing import Any, Dict, List, Optional, Sequence, Tuple

from loguru import logger

from ...errors import EvaluationCancelled, EvaluationError, EvaluationTimeout, ProviderError
from ...models import Candidate, EvaluationOutcome, OptimizationConfig
from ..cancellation import CancellationToken
from ..evaluator import EvaluatorGateway


class EvaluationRecord:
    """Result of evaluating one candidate: an outcome or a typed failure."""

    def __init__(
        self,
        candidate_id: str,
        outcome: Optional[EvaluationOutcome] = None,
        error: Optional[EvaluationError] = None,
        cached: bool = False
    ):
        self.candidate_id = candidate_id
        self.outcome = outcome
        self.error = error
        self.cached = cached

    @property
    def failed(self) -> bool:
        return self.error is not None


class EvaluationDispatcher:
    """Scatter-gather over the evaluator gateway with a bounded worker pool.

    Each task returns its own record; nothing is shared between tasks except
    the semaphore and the read-mostly result cache, and failure counting
    happens on the caller after the join.
    """

    def __init__(self, gateway: EvaluatorGateway, config: OptimizationConfig, suite: Any = None):
        """Initialize dispatcher with gateway, limits and the evaluation suite."""
        self.gateway = gateway
        self.config = config
        self.suite = suite
        self.cache: Dict[str, EvaluationOutcome] = {}

    async def evaluate_all(
        self,
        candidates: Sequence[Candidate],
        cancel_token: CancellationToken
    ) -> Tuple[List[EvaluationRecord], bool]:
        """Evaluate candidates concurrently; returns records in input order and a cancelled flag."""
        if not candidates:
            return [], False

        semaphore = asyncio.Semaphore(self.config.worker_count)
        tasks = [
            asyncio.ensure_future(self._evaluate_one(candidate, semaphore))
            for candidate in candidates
        ]
        batch = asyncio.gather(*tasks)
        cancel_wait = asyncio.ensure_future(cancel_token.wait())
        try:
            done, _ = await asyncio.wait({batch, cancel_wait}, return_when=asyncio.FIRST_COMPLETED)
        finally:
            cancel_wait.cancel()

        cancelled = batch not in done
        if cancelled:
            logger.warning("Cancellation received, aborting in-flight evaluations")
            batch.cancel()
            await asyncio.gather(*tasks, return_exceptions=True)

        records = []
        for candidate, task in zip(candidates, tasks):
            if task.cancelled():
                records.append(EvaluationRecord(
                    candidate.id,
                    error=EvaluationCancelled(f"Evaluation of {candidate.id} was cancelled"),
                ))
            else:
                records.append(task.result())
        return records, cancelled

    async def _evaluate_one(self, candidate: Candidate, semaphore: asyncio.Semaphore) -> EvaluationRecord:
        key = candidate.content.text
        if self.config.cache_evaluations and key in self.cache:
            return EvaluationRecord(candidate.id, outcome=self.cache[key], cached=True)

        async with semaphore:
            try:
                outcome = await self._call_gateway(candidate)
            except asyncio.TimeoutError:
                error: EvaluationError = EvaluationTimeout(
                    f"No result within {self.config.evaluation_timeout}s"
                )
            except EvaluationError as e:
                error = e
            except Exception as e:
                error = ProviderError(f"{type(e).__name__}: {e}")
            else:
                if self.config.cache_evaluations:
                    self.cache[key] = outcome
                return EvaluationRecord(candidate.id, outcome=outcome)

        logger.warning(f"Evaluation of {candidate.id[:8]} failed ({error.tag}): {error}")
        return EvaluationRecord(candidate.id, error=error)

    async def _call_gateway(self, candidate: Candidate) -> EvaluationOutcome:
        call = self.gateway.evaluate(candidate.content, self.suite)
        if self.config.evaluation_timeout is None:
            outcome = await call
        else:
            outcome = await asyncio.wait_for(call, timeout=self.config.evaluation_timeout)
        if not isinstance(outcome, EvaluationOutcome):
            raise ProviderError(f"Gateway returned {type(outcome).__name__}, expected EvaluationOutcome")
        return outcome
