"""Evaluator gateway backed by an LLM client and a labelled dataset."""

import asyncio
import json
import time
from pathlib import Path
from typing import Awaitable, Callable, Dict, List, Optional, Tuple, Union

from loguru import logger

from ..clients import BaseLLMClient
from ..errors import ProviderError
from ..models import (
    DatasetEntry,
    Direction,
    EvaluationOutcome,
    ExecutionTrace,
    FitnessVector,
    Objective,
    PromptTemplate,
    TraceCase,
)
from .evaluator import EvaluatorGateway

EvalFn = Callable[[str, Dict], Awaitable[str]]
CompareFn = Callable[[str, str], bool]

POSITIVE_LABELS = {"true", "1", "yes"}
NEGATIVE_LABELS = {"false", "0", "no"}
MISSING_CONTEXT_MARKERS = ("not enough", "insufficient", "cannot determine", "unknown")
MAX_FAILURE_EXCERPTS = 5
EXCERPT_CHARS = 200

LLM_OBJECTIVES = [
    Objective(name="accuracy", direction=Direction.MAXIMIZE),
    Objective(name="cost", direction=Direction.MINIMIZE),
    Objective(name="latency", direction=Direction.MINIMIZE),
]


def default_compare_fn(predicted: str, expected: str) -> bool:
    """Compare predicted and expected by exact match (case-insensitive)."""
    return predicted.strip().lower() == expected.strip().lower()


def classify_failure(predicted: str, expected: str) -> str:
    """Tag a wrong answer for the reflector."""
    expected_lower = expected.strip().lower()
    predicted_lower = predicted.strip().lower()
    if not predicted_lower:
        return "format"
    if any(marker in predicted_lower for marker in MISSING_CONTEXT_MARKERS):
        return "missing_context"
    if expected_lower in POSITIVE_LABELS and predicted_lower in NEGATIVE_LABELS:
        return "false_negative"
    if expected_lower in NEGATIVE_LABELS and predicted_lower in POSITIVE_LABELS:
        return "false_positive"
    if (expected_lower in POSITIVE_LABELS | NEGATIVE_LABELS) and len(predicted_lower.split()) > 1:
        return "format"
    return "mismatch"


def load_dataset(dataset_path: Union[str, Path]) -> List[DatasetEntry]:
    """Load dataset from JSONL file."""
    entries: List[DatasetEntry] = []

    with open(dataset_path, "r", encoding="utf-8") as f:
        for line in f:
            if line.strip():
                data = json.loads(line)
                entries.append(DatasetEntry.model_validate(data))

    logger.info(f"Loaded {len(entries)} entries from {dataset_path}")
    return entries


class LLMEvaluatorGateway(EvaluatorGateway):
    """Scores a template on dataset entries: accuracy, prompt cost and latency."""

    def __init__(
        self,
        llm_client: BaseLLMClient,
        eval_fn: Optional[EvalFn] = None,
        compare_fn: Optional[CompareFn] = None
    ):
        """Initialize gateway with optional custom eval and compare functions."""
        self.llm = llm_client
        self.eval_fn = eval_fn
        self.compare_fn = compare_fn or default_compare_fn

    async def evaluate(self, content: PromptTemplate, suite: List[DatasetEntry]) -> EvaluationOutcome:
        """Evaluate a template on every dataset entry concurrently."""
        start_time = time.time()
        results = await asyncio.gather(*[self._evaluate_single(content, entry) for entry in suite])

        cases = [case for case, _ in results]
        latencies = [latency for _, latency in results]
        provider_failures = [c for c in cases if c.error_tag == ProviderError.tag]
        if cases and len(provider_failures) == len(cases):
            raise ProviderError(provider_failures[0].error_detail or "all requests failed")

        correct = sum(1 for case in cases if case.success)
        accuracy = correct / len(cases) if cases else 0.0
        avg_latency = sum(latencies) / len(latencies) if latencies else 0.0
        cost_tokens = self.llm.count_tokens(content.text)

        fitness = FitnessVector.from_scores(
            {"accuracy": accuracy, "cost": float(cost_tokens), "latency": avg_latency},
            LLM_OBJECTIVES,
        )
        trace = ExecutionTrace(
            cases=cases,
            total_cost=float(cost_tokens * len(cases)),
            total_latency_ms=sum(latencies),
            failure_excerpts=[
                f"expected={c.error_detail}; got={c.output[:EXCERPT_CHARS]}"
                for c in cases if not c.success
            ][:MAX_FAILURE_EXCERPTS],
        )

        elapsed = time.time() - start_time
        logger.debug(f"Evaluation complete in {elapsed:.1f}s: {fitness}")
        return EvaluationOutcome(fitness=fitness, trace=trace)

    async def _evaluate_single(self, content: PromptTemplate, entry: DatasetEntry) -> Tuple[TraceCase, float]:
        """Evaluate template on a single example."""
        start_time = time.time()
        missing = entry.missing_variables(content) if self.eval_fn is None else ()
        if missing:
            case = TraceCase(
                input=entry.input,
                success=False,
                error_tag="missing_context",
                error_detail=f"no value for {', '.join(missing)}",
            )
            return case, 0.0
        try:
            if self.eval_fn:
                predicted = await self.eval_fn(content.text, entry.input)
            else:
                predicted = await self._default_eval(content, entry.input)
        except Exception as e:
            logger.warning(f"Request failed: {e}")
            latency_ms = (time.time() - start_time) * 1000
            case = TraceCase(
                input=entry.input,
                success=False,
                error_tag=ProviderError.tag,
                error_detail=str(e),
            )
            return case, latency_ms

        latency_ms = (time.time() - start_time) * 1000
        is_correct = self.compare_fn(predicted, entry.expected)
        case = TraceCase(
            input=entry.input,
            output=predicted,
            success=is_correct,
            error_tag=None if is_correct else classify_failure(predicted, entry.expected),
            error_detail=None if is_correct else entry.expected,
        )
        return case, latency_ms

    async def _default_eval(self, content: PromptTemplate, input_data: Dict) -> str:
        """Default evaluation: fill variable slots and send to LLM."""
        return await self.llm.complete(content.render(input_data))
