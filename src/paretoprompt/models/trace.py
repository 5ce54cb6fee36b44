"""Execution traces produced by evaluator gateways."""

from typing import Any, List, Optional

from pydantic import BaseModel, Field

from .fitness import FitnessVector


class TraceCase(BaseModel):
    """Single test case outcome inside an evaluation."""

    input: Any = None
    output: str = ""
    success: bool
    error_tag: Optional[str] = None
    error_detail: Optional[str] = None


class ExecutionTrace(BaseModel):
    """Record of one evaluation, consumed by the reflector."""

    candidate_id: Optional[str] = None
    cases: List[TraceCase] = Field(default_factory=list)
    total_cost: float = 0.0
    total_latency_ms: float = 0.0
    failure_excerpts: List[str] = Field(default_factory=list)
    evaluation_error: Optional[str] = None

    @property
    def trace_id(self) -> str:
        return self.candidate_id or ""

    @property
    def failed_cases(self) -> List[TraceCase]:
        return [case for case in self.cases if not case.success]

    @property
    def failure_count(self) -> int:
        if self.evaluation_error:
            return max(1, len(self.failed_cases))
        return len(self.failed_cases)


class EvaluationOutcome(BaseModel):
    """Successful gateway result: fitness plus the trace that produced it."""

    fitness: FitnessVector
    trace: ExecutionTrace = Field(default_factory=ExecutionTrace)
