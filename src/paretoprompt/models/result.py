"""Optimization result models."""

from datetime import datetime
from enum import Enum
from typing import Dict, List, Optional, Tuple

from pydantic import BaseModel, Field

from .candidate import Candidate


class TerminationReason(str, Enum):
    """Why a run reached the converged state."""

    MAX_GENERATIONS = "max-generations"
    STAGNATION = "stagnation"
    CANCELLED = "cancelled"
    FAILED = "failed"


class GenerationSummary(BaseModel):
    """Per-generation progress record for monitoring."""

    generation: int
    front0_size: int
    best: Dict[str, float]
    diversity: float
    evaluated: int = 0
    failed: int = 0
    insights: int = 0
    injected_ids: List[str] = Field(default_factory=list)
    follows_injection: bool = False


class OptimizationResult(BaseModel):
    """Final front 0 of a run plus how the run ended."""

    run_id: str
    termination_reason: TerminationReason
    generation: Optional[int] = None
    front0: Tuple[Candidate, ...] = ()
    history: List[GenerationSummary] = Field(default_factory=list)
    started_at: datetime
    finished_at: datetime
    duration_seconds: float

    @property
    def has_result(self) -> bool:
        return bool(self.front0)

    @property
    def generations_completed(self) -> int:
        return len(self.history)

    @property
    def converged(self) -> bool:
        return self.termination_reason != TerminationReason.FAILED
