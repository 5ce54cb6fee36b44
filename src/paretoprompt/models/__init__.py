"""Data models for Genetic-Pareto optimization."""

from .candidate import Candidate, PromptTemplate, Segment, SegmentKind, new_candidate_id
from .config import PROFILE_PRESETS, SUPPORTED_PROFILES, OptimizationConfig
from .dataset import DatasetEntry
from .fitness import Direction, FitnessVector, Objective
from .insight import EditKind, Insight
from .population import ParetoFront, Population
from .result import GenerationSummary, OptimizationResult, TerminationReason
from .trace import EvaluationOutcome, ExecutionTrace, TraceCase

__all__ = [
    "Candidate",
    "PromptTemplate",
    "Segment",
    "SegmentKind",
    "new_candidate_id",
    "OptimizationConfig",
    "PROFILE_PRESETS",
    "SUPPORTED_PROFILES",
    "DatasetEntry",
    "Direction",
    "FitnessVector",
    "Objective",
    "EditKind",
    "Insight",
    "ParetoFront",
    "Population",
    "GenerationSummary",
    "OptimizationResult",
    "TerminationReason",
    "EvaluationOutcome",
    "ExecutionTrace",
    "TraceCase",
]
