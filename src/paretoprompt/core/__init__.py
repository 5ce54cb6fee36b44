"""Core Genetic-Pareto optimization engine."""

from .cancellation import CancellationToken
from .crossover import PromptCrossover
from .diversity import DiversityManager
from .engine.optimizer import GEPAOptimizer, OptimizerState
from .evaluator import EvaluatorGateway, FunctionEvaluator
from .llm_evaluator import LLMEvaluatorGateway, default_compare_fn, load_dataset
from .mutator import PromptMutator
from .pareto import ParetoRanker
from .selection import ParentSelector
from .store import CandidateStore

__all__ = [
    "GEPAOptimizer",
    "OptimizerState",
    "CancellationToken",
    "CandidateStore",
    "DiversityManager",
    "EvaluatorGateway",
    "FunctionEvaluator",
    "LLMEvaluatorGateway",
    "ParentSelector",
    "ParetoRanker",
    "PromptCrossover",
    "PromptMutator",
    "default_compare_fn",
    "load_dataset",
]
