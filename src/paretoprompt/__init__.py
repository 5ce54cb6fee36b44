"""ParetoPrompt - Genetic-Pareto Prompt Optimizer."""

from .analysis import BaseReflector, Reflector
from .clients import BaseLLMClient, LLMClient
from .config import Settings, get_settings
from .core import (
    CancellationToken,
    EvaluatorGateway,
    FunctionEvaluator,
    GEPAOptimizer,
    LLMEvaluatorGateway,
    ParetoRanker,
    PromptMutator,
    default_compare_fn,
    load_dataset,
)
from .core.ui.progress_tracker import ProgressTracker
from .errors import (
    ConfigurationError,
    EvaluationError,
    EvaluationStormError,
    GEPAError,
    SchemaMismatch,
)
from .models import (
    Candidate,
    DatasetEntry,
    Direction,
    EvaluationOutcome,
    ExecutionTrace,
    FitnessVector,
    Objective,
    OptimizationConfig,
    OptimizationResult,
    PromptTemplate,
    TerminationReason,
)

__version__ = "0.1.0"

__all__ = [
    "GEPAOptimizer",
    "EvaluatorGateway",
    "FunctionEvaluator",
    "LLMEvaluatorGateway",
    "ParetoRanker",
    "PromptMutator",
    "BaseReflector",
    "Reflector",
    "CancellationToken",
    "ProgressTracker",
    "BaseLLMClient",
    "LLMClient",
    "Settings",
    "get_settings",
    "GEPAError",
    "ConfigurationError",
    "EvaluationError",
    "EvaluationStormError",
    "SchemaMismatch",
    "Candidate",
    "DatasetEntry",
    "Direction",
    "EvaluationOutcome",
    "ExecutionTrace",
    "FitnessVector",
    "Objective",
    "OptimizationConfig",
    "OptimizationResult",
    "PromptTemplate",
    "TerminationReason",
    "default_compare_fn",
    "load_dataset",
]
