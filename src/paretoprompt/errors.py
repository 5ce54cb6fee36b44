"""Exception hierarchy for the optimizer."""

from typing import TYPE_CHECKING, Optional

if TYPE_CHECKING:
    from .models.result import OptimizationResult


class GEPAError(Exception):
    """Base class for all optimizer errors.

    Fatal errors raised out of a run carry the last fully-ranked
    generation's result in ``partial_result``.
    """

    partial_result: Optional["OptimizationResult"] = None


class ConfigurationError(GEPAError, ValueError):
    """Run configuration cannot produce a valid run."""


class CandidateNotFound(GEPAError, KeyError):
    """Candidate id is not present in the store."""


class DuplicateCandidate(GEPAError):
    """A different candidate already uses this id."""


class SchemaMismatch(GEPAError):
    """Fitness objective set differs from the one fixed for the run."""


class EmptyPopulation(GEPAError):
    """Ranking was requested over zero candidates."""


class EvaluationStormError(GEPAError):
    """Too many candidates of one generation failed evaluation."""

    def __init__(
        self,
        message: str,
        generation: int,
        failed: int,
        dispatched: int
    ):
        super().__init__(message)
        self.generation = generation
        self.failed = failed
        self.dispatched = dispatched


class EvaluationError(GEPAError):
    """Per-candidate evaluation failure; absorbed by the optimizer."""

    tag = "evaluation_error"


class EvaluationTimeout(EvaluationError):
    """Evaluator did not answer within the configured timeout."""

    tag = "timeout"


class ProviderError(EvaluationError):
    """Evaluator backend failed."""

    tag = "provider_error"


class EvaluationCancelled(EvaluationError):
    """Evaluation was aborted by cancellation."""

    tag = "cancelled"
