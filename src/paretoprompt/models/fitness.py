"""Multi-objective fitness vectors."""

import math
from enum import Enum
from typing import Dict, Iterable, Tuple

from pydantic import BaseModel, ConfigDict, Field


class Direction(str, Enum):
    """Optimization direction of a single objective."""

    MAXIMIZE = "maximize"
    MINIMIZE = "minimize"


class Objective(BaseModel):
    """Named objective with its direction, fixed for a run."""

    model_config = ConfigDict(frozen=True)

    name: str = Field(min_length=1)
    direction: Direction = Direction.MAXIMIZE

    def better(self, a: float, b: float) -> bool:
        """Return True if value a is strictly better than b."""
        if self.direction == Direction.MAXIMIZE:
            return a > b
        return a < b

    def worst_value(self) -> float:
        """Value dominated by every finite score."""
        return -math.inf if self.direction == Direction.MAXIMIZE else math.inf

    def improvement(self, new: float, old: float) -> float:
        """Signed improvement of new over old under this direction."""
        if self.direction == Direction.MAXIMIZE:
            return new - old
        return old - new


class FitnessVector(BaseModel):
    """Scores of one candidate across all objectives of a run.

    ``failed`` marks the sentinel vector assigned when evaluation failed; its
    values are the worst possible for each objective so every successfully
    evaluated candidate dominates it.
    """

    model_config = ConfigDict(frozen=True)

    values: Dict[str, float]
    directions: Dict[str, Direction]
    failed: bool = False

    @classmethod
    def from_scores(
        cls,
        scores: Dict[str, float],
        objectives: Iterable[Objective]
    ) -> "FitnessVector":
        """Build a vector from raw scores and the run objectives."""
        objectives = list(objectives)
        return cls(
            values={o.name: float(scores[o.name]) for o in objectives if o.name in scores},
            directions={o.name: o.direction for o in objectives if o.name in scores},
        )

    @classmethod
    def worst(cls, objectives: Iterable[Objective]) -> "FitnessVector":
        """Sentinel vector for a candidate whose evaluation failed."""
        objectives = list(objectives)
        return cls(
            values={o.name: o.worst_value() for o in objectives},
            directions={o.name: o.direction for o in objectives},
            failed=True,
        )

    @property
    def objective_names(self) -> Tuple[str, ...]:
        return tuple(sorted(self.values))

    def __getitem__(self, name: str) -> float:
        return self.values[name]

    def dominates(self, other: "FitnessVector") -> bool:
        """Check if this vector Pareto-dominates another vector."""
        strictly_better = False
        for name, direction in self.directions.items():
            mine = self.values[name]
            theirs = other.values[name]
            if direction == Direction.MAXIMIZE:
                if mine < theirs:
                    return False
                if mine > theirs:
                    strictly_better = True
            else:
                if mine > theirs:
                    return False
                if mine < theirs:
                    strictly_better = True
        return strictly_better

    def __str__(self) -> str:
        if self.failed:
            return "Fitness(failed)"
        parts = ", ".join(f"{k}={v:.4g}" for k, v in sorted(self.values.items()))
        return f"Fitness({parts})"
