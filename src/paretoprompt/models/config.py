"""Optimization configuration models."""

import math
from pathlib import Path
from typing import Any, Dict, List, Optional, Set, Union

import yaml
from pydantic import BaseModel, Field, field_validator, model_validator

from .fitness import Direction, Objective

FLOOR_TOLERANCE = 1e-9
DEFAULT_POPULATION_SIZE = 10
DEFAULT_MUTATION_RATE = 0.3
DEFAULT_CROSSOVER_RATE = 0.7
DEFAULT_ELITISM_COUNT = 2
DEFAULT_TOURNAMENT_SIZE = 2
DEFAULT_DIVERSITY_FLOOR = 0.1
DEFAULT_DIVERSITY_WINDOW = 3
DEFAULT_MAX_INJECTION_FRACTION = 0.2
DEFAULT_STAGNATION_WINDOW = 5
DEFAULT_MAX_GENERATIONS = 50
DEFAULT_CONVERGENCE_EPSILON = 0.01
DEFAULT_EVALUATION_TIMEOUT = 60.0
DEFAULT_STORM_THRESHOLD = 0.5
DEFAULT_REFLECTION_MIN_OCCURRENCES = 2
DEFAULT_MAX_INSIGHTS = 5
DEFAULT_PERTURBATION_STRENGTH = 2
HARD_MAX_WORKERS = 64

DEFAULT_OBJECTIVES = [
    Objective(name="accuracy", direction=Direction.MAXIMIZE),
    Objective(name="cost", direction=Direction.MINIMIZE),
    Objective(name="latency", direction=Direction.MINIMIZE),
]

DEFAULT_CONSTRAINT_BANK: Dict[str, List[str]] = {
    "format": [
        "Respond using exactly the requested output format.",
        "Return only the answer, without extra commentary.",
    ],
    "missing_context": [
        "Use only the information given in the input.",
    ],
    "ambiguity": [
        "If the input is ambiguous, choose the most likely interpretation.",
    ],
    "default": [
        "Be concise and precise.",
        "Follow every instruction above exactly.",
        "Double-check the answer before responding.",
    ],
}

DEFAULT_EXAMPLE_BANK: List[str] = [
    "Example: when a single label is requested, answer with that label only.",
    "Example: if the input lacks the needed detail, say so instead of guessing.",
    "Example: keep the answer in the same language as the input.",
]

SUPPORTED_PROFILES: Set[str] = {"fast", "balanced", "quality", "advanced"}

PROFILE_PRESETS: Dict[str, Dict[str, Any]] = {
    "fast": {
        "population_size": 12,
        "max_generations": 10,
        "mutation_rate": 0.4,
        "crossover_rate": 0.7,
        "tournament_size": 2,
        "stagnation_window": 3,
    },
    "balanced": {
        "population_size": 10,
        "max_generations": 25,
        "mutation_rate": 0.3,
        "crossover_rate": 0.7,
        "tournament_size": 2,
        "stagnation_window": 5,
    },
    "quality": {
        "population_size": 16,
        "max_generations": 50,
        "mutation_rate": 0.25,
        "crossover_rate": 0.8,
        "tournament_size": 3,
        "stagnation_window": 8,
        "convergence_epsilon": 0.005,
    },
    "advanced": {},
}


class OptimizationConfig(BaseModel):
    """Genetic-Pareto run configuration."""

    population_size: int = Field(default=DEFAULT_POPULATION_SIZE, ge=1)
    objectives: List[Objective] = Field(default_factory=lambda: list(DEFAULT_OBJECTIVES), min_length=1)
    primary_objective: Optional[str] = None
    mutation_rate: float = Field(default=DEFAULT_MUTATION_RATE, ge=0.0, le=1.0)
    crossover_rate: float = Field(default=DEFAULT_CROSSOVER_RATE, ge=0.0, le=1.0)
    elitism_count: int = Field(default=DEFAULT_ELITISM_COUNT, ge=1)
    tournament_size: int = Field(default=DEFAULT_TOURNAMENT_SIZE, ge=1)
    diversity_floor: float = Field(default=DEFAULT_DIVERSITY_FLOOR, ge=0.0, le=1.0)
    diversity_window: int = Field(default=DEFAULT_DIVERSITY_WINDOW, ge=1)
    max_injection_fraction: float = Field(default=DEFAULT_MAX_INJECTION_FRACTION, ge=0.0, le=1.0)
    perturbation_strength: int = Field(default=DEFAULT_PERTURBATION_STRENGTH, ge=1)
    stagnation_window: int = Field(default=DEFAULT_STAGNATION_WINDOW, ge=1)
    max_generations: int = Field(default=DEFAULT_MAX_GENERATIONS, ge=1)
    convergence_epsilon: float = Field(default=DEFAULT_CONVERGENCE_EPSILON, ge=0.0)
    max_workers: Optional[int] = Field(default=None, ge=1)
    evaluation_timeout: Optional[float] = Field(default=DEFAULT_EVALUATION_TIMEOUT, gt=0.0)
    storm_threshold: float = Field(default=DEFAULT_STORM_THRESHOLD, ge=0.0, le=1.0)
    reflection_min_occurrences: int = Field(default=DEFAULT_REFLECTION_MIN_OCCURRENCES, ge=1)
    max_insights: int = Field(default=DEFAULT_MAX_INSIGHTS, ge=0)
    seed: Optional[int] = None
    cache_evaluations: bool = True
    reevaluate_survivors: bool = False
    runs_dir: Optional[str] = None
    constraint_bank: Dict[str, List[str]] = Field(
        default_factory=lambda: {k: list(v) for k, v in DEFAULT_CONSTRAINT_BANK.items()}
    )
    example_bank: List[str] = Field(default_factory=lambda: list(DEFAULT_EXAMPLE_BANK), min_length=1)

    @field_validator("objectives", mode="before")
    @classmethod
    def _objectives_from_mapping(cls, value: Any) -> Any:
        """Accept ``{name: direction}`` as shorthand for the objective list."""
        if isinstance(value, dict):
            return [{"name": name, "direction": direction} for name, direction in value.items()]
        return value

    @model_validator(mode="after")
    def _check_consistency(self) -> "OptimizationConfig":
        names = [objective.name for objective in self.objectives]
        if len(set(names)) != len(names):
            raise ValueError(f"Duplicate objective names: {names}")
        if self.primary_objective is None:
            self.primary_objective = names[0]
        elif self.primary_objective not in names:
            raise ValueError(
                f"Primary objective '{self.primary_objective}' is not one of {names}"
            )
        if self.elitism_count >= self.population_size:
            raise ValueError(
                f"elitism_count ({self.elitism_count}) must be smaller than "
                f"population_size ({self.population_size})"
            )
        if not self.constraint_bank.get("default"):
            raise ValueError("constraint_bank needs a non-empty 'default' entry")
        return self

    @property
    def primary(self) -> Objective:
        for objective in self.objectives:
            if objective.name == self.primary_objective:
                return objective
        raise KeyError(self.primary_objective)

    @property
    def objective_names(self) -> List[str]:
        return sorted(objective.name for objective in self.objectives)

    @property
    def worker_count(self) -> int:
        """Concurrent evaluator calls; defaults to N, capped by the hard max."""
        requested = self.max_workers or self.population_size
        return max(1, min(requested, HARD_MAX_WORKERS))

    @property
    def injection_budget(self) -> int:
        """Largest number of candidates a single diversity injection may replace."""
        return math.floor(self.max_injection_fraction * self.population_size + FLOOR_TOLERANCE)

    @classmethod
    def from_profile(cls, profile: str, **overrides: Any) -> "OptimizationConfig":
        """Create config from a named profile with optional overrides."""
        if profile not in SUPPORTED_PROFILES:
            raise ValueError(
                f"Unknown profile '{profile}'. "
                f"Supported: {', '.join(sorted(SUPPORTED_PROFILES))}"
            )
        defaults = dict(PROFILE_PRESETS.get(profile, {}))
        defaults.update(overrides)
        return cls(**defaults)

    @classmethod
    def from_yaml(cls, path: Union[str, Path]) -> "OptimizationConfig":
        """Load config from a YAML file; an optional ``profile`` key selects presets."""
        data = yaml.safe_load(Path(path).read_text(encoding="utf-8")) or {}
        if not isinstance(data, dict):
            raise ValueError(f"Config file {path} must contain a mapping")
        profile = data.pop("profile", None)
        if profile:
            return cls.from_profile(profile, **data)
        return cls(**data)
