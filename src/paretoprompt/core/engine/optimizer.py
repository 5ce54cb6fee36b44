"""Genetic-Pareto optimizer: the generation state machine."""

import asyncio
import math
import random
import time
from datetime import datetime
from enum import Enum
from pathlib import Path
from typing import Any, Awaitable, Callable, Dict, List, Optional, Sequence

from loguru import logger
from rich.console import Console

from ...analysis import BaseReflector, Reflector
from ...errors import ConfigurationError, EvaluationStormError, GEPAError, SchemaMismatch
from ...models import (
    Candidate,
    ExecutionTrace,
    FitnessVector,
    GenerationSummary,
    Insight,
    OptimizationConfig,
    OptimizationResult,
    ParetoFront,
    Population,
    PromptTemplate,
    TerminationReason,
)
from ..cancellation import CancellationToken
from ..crossover import PromptCrossover
from ..diversity import DiversityManager
from ..evaluator import EvaluatorGateway
from ..io.mutation_logger import MutationLogger
from ..io.result_builder import ResultBuilder
from ..mutator import PromptMutator
from ..pareto import ParetoRanker
from ..seeding import SeedGenerator, SeedTemplate, as_template
from ..selection import ParentSelector
from ..state.state_manager import OptimizerStateManager
from ..store import CandidateStore
from .dispatcher import EvaluationDispatcher, EvaluationRecord
from .evolution_engine import EvolutionEngine

ProgressCallback = Callable[[GenerationSummary], None]


class OptimizerState(str, Enum):
    """Phases of one optimizer run."""

    SEEDING = "seeding"
    EVALUATING = "evaluating"
    REFLECTING = "reflecting"
    RANKING = "ranking"
    REPRODUCING = "reproducing"
    CONVERGED = "converged"


class GEPAOptimizer:
    """Genetic-Pareto optimizer for prompt templates.

    Phases run strictly in order on one task; only evaluation fans out. The
    optimizer owns the single mutable handle to the current ``Population``
    and replaces it wholesale at each generation boundary. Components that
    read the population get the immutable snapshot for that generation.
    """

    def __init__(
        self,
        evaluator: EvaluatorGateway,
        config: OptimizationConfig,
        reflector: Optional[BaseReflector] = None,
        progress_callbacks: Sequence[ProgressCallback] = (),
        console: Optional[Console] = None
    ):
        """Initialize optimizer components around one shared RNG."""
        self.evaluator = evaluator
        self.config = config
        self.console = console or Console()
        self.progress_callbacks = list(progress_callbacks)

        self.rng = random.Random(config.seed)
        self.ranker = ParetoRanker(config.objectives)
        self.mutator = PromptMutator(config, self.rng)
        self.crossover = PromptCrossover(self.rng)
        self.selector = ParentSelector(self.rng, config.tournament_size)
        self.diversity = DiversityManager(config)
        self.seeder = SeedGenerator(self.mutator, self.rng, config.perturbation_strength)
        self.reflector = reflector or Reflector(
            min_occurrences=config.reflection_min_occurrences,
            max_insights=config.max_insights,
        )
        self.state_manager = OptimizerStateManager(config)
        self.mutation_logger = MutationLogger(self.state_manager.get_runs_dir())
        self.evolution_engine = EvolutionEngine(
            config=config,
            selector=self.selector,
            crossover=self.crossover,
            mutator=self.mutator,
            mutation_logger=self.mutation_logger,
            rng=self.rng,
        )
        self.result_builder = ResultBuilder(config, self.console)

        self._phases: Dict[OptimizerState, Callable[[], Awaitable[None]]] = {
            OptimizerState.SEEDING: self._seeding,
            OptimizerState.EVALUATING: self._evaluating,
            OptimizerState.REFLECTING: self._reflecting,
            OptimizerState.RANKING: self._ranking,
            OptimizerState.REPRODUCING: self._reproducing,
        }
        self._reset()

    def optimize(
        self,
        seeds: Sequence[SeedTemplate] = (),
        suite: Any = None,
        cancel_token: Optional[CancellationToken] = None,
        resume_from: Optional[str] = None
    ) -> OptimizationResult:
        """Run optimization to convergence (blocking)."""
        return asyncio.run(self.arun(seeds, suite, cancel_token, resume_from))

    async def arun(
        self,
        seeds: Sequence[SeedTemplate] = (),
        suite: Any = None,
        cancel_token: Optional[CancellationToken] = None,
        resume_from: Optional[str] = None
    ) -> OptimizationResult:
        """Run optimization to convergence.

        Returns the final front 0 with the termination reason. Fatal errors
        propagate with the last fully-ranked generation's result attached as
        ``partial_result``.
        """
        self._reset()
        self.start_time = time.time()
        self.cancel_token = cancel_token or CancellationToken()
        self.dispatcher = EvaluationDispatcher(self.evaluator, self.config, suite)

        if resume_from:
            self._restore(resume_from)
        else:
            self.templates = [as_template(seed) for seed in seeds]
            self._validate_run()
            self.run_id = f"run_{datetime.now().strftime('%Y%m%d_%H%M%S')}"
        self.mutation_logger.set_run_id(self.run_id)
        self._log_run_settings()

        try:
            while self.state != OptimizerState.CONVERGED:
                if self.cancel_token.is_cancelled:
                    logger.warning(f"Cancelled during {self.state.value}")
                    self._converge(TerminationReason.CANCELLED)
                    break
                await self._phases[self.state]()
        except GEPAError as e:
            logger.error(f"Run failed during {self.state.value}: {e}")
            e.partial_result = self._build_result(TerminationReason.FAILED)
            raise

        result = self._build_result(self.termination_reason)
        self.result_builder.log_result(result)
        return result

    def _reset(self) -> None:
        self.rng.seed(self.config.seed)
        self.store = CandidateStore()
        self.diversity.low_streak = 0
        self.state = OptimizerState.SEEDING
        self.run_id = "run"
        self.templates: List[PromptTemplate] = []
        self.population: Optional[Population] = None
        self.ranked_members: List[Candidate] = []
        self.ranking: Optional[ParetoFront] = None
        self.traces: List[ExecutionTrace] = []
        self.insights: List[Insight] = []
        self.injected: List[Candidate] = []
        self.replaced: List[str] = []
        self.history: List[GenerationSummary] = []
        self.best_primary: Optional[float] = None
        self.stale_generations = 0
        self.dispatched = 0
        self.failed = 0
        self.termination_reason = TerminationReason.MAX_GENERATIONS

    def _validate_run(self) -> None:
        """Checks that depend on call arguments; run before seeding."""
        if len(self.templates) > self.config.population_size:
            raise ConfigurationError(
                f"{len(self.templates)} seed templates exceed population_size "
                f"{self.config.population_size}"
            )
        if any(len(template) == 0 for template in self.templates):
            raise ConfigurationError("Seed templates must not be empty")

    def _transition(self, target: OptimizerState) -> None:
        logger.info(f"{self.state.value} -> {target.value}")
        self.state = target

    def _converge(self, reason: TerminationReason) -> None:
        self.termination_reason = reason
        self._transition(OptimizerState.CONVERGED)

    async def _seeding(self) -> None:
        members = self.seeder.seed_population(self.templates, self.config.population_size)
        self._replace_population(Population(generation=0, members=tuple(members)))
        self._transition(OptimizerState.EVALUATING)

    async def _evaluating(self) -> None:
        population = self.population
        if self.config.reevaluate_survivors:
            pending = list(population.members)
        else:
            pending = population.unevaluated()
        logger.info(
            f"Generation {population.generation}: evaluating {len(pending)} candidates "
            f"with {self.config.worker_count} workers"
        )

        records, cancelled = await self.dispatcher.evaluate_all(pending, self.cancel_token)
        by_id = {record.candidate_id: record for record in records}
        members: List[Candidate] = []
        traces: List[ExecutionTrace] = []
        for candidate in population.members:
            record = by_id.get(candidate.id)
            if record is None:
                members.append(candidate)
                continue
            evaluated, trace = self._attach(candidate, record)
            members.append(evaluated)
            traces.append(trace)

        self.dispatched = len(records)
        self.failed = sum(1 for record in records if record.failed)
        self.traces = traces
        self._replace_population(population.with_members(members))

        if cancelled:
            self._converge(TerminationReason.CANCELLED)
            return

        if self.dispatched and self.failed / self.dispatched > self.config.storm_threshold:
            raise EvaluationStormError(
                f"{self.failed}/{self.dispatched} evaluations failed in generation "
                f"{population.generation} (threshold {self.config.storm_threshold:.0%})",
                generation=population.generation,
                failed=self.failed,
                dispatched=self.dispatched,
            )
        self._transition(OptimizerState.REFLECTING)

    def _attach(self, candidate: Candidate, record: EvaluationRecord):
        """Candidate with fitness attached, plus its trace stamped with the id."""
        if record.failed:
            fitness = FitnessVector.worst(self.config.objectives)
            trace = ExecutionTrace(
                candidate_id=candidate.id,
                evaluation_error=record.error.tag,
                failure_excerpts=[str(record.error)],
            )
            return candidate.with_fitness(fitness), trace

        fitness = record.outcome.fitness
        self._check_schema(candidate, fitness)
        trace = record.outcome.trace.model_copy(update={"candidate_id": candidate.id})
        return candidate.with_fitness(fitness), trace

    def _check_schema(self, candidate: Candidate, fitness: FitnessVector) -> None:
        expected = {o.name: o.direction for o in self.config.objectives}
        if fitness.directions != expected or set(fitness.values) != set(expected):
            raise SchemaMismatch(
                f"Evaluator returned objectives {fitness.objective_names} for "
                f"{candidate.id}; run objectives are {tuple(sorted(expected))}"
            )

    async def _reflecting(self) -> None:
        self.insights = self.reflector.reflect(self.traces, evaluated_count=self.population.size)
        logger.info(
            f"Reflection: {len(self.insights)} insights from {len(self.traces)} traces"
        )
        self._transition(OptimizerState.RANKING)

    async def _ranking(self) -> None:
        population = self.population
        ranking = self.ranker.rank(population.members)
        diversity = self.diversity.score(population.members)

        self.injected, self.replaced = [], []
        if self.diversity.observe(diversity):
            protected = {c.id for c in self.evolution_engine.elites(population.members, ranking)}
            self.replaced = self.diversity.select_victims(ranking, protected)
            self.injected = self.seeder.spawn(
                self.templates, len(self.replaced), population.generation + 1
            )
            if self.injected:
                logger.info(
                    f"Diversity injection: replacing {len(self.replaced)} candidates "
                    f"of generation {population.generation}"
                )

        self.ranking = ranking
        self.ranked_members = list(population.members)
        self._track_stagnation(ranking)
        self._emit_summary(population, ranking, diversity)
        self._transition(OptimizerState.REPRODUCING)

    def _track_stagnation(self, ranking: ParetoFront) -> None:
        primary = self.config.primary
        front0 = [c for c in self.ranked_members if c.id in ranking.front0]
        best = self.ranker.best_value(front0, primary)
        if self.best_primary is None or primary.improvement(best, self.best_primary) > self.config.convergence_epsilon:
            self.best_primary = best
            self.stale_generations = 0
        else:
            self.stale_generations += 1
        logger.debug(
            f"Best {primary.name}={self.best_primary}, stale for {self.stale_generations} generations"
        )

    def _emit_summary(self, population: Population, ranking: ParetoFront, diversity: float) -> None:
        front0 = [c for c in population.members if c.id in ranking.front0]
        best = {
            objective.name: self.ranker.best_value(front0, objective)
            for objective in self.config.objectives
        }
        summary = GenerationSummary(
            generation=population.generation,
            front0_size=len(ranking.front0),
            best={name: value for name, value in best.items() if math.isfinite(value)},
            diversity=diversity,
            evaluated=self.dispatched,
            failed=self.failed,
            insights=len(self.insights),
            injected_ids=[c.id for c in self.injected],
            follows_injection=bool(self.history and self.history[-1].injected_ids),
        )
        self.history.append(summary)
        for callback in self.progress_callbacks:
            try:
                callback(summary)
            except Exception as e:
                logger.warning(f"Progress callback {callback!r} failed: {e}")

    async def _reproducing(self) -> None:
        reason = self._check_termination()
        if reason is not None:
            self._converge(reason)
            return
        population = self.evolution_engine.next_generation(
            self.population,
            self.ranking,
            self.insights,
            injected=self.injected,
            replaced=self.replaced,
        )
        if population.size != self.config.population_size:
            raise GEPAError(
                f"Generation {population.generation} has {population.size} members, "
                f"expected {self.config.population_size}"
            )
        self._replace_population(population)
        self._transition(OptimizerState.EVALUATING)

    def _check_termination(self) -> Optional[TerminationReason]:
        generation = self.population.generation
        if generation + 1 >= self.config.max_generations:
            logger.info(f"Reached max generations ({self.config.max_generations})")
            return TerminationReason.MAX_GENERATIONS
        if self.stale_generations >= self.config.stagnation_window:
            logger.info(
                f"No {self.config.primary_objective} improvement above "
                f"{self.config.convergence_epsilon} for {self.stale_generations} generations"
            )
            return TerminationReason.STAGNATION
        return None

    def _replace_population(self, population: Population) -> None:
        self.store.replace_generation(population)
        self.population = population
        if population.unevaluated():
            self._save_state()

    def _save_state(self) -> None:
        self.state_manager.save_state(
            run_id=self.run_id,
            population=self.population,
            templates=self.templates,
            history=self.history,
            counters={
                "best_primary": self.best_primary,
                "stale_generations": self.stale_generations,
                "low_streak": self.diversity.low_streak,
            },
            rng=self.rng,
        )

    def _restore(self, resume_from: str) -> None:
        """Continue a run from a generation-boundary snapshot."""
        state_path = self.state_manager.resolve_state_path(resume_from)
        state = self.state_manager.load_state(Path(state_path))
        self.run_id = state["run_id"]
        self.templates = state["templates"]
        self.history = state["history"]
        self.best_primary = state["counters"]["best_primary"]
        self.stale_generations = state["counters"]["stale_generations"]
        self.diversity.low_streak = state["counters"]["low_streak"]
        self.rng.setstate(state["rng_state"])
        population = state["population"]
        if population.size != self.config.population_size:
            raise ConfigurationError(
                f"Snapshot holds {population.size} candidates, config expects "
                f"{self.config.population_size}"
            )
        self.store.replace_generation(population)
        self.population = population
        logger.info(f"Resuming {self.run_id} at generation {population.generation}")
        self._transition(OptimizerState.EVALUATING)

    def _build_result(self, reason: TerminationReason) -> OptimizationResult:
        return self.result_builder.build(
            run_id=self.run_id,
            reason=reason,
            members=self.ranked_members,
            ranking=self.ranking,
            history=self.history,
            start_time=self.start_time,
        )

    def _log_run_settings(self) -> None:
        """Log core run settings."""
        logger.info(
            f"Run {self.run_id}: population={self.config.population_size}, "
            f"max_generations={self.config.max_generations}, "
            f"objectives={[f'{o.name}:{o.direction.value}' for o in self.config.objectives]}"
        )
