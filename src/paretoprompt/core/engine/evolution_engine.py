"""Reproduction: elitism, selection, crossover and mutation."""

import random
from typing import Collection, List, Sequence

from loguru import logger

from ...models import Candidate, Insight, OptimizationConfig, ParetoFront, Population, new_candidate_id
from ..crossover import PromptCrossover
from ..io.mutation_logger import MutationLogger
from ..mutator import PromptMutator
from ..selection import ParentSelector


class EvolutionEngine:
    """Produce the next generation from a ranked population."""

    def __init__(
        self,
        config: OptimizationConfig,
        selector: ParentSelector,
        crossover: PromptCrossover,
        mutator: PromptMutator,
        mutation_logger: MutationLogger,
        rng: random.Random
    ):
        """Initialize evolution engine."""
        self.config = config
        self.selector = selector
        self.crossover = crossover
        self.mutator = mutator
        self.mutation_logger = mutation_logger
        self.rng = rng

    def elites(self, members: Sequence[Candidate], ranking: ParetoFront) -> List[Candidate]:
        """Elite set for this ranking: best primary-objective member first."""
        return self.selector.elites(members, ranking, self.config.elitism_count, self.config.primary)

    def next_generation(
        self,
        population: Population,
        ranking: ParetoFront,
        insights: Sequence[Insight],
        injected: Sequence[Candidate] = (),
        replaced: Collection[str] = ()
    ) -> Population:
        """Elites, then injected candidates, then offspring, N in total."""
        generation = population.generation + 1
        pool = [c for c in population.members if c.id not in replaced]
        elites = self.elites(pool, ranking)
        offspring_count = self.config.population_size - len(elites) - len(injected)

        offspring = [
            self._offspring(pool, ranking, insights, generation)
            for _ in range(offspring_count)
        ]
        logger.info(
            f"Generation {generation}: {len(elites)} elites + {len(injected)} injected "
            f"+ {len(offspring)} offspring"
        )
        return Population(generation=generation, members=tuple(elites + list(injected) + offspring))

    def _offspring(
        self,
        pool: Sequence[Candidate],
        ranking: ParetoFront,
        insights: Sequence[Insight],
        generation: int
    ) -> Candidate:
        parent_a = self.selector.tournament(pool, ranking)
        if self.rng.random() < self.config.crossover_rate:
            parent_b = self.selector.tournament(pool, ranking)
            content, lineage, spliced = self.crossover.crossover(parent_a, parent_b, ranking)
            operator = "crossover" if spliced else "copy"
        else:
            content, lineage, operator = parent_a.content, (parent_a.id,), "clone"

        edit_kind = insight = None
        if self.rng.random() < self.config.mutation_rate:
            content, edit_kind, insight = self.mutator.mutate(content, insights)
            operator += "+mutation"

        child = Candidate(
            id=new_candidate_id(self.rng),
            content=content,
            generation=generation,
            lineage=lineage,
            notes=operator if edit_kind is None else f"{operator}:{edit_kind.value}",
        )
        self.mutation_logger.append(child, operator, edit_kind, insight)
        return child
