"""Pareto ranking for multi-objective optimization."""

import math
from typing import Dict, List, Sequence

from loguru import logger

from ..errors import EmptyPopulation
from ..models import Candidate, Direction, Objective, ParetoFront


class ParetoRanker:
    """Non-dominated sorting and crowding distance over evaluated candidates."""

    def __init__(self, objectives: Sequence[Objective]):
        """Initialize ranker with the run objectives."""
        self.objectives = list(objectives)

    def rank(self, candidates: Sequence[Candidate]) -> ParetoFront:
        """Partition candidates into ranked fronts with crowding distances."""
        if not candidates:
            raise EmptyPopulation("Cannot rank an empty population")
        unevaluated = [c.id for c in candidates if c.fitness is None]
        if unevaluated:
            raise ValueError(f"Cannot rank unevaluated candidates: {unevaluated}")

        fronts = self.non_dominated_sort(candidates)
        ranks: Dict[str, int] = {}
        crowding: Dict[str, float] = {}
        for index, front in enumerate(fronts):
            for candidate in front:
                ranks[candidate.id] = index
            crowding.update(self.crowding_distance(front))

        logger.debug(
            f"Ranked {len(candidates)} candidates into {len(fronts)} fronts "
            f"(front 0: {len(fronts[0])})"
        )
        return ParetoFront(
            fronts=tuple(tuple(sorted(c.id for c in front)) for front in fronts),
            ranks=ranks,
            crowding=crowding,
        )

    def non_dominated_sort(self, candidates: Sequence[Candidate]) -> List[List[Candidate]]:
        """Peel successive non-dominated subsets off the pool.

        Uses domination counts so each pair is compared once.
        """
        count = len(candidates)
        dominated_by: List[List[int]] = [[] for _ in range(count)]
        domination_count = [0] * count

        for i in range(count):
            for j in range(i + 1, count):
                if candidates[i].dominates(candidates[j]):
                    dominated_by[i].append(j)
                    domination_count[j] += 1
                elif candidates[j].dominates(candidates[i]):
                    dominated_by[j].append(i)
                    domination_count[i] += 1

        fronts: List[List[Candidate]] = []
        current = [i for i in range(count) if domination_count[i] == 0]
        while current:
            fronts.append([candidates[i] for i in current])
            following: List[int] = []
            for i in current:
                for j in dominated_by[i]:
                    domination_count[j] -= 1
                    if domination_count[j] == 0:
                        following.append(j)
            current = sorted(following)
        return fronts

    def crowding_distance(self, front: Sequence[Candidate]) -> Dict[str, float]:
        """Normalized neighbour gaps per objective; boundary members get infinity."""
        distances = {candidate.id: 0.0 for candidate in front}
        if len(front) <= 2:
            return {cid: math.inf for cid in distances}

        for objective in self.objectives:
            ordered = sorted(front, key=lambda c: (c.fitness[objective.name], c.id))
            low = ordered[0].fitness[objective.name]
            high = ordered[-1].fitness[objective.name]
            distances[ordered[0].id] = math.inf
            distances[ordered[-1].id] = math.inf
            span = high - low
            if not math.isfinite(span) or span <= 0:
                continue
            for k in range(1, len(ordered) - 1):
                gap = ordered[k + 1].fitness[objective.name] - ordered[k - 1].fitness[objective.name]
                distances[ordered[k].id] += gap / span
        return distances

    def best_value(self, candidates: Sequence[Candidate], objective: Objective) -> float:
        """Best finite value of one objective among successfully evaluated candidates."""
        values = [
            c.fitness[objective.name]
            for c in candidates
            if c.fitness is not None and not c.fitness.failed
        ]
        if not values:
            return objective.worst_value()
        return max(values) if objective.direction == Direction.MAXIMIZE else min(values)
