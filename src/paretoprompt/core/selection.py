"""Parent selection and elitism over a Pareto ranking."""

import random
from typing import List, Optional, Sequence

from ..models import Candidate, Direction, Objective, ParetoFront


class ParentSelector:
    """Tournament selection by front rank, then crowding, then id."""

    def __init__(self, rng: random.Random, tournament_size: int = 2):
        self.rng = rng
        self.tournament_size = tournament_size

    def tournament(self, pool: Sequence[Candidate], ranking: ParetoFront) -> Candidate:
        """Sample contenders uniformly; the best-ranked one wins."""
        if not pool:
            raise ValueError("Cannot select from an empty pool")
        contenders = self.rng.sample(list(pool), min(self.tournament_size, len(pool)))
        return min(contenders, key=lambda c: ranking.sort_key(c.id))

    @staticmethod
    def elites(
        pool: Sequence[Candidate],
        ranking: ParetoFront,
        count: int,
        primary: Optional[Objective] = None
    ) -> List[Candidate]:
        """Top ``count`` candidates, copied unchanged into the next generation.

        With a primary objective, the front-0 member best on it always takes
        the first slot, even when other boundary members share its crowding.
        """
        ordered = sorted(pool, key=lambda c: ranking.sort_key(c.id))
        if primary is not None and ordered:
            champion = min(ordered, key=lambda c: (primary_sort_key(c, primary), ranking.sort_key(c.id)))
            ordered.remove(champion)
            ordered.insert(0, champion)
        return ordered[:count]


def primary_sort_key(candidate: Candidate, primary: Objective) -> float:
    value = candidate.fitness[primary.name]
    return -value if primary.direction == Direction.MAXIMIZE else value
