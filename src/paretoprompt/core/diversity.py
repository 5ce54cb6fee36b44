"""Population diversity tracking and stagnation recovery."""

from difflib import SequenceMatcher
from typing import Collection, List, Sequence

from loguru import logger

from ..models import Candidate, OptimizationConfig, ParetoFront

MAX_DIVERSITY = 1.0


class DiversityManager:
    """Scores structural diversity and decides when to inject fresh candidates.

    Diversity is the mean pairwise token-sequence distance
    (``1 - SequenceMatcher.ratio``) over the population, in [0, 1]. When it
    stays under ``diversity_floor`` for ``diversity_window`` consecutive
    generations an injection is requested.
    """

    def __init__(self, config: OptimizationConfig):
        """Initialize manager with floor, window and injection budget."""
        self.config = config
        self.low_streak = 0

    def score(self, candidates: Sequence[Candidate]) -> float:
        """Mean pairwise structural distance between candidate contents."""
        tokens = [candidate.content.tokens() for candidate in candidates]
        pairs = 0
        total_distance = 0.0
        for i, tokens_a in enumerate(tokens):
            for tokens_b in tokens[i + 1:]:
                total_distance += 1.0 - SequenceMatcher(None, tokens_a, tokens_b, autojunk=False).ratio()
                pairs += 1
        if pairs == 0:
            return MAX_DIVERSITY
        return total_distance / pairs

    def observe(self, diversity: float) -> bool:
        """Record one generation's score; True when an injection is due."""
        if diversity < self.config.diversity_floor:
            self.low_streak += 1
            logger.warning(
                f"Low diversity {diversity:.3f} < {self.config.diversity_floor:.3f} "
                f"({self.low_streak}/{self.config.diversity_window})"
            )
        else:
            self.low_streak = 0
        if self.low_streak >= self.config.diversity_window:
            self.low_streak = 0
            return True
        return False

    def select_victims(self, ranking: ParetoFront, protected: Collection[str]) -> List[str]:
        """Lowest-crowding members of the worst front, elites excluded.

        If the worst front has fewer eligible members than the budget, the
        next-worst front is used for the remainder.
        """
        budget = min(
            self.config.injection_budget,
            self.config.population_size - self.config.elitism_count,
        )
        victims: List[str] = []
        for front in reversed(ranking.fronts):
            eligible = sorted(
                (cid for cid in front if cid not in protected),
                key=lambda cid: (ranking.crowding[cid], cid),
            )
            for cid in eligible:
                if len(victims) >= budget:
                    return victims
                victims.append(cid)
        return victims
