"""Single-point segment crossover between two prompt templates."""

import random
from typing import Tuple

from loguru import logger

from ..models import Candidate, ParetoFront, PromptTemplate, Segment

MIN_CROSSOVER_SEGMENTS = 2


class PromptCrossover:
    """Splice parent A's prefix with parent B's suffix."""

    def __init__(self, rng: random.Random):
        """Initialize crossover with the run RNG."""
        self.rng = rng

    def crossover(
        self,
        parent_a: Candidate,
        parent_b: Candidate,
        ranking: ParetoFront
    ) -> Tuple[PromptTemplate, Tuple[str, ...], bool]:
        """Return child content, its lineage and whether a splice happened.

        Split points are drawn independently for each parent. A parent with
        fewer than two segments has no interior split point, so the fitter
        parent is copied instead.
        """
        segments_a = parent_a.content.segments
        segments_b = parent_b.content.segments
        if len(segments_a) < MIN_CROSSOVER_SEGMENTS or len(segments_b) < MIN_CROSSOVER_SEGMENTS:
            fitter = parent_a if ranking.better(parent_a.id, parent_b.id) else parent_b
            logger.debug(f"Crossover degraded to copy of {fitter.id[:8]}")
            return fitter.content, (fitter.id,), False

        split_a = self.rng.randint(1, len(segments_a) - 1)
        split_b = self.rng.randint(1, len(segments_b) - 1)
        child = _splice(segments_a[:split_a], segments_b[split_b:])
        lineage = (parent_a.id,) if parent_a.id == parent_b.id else (parent_a.id, parent_b.id)
        return child, lineage, True


def _splice(prefix: Tuple[Segment, ...], suffix: Tuple[Segment, ...]) -> PromptTemplate:
    """Join segment runs, inserting a space where two words would fuse."""
    head, first = prefix[-1], suffix[0]
    if (
        not head.is_variable and not first.is_variable
        and head.value and first.value
        and not head.value[-1].isspace() and not first.value[0].isspace()
    ):
        first = first.model_copy(update={"value": " " + first.value})
        suffix = (first,) + suffix[1:]
    return PromptTemplate(segments=prefix + suffix)
