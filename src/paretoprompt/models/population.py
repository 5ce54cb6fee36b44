"""Population snapshots and their Pareto ranking."""

from typing import Dict, List, Tuple

from pydantic import BaseModel, ConfigDict, Field

from .candidate import Candidate


class Population(BaseModel):
    """Immutable member set of one generation."""

    model_config = ConfigDict(frozen=True)

    generation: int = Field(ge=0)
    members: Tuple[Candidate, ...]

    @property
    def size(self) -> int:
        return len(self.members)

    @property
    def ids(self) -> List[str]:
        return [candidate.id for candidate in self.members]

    def unevaluated(self) -> List[Candidate]:
        return [c for c in self.members if not c.is_evaluated]

    def with_members(self, members: List[Candidate]) -> "Population":
        """Same generation, new member tuple."""
        return Population(generation=self.generation, members=tuple(members))


class ParetoFront(BaseModel):
    """Front partition and crowding distances of one population.

    Always derived from the population's fitness vectors; never stored on its
    own. Front 0 holds the non-dominated candidates.
    """

    model_config = ConfigDict(frozen=True)

    fronts: Tuple[Tuple[str, ...], ...]
    ranks: Dict[str, int]
    crowding: Dict[str, float]

    @property
    def front0(self) -> Tuple[str, ...]:
        return self.fronts[0] if self.fronts else ()

    @property
    def worst_front(self) -> Tuple[str, ...]:
        return self.fronts[-1] if self.fronts else ()

    def sort_key(self, candidate_id: str) -> Tuple[int, float, str]:
        """Lower front first, then higher crowding, then id."""
        return (self.ranks[candidate_id], -self.crowding[candidate_id], candidate_id)

    def ordered(self) -> List[str]:
        """All ranked ids, best first."""
        return sorted(self.ranks, key=self.sort_key)

    def better(self, a: str, b: str) -> bool:
        return self.sort_key(a) < self.sort_key(b)

    def __contains__(self, candidate_id: object) -> bool:
        return candidate_id in self.ranks
