"""In-memory candidate store."""

from typing import Dict, List, Optional, Tuple

from loguru import logger

from ..errors import CandidateNotFound, DuplicateCandidate, SchemaMismatch
from ..models import Candidate, Population


class CandidateStore:
    """Holds candidates and the member list of each generation.

    The optimizer is the only writer. Every write is validated before it is
    applied, so a rejected ``replace_generation`` leaves the store untouched.
    """

    def __init__(self) -> None:
        self._candidates: Dict[str, Candidate] = {}
        self._generations: Dict[int, List[str]] = {}
        self._objectives: Optional[Tuple[str, ...]] = None

    def put(self, candidate: Candidate) -> None:
        """Insert a candidate or re-attach fitness to an existing one."""
        self._check(candidate)
        self._apply(candidate)

    def get(self, candidate_id: str) -> Candidate:
        """Fetch a candidate by id."""
        try:
            return self._candidates[candidate_id]
        except KeyError:
            raise CandidateNotFound(candidate_id) from None

    def list_generation(self, generation: int) -> List[Candidate]:
        """Members of the given generation, in population order."""
        return [self._candidates[cid] for cid in self._generations.get(generation, [])]

    def replace_generation(self, population: Population) -> None:
        """Atomically write a generation's member set."""
        for candidate in population.members:
            self._check(candidate)
        for candidate in population.members:
            self._apply(candidate)
        self._generations[population.generation] = population.ids
        logger.debug(
            f"Stored generation {population.generation}: {population.size} members"
        )

    @property
    def generations(self) -> List[int]:
        return sorted(self._generations)

    @property
    def objective_names(self) -> Optional[Tuple[str, ...]]:
        return self._objectives

    def __contains__(self, candidate_id: object) -> bool:
        return candidate_id in self._candidates

    def __len__(self) -> int:
        return len(self._candidates)

    def _check(self, candidate: Candidate) -> None:
        existing = self._candidates.get(candidate.id)
        if existing is not None and existing.content != candidate.content:
            raise DuplicateCandidate(
                f"Candidate id {candidate.id} already holds different content"
            )
        if candidate.fitness is None:
            return
        names = candidate.fitness.objective_names
        if existing is not None and existing.fitness is not None:
            if existing.fitness.objective_names != names:
                raise SchemaMismatch(
                    f"Candidate {candidate.id}: objectives {names} conflict with "
                    f"stored {existing.fitness.objective_names}"
                )
        if self._objectives is not None and self._objectives != names:
            raise SchemaMismatch(
                f"Candidate {candidate.id}: objectives {names} differ from run "
                f"objectives {self._objectives}"
            )

    def _apply(self, candidate: Candidate) -> None:
        if candidate.fitness is not None and self._objectives is None:
            self._objectives = candidate.fitness.objective_names
        existing = self._candidates.get(candidate.id)
        if existing is not None and existing.fitness is not None and candidate.fitness is None:
            candidate = candidate.with_fitness(existing.fitness)
        self._candidates[candidate.id] = candidate
