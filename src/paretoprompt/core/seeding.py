"""Initial and injected candidate generation."""

import random
from typing import List, Sequence, Union

from loguru import logger

from ..models import Candidate, PromptTemplate, new_candidate_id
from .mutator import PromptMutator

MIN_RANDOM_SENTENCES = 2
MAX_RANDOM_SENTENCES = 4

INSTRUCTION_BANK = [
    "You are a careful assistant.",
    "Read the input and answer the question.",
    "Think about the task before answering.",
    "Answer with a single word when possible.",
    "Explain the answer briefly.",
    "Follow the requested output format.",
    "Use only the information provided.",
    "Identify the key facts first.",
    "Be concise and precise.",
    "If unsure, give the most likely answer.",
]

SeedTemplate = Union[str, PromptTemplate]


def as_template(seed: SeedTemplate) -> PromptTemplate:
    """Accept raw prompt text or a ready template."""
    if isinstance(seed, PromptTemplate):
        return seed
    return PromptTemplate.from_text(seed)


class SeedGenerator:
    """Builds candidates from templates, perturbed templates or pure randomization."""

    def __init__(self, mutator: PromptMutator, rng: random.Random, perturbation_strength: int = 2):
        self.mutator = mutator
        self.rng = rng
        self.perturbation_strength = perturbation_strength

    def seed_population(self, templates: Sequence[PromptTemplate], size: int) -> List[Candidate]:
        """Generation-0 candidates: templates verbatim first, perturbed copies after."""
        candidates = [
            self._candidate(template, generation=0, notes="seed template")
            for template in list(templates)[:size]
        ]
        while len(candidates) < size:
            candidates.append(
                self._candidate(self.fresh_content(templates), generation=0, notes="seed perturbation")
            )
        logger.info(
            f"Seeded {len(candidates)} candidates from {len(templates)} templates"
        )
        return candidates

    def spawn(self, templates: Sequence[PromptTemplate], count: int, generation: int) -> List[Candidate]:
        """Parentless candidates for diversity injection."""
        return [
            self._candidate(self.fresh_content(templates), generation=generation, notes="diversity injection")
            for _ in range(count)
        ]

    def fresh_content(self, templates: Sequence[PromptTemplate]) -> PromptTemplate:
        """A perturbed template, or a random one when no templates exist."""
        if templates:
            base = self.rng.choice(list(templates))
            return self.mutator.perturb(base, self.perturbation_strength)
        return self.random_template()

    def random_template(self) -> PromptTemplate:
        count = self.rng.randint(MIN_RANDOM_SENTENCES, MAX_RANDOM_SENTENCES)
        sentences = self.rng.sample(INSTRUCTION_BANK, count)
        return PromptTemplate.from_text(" ".join(sentences))

    def _candidate(self, content: PromptTemplate, generation: int, notes: str) -> Candidate:
        return Candidate(
            id=new_candidate_id(self.rng),
            content=content,
            generation=generation,
            lineage=(),
            notes=notes,
        )
