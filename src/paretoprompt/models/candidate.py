"""Prompt candidate model for evolutionary optimization."""

import random
import re
import uuid
from enum import Enum
from typing import Iterable, List, Mapping, Optional, Tuple, Union

from pydantic import BaseModel, ConfigDict, Field

from .fitness import FitnessVector

VARIABLE_PATTERN = re.compile(r"\{([A-Za-z_][A-Za-z0-9_]*)\}")
SEGMENT_BREAK_PATTERN = re.compile(r"[.!?]+\s+|\n\s*")
TOKEN_PATTERN = re.compile(r"\w+|[^\w\s]")


class SegmentKind(str, Enum):
    """Role of a template segment."""

    TEXT = "text"
    VARIABLE = "variable"
    CONSTRAINT = "constraint"
    EXAMPLE = "example"


class Segment(BaseModel):
    """One piece of a prompt template, whitespace included."""

    model_config = ConfigDict(frozen=True)

    kind: SegmentKind = SegmentKind.TEXT
    value: str

    @classmethod
    def variable(cls, name: str) -> "Segment":
        return cls(kind=SegmentKind.VARIABLE, value="{" + name + "}")

    @property
    def is_variable(self) -> bool:
        return self.kind == SegmentKind.VARIABLE

    @property
    def name(self) -> Optional[str]:
        """Slot name for variable segments."""
        if not self.is_variable:
            return None
        return self.value.strip("{}")


class PromptTemplate(BaseModel):
    """Ordered sequence of text and variable-slot segments.

    Concatenating the segment values reproduces the prompt text exactly, so
    ``PromptTemplate.from_text(t).text == t`` for any input.
    """

    model_config = ConfigDict(frozen=True)

    segments: Tuple[Segment, ...] = ()

    @classmethod
    def from_text(cls, text: str) -> "PromptTemplate":
        """Split text into sentence/line segments and variable slots."""
        segments: List[Segment] = []
        position = 0
        for match in VARIABLE_PATTERN.finditer(text):
            segments.extend(_split_text(text[position:match.start()]))
            segments.append(Segment.variable(match.group(1)))
            position = match.end()
        segments.extend(_split_text(text[position:]))
        return cls(segments=tuple(segments))

    @classmethod
    def from_segments(cls, parts: Iterable[Union[str, Segment]]) -> "PromptTemplate":
        """Build a template from raw segment values or segments."""
        segments = []
        for part in parts:
            if isinstance(part, Segment):
                segments.append(part)
            elif VARIABLE_PATTERN.fullmatch(part):
                segments.append(Segment.variable(part.strip("{}")))
            else:
                segments.append(Segment(value=part))
        return cls(segments=tuple(segments))

    @property
    def text(self) -> str:
        return "".join(segment.value for segment in self.segments)

    @property
    def variables(self) -> Tuple[str, ...]:
        return tuple(s.name for s in self.segments if s.is_variable)

    def render(self, variables: Mapping[str, object]) -> str:
        """Substitute variable slots with values from the mapping."""
        parts = []
        for segment in self.segments:
            if segment.is_variable:
                parts.append(str(variables[segment.name]))
            else:
                parts.append(segment.value)
        return "".join(parts)

    def tokens(self) -> List[str]:
        """Lowercased word/punctuation tokens used for structural distance."""
        return TOKEN_PATTERN.findall(self.text.lower())

    def __len__(self) -> int:
        return len(self.segments)


def _split_text(chunk: str) -> List[Segment]:
    pieces = []
    start = 0
    for match in SEGMENT_BREAK_PATTERN.finditer(chunk):
        if match.end() > start:
            pieces.append(chunk[start:match.end()])
            start = match.end()
    if start < len(chunk):
        pieces.append(chunk[start:])
    return [Segment(value=piece) for piece in pieces]


class Candidate(BaseModel):
    """Prompt candidate in evolutionary population.

    Candidates are immutable; attaching a fitness vector returns a copy with
    the same id.
    """

    model_config = ConfigDict(frozen=True)

    id: str
    content: PromptTemplate
    generation: int = Field(ge=0, description="Generation the candidate was created in")
    lineage: Tuple[str, ...] = Field(default=(), max_length=2)
    fitness: Optional[FitnessVector] = None
    notes: Optional[str] = None

    @property
    def is_evaluated(self) -> bool:
        return self.fitness is not None

    @property
    def text(self) -> str:
        return self.content.text

    def with_fitness(self, fitness: FitnessVector) -> "Candidate":
        """Return this candidate with a (re)attached fitness vector."""
        return self.model_copy(update={"fitness": fitness})

    def dominates(self, other: "Candidate") -> bool:
        """Check if this candidate Pareto-dominates another candidate."""
        if self.fitness is None or other.fitness is None:
            return False
        return self.fitness.dominates(other.fitness)

    def __str__(self) -> str:
        return f"Candidate({self.id[:8]}, gen={self.generation}, {self.fitness or 'unevaluated'})"


def new_candidate_id(rng: random.Random) -> str:
    """UUID4-formatted id drawn from the run RNG, reproducible under a fixed seed."""
    return str(uuid.UUID(int=rng.getrandbits(128), version=4))
