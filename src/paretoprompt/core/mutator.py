"""Insight-guided prompt mutation."""

import random
import re
from typing import Callable, Dict, List, Optional, Sequence, Tuple

from loguru import logger

from ..analysis.reflector import failure_category
from ..models import EditKind, Insight, OptimizationConfig, PromptTemplate, Segment, SegmentKind

GUIDED_BASE_WEIGHT = 0.1
NOTE_PREFIX = "Note: "

PARAPHRASE_PAIRS = [
    ("classify", "categorize"),
    ("determine", "decide"),
    ("must", "should"),
    ("following", "given"),
    ("return", "output"),
    ("concise", "brief"),
    ("carefully", "attentively"),
    ("identify", "find"),
    ("explain", "describe"),
    ("text", "passage"),
    ("question", "query"),
    ("precise", "exact"),
    ("provide", "give"),
    ("correct", "accurate"),
    ("response", "reply"),
    ("only", "solely"),
]
PARAPHRASES: Dict[str, str] = {
    **{word: alternative for word, alternative in PARAPHRASE_PAIRS},
    **{alternative: word for word, alternative in PARAPHRASE_PAIRS},
}

WORD_PATTERN = re.compile(r"[A-Za-z]+")
PADDING_PATTERN = re.compile(r"^(\s*)(.*?)(\s*)$", re.DOTALL)

EditHandler = Callable[[PromptTemplate, Optional[Insight]], Optional[PromptTemplate]]


class PromptMutator:
    """Applies one template edit per mutation.

    The edit kind is drawn with weights biased toward the kinds suggested by
    the current insights; without insights every kind is equally likely. An
    edit that cannot change the template falls through to the next kind, and
    the append edits always succeed, so a mutation never returns its input.
    """

    def __init__(self, config: OptimizationConfig, rng: random.Random):
        """Initialize mutator with text banks from config and the run RNG."""
        self.config = config
        self.rng = rng
        self._handlers: Dict[EditKind, EditHandler] = {
            EditKind.REPHRASE: self._rephrase,
            EditKind.ADD_CONSTRAINT: self._add_constraint,
            EditKind.REMOVE_SECTION: self._remove_section,
            EditKind.ADD_EXAMPLE: self._add_example,
            EditKind.REORDER: self._reorder,
        }

    def mutate(
        self,
        content: PromptTemplate,
        insights: Sequence[Insight] = ()
    ) -> Tuple[PromptTemplate, EditKind, Optional[Insight]]:
        """Return a changed template, the edit applied and the insight that guided it."""
        kind, insight = self.choose_edit(insights)
        fallbacks = [k for k in EditKind if k != kind]
        for attempt in [kind] + fallbacks:
            guide = insight if attempt == kind else None
            mutated = self.apply(attempt, content, guide)
            if mutated is not None and mutated.text != content.text:
                if attempt != kind:
                    logger.debug(f"Edit {kind.value} was a no-op, fell back to {attempt.value}")
                return mutated, attempt, guide
        raise RuntimeError("No edit could change the template")

    def perturb(self, content: PromptTemplate, strength: int) -> PromptTemplate:
        """Apply several unguided mutations in a row."""
        for _ in range(strength):
            content, _, _ = self.mutate(content)
        return content

    def choose_edit(self, insights: Sequence[Insight]) -> Tuple[EditKind, Optional[Insight]]:
        """Weighted draw of an edit kind and the strongest insight backing it."""
        kinds = list(EditKind)
        if not insights:
            return self.rng.choice(kinds), None
        weights = []
        for kind in kinds:
            weight = GUIDED_BASE_WEIGHT
            weight += sum(i.confidence for i in insights if i.suggested_edit_kind == kind)
            weights.append(weight)
        kind = self.rng.choices(kinds, weights=weights, k=1)[0]
        backing = [i for i in insights if i.suggested_edit_kind == kind]
        if not backing:
            return kind, None
        return kind, max(backing, key=lambda i: (i.confidence, i.target_failure_pattern))

    def apply(
        self,
        kind: EditKind,
        content: PromptTemplate,
        insight: Optional[Insight] = None
    ) -> Optional[PromptTemplate]:
        """Run the handler for one edit kind; None means the edit does not apply."""
        return self._handlers[kind](content, insight)

    def _rephrase(self, content: PromptTemplate, insight: Optional[Insight]) -> Optional[PromptTemplate]:
        editable = _editable_indices(content)
        if not editable:
            return None
        order = list(editable)
        self.rng.shuffle(order)
        for index in order:
            paraphrased = self._paraphrase(content.segments[index].value)
            if paraphrased is not None:
                return _replace(content, index, paraphrased)

        index = self.rng.choice(editable)
        lead, core, trail = PADDING_PATTERN.match(content.segments[index].value).groups()
        if core.startswith(NOTE_PREFIX):
            core = core[len(NOTE_PREFIX):]
        else:
            core = NOTE_PREFIX + core
        return _replace(content, index, lead + core + trail)

    def _paraphrase(self, value: str) -> Optional[str]:
        matches = [m for m in WORD_PATTERN.finditer(value) if m.group(0).lower() in PARAPHRASES]
        if not matches:
            return None
        match = self.rng.choice(matches)
        word = match.group(0)
        alternative = PARAPHRASES[word.lower()]
        if word.isupper() and len(word) > 1:
            alternative = alternative.upper()
        elif word[0].isupper():
            alternative = alternative.capitalize()
        return value[:match.start()] + alternative + value[match.end():]

    def _add_constraint(self, content: PromptTemplate, insight: Optional[Insight]) -> Optional[PromptTemplate]:
        category = "default"
        if insight is not None:
            category = failure_category(insight.target_failure_pattern.split("@")[0])
        bank = self.config.constraint_bank.get(category) or self.config.constraint_bank["default"]
        return self._append(content, bank, SegmentKind.CONSTRAINT)

    def _add_example(self, content: PromptTemplate, insight: Optional[Insight]) -> Optional[PromptTemplate]:
        return self._append(content, self.config.example_bank, SegmentKind.EXAMPLE)

    def _append(self, content: PromptTemplate, bank: List[str], kind: SegmentKind) -> PromptTemplate:
        present = {segment.value.strip() for segment in content.segments}
        options = [text for text in bank if text.strip() not in present] or bank
        text = self.rng.choice(options)
        segment = Segment(kind=kind, value=_separator(content) + text)
        return PromptTemplate(segments=content.segments + (segment,))

    def _remove_section(self, content: PromptTemplate, insight: Optional[Insight]) -> Optional[PromptTemplate]:
        removable = _editable_indices(content)
        if len(content) < 2 or not removable:
            return None
        scores = {index: _unique_token_count(content, index) for index in removable}
        lowest = min(scores.values())
        index = self.rng.choice([i for i in removable if scores[i] == lowest])
        segments = content.segments[:index] + content.segments[index + 1:]
        return PromptTemplate(segments=segments)

    def _reorder(self, content: PromptTemplate, insight: Optional[Insight]) -> Optional[PromptTemplate]:
        segments = content.segments
        pairs = [
            (i, j)
            for i in range(len(segments))
            for j in range(i + 1, len(segments))
            if segments[i].value.strip() != segments[j].value.strip()
        ]
        if not pairs:
            return None
        i, j = self.rng.choice(pairs)
        return _swap(content, i, j)


def _editable_indices(content: PromptTemplate) -> List[int]:
    return [
        index for index, segment in enumerate(content.segments)
        if not segment.is_variable and segment.value.strip()
    ]


def _replace(content: PromptTemplate, index: int, value: str) -> PromptTemplate:
    segment = content.segments[index].model_copy(update={"value": value})
    segments = content.segments[:index] + (segment,) + content.segments[index + 1:]
    return PromptTemplate(segments=segments)


def _swap(content: PromptTemplate, i: int, j: int) -> PromptTemplate:
    """Swap two segments while leaving surrounding whitespace in place.

    Variable slots move whole; padding around the slot they move into is
    kept as separate text segments.
    """
    first, second = content.segments[i], content.segments[j]
    segments: List[Segment] = []
    for position, segment in enumerate(content.segments):
        if position == i:
            segments.extend(_moved_into(first, second))
        elif position == j:
            segments.extend(_moved_into(second, first))
        else:
            segments.append(segment)
    return PromptTemplate(segments=tuple(segments))


def _moved_into(slot: Segment, incoming: Segment) -> List[Segment]:
    lead, _, trail = PADDING_PATTERN.match(slot.value).groups()
    core = PADDING_PATTERN.match(incoming.value).group(2)
    if not incoming.is_variable:
        return [Segment(kind=incoming.kind, value=lead + core + trail)]
    placed = [Segment(value=lead)] if lead else []
    placed.append(incoming)
    if trail:
        placed.append(Segment(value=trail))
    return placed


def _separator(content: PromptTemplate) -> str:
    text = content.text
    if not text or text[-1].isspace():
        return ""
    return "\n" if "\n" in text else " "


def _unique_token_count(content: PromptTemplate, index: int) -> int:
    own = set(WORD_PATTERN.findall(content.segments[index].value.lower()))
    others = set()
    for position, segment in enumerate(content.segments):
        if position != index:
            others.update(WORD_PATTERN.findall(segment.value.lower()))
    return len(own - others)
