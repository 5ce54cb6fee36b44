"""Rule-based reflection over execution traces."""

from abc import ABC, abstractmethod
from typing import Any, Dict, Iterator, List, Optional, Sequence, Set, Tuple

from loguru import logger

from ..models import EditKind, ExecutionTrace, Insight

SHORT_INPUT_CHARS = 80
MEDIUM_INPUT_CHARS = 400
DEFAULT_MIN_OCCURRENCES = 2
DEFAULT_MAX_INSIGHTS = 5
UNTAGGED_FAILURE = "mismatch"

FAILURE_EDIT_TABLE: Dict[str, EditKind] = {
    "format": EditKind.ADD_CONSTRAINT,
    "false_positive": EditKind.ADD_CONSTRAINT,
    "missing_context": EditKind.ADD_EXAMPLE,
    "false_negative": EditKind.ADD_EXAMPLE,
    "ambiguity": EditKind.REPHRASE,
    "mismatch": EditKind.REPHRASE,
    "provider_error": EditKind.REPHRASE,
    "verbosity": EditKind.REMOVE_SECTION,
    "timeout": EditKind.REMOVE_SECTION,
    "ordering": EditKind.REORDER,
}
DEFAULT_EDIT_KIND = EditKind.REPHRASE


def failure_category(tag: str) -> str:
    """Map a free-form error tag onto a key of the edit table."""
    normalized = tag.strip().lower().replace("-", "_").replace(" ", "_")
    if normalized in FAILURE_EDIT_TABLE:
        return normalized
    for category in FAILURE_EDIT_TABLE:
        if category in normalized:
            return category
    return "other"


def input_shape(value: Any) -> str:
    """Coarse structural fingerprint of a test-case input."""
    if value is None:
        return "none"
    if isinstance(value, dict):
        return "{" + ",".join(sorted(str(key) for key in value)) + "}"
    if isinstance(value, (list, tuple)):
        return f"list[{_size_bucket(sum(len(str(item)) for item in value))}]"
    return f"text[{_size_bucket(len(str(value)))}]"


def _size_bucket(length: int) -> str:
    if length <= SHORT_INPUT_CHARS:
        return "short"
    if length <= MEDIUM_INPUT_CHARS:
        return "medium"
    return "long"


class FailureGroup:
    """Failures sharing one signature.

    Size counts traces, not failing cases: one candidate failing several
    cases the same way is still one occurrence.
    """

    def __init__(self, signature: str, category: str):
        self.signature = signature
        self.category = category
        self.trace_ids: List[str] = []
        self._traces: Set[int] = set()

    def add(self, trace_index: int, trace_id: str) -> None:
        self._traces.add(trace_index)
        if trace_id and trace_id not in self.trace_ids:
            self.trace_ids.append(trace_id)

    @property
    def size(self) -> int:
        return len(self._traces)


class BaseReflector(ABC):
    """Turns a generation's traces into mutation insights."""

    @abstractmethod
    def reflect(
        self,
        traces: Sequence[ExecutionTrace],
        evaluated_count: Optional[int] = None
    ) -> List[Insight]:
        """Derive insights; must return an empty list rather than fail."""


class Reflector(BaseReflector):
    """Groups failures by signature and maps each group to an edit kind."""

    def __init__(
        self,
        min_occurrences: int = DEFAULT_MIN_OCCURRENCES,
        max_insights: int = DEFAULT_MAX_INSIGHTS,
        edit_table: Optional[Dict[str, EditKind]] = None
    ):
        self.min_occurrences = min_occurrences
        self.max_insights = max_insights
        self.edit_table = dict(FAILURE_EDIT_TABLE)
        if edit_table:
            self.edit_table.update(edit_table)

    def reflect(
        self,
        traces: Sequence[ExecutionTrace],
        evaluated_count: Optional[int] = None
    ) -> List[Insight]:
        """Emit one insight per failure group above the occurrence threshold."""
        population = max(1, evaluated_count if evaluated_count is not None else len(traces))
        groups = self.group_failures(traces)

        insights = [
            Insight(
                target_failure_pattern=group.signature,
                suggested_edit_kind=self.edit_table.get(group.category, DEFAULT_EDIT_KIND),
                confidence=min(1.0, group.size / population),
                source_trace_ids=tuple(group.trace_ids),
            )
            for group in groups.values()
            if group.size >= self.min_occurrences
        ]
        insights.sort(key=lambda i: (-i.confidence, i.target_failure_pattern))
        insights = insights[:self.max_insights]

        if insights:
            logger.debug(
                "Insights: " + ", ".join(
                    f"{i.target_failure_pattern}->{i.suggested_edit_kind.value}({i.confidence:.2f})"
                    for i in insights
                )
            )
        else:
            logger.debug(f"No failure group reached {self.min_occurrences} traces")
        return insights

    def group_failures(self, traces: Sequence[ExecutionTrace]) -> Dict[str, FailureGroup]:
        """Group failures by error tag and input shape, worst traces first."""
        groups: Dict[str, FailureGroup] = {}
        for index, trace in enumerate(self._prioritize(traces)):
            for tag, shape in self._failure_keys(trace):
                signature = f"{tag}@{shape}"
                if signature not in groups:
                    groups[signature] = FailureGroup(signature, failure_category(tag))
                groups[signature].add(index, trace.trace_id)
        return groups

    def failure_stats(self, traces: Sequence[ExecutionTrace]) -> Dict[str, int]:
        """Failure counts per category."""
        stats: Dict[str, int] = {}
        for trace in traces:
            for tag, _ in self._failure_keys(trace):
                category = failure_category(tag)
                stats[category] = stats.get(category, 0) + 1
        return stats

    def _prioritize(self, traces: Sequence[ExecutionTrace]) -> List[ExecutionTrace]:
        return sorted(traces, key=lambda t: (-t.failure_count, t.trace_id))

    def _failure_keys(self, trace: ExecutionTrace) -> Iterator[Tuple[str, str]]:
        if trace.evaluation_error:
            yield trace.evaluation_error, "evaluation"
        for case in trace.failed_cases:
            yield case.error_tag or UNTAGGED_FAILURE, input_shape(case.input)
