"""Tests for rule-based reflection."""

import pytest

from paretoprompt.analysis import Reflector, failure_category
from paretoprompt.models import EditKind, ExecutionTrace, TraceCase


def _trace(candidate_id, *tags, text="short input"):
    cases = [TraceCase(input={"text": text}, success=False, error_tag=tag) for tag in tags]
    cases.append(TraceCase(input={"text": text}, output="ok", success=True))
    return ExecutionTrace(candidate_id=candidate_id, cases=cases)


def test_repeated_format_errors_suggest_constraint():
    traces = [_trace("a", "format"), _trace("b", "format"), _trace("c", "format"), _trace("d")]
    insights = Reflector().reflect(traces, evaluated_count=10)
    assert len(insights) == 1
    insight = insights[0]
    assert insight.target_failure_pattern == "format@{text}"
    assert insight.suggested_edit_kind == EditKind.ADD_CONSTRAINT
    assert insight.confidence == pytest.approx(0.3)
    assert insight.source_trace_ids == ("a", "b", "c")


def test_missing_context_suggests_example():
    traces = [_trace("a", "missing_context"), _trace("b", "missing_context")]
    insights = Reflector().reflect(traces)
    assert insights[0].suggested_edit_kind == EditKind.ADD_EXAMPLE
    assert insights[0].confidence == 1.0


def test_repeated_cases_in_one_trace_count_once():
    traces = [_trace("a", "format", "format")]
    assert Reflector().reflect(traces, evaluated_count=10) == []
    traces = [_trace("a", "format", "format", "format"), _trace("b", "format", "format", "format")]
    insights = Reflector().reflect(traces, evaluated_count=10)
    assert insights[0].confidence == pytest.approx(0.2)
    assert insights[0].source_trace_ids == ("a", "b")


def test_below_threshold_returns_empty():
    traces = [_trace("a", "format"), _trace("b", "ambiguity")]
    assert Reflector(min_occurrences=2).reflect(traces) == []
    assert Reflector().reflect([]) == []


def test_gateway_failures_group_by_error_tag():
    traces = [ExecutionTrace(candidate_id=cid, evaluation_error="timeout") for cid in "abc"]
    insights = Reflector().reflect(traces, evaluated_count=3)
    assert [i.target_failure_pattern for i in insights] == ["timeout@evaluation"]
    assert insights[0].suggested_edit_kind == EditKind.REMOVE_SECTION


def test_input_shape_splits_groups():
    traces = [
        _trace("a", "format", text="x"),
        _trace("b", "format", text="x" * 1000),
    ]
    reflector = Reflector(min_occurrences=1)
    groups = reflector.group_failures(traces)
    assert len(groups) == 1  # dict inputs share key shape
    traces = [
        ExecutionTrace(candidate_id="a", cases=[TraceCase(input="x", success=False, error_tag="format")]),
        ExecutionTrace(candidate_id="b", cases=[TraceCase(input="x" * 1000, success=False, error_tag="format")]),
    ]
    assert sorted(reflector.group_failures(traces)) == ["format@text[long]", "format@text[short]"]


def test_insights_capped_and_ordered():
    traces = [_trace(str(i), "format", "ordering") for i in range(2)]
    traces += [_trace(str(i), "ordering", "verbosity") for i in range(2, 4)]
    insights = Reflector(max_insights=2).reflect(traces, evaluated_count=10)
    assert [i.target_failure_pattern for i in insights] == ["ordering@{text}", "format@{text}"]
    assert insights[0].confidence == pytest.approx(0.4)
    assert insights[0].suggested_edit_kind == EditKind.REORDER


def test_custom_edit_table_overrides():
    traces = [_trace("a", "format"), _trace("b", "format")]
    reflector = Reflector(edit_table={"format": EditKind.REPHRASE})
    assert reflector.reflect(traces)[0].suggested_edit_kind == EditKind.REPHRASE


def test_failure_category_normalizes():
    assert failure_category("Format-Error") == "format"
    assert failure_category("missing context") == "missing_context"
    assert failure_category("weird") == "other"


def test_failure_stats():
    traces = [_trace("a", "format", "timeout"), ExecutionTrace(candidate_id="b", evaluation_error="provider_error")]
    assert Reflector().failure_stats(traces) == {"format": 1, "timeout": 1, "provider_error": 1}
