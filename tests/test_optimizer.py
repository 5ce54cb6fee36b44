"""End-to-end tests for the optimizer state machine."""

import asyncio

import pytest
from _helpers import SCORE, length_evaluator, target_evaluator, timeout_evaluator

from paretoprompt import ProgressTracker
from paretoprompt.core.cancellation import CancellationToken
from paretoprompt.core.engine.optimizer import GEPAOptimizer
from paretoprompt.core.evaluator import FunctionEvaluator
from paretoprompt.errors import ConfigurationError, EvaluationStormError, ProviderError, SchemaMismatch
from paretoprompt.models import (
    Direction,
    EvaluationOutcome,
    FitnessVector,
    Objective,
    OptimizationConfig,
    PromptTemplate,
    TerminationReason,
)

NEAR_MISSES = (
    [PromptTemplate.from_segments(["target ", "strang"])] * 5
    + [PromptTemplate.from_segments(["targit ", "string"])] * 5
)


def _config(**overrides):
    settings = {"objectives": SCORE, "seed": 11, "evaluation_timeout": 5.0}
    settings.update(overrides)
    return OptimizationConfig(**settings)


def _optimizer(evaluator, config, quiet_console, **kwargs):
    return GEPAOptimizer(evaluator, config, console=quiet_console, **kwargs)


@pytest.mark.asyncio
async def test_converges_on_target_string(quiet_console):
    config = _config(max_generations=50, convergence_epsilon=0.01, stagnation_window=5)
    result = await _optimizer(target_evaluator(), config, quiet_console).arun(seeds=NEAR_MISSES)

    assert result.termination_reason == TerminationReason.STAGNATION
    assert result.generation < 50
    assert result.front0[0].fitness["score"] >= -0.01
    assert result.front0[0].text == "target string"


@pytest.mark.asyncio
async def test_evaluation_storm_is_fatal(quiet_console):
    calls = []

    def on_generation(summary):
        calls.append(summary)

    optimizer = _optimizer(timeout_evaluator(), _config(storm_threshold=0.5), quiet_console,
                           progress_callbacks=[on_generation])
    with pytest.raises(EvaluationStormError) as exc_info:
        await optimizer.arun(seeds=["Answer the question."])

    error = exc_info.value
    assert (error.generation, error.failed, error.dispatched) == (0, 10, 10)
    assert error.partial_result.termination_reason == TerminationReason.FAILED
    assert not error.partial_result.has_result
    assert calls == []


@pytest.mark.asyncio
async def test_isolated_failures_rank_last(quiet_console):
    async def evaluate(content, suite):
        if "bad" in content.text:
            raise ProviderError("quota exceeded")
        return EvaluationOutcome(fitness=FitnessVector.from_scores({"score": -len(content.text)}, SCORE))

    seeds = [f"Answer question {i}." for i in range(9)] + ["bad prompt"]
    optimizer = _optimizer(FunctionEvaluator(evaluate), _config(max_generations=1), quiet_console)
    result = await optimizer.arun(seeds=seeds)

    assert result.termination_reason == TerminationReason.MAX_GENERATIONS
    assert result.history[0].failed == 1
    assert "bad prompt" not in [c.text for c in result.front0]
    failed = [c for c in optimizer.store.list_generation(0) if c.text == "bad prompt"]
    assert failed[0].fitness.failed


@pytest.mark.asyncio
async def test_diversity_injection_replaces_worst_members(quiet_console):
    config = _config(diversity_floor=0.1, diversity_window=1, stagnation_window=1, max_generations=3)
    optimizer = _optimizer(length_evaluator(), config, quiet_console)
    result = await optimizer.arun(seeds=["Answer the question."] * 10)

    first = result.history[0]
    assert first.diversity == 0.0
    generation1 = optimizer.store.list_generation(1)
    injected = [c for c in generation1 if c.generation == 1 and c.lineage == ()]
    assert 1 <= len(injected) <= 2
    assert sorted(c.id for c in injected) == sorted(first.injected_ids)
    assert all(c.notes == "diversity injection" for c in injected)
    assert result.history[1].follows_injection


@pytest.mark.asyncio
async def test_fixed_seed_is_deterministic(quiet_console):
    config = _config(max_generations=6)
    seeds = ["Classify the text. Answer yes or no.", "Read the input carefully. Give one word."]

    first = await _optimizer(length_evaluator(), config, quiet_console).arun(seeds=seeds)
    second = await _optimizer(length_evaluator(), config, quiet_console).arun(seeds=seeds)
    assert [c.model_dump_json() for c in first.front0] == [c.model_dump_json() for c in second.front0]
    assert [h.model_dump_json() for h in first.history] == [h.model_dump_json() for h in second.history]

    reused = _optimizer(length_evaluator(), config, quiet_console)
    await reused.arun(seeds=seeds)
    again = await reused.arun(seeds=seeds)
    assert [c.model_dump_json() for c in again.front0] == [c.model_dump_json() for c in first.front0]


@pytest.mark.asyncio
async def test_population_size_is_constant(quiet_console):
    config = _config(population_size=7, elitism_count=2, max_generations=5)
    optimizer = _optimizer(target_evaluator(), config, quiet_console)
    await optimizer.arun(seeds=["target", "string"])
    assert optimizer.store.generations == list(range(len(optimizer.store.generations)))
    for generation in optimizer.store.generations:
        members = optimizer.store.list_generation(generation)
        assert len(members) == 7
        assert len({c.id for c in members}) == 7


@pytest.mark.asyncio
async def test_elitism_never_regresses_primary_objective(quiet_console):
    config = _config(max_generations=12, stagnation_window=12, mutation_rate=0.9)
    result = await _optimizer(target_evaluator(), config, quiet_console).arun(seeds=["a target", "strings"])
    for previous, current in zip(result.history, result.history[1:]):
        if not current.follows_injection:
            assert current.best["score"] >= previous.best["score"]


@pytest.mark.asyncio
async def test_multi_objective_front(quiet_console):
    objectives = [
        Objective(name="score", direction=Direction.MAXIMIZE),
        Objective(name="cost", direction=Direction.MINIMIZE),
    ]

    def evaluate(content, suite):
        words = len(content.tokens())
        return EvaluationOutcome(
            fitness=FitnessVector.from_scores({"score": min(words, 12), "cost": len(content.text)}, objectives),
        )

    config = _config(objectives=objectives, max_generations=4)
    result = await _optimizer(FunctionEvaluator(evaluate), config, quiet_console).arun()
    assert result.has_result
    for a in result.front0:
        assert not any(b.dominates(a) for b in result.front0)
    assert result.front0[0].fitness["score"] == max(c.fitness["score"] for c in result.front0)


@pytest.mark.asyncio
async def test_cancel_before_start_returns_no_result(quiet_console):
    token = CancellationToken()
    token.cancel()
    result = await _optimizer(target_evaluator(), _config(), quiet_console).arun(
        seeds=["x"], cancel_token=token
    )
    assert result.termination_reason == TerminationReason.CANCELLED
    assert not result.has_result
    assert result.generation is None


@pytest.mark.asyncio
async def test_cancel_between_generations_keeps_last_front(quiet_console):
    token = CancellationToken()
    optimizer = _optimizer(target_evaluator(), _config(), quiet_console,
                           progress_callbacks=[lambda summary: token.cancel()])
    result = await optimizer.arun(seeds=["target"], cancel_token=token)
    assert result.termination_reason == TerminationReason.CANCELLED
    assert result.generation == 0
    assert result.has_result


@pytest.mark.asyncio
async def test_cancel_during_evaluation_aborts_calls(quiet_console):
    token = CancellationToken()
    armed = []

    async def evaluate(content, suite):
        if armed:
            token.cancel()
            await asyncio.sleep(30)
        return EvaluationOutcome(fitness=FitnessVector.from_scores({"score": len(content.text)}, SCORE))

    optimizer = _optimizer(FunctionEvaluator(evaluate), _config(cache_evaluations=False), quiet_console,
                           progress_callbacks=[lambda summary: armed.append(summary.generation)])
    result = await asyncio.wait_for(optimizer.arun(seeds=["Answer."], cancel_token=token), timeout=10)
    assert result.termination_reason == TerminationReason.CANCELLED
    assert result.generation == 0
    assert len(result.history) == 1


@pytest.mark.asyncio
async def test_schema_mismatch_is_fatal(quiet_console):
    other = [Objective(name="other")]

    def evaluate(content, suite):
        return EvaluationOutcome(fitness=FitnessVector.from_scores({"other": 1.0}, other))

    with pytest.raises(SchemaMismatch) as exc_info:
        await _optimizer(FunctionEvaluator(evaluate), _config(), quiet_console).arun()
    assert exc_info.value.partial_result.termination_reason == TerminationReason.FAILED


@pytest.mark.asyncio
async def test_too_many_seeds_rejected_before_evaluation(quiet_console):
    calls = []

    def evaluate(content, suite):
        calls.append(content)

    optimizer = _optimizer(FunctionEvaluator(evaluate), _config(population_size=3), quiet_console)
    with pytest.raises(ConfigurationError):
        await optimizer.arun(seeds=["a", "b", "c", "d"])
    assert calls == []


@pytest.mark.asyncio
async def test_failing_progress_callback_is_ignored(quiet_console):
    def broken(summary):
        raise RuntimeError("monitor offline")

    optimizer = _optimizer(target_evaluator(), _config(max_generations=2), quiet_console,
                           progress_callbacks=[broken])
    result = await optimizer.arun(seeds=["target"])
    assert result.generations_completed == 2


@pytest.mark.asyncio
async def test_resume_from_snapshot(tmp_path, quiet_console):
    config = _config(max_generations=3, stagnation_window=10, runs_dir=str(tmp_path))
    first = await _optimizer(target_evaluator(), config, quiet_console).arun(seeds=["target"])
    run_dir = tmp_path / first.run_id
    assert (run_dir / "state.json").exists()
    assert (run_dir / "mutation_log.jsonl").exists()

    longer = _config(max_generations=5, stagnation_window=10, runs_dir=str(tmp_path))
    resumed = await _optimizer(target_evaluator(), longer, quiet_console).arun(resume_from=str(run_dir))
    assert resumed.run_id == first.run_id
    assert [h.generation for h in resumed.history] == [0, 1, 2, 3, 4]
    assert resumed.front0[0].fitness["score"] >= first.front0[0].fitness["score"]


def test_blocking_entry_point_with_progress_tracker(quiet_console):
    config = _config(max_generations=2)
    with ProgressTracker(config.max_generations, config.primary_objective) as tracker:
        optimizer = _optimizer(target_evaluator(), config, quiet_console, progress_callbacks=[tracker])
        result = optimizer.optimize(seeds=["target"])
    assert result.termination_reason == TerminationReason.MAX_GENERATIONS
    assert result.generations_completed == 2
    assert result.converged


def test_blocking_entry_point_with_token_built_beforehand(quiet_console):
    token = CancellationToken()
    optimizer = _optimizer(target_evaluator(), _config(max_generations=2), quiet_console)
    result = optimizer.optimize(seeds=["target"], cancel_token=token)
    assert result.termination_reason == TerminationReason.MAX_GENERATIONS

    token.cancel()
    result = optimizer.optimize(seeds=["target"], cancel_token=token)
    assert result.termination_reason == TerminationReason.CANCELLED
    assert not result.has_result
