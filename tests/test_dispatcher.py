"""Tests for concurrent evaluation dispatch."""

import asyncio

import pytest
from _helpers import SCORE, make_candidate, target_evaluator

from paretoprompt.core.cancellation import CancellationToken
from paretoprompt.core.engine.dispatcher import EvaluationDispatcher
from paretoprompt.core.evaluator import FunctionEvaluator
from paretoprompt.errors import ProviderError
from paretoprompt.models import EvaluationOutcome, FitnessVector, OptimizationConfig


def _outcome(value=1.0):
    return EvaluationOutcome(fitness=FitnessVector.from_scores({"score": value}, SCORE))


@pytest.mark.asyncio
async def test_records_keep_input_order():
    dispatcher = EvaluationDispatcher(target_evaluator(), OptimizationConfig(objectives=SCORE))
    candidates = [make_candidate(text=t) for t in ["target string", "target", "x"]]
    records, cancelled = await dispatcher.evaluate_all(candidates, CancellationToken())
    assert not cancelled
    assert [r.candidate_id for r in records] == [c.id for c in candidates]
    assert [r.outcome.fitness["score"] for r in records] == [0.0, -7.0, -13.0]


@pytest.mark.asyncio
async def test_failures_become_typed_records():
    async def evaluate(content, suite):
        if "boom" in content.text:
            raise RuntimeError("backend down")
        if "slow" in content.text:
            await asyncio.sleep(5)
        return _outcome()

    config = OptimizationConfig(objectives=SCORE, evaluation_timeout=0.05)
    dispatcher = EvaluationDispatcher(FunctionEvaluator(evaluate), config)
    candidates = [make_candidate(text=t) for t in ["fine", "boom", "slow"]]
    records, _ = await dispatcher.evaluate_all(candidates, CancellationToken())

    assert not records[0].failed
    assert isinstance(records[1].error, ProviderError)
    assert "backend down" in str(records[1].error)
    assert records[2].error.tag == "timeout"


@pytest.mark.asyncio
async def test_worker_pool_bounds_concurrency():
    active = 0
    peak = 0

    async def evaluate(content, suite):
        nonlocal active, peak
        active += 1
        peak = max(peak, active)
        await asyncio.sleep(0.01)
        active -= 1
        return _outcome()

    config = OptimizationConfig(objectives=SCORE, max_workers=2, cache_evaluations=False)
    dispatcher = EvaluationDispatcher(FunctionEvaluator(evaluate), config)
    records, _ = await dispatcher.evaluate_all([make_candidate() for _ in range(6)], CancellationToken())
    assert len(records) == 6
    assert peak == 2


@pytest.mark.asyncio
async def test_cache_reuses_outcome_for_same_text():
    calls = []

    async def evaluate(content, suite):
        calls.append(content.text)
        return _outcome()

    dispatcher = EvaluationDispatcher(FunctionEvaluator(evaluate), OptimizationConfig(objectives=SCORE))
    await dispatcher.evaluate_all([make_candidate(text="same")], CancellationToken())
    records, _ = await dispatcher.evaluate_all([make_candidate(text="same")], CancellationToken())
    assert calls == ["same"]
    assert records[0].cached


@pytest.mark.asyncio
async def test_cancellation_aborts_in_flight_calls():
    token = CancellationToken()

    async def evaluate(content, suite):
        if "quick" in content.text:
            return _outcome()
        token.cancel()
        await asyncio.sleep(30)
        return _outcome()

    dispatcher = EvaluationDispatcher(FunctionEvaluator(evaluate), OptimizationConfig(objectives=SCORE))
    candidates = [make_candidate(text="quick"), make_candidate(text="hang")]
    records, cancelled = await asyncio.wait_for(dispatcher.evaluate_all(candidates, token), timeout=5)
    assert cancelled
    assert not records[0].failed
    assert records[1].error.tag == "cancelled"


@pytest.mark.asyncio
async def test_sync_function_runs_in_executor():
    def evaluate(content, suite):
        return _outcome(float(len(suite)))

    dispatcher = EvaluationDispatcher(FunctionEvaluator(evaluate), OptimizationConfig(objectives=SCORE), suite=[1, 2])
    records, _ = await dispatcher.evaluate_all([make_candidate()], CancellationToken())
    assert records[0].outcome.fitness["score"] == 2.0


@pytest.mark.asyncio
async def test_cancel_from_another_thread():
    token = CancellationToken()
    loop = asyncio.get_running_loop()
    await loop.run_in_executor(None, token.cancel_threadsafe, loop)
    await asyncio.wait_for(token.wait(), timeout=1)
    assert token.is_cancelled


def test_token_created_outside_any_loop():
    token = CancellationToken()

    async def cancel_later():
        asyncio.get_running_loop().call_later(0.01, token.cancel)
        await asyncio.wait_for(token.wait(), timeout=1)

    asyncio.run(cancel_later())
    assert token.is_cancelled

    async def already_cancelled():
        await asyncio.wait_for(token.wait(), timeout=1)

    asyncio.run(already_cancelled())


@pytest.mark.asyncio
async def test_non_outcome_result_is_provider_error():
    async def evaluate(content, suite):
        return None

    dispatcher = EvaluationDispatcher(FunctionEvaluator(evaluate), OptimizationConfig(objectives=SCORE))
    records, cancelled = await dispatcher.evaluate_all([make_candidate()], CancellationToken())
    assert not cancelled
    assert records[0].failed
    assert isinstance(records[0].error, ProviderError)
    assert "NoneType" in str(records[0].error)
