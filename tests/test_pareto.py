"""Tests for non-dominated sorting and crowding distance."""

import math
import random

import pytest
from _helpers import ACC_COST, make_candidate

from paretoprompt.core.pareto import ParetoRanker
from paretoprompt.errors import EmptyPopulation


def _random_population(rng, size):
    return [
        make_candidate(
            {"accuracy": rng.choice([0.1, 0.3, 0.5, 0.7, 0.9]), "cost": rng.choice([1, 2, 3, 4, 5])},
            candidate_id=f"p{i:02d}",
        )
        for i in range(size)
    ]


def test_rank_simple_fronts():
    a = make_candidate({"accuracy": 0.9, "cost": 5}, candidate_id="a")
    b = make_candidate({"accuracy": 0.5, "cost": 1}, candidate_id="b")
    c = make_candidate({"accuracy": 0.4, "cost": 6}, candidate_id="c")
    ranking = ParetoRanker(ACC_COST).rank([a, b, c])
    assert ranking.fronts == (("a", "b"), ("c",))
    assert ranking.ranks == {"a": 0, "b": 0, "c": 1}


@pytest.mark.parametrize("seed", range(5))
def test_fronts_are_correct(seed):
    rng = random.Random(seed)
    candidates = _random_population(rng, 25)
    by_id = {c.id: c for c in candidates}
    ranking = ParetoRanker(ACC_COST).rank(candidates)

    assert sorted(ranking.ranks) == sorted(by_id)
    for front in ranking.fronts:
        for x in front:
            for y in front:
                assert not by_id[x].dominates(by_id[y])
    for earlier, later in zip(ranking.fronts, ranking.fronts[1:]):
        for y in later:
            assert any(by_id[x].dominates(by_id[y]) for x in earlier)


def test_empty_population_raises():
    with pytest.raises(EmptyPopulation):
        ParetoRanker(ACC_COST).rank([])


def test_unevaluated_candidate_rejected():
    with pytest.raises(ValueError):
        ParetoRanker(ACC_COST).rank([make_candidate()])


def test_crowding_boundaries_are_infinite():
    front = [
        make_candidate({"accuracy": 0.1, "cost": 1}, candidate_id="lo"),
        make_candidate({"accuracy": 0.5, "cost": 3}, candidate_id="mid"),
        make_candidate({"accuracy": 0.6, "cost": 4}, candidate_id="mid2"),
        make_candidate({"accuracy": 0.9, "cost": 9}, candidate_id="hi"),
    ]
    crowding = ParetoRanker(ACC_COST).crowding_distance(front)
    assert crowding["lo"] == math.inf and crowding["hi"] == math.inf
    # gaps normalized by each objective's span
    assert crowding["mid"] == pytest.approx((0.6 - 0.1) / 0.8 + (4 - 1) / 8)
    assert crowding["mid2"] == pytest.approx((0.9 - 0.5) / 0.8 + (9 - 3) / 8)


def test_small_fronts_all_infinite():
    front = [make_candidate({"accuracy": 0.1, "cost": 1}), make_candidate({"accuracy": 0.2, "cost": 2})]
    assert all(math.isinf(d) for d in ParetoRanker(ACC_COST).crowding_distance(front).values())


def test_sort_key_tie_breaks():
    a = make_candidate({"accuracy": 0.1, "cost": 1}, candidate_id="a")
    b = make_candidate({"accuracy": 0.5, "cost": 3}, candidate_id="b")
    c = make_candidate({"accuracy": 0.9, "cost": 9}, candidate_id="c")
    d = make_candidate({"accuracy": 0.05, "cost": 9}, candidate_id="d")
    ranking = ParetoRanker(ACC_COST).rank([d, c, b, a])
    # front 0 boundaries a and c tie on infinite crowding, id decides
    assert ranking.ordered() == ["a", "c", "b", "d"]
    assert ranking.better("b", "d")


def test_failed_candidates_sort_last():
    from paretoprompt.models import FitnessVector

    good = make_candidate({"accuracy": 0.0, "cost": 100}, candidate_id="good")
    failed = make_candidate(candidate_id="failed").with_fitness(FitnessVector.worst(ACC_COST))
    ranking = ParetoRanker(ACC_COST).rank([failed, good])
    assert ranking.front0 == ("good",)
    assert ranking.worst_front == ("failed",)
