import random

import pytest

from app.services.scoring import DEFAULT_WEIGHTS, RankedRecipe, ScoringConfig, aggregate_scores, rank_scores
from conftest import ev


def _pairs(ranked: list[RankedRecipe]) -> list[tuple[str, int]]:
    return [(r.recipe_id, r.score) for r in ranked]


def test_repeated_saves_and_search() -> None:
    scores = aggregate_scores([ev("save", "r1"), ev("save", "r1"), ev("search", "r2")])
    assert scores == {"r1": 6, "r2": 2}
    assert _pairs(rank_scores(scores, 5)) == [("r1", 6), ("r2", 2)]


def test_remove_cancels_save() -> None:
    scores = aggregate_scores([ev("remove", "r1"), ev("save", "r1")])
    assert scores == {"r1": 0}
    assert _pairs(rank_scores(scores, 5)) == [("r1", 0)]


def test_no_activity() -> None:
    assert aggregate_scores([]) == {}
    assert rank_scores({}, 5) == []


def test_query_only_search_is_ignored() -> None:
    scores = aggregate_scores([ev("ai_search", None, query="pasta"), ev("search", "", query="soup")])
    assert scores == {}
    assert rank_scores(scores, 5) == []


def test_unknown_types_score_zero() -> None:
    scores = aggregate_scores([ev("share", "r1"), ev("viewed", "r2"), ev("share", "r1")])
    assert scores == {"r1": 0, "r2": 0}


def test_default_weights() -> None:
    assert dict(DEFAULT_WEIGHTS) == {"save": 3, "remove": -3, "search": 2, "ai_search": 1}
    with pytest.raises(TypeError):
        DEFAULT_WEIGHTS["save"] = 10  # type: ignore[index]


def test_custom_weights() -> None:
    events = [ev("save", "r1"), ev("ai_search", "r2"), ev("ai_search", "r2")]
    assert aggregate_scores(events, {"save": 1, "ai_search": 5}) == {"r1": 1, "r2": 10}


def test_aggregation_ignores_event_order() -> None:
    types = ["save", "remove", "search", "ai_search", "bogus"]
    rng = random.Random(1234)
    events = [ev(rng.choice(types), rng.choice(["a", "b", "c", "d", None])) for _ in range(60)]
    expected = aggregate_scores(events)
    for _ in range(25):
        shuffled = list(events)
        rng.shuffle(shuffled)
        assert aggregate_scores(shuffled) == expected


def test_rank_length_and_order() -> None:
    rng = random.Random(99)
    for size in range(0, 9):
        scores = {f"r{i}": rng.randint(-6, 9) for i in range(size)}
        for top_n in range(0, 11):
            ranked = rank_scores(scores, top_n)
            assert len(ranked) == min(top_n, len(scores))
            for a, b in zip(ranked, ranked[1:]):
                assert a.score >= b.score


def test_ties_keep_first_seen_order() -> None:
    scores = aggregate_scores([ev("search", "b"), ev("search", "a"), ev("save", "c"), ev("search", "d")])
    assert _pairs(rank_scores(scores, 5)) == [("c", 3), ("b", 2), ("a", 2), ("d", 2)]
    assert _pairs(rank_scores(scores, 2)) == [("c", 3), ("b", 2)]


def test_negative_scores_are_kept_unless_positive_only() -> None:
    scores = {"r1": -3, "r2": 2, "r3": 0}
    assert _pairs(rank_scores(scores, 5)) == [("r2", 2), ("r3", 0), ("r1", -3)]
    assert _pairs(rank_scores(scores, 5, positive_only=True)) == [("r2", 2)]


def test_rank_rejects_negative_top_n() -> None:
    with pytest.raises(ValueError):
        rank_scores({"r1": 1}, -1)


def test_scoring_config_copies_weights() -> None:
    weights = {"save": 4}
    config = ScoringConfig(weights=weights, top_n=2)
    weights["save"] = 100
    assert config.weights["save"] == 4
    with pytest.raises(ValueError):
        ScoringConfig(top_n=-1)
