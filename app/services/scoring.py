from __future__ import annotations

from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field
from types import MappingProxyType

from app.core.config import DEFAULT_SCORE_WEIGHTS
from app.services.activity import ActivityEvent

DEFAULT_WEIGHTS: Mapping[str, int] = MappingProxyType(dict(DEFAULT_SCORE_WEIGHTS))
DEFAULT_TOP_N = 5


@dataclass(frozen=True, slots=True)
class ScoringConfig:
    weights: Mapping[str, int] = field(default_factory=lambda: DEFAULT_WEIGHTS)
    top_n: int = DEFAULT_TOP_N
    positive_only: bool = False

    def __post_init__(self) -> None:
        if self.top_n < 0:
            raise ValueError("top_n must be >= 0")
        # Freeze a private copy so callers cannot retune a run in flight.
        object.__setattr__(self, "weights", MappingProxyType(dict(self.weights)))


@dataclass(frozen=True, slots=True)
class RankedRecipe:
    recipe_id: str
    score: int


def add_event_score(scores: dict[str, int], event: ActivityEvent, weights: Mapping[str, int]) -> None:
    if not event.recipe_id:
        return
    scores[event.recipe_id] = scores.get(event.recipe_id, 0) + int(weights.get(event.type, 0))


def aggregate_scores(events: Iterable[ActivityEvent], weights: Mapping[str, int] = DEFAULT_WEIGHTS) -> dict[str, int]:
    scores: dict[str, int] = {}
    for event in events:
        add_event_score(scores, event, weights)
    return scores


def rank_scores(scores: Mapping[str, int], top_n: int, *, positive_only: bool = False) -> list[RankedRecipe]:
    """Return the top_n recipes by score, highest first.

    Equal scores keep the mapping's insertion order, i.e. the recipe seen first
    in the event stream ranks first. Negative and zero scores stay in the
    output unless positive_only is set.
    """
    if top_n < 0:
        raise ValueError("top_n must be >= 0")
    if top_n == 0:
        return []

    items = [(recipe_id, score) for recipe_id, score in scores.items() if not positive_only or score > 0]
    items.sort(key=lambda x: x[1], reverse=True)
    return [RankedRecipe(recipe_id=recipe_id, score=score) for recipe_id, score in items[:top_n]]
