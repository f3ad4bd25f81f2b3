from __future__ import annotations

from pydantic import BaseModel


class RecommendationOut(BaseModel):
    recipe_id: str
    score: int
    rank: int
    generated_at: str
