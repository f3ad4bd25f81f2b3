from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, HTTPException

from app.api.v1.deps import as_iso
from app.core.config import settings
from app.core.errors import RecommendationError
from app.db.session import SessionLocal
from app.models.recommendation import Recommendation
from app.schemas.recommendation import RecommendationOut
from app.services.auth import AuthUser, get_current_user
from app.services.recommendation_store import SqlRecommendationStore
from app.services.recommendations import recompute_recommendations_for_user, scoring_config_from_settings

router = APIRouter(prefix="/recommendations", tags=["recommendations"])
logger = logging.getLogger(__name__)


def get_store() -> SqlRecommendationStore:
    return SqlRecommendationStore(SessionLocal, page_size=settings.reco_page_size)


def _recommendation_out(row: Recommendation) -> RecommendationOut:
    return RecommendationOut(
        recipe_id=row.recipe_id,
        score=row.score,
        rank=row.rank,
        generated_at=as_iso(row.generated_at),
    )


@router.get("", response_model=list[RecommendationOut])
async def get_recommendations(
    store: SqlRecommendationStore = Depends(get_store),
    current_user: AuthUser = Depends(get_current_user),
) -> list[RecommendationOut]:
    try:
        rows = await store.list_recommendations(current_user.uid)
    except RecommendationError as exc:
        logger.exception("Recommendation lookup failed for user %s", current_user.uid)
        raise HTTPException(status_code=503, detail="Recommendations unavailable") from exc
    return [_recommendation_out(x) for x in rows]


@router.post("/recompute", response_model=list[RecommendationOut])
async def recompute_my_recommendations(
    store: SqlRecommendationStore = Depends(get_store),
    current_user: AuthUser = Depends(get_current_user),
) -> list[RecommendationOut]:
    try:
        await recompute_recommendations_for_user(
            store,
            user_id=current_user.uid,
            scoring=scoring_config_from_settings(settings),
        )
        rows = await store.list_recommendations(current_user.uid)
    except RecommendationError as exc:
        logger.exception("Recommendation recompute failed for user %s", current_user.uid)
        raise HTTPException(status_code=503, detail="Recommendations unavailable") from exc
    return [_recommendation_out(x) for x in rows]
