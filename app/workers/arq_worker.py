from __future__ import annotations

from arq.connections import RedisSettings
from arq.cron import cron

from app.core.config import settings
from app.core.logging import configure_logging
from app.db.session import SessionLocal
from app.services.recommendation_store import SqlRecommendationStore
from app.services.recommendations import (
    batch_options_from_settings,
    recompute_all_recommendations,
    recompute_recommendations_for_user,
    scoring_config_from_settings,
)


def _store() -> SqlRecommendationStore:
    return SqlRecommendationStore(SessionLocal, page_size=settings.reco_page_size)


async def startup(ctx) -> None:
    configure_logging()


async def recompute_all_recommendations_job(ctx) -> dict:
    report = await recompute_all_recommendations(
        _store(),
        scoring_config_from_settings(settings),
        batch_options_from_settings(settings),
    )
    return report.as_dict()


async def recompute_user_recommendations_job(ctx, user_id: str) -> dict:
    ranked = await recompute_recommendations_for_user(
        _store(),
        user_id=user_id,
        scoring=scoring_config_from_settings(settings),
    )
    return {"user_id": user_id, "recommendations": len(ranked)}


class WorkerSettings:
    redis_settings = RedisSettings.from_dsn(settings.redis_url)
    on_startup = startup
    job_timeout = 3600
    functions = [recompute_all_recommendations_job, recompute_user_recommendations_job]
    cron_jobs = [
        cron(
            recompute_all_recommendations_job,
            hour={settings.reco_cron_hour},
            minute={settings.reco_cron_minute},
            run_at_startup=False,
            unique=True,
        )
    ]
