from __future__ import annotations

import asyncio
import logging
from collections.abc import AsyncIterator, Iterable
from dataclasses import dataclass, field
from datetime import datetime

from app.core.config import Settings
from app.core.errors import RecommendationError, StoreUnavailable
from app.models.common import utcnow
from app.services.recommendation_store import RecommendationStore
from app.services.scoring import RankedRecipe, ScoringConfig, add_event_score, rank_scores

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class BatchOptions:
    max_concurrency: int = 1
    user_timeout_seconds: float | None = 60.0
    max_attempts: int = 3
    retry_backoff_seconds: float = 2.0

    def __post_init__(self) -> None:
        if self.max_concurrency < 1:
            raise ValueError("max_concurrency must be >= 1")
        if self.max_attempts < 1:
            raise ValueError("max_attempts must be >= 1")


@dataclass(slots=True)
class BatchReport:
    succeeded: int = 0
    failed: int = 0
    failures: dict[str, str] = field(default_factory=dict)
    started_at: datetime = field(default_factory=utcnow)
    finished_at: datetime | None = None

    def record_failure(self, user_id: str, reason: str) -> None:
        self.failed += 1
        self.failures[user_id] = reason

    def summary(self) -> str:
        return f"{self.succeeded} succeeded, {self.failed} failed"

    def as_dict(self) -> dict:
        return {
            "succeeded": self.succeeded,
            "failed": self.failed,
            "failures": dict(self.failures),
            "started_at": self.started_at.isoformat(),
            "finished_at": self.finished_at.isoformat() if self.finished_at else None,
        }


def scoring_config_from_settings(settings: Settings) -> ScoringConfig:
    return ScoringConfig(
        weights=settings.reco_score_weights,
        top_n=settings.reco_top_n,
        positive_only=settings.reco_positive_only,
    )


def batch_options_from_settings(settings: Settings) -> BatchOptions:
    return BatchOptions(
        max_concurrency=settings.reco_max_concurrency,
        user_timeout_seconds=settings.reco_user_timeout_seconds,
        max_attempts=settings.reco_max_attempts,
        retry_backoff_seconds=settings.reco_retry_backoff_seconds,
    )


async def recompute_recommendations_for_user(
    store: RecommendationStore,
    *,
    user_id: str,
    scoring: ScoringConfig,
    now: datetime | None = None,
) -> list[RankedRecipe]:
    scores: dict[str, int] = {}
    async for event in store.iter_activity_events(user_id):
        add_event_score(scores, event, scoring.weights)

    ranked = rank_scores(scores, scoring.top_n, positive_only=scoring.positive_only)
    await store.replace_recommendations(user_id, ranked, now or utcnow())
    return ranked


async def _recompute_with_retry(
    store: RecommendationStore,
    user_id: str,
    scoring: ScoringConfig,
    options: BatchOptions,
) -> list[RankedRecipe]:
    attempt = 1
    while True:
        try:
            return await asyncio.wait_for(
                recompute_recommendations_for_user(store, user_id=user_id, scoring=scoring),
                timeout=options.user_timeout_seconds,
            )
        except StoreUnavailable as exc:
            if attempt >= options.max_attempts:
                raise
            delay = options.retry_backoff_seconds * attempt
            logger.warning(
                "Store unavailable for user %s (attempt %s/%s), retrying in %.1fs: %s",
                user_id,
                attempt,
                options.max_attempts,
                delay,
                exc,
            )
            await asyncio.sleep(delay)
            attempt += 1


async def _iter_given(user_ids: Iterable[str]) -> AsyncIterator[str]:
    for user_id in user_ids:
        yield user_id


async def recompute_all_recommendations(
    store: RecommendationStore,
    scoring: ScoringConfig | None = None,
    options: BatchOptions | None = None,
    *,
    user_ids: Iterable[str] | None = None,
) -> BatchReport:
    """Recompute every user's recommendation set.

    Each user runs read, aggregate, rank and replace in isolation: a failure
    is logged and counted in the report and the batch moves on. Errors from
    user enumeration itself propagate, after in-flight users finish.
    """
    scoring = scoring or ScoringConfig()
    options = options or BatchOptions()
    report = BatchReport()
    semaphore = asyncio.Semaphore(options.max_concurrency)
    tasks: set[asyncio.Task] = set()

    async def process(user_id: str) -> None:
        try:
            ranked = await _recompute_with_retry(store, user_id, scoring, options)
        except asyncio.TimeoutError:
            reason = f"timed out after {options.user_timeout_seconds}s"
            report.record_failure(user_id, reason)
            logger.error("Recommendations failed for user %s: %s", user_id, reason)
        except RecommendationError as exc:
            reason = f"{type(exc).__name__}: {exc}"
            report.record_failure(user_id, reason)
            logger.error("Recommendations failed for user %s: %s", user_id, reason)
        except Exception as exc:
            report.record_failure(user_id, f"{type(exc).__name__}: {exc}")
            logger.exception("Recommendations failed for user %s", user_id)
        else:
            report.succeeded += 1
            logger.info("Updated recommendations for user %s (%s recipes)", user_id, len(ranked))
        finally:
            semaphore.release()

    source = _iter_given(user_ids) if user_ids is not None else store.iter_user_ids()
    seen: set[str] = set()
    try:
        async for user_id in source:
            # One pipeline per user per run keeps a single writer per user.
            if user_id in seen:
                logger.warning("Skipping duplicate user id %s", user_id)
                continue
            seen.add(user_id)
            await semaphore.acquire()
            task = asyncio.create_task(process(user_id))
            tasks.add(task)
            task.add_done_callback(tasks.discard)
    finally:
        if tasks:
            await asyncio.gather(*tasks)
        report.finished_at = utcnow()

    logger.info("All user recommendations updated: %s", report.summary())
    return report
