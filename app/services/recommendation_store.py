from __future__ import annotations

import logging
from collections.abc import AsyncIterator, Sequence
from datetime import datetime
from typing import Protocol

from sqlalchemy import delete, select
from sqlalchemy.exc import InterfaceError, OperationalError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from app.core.errors import MalformedEvent, StoreUnavailable, WriteFailed
from app.models.activity import ActivityLog
from app.models.recommendation import Recommendation
from app.models.user import User
from app.services.activity import ActivityEvent, parse_activity_event
from app.services.scoring import RankedRecipe

logger = logging.getLogger(__name__)

_UNREACHABLE = (OperationalError, InterfaceError, OSError)


class RecommendationStore(Protocol):
    def iter_user_ids(self) -> AsyncIterator[str]: ...

    def iter_activity_events(self, user_id: str) -> AsyncIterator[ActivityEvent]: ...

    async def replace_recommendations(
        self,
        user_id: str,
        ranked: Sequence[RankedRecipe],
        generated_at: datetime,
    ) -> None: ...

    async def list_recommendations(self, user_id: str) -> list[Recommendation]: ...


class SqlRecommendationStore:
    """Reads users and activity logs, and writes recommendation sets.

    Every call opens its own session, so concurrent pipelines for different
    users never share one.
    """

    def __init__(self, sessionmaker: async_sessionmaker[AsyncSession], *, page_size: int = 500) -> None:
        if page_size < 1:
            raise ValueError("page_size must be >= 1")
        self._sessionmaker = sessionmaker
        self.page_size = page_size

    async def iter_user_ids(self) -> AsyncIterator[str]:
        last_id: str | None = None
        while True:
            stmt = select(User.id).order_by(User.id).limit(self.page_size)
            if last_id is not None:
                stmt = stmt.where(User.id > last_id)
            try:
                async with self._sessionmaker() as db:
                    page = (await db.execute(stmt)).scalars().all()
            except _UNREACHABLE as exc:
                raise StoreUnavailable(f"cannot enumerate users: {exc}") from exc

            for user_id in page:
                yield user_id
            if len(page) < self.page_size:
                return
            last_id = page[-1]

    async def iter_activity_events(self, user_id: str) -> AsyncIterator[ActivityEvent]:
        cols = (ActivityLog.id, ActivityLog.type, ActivityLog.recipe_id, ActivityLog.query, ActivityLog.timestamp)
        last_id: int | None = None
        while True:
            # Insertion order, so the first recipe a user touched wins score ties.
            stmt = (
                select(*cols)
                .where(ActivityLog.user_id == user_id)
                .order_by(ActivityLog.id)
                .limit(self.page_size)
            )
            if last_id is not None:
                stmt = stmt.where(ActivityLog.id > last_id)
            try:
                async with self._sessionmaker() as db:
                    page = (await db.execute(stmt)).all()
            except _UNREACHABLE as exc:
                raise StoreUnavailable(f"cannot read activity for user {user_id}: {exc}") from exc

            for row in page:
                try:
                    yield parse_activity_event(row._mapping)
                except MalformedEvent as exc:
                    logger.warning("Skipping malformed activity id=%s for user %s: %s", row.id, user_id, exc)
            if len(page) < self.page_size:
                return
            last_id = page[-1].id

    async def replace_recommendations(
        self,
        user_id: str,
        ranked: Sequence[RankedRecipe],
        generated_at: datetime,
    ) -> None:
        try:
            async with self._sessionmaker() as db:
                async with db.begin():
                    await db.execute(delete(Recommendation).where(Recommendation.user_id == user_id))
                    db.add_all(
                        [
                            Recommendation(
                                user_id=user_id,
                                recipe_id=item.recipe_id,
                                score=item.score,
                                rank=position,
                                generated_at=generated_at,
                            )
                            for position, item in enumerate(ranked)
                        ]
                    )
        except SQLAlchemyError as exc:
            raise WriteFailed(f"recommendation replace for user {user_id} rolled back: {exc}") from exc
        except OSError as exc:
            raise WriteFailed(f"recommendation replace for user {user_id} rolled back: {exc}") from exc

    async def list_recommendations(self, user_id: str) -> list[Recommendation]:
        try:
            async with self._sessionmaker() as db:
                rows = (
                    await db.execute(
                        select(Recommendation)
                        .where(Recommendation.user_id == user_id)
                        .order_by(Recommendation.rank)
                    )
                ).scalars().all()
        except _UNREACHABLE as exc:
            raise StoreUnavailable(f"cannot read recommendations for user {user_id}: {exc}") from exc
        return list(rows)
