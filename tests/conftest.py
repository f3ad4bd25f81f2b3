from __future__ import annotations

import asyncio
from collections import Counter
from datetime import datetime, timezone

import pytest
from sqlalchemy.ext.asyncio import create_async_engine
from sqlalchemy.pool import StaticPool

import app.models  # noqa: F401
from app.core.errors import StoreUnavailable, WriteFailed
from app.db.base import Base
from app.db.session import build_sessionmaker
from app.models.recommendation import Recommendation
from app.services.activity import ActivityEvent
from app.services.recommendation_store import SqlRecommendationStore

T0 = datetime(2026, 1, 1, tzinfo=timezone.utc)


def ev(type: str, recipe_id: str | None = None, query: str | None = None) -> ActivityEvent:
    return ActivityEvent(type=type, recipe_id=recipe_id, timestamp=T0, query=query)


async def sqlite_store(page_size: int = 2):
    """In-memory SQLite engine with the schema created, its session factory and a store over it."""
    engine = create_async_engine(
        "sqlite+aiosqlite://",
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    sessionmaker = build_sessionmaker(engine)
    return engine, sessionmaker, SqlRecommendationStore(sessionmaker, page_size=page_size)


class InMemoryStore:
    def __init__(self, events: dict[str, list[ActivityEvent]] | None = None) -> None:
        self.events = dict(events or {})
        self.saved: dict[str, list[Recommendation]] = {}
        self.read_failures: dict[str, int] = {}
        self.write_failures: set[str] = set()
        self.slow_users: set[str] = set()
        self.enumeration_error: Exception | None = None
        self.read_calls: Counter[str] = Counter()
        self.read_delay = 0.0
        self.active = 0
        self.max_active = 0

    async def iter_user_ids(self):
        if self.enumeration_error is not None:
            raise self.enumeration_error
        for user_id in list(self.events):
            yield user_id

    async def iter_activity_events(self, user_id: str):
        self.read_calls[user_id] += 1
        remaining = self.read_failures.get(user_id, 0)
        if remaining:
            # negative means fail forever
            if remaining > 0:
                self.read_failures[user_id] = remaining - 1
            raise StoreUnavailable(f"store down for {user_id}")

        self.active += 1
        self.max_active = max(self.max_active, self.active)
        try:
            if user_id in self.slow_users:
                await asyncio.sleep(5)
            if self.read_delay:
                await asyncio.sleep(self.read_delay)
            for event in self.events.get(user_id, []):
                yield event
        finally:
            self.active -= 1

    async def replace_recommendations(self, user_id, ranked, generated_at) -> None:
        if user_id in self.write_failures:
            raise WriteFailed(f"write rejected for {user_id}")
        self.saved[user_id] = [
            Recommendation(
                user_id=user_id,
                recipe_id=item.recipe_id,
                score=item.score,
                rank=position,
                generated_at=generated_at,
            )
            for position, item in enumerate(ranked)
        ]

    async def list_recommendations(self, user_id: str) -> list[Recommendation]:
        return list(self.saved.get(user_id, []))

    def pairs(self, user_id: str) -> list[tuple[str, int]]:
        return [(r.recipe_id, r.score) for r in self.saved.get(user_id, [])]


@pytest.fixture
def store() -> InMemoryStore:
    return InMemoryStore()
