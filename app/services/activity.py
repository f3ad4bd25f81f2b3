from __future__ import annotations

import logging
from collections.abc import Mapping
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Literal

from sqlalchemy.ext.asyncio import AsyncSession

from app.core.errors import MalformedEvent
from app.models.activity import ActivityLog
from app.models.common import ensure_aware, utcnow

logger = logging.getLogger(__name__)

ActivityType = Literal["save", "remove", "search", "ai_search"]
ACTIVITY_TYPES: tuple[str, ...] = ("save", "remove", "search", "ai_search")


@dataclass(frozen=True, slots=True)
class ActivityEvent:
    type: str
    recipe_id: str | None
    timestamp: datetime
    query: str | None = None


def _parse_timestamp(value: Any) -> datetime:
    if isinstance(value, datetime):
        return ensure_aware(value)
    if isinstance(value, bool):
        raise MalformedEvent(f"unusable timestamp {value!r}")
    if isinstance(value, (int, float)):
        try:
            return datetime.fromtimestamp(float(value), tz=timezone.utc)
        except (OverflowError, OSError, ValueError) as exc:
            raise MalformedEvent(f"unusable timestamp {value!r}") from exc
    if isinstance(value, str) and value.strip():
        raw = value.strip()
        if raw.endswith("Z"):
            raw = raw[:-1] + "+00:00"
        try:
            return ensure_aware(datetime.fromisoformat(raw))
        except ValueError as exc:
            raise MalformedEvent(f"unusable timestamp {value!r}") from exc
    raise MalformedEvent(f"unusable timestamp {value!r}")


def parse_activity_event(data: Mapping[str, Any]) -> ActivityEvent:
    """Build an event from a stored activity row.

    Raises MalformedEvent when the type is missing or the timestamp cannot be
    read. Unknown types are kept as-is; scoring gives them zero weight.
    """
    raw_type = str(data.get("type") or "").strip().lower()
    if not raw_type:
        raise MalformedEvent("activity type missing")

    recipe_id = str(data.get("recipe_id") or "").strip() or None
    query = str(data.get("query") or "").strip() or None
    return ActivityEvent(
        type=raw_type,
        recipe_id=recipe_id,
        timestamp=_parse_timestamp(data.get("timestamp")),
        query=query,
    )


async def log_activity(
    db: AsyncSession,
    *,
    user_id: str,
    type: ActivityType,
    recipe_id: str | None = None,
    query: str | None = None,
) -> ActivityLog:
    if type not in ACTIVITY_TYPES:
        raise ValueError(f"invalid activity type: {type}")

    row = ActivityLog(
        user_id=user_id,
        type=type,
        recipe_id=(recipe_id or "").strip() or None,
        query=(query or "").strip()[:500] or None,
        timestamp=utcnow(),
    )
    db.add(row)
    await db.commit()
    await db.refresh(row)

    logger.info("Activity logged: %s for user %s", type, user_id)
    return row
