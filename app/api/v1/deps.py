from __future__ import annotations

from datetime import datetime

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.models.common import ensure_aware
from app.models.user import User


def as_iso(value: datetime | None) -> str:
    if value is None:
        return ""
    return ensure_aware(value).isoformat()


async def upsert_user(db: AsyncSession, *, uid: str, email: str, display_name: str) -> User:
    clean_email = (email or "").strip().lower()
    clean_name = (display_name or "").strip() or clean_email or uid

    row = (await db.execute(select(User).where(User.id == uid))).scalar_one_or_none()
    if row is None:
        row = User(id=uid, email=clean_email, display_name=clean_name)
        db.add(row)
    elif row.email == clean_email and row.display_name == clean_name:
        return row
    else:
        if clean_email:
            row.email = clean_email
        row.display_name = clean_name

    await db.commit()
    await db.refresh(row)
    return row
