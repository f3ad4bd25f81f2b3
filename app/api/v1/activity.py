from __future__ import annotations

from fastapi import APIRouter, Depends, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.api.v1.deps import as_iso
from app.db.session import get_db
from app.schemas.activity import ActivityLogIn, ActivityLogOut
from app.services.activity import log_activity
from app.services.auth import AuthUser, get_current_user

router = APIRouter(prefix="/activity", tags=["activity"])


@router.post("/log", response_model=ActivityLogOut, status_code=status.HTTP_201_CREATED)
async def log_user_activity(
    payload: ActivityLogIn,
    db: AsyncSession = Depends(get_db),
    current_user: AuthUser = Depends(get_current_user),
) -> ActivityLogOut:
    row = await log_activity(
        db,
        user_id=current_user.uid,
        type=payload.type,
        recipe_id=payload.recipe_id,
        query=payload.query,
    )
    return ActivityLogOut(message="Activity logged successfully", log_id=row.id, timestamp=as_iso(row.timestamp))
