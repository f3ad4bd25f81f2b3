from __future__ import annotations

from pydantic import BaseModel, Field

from app.services.activity import ActivityType


class ActivityLogIn(BaseModel):
    type: ActivityType
    recipe_id: str | None = Field(default=None, max_length=128)
    query: str | None = Field(default=None, max_length=500)


class ActivityLogOut(BaseModel):
    message: str
    log_id: int
    timestamp: str
