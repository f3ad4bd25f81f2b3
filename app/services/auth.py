from __future__ import annotations

from dataclasses import dataclass
from typing import Any

import jwt
from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.ext.asyncio import AsyncSession

from app.api.v1.deps import upsert_user
from app.core.config import settings
from app.db.session import get_db


bearer = HTTPBearer(auto_error=False)


@dataclass(slots=True)
class AuthUser:
    uid: str
    email: str
    display_name: str


def _decode_token(token: str) -> dict[str, Any]:
    kwargs: dict[str, Any] = {
        "algorithms": [settings.jwt_algorithm],
        "leeway": settings.jwt_exp_leeway_seconds,
    }

    if settings.jwt_audience:
        kwargs["audience"] = settings.jwt_audience
    else:
        kwargs["options"] = {"verify_aud": False}

    if settings.jwt_issuer:
        kwargs["issuer"] = settings.jwt_issuer

    try:
        payload = jwt.decode(token, settings.jwt_secret, **kwargs)
    except jwt.PyJWTError as exc:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid token") from exc

    return payload


def _parse_payload(payload: dict[str, Any]) -> AuthUser:
    # Identity-provider tokens carry the uid as user_id, plain JWTs as sub.
    uid = str(payload.get("user_id") or payload.get("sub") or "").strip()
    if not uid:
        raise HTTPException(status_code=401, detail="Invalid uid claim")
    if len(uid) > 128:
        raise HTTPException(status_code=401, detail="Invalid uid claim")

    email = str(payload.get("email") or "").strip().lower()
    display_name = str(payload.get("name") or payload.get("display_name") or email or uid).strip()

    return AuthUser(uid=uid, email=email, display_name=display_name)


async def get_current_user(
    credentials: HTTPAuthorizationCredentials | None = Depends(bearer),
    db: AsyncSession = Depends(get_db),
) -> AuthUser:
    if credentials is None:
        raise HTTPException(status_code=401, detail="Missing bearer token")

    payload = _decode_token(credentials.credentials)
    user = _parse_payload(payload)
    # The recommendation batch enumerates this table.
    await upsert_user(db, uid=user.uid, email=user.email, display_name=user.display_name)
    return user
