"""FastAPI authentication dependencies."""

from __future__ import annotations

import uuid

import jwt
from fastapi import Depends, HTTPException, Security
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.ext.asyncio import AsyncSession

from folies.auth.jwt import verify_token
from folies.database import get_session
from folies.db.models import User
from folies.users.service import ensure_profile

_bearer = HTTPBearer()


async def get_current_user(
    credentials: HTTPAuthorizationCredentials = Security(_bearer),
    db: AsyncSession = Depends(get_session),
) -> User:
    """
    Verify the bearer JWT and return the caller's profile.

    A first request from a new account creates its profile row.
    Raises 401 on an invalid token.
    """
    try:
        payload = verify_token(credentials.credentials)
    except jwt.InvalidTokenError as e:
        raise HTTPException(status_code=401, detail=str(e)) from e

    user, created = await ensure_profile(db, uuid.UUID(payload["sub"]), payload.get("email") or "")
    if created:
        await db.commit()
    return user


async def require_admin(user: User = Depends(get_current_user)) -> User:
    """Same as get_current_user but rejects non-admin accounts with 403."""
    if not user.is_admin:
        raise HTTPException(status_code=403, detail="Accès réservé aux administrateurs")
    return user
