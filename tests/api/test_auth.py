"""Bearer token verification and profile bootstrap."""

from __future__ import annotations

import uuid
from datetime import datetime, timedelta, timezone

import jwt
import pytest
from sqlalchemy import select

from folies.auth.jwt import create_access_token, verify_token
from folies.config import get_settings
from folies.db.models import User


def _token(**overrides) -> str:
    settings = get_settings()
    now = datetime.now(timezone.utc)
    payload = {
        "sub": str(uuid.uuid4()),
        "email": "someone@folies.fr",
        "aud": settings.jwt_audience,
        "iat": now,
        "exp": now + timedelta(minutes=5),
    }
    payload.update(overrides)
    return jwt.encode(payload, settings.jwt_secret, algorithm=settings.jwt_algorithm)


class TestVerifyToken:
    def test_round_trip(self):
        user_id = uuid.uuid4()
        payload = verify_token(create_access_token(user_id, "a@folies.fr"))
        assert payload["sub"] == str(user_id)
        assert payload["aud"] == "authenticated"

    def test_expired(self):
        past = datetime.now(timezone.utc) - timedelta(minutes=1)
        with pytest.raises(jwt.InvalidTokenError, match="expired"):
            verify_token(_token(exp=past))

    def test_wrong_audience(self):
        with pytest.raises(jwt.InvalidTokenError):
            verify_token(_token(aud="anon"))

    def test_wrong_secret(self):
        token = jwt.encode({"sub": str(uuid.uuid4()), "aud": "authenticated", "exp": 9999999999}, "other", "HS256")
        with pytest.raises(jwt.InvalidTokenError):
            verify_token(token)

    def test_subject_must_be_uuid(self):
        with pytest.raises(jwt.InvalidTokenError, match="user id"):
            verify_token(_token(sub="service-role"))


class TestCurrentUser:
    @pytest.mark.asyncio
    async def test_first_request_creates_profile(self, client, db_session):
        user_id = uuid.uuid4()
        token = create_access_token(user_id, "nouveau@folies.fr")

        response = await client.get("/api/v1/users/me", headers={"Authorization": f"Bearer {token}"})

        assert response.status_code == 200
        assert response.json()["email"] == "nouveau@folies.fr"
        assert response.json()["loyalty_points"] == 0
        stored = await db_session.scalar(select(User.email).where(User.id == user_id))
        assert stored == "nouveau@folies.fr"

    @pytest.mark.asyncio
    async def test_invalid_token_is_401(self, client):
        response = await client.get("/api/v1/users/me", headers={"Authorization": "Bearer garbage"})
        assert response.status_code == 401

    @pytest.mark.asyncio
    async def test_missing_token(self, client):
        response = await client.get("/api/v1/users/me")
        assert response.status_code in (401, 403)
