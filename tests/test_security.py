from datetime import datetime, timedelta, timezone

import pytest
from fastapi import HTTPException
from jose import jwt
from starlette.requests import Request

from onay_auth.core.config import settings
from onay_auth.core.security import (
    TokenClaims,
    create_access_token,
    decode_access_token,
    hash_password,
    read_bearer_token,
    verify_password,
)
from onay_auth.models.user import UserRole


def _encode(payload: dict) -> str:
    payload = {"exp": datetime.now(timezone.utc) + timedelta(minutes=5), **payload}
    return jwt.encode(payload, settings.SECRET_KEY, algorithm=settings.JWT_ALGORITHM)


def _request(cookie: str | None = None) -> Request:
    headers = []
    if cookie is not None:
        headers.append((b"cookie", cookie.encode()))
    return Request({"type": "http", "headers": headers})


class TestPasswords:
    def test_hash_then_verify(self):
        hashed = hash_password("secret123")
        assert hashed != "secret123"
        assert verify_password("secret123", hashed)
        assert not verify_password("secret124", hashed)

    def test_same_password_gets_distinct_salts(self):
        assert hash_password("secret123") != hash_password("secret123")

    @pytest.mark.parametrize("plain, hashed", [("", "x"), ("secret", ""), ("secret", "not-a-bcrypt-hash")])
    def test_empty_or_malformed_input_is_a_mismatch(self, plain, hashed):
        assert verify_password(plain, hashed) is False


class TestTokens:
    def test_claims_survive_encoding(self):
        claims = TokenClaims(user_id=7, role=UserRole.USER, device_id="dev-1", session_id=42)
        assert decode_access_token(create_access_token(claims)) == claims

    def test_expired_token_is_rejected(self):
        claims = TokenClaims(user_id=7, role=UserRole.ADMIN, device_id="dev-1", session_id=42)
        token = create_access_token(claims, expires_delta=timedelta(seconds=-10))
        with pytest.raises(HTTPException) as exc:
            decode_access_token(token)
        assert exc.value.status_code == 401

    def test_wrong_signature_is_rejected(self):
        token = jwt.encode(
            {"user_id": 1, "role": "user", "device_id": "d", "session_id": 1},
            "another-secret",
            algorithm=settings.JWT_ALGORITHM,
        )
        with pytest.raises(HTTPException) as exc:
            decode_access_token(token)
        assert exc.value.status_code == 401

    def test_garbage_is_rejected(self):
        with pytest.raises(HTTPException) as exc:
            decode_access_token("not.a.jwt")
        assert exc.value.status_code == 401

    @pytest.mark.parametrize(
        "payload",
        [
            {"role": "user", "device_id": "d", "session_id": 1},
            {"user_id": 1, "role": "user", "device_id": "d"},
            {"user_id": 1, "role": "owner", "device_id": "d", "session_id": 1},
            {"user_id": 1, "role": "user", "device_id": "", "session_id": 1},
            {"user_id": 1, "role": "user", "device_id": 5, "session_id": 1},
            {"user_id": True, "role": "user", "device_id": "d", "session_id": 1},
            {"user_id": "abc", "role": "user", "device_id": "d", "session_id": 1},
            {"user_id": "²", "role": "user", "device_id": "d", "session_id": 1},
            {"user_id": 1, "role": "user", "device_id": "d", "session_id": "٣"},
        ],
    )
    def test_incomplete_or_mistyped_claims_are_rejected(self, payload):
        with pytest.raises(HTTPException) as exc:
            decode_access_token(_encode(payload))
        assert exc.value.status_code == 401

    def test_numeric_string_ids_are_accepted(self):
        token = _encode({"user_id": "3", "role": "admin", "device_id": "d", "session_id": "9"})
        claims = decode_access_token(token)
        assert claims.user_id == 3
        assert claims.session_id == 9
        assert claims.role is UserRole.ADMIN


class TestBearerExtraction:
    def test_header_wins_over_cookie(self):
        request = _request(f"{settings.AUTH_COOKIE_NAME}=from-cookie")
        assert read_bearer_token(request, "from-header") == "from-header"

    def test_cookie_is_the_fallback(self):
        request = _request(f"{settings.AUTH_COOKIE_NAME}=from-cookie")
        assert read_bearer_token(request, None) == "from-cookie"

    def test_nothing_supplied(self):
        assert read_bearer_token(_request(), None) is None
        assert read_bearer_token(_request("other=1"), None) is None
