"""
Password hashing & JWT helpers.

- Passwords are hashed with bcrypt directly (passlib is unmaintained
  and broken with bcrypt>=4.1).  Cost factor comes from settings.
- JWTs carry user_id, role, device_id and session_id.  They are only a
  reference to a server-side session: role and device in the token are
  re-checked against the database on EVERY request.
- The bearer token is read from the Authorization header, falling back
  to the auth cookie set at login.
"""

from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Any

import bcrypt
from fastapi import HTTPException, Request, status
from fastapi.security import OAuth2PasswordBearer
from jose import JWTError, jwt

from onay_auth.core.config import settings
from onay_auth.models.user import UserRole

# ── Password hashing ────────────────────────────────────────────────


def hash_password(plain: str) -> str:
    salt = bcrypt.gensalt(rounds=settings.BCRYPT_SALT_ROUNDS)
    return bcrypt.hashpw(plain.encode("utf-8"), salt).decode("utf-8")


def verify_password(plain: str, hashed: str) -> bool:
    """Constant-time check via bcrypt.  Empty or malformed input is a mismatch."""
    if not plain or not hashed:
        return False
    try:
        return bcrypt.checkpw(plain.encode("utf-8"), hashed.encode("utf-8"))
    except ValueError:
        return False


# ── JWT ──────────────────────────────────────────────────────────────
oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/auth/login", auto_error=False)

_UNAUTHORIZED_HEADERS = {"WWW-Authenticate": "Bearer"}


@dataclass(frozen=True)
class TokenClaims:
    user_id: int
    role: UserRole
    device_id: str
    session_id: int


def create_access_token(claims: TokenClaims, expires_delta: timedelta | None = None) -> str:
    expire = datetime.now(timezone.utc) + (
        expires_delta or timedelta(minutes=settings.ACCESS_TOKEN_EXPIRE_MINUTES)
    )
    to_encode: dict[str, Any] = {
        "sub": str(claims.user_id),
        "user_id": claims.user_id,
        "role": claims.role.value,
        "device_id": claims.device_id,
        "session_id": claims.session_id,
        "exp": expire,
    }
    return jwt.encode(to_encode, settings.SECRET_KEY, algorithm=settings.JWT_ALGORITHM)


def unauthorized(detail: str = "Unauthorized") -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail=detail,
        headers=_UNAUTHORIZED_HEADERS,
    )


def _as_int(value: Any) -> int | None:
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    if isinstance(value, str) and value.isascii() and value.isdecimal():
        return int(value)
    return None


def decode_access_token(token: str) -> TokenClaims:
    """Verify signature & expiry, then validate all four claims as a unit.

    Raises a 401 HTTPException on any failure.
    """
    try:
        payload = jwt.decode(token, settings.SECRET_KEY, algorithms=[settings.JWT_ALGORITHM])
    except JWTError:
        raise unauthorized()

    user_id = _as_int(payload.get("user_id"))
    session_id = _as_int(payload.get("session_id"))
    device_id = payload.get("device_id")
    try:
        role = UserRole(payload.get("role"))
    except ValueError:
        raise unauthorized()

    if user_id is None or session_id is None:
        raise unauthorized()
    if not isinstance(device_id, str) or not device_id:
        raise unauthorized()

    return TokenClaims(user_id=user_id, role=role, device_id=device_id, session_id=session_id)


def read_bearer_token(request: Request, header_token: str | None) -> str | None:
    """Header token wins; otherwise the auth cookie, if any."""
    if header_token:
        return header_token.strip() or None
    return request.cookies.get(settings.AUTH_COOKIE_NAME) or None
