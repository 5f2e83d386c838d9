"""
Authentication service.

Handles:
- Login: credentials → access policy → device binding → session → JWT
- Per-request authentication of a bearer token against the session
  registry and the CURRENT user row
- Logout (server-side session deactivation)

Device rules are never decided here: both login and authenticate ask
`rbac.access_policy.evaluate_access` and surface its status verbatim
(410 expired, 403 device in use).

Concurrency rule:
- Two first logins for the same unbound account race on a conditional
  write (`device_id IS NULL`).  Exactly one binds; the loser re-reads
  the row and is rejected unless the winner used the same device.
"""

import logging
from dataclasses import dataclass

from fastapi import HTTPException, status
from sqlalchemy.ext.asyncio import AsyncSession

from onay_auth.core.security import (
    TokenClaims,
    create_access_token,
    decode_access_token,
    unauthorized,
    verify_password,
)
from onay_auth.models.user import User, UserRole, normalize_login
from onay_auth.rbac.access_policy import (
    DEVICE_IN_USE_MESSAGE,
    evaluate_access,
)
from onay_auth.services import session_service, user_service

logger = logging.getLogger(__name__)

INVALID_CREDENTIALS_MESSAGE = "Invalid credentials"


@dataclass(frozen=True)
class AuthContext:
    """Identity resolved for an authenticated request."""

    user_id: int
    role: UserRole
    device_id: str
    session_id: int


@dataclass(frozen=True)
class LoginResult:
    token: str
    user: User
    session_id: int


def _policy_error(status_code: int, message: str | None) -> HTTPException:
    return HTTPException(status_code=status_code, detail=message)


async def _claim_device(user: User, device_id: str, db: AsyncSession) -> None:
    """Bind `device_id` to a so-far unbound user, or fail if someone beat us."""
    if await user_service.bind_device_if_unset(user, device_id, db):
        logger.info("Bound user %s to device %s", user.id, device_id)
        return
    if user.device_id != device_id:
        logger.warning("User %s lost the device binding race to another device", user.id)
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail=DEVICE_IN_USE_MESSAGE)


# ── Login ────────────────────────────────────────────────────────────

async def login(
    login: str,
    password: str,
    device_id: str,
    db: AsyncSession,
    *,
    ip: str | None = None,
    user_agent: str | None = None,
) -> LoginResult:
    """
    Validate credentials, enforce expiry / device binding, create a
    session and return a JWT referencing it.
    """
    login = normalize_login(login)
    device_id = (device_id or "").strip()
    if not login or not password or not device_id:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Fields login, password and deviceId are required",
        )

    user = await user_service.get_user_by_login(login, db)
    # Same answer for unknown login and wrong password.
    if user is None or not verify_password(password, user.password_hash):
        logger.warning("Failed login for %r", login)
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail=INVALID_CREDENTIALS_MESSAGE,
        )

    decision = evaluate_access(user.device_id, device_id, user.role, user.expires_at)
    if not decision.ok:
        logger.warning("Login denied for user %s: status=%s", user.id, decision.status)
        raise _policy_error(decision.status, decision.message)

    if decision.should_bind_device:
        await _claim_device(user, device_id, db)

    session_id = await session_service.create_session(user.id, device_id, ip, user_agent, db)
    token = create_access_token(
        TokenClaims(
            user_id=user.id,
            role=user.role,
            device_id=device_id,
            session_id=session_id,
        )
    )
    logger.info("User %s logged in (session %s)", user.id, session_id)
    return LoginResult(token=token, user=user, session_id=session_id)


# ── Per-request authentication ──────────────────────────────────────

async def authenticate(token: str | None, db: AsyncSession) -> AuthContext:
    """
    Resolve a bearer token to an AuthContext.

    Checks performed on every protected request:
      1. JWT signature, expiry & claim structure          → 401
      2. Session exists and belongs to the token's user   → 401
      3. Session is active                                → 401
      4. Access policy on the current user row            → 410 / 403
    On success, refreshes the session's last_seen.
    """
    if not token:
        raise unauthorized()
    claims = decode_access_token(token)

    session = await session_service.find_session_for_auth(claims.session_id, db)
    if session is None:
        raise unauthorized("Session not found")
    if session.user_id != claims.user_id:
        raise unauthorized("Invalid session")
    if not session.is_active:
        raise unauthorized("Session inactive")

    decision = evaluate_access(
        session.device_id,
        claims.device_id,
        session.role,
        session.expires_at,
    )
    if not decision.ok:
        raise _policy_error(decision.status, decision.message)

    await session_service.touch_session(claims.session_id, db)

    return AuthContext(
        user_id=session.user_id,
        role=session.role,
        device_id=decision.device_id,
        session_id=session.session_id,
    )


# ── Logout ───────────────────────────────────────────────────────────

async def logout(session_id: int, db: AsyncSession) -> None:
    """Deactivate the session.  Already-inactive sessions are fine."""
    await session_service.deactivate_session(session_id, db)
    logger.info("Session %s logged out", session_id)
