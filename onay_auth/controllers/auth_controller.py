"""
Auth controller — login, current user & logout.

Login is PUBLIC but rate limited per client IP.  On success the JWT is
returned in the body AND set as an HttpOnly cookie, so the web client
can use either transport.  /me and /logout require a valid session.
"""

from fastapi import APIRouter, Depends, Request, Response
from sqlalchemy.ext.asyncio import AsyncSession

from onay_auth.core.config import settings
from onay_auth.core.database import get_db
from onay_auth.core.rate_limit import (
    LoginRateLimiter,
    client_key,
    enforce_login_rate_limit,
    get_login_rate_limiter,
)
from onay_auth.rbac.dependencies import get_current_auth
from onay_auth.schemas import LoginRequest, MessageResponse, TokenResponse, UserOut
from onay_auth.services import auth_service, user_service
from onay_auth.services.auth_service import AuthContext

router = APIRouter(prefix="/auth", tags=["Auth"])


def _set_auth_cookie(response: Response, token: str) -> None:
    response.set_cookie(
        key=settings.AUTH_COOKIE_NAME,
        value=token,
        max_age=settings.AUTH_COOKIE_MAX_AGE_SECONDS,
        path="/",
        httponly=True,
        samesite=settings.cookie_same_site,
        secure=settings.cookie_secure,
    )


@router.post("/login", response_model=TokenResponse)
async def login(
    body: LoginRequest,
    request: Request,
    response: Response,
    db: AsyncSession = Depends(get_db),
    limiter: LoginRateLimiter = Depends(get_login_rate_limiter),
):
    """Authenticate with login + password + deviceId → receive a JWT."""
    await enforce_login_rate_limit(request, limiter)

    result = await auth_service.login(
        body.login,
        body.password,
        body.device_id,
        db,
        ip=request.client.host if request.client else None,
        user_agent=request.headers.get("user-agent"),
    )

    await limiter.reset(client_key(request))
    _set_auth_cookie(response, result.token)
    return TokenResponse(
        token=result.token,
        user=UserOut.model_validate(result.user),
        session_id=result.session_id,
    )


@router.get("/me", response_model=UserOut)
async def me(
    auth: AuthContext = Depends(get_current_auth),
    db: AsyncSession = Depends(get_db),
):
    user = await user_service.get_user_by_id(auth.user_id, db)
    return UserOut.model_validate(user)


@router.post("/logout", response_model=MessageResponse)
async def logout(
    response: Response,
    auth: AuthContext = Depends(get_current_auth),
    db: AsyncSession = Depends(get_db),
):
    """Deactivate the current session (server-side logout)."""
    await auth_service.logout(auth.session_id, db)
    response.delete_cookie(
        key=settings.AUTH_COOKIE_NAME,
        path="/",
        httponly=True,
        samesite=settings.cookie_same_site,
        secure=settings.cookie_secure,
    )
    return MessageResponse(detail="Logged out successfully")
