"""
Admin controller — user lifecycle, sessions & expired-account cleanup.

Every route uses `Depends(require_admin)` for enforcement.
Handlers only translate HTTP to service calls; rules live in services.

Architecture note:
    We inject `auth: AuthContext` from `require_admin` so the
    controller knows the acting admin (for the action log) and the
    session that carries this very request (self-deletion guard)
    without a second DB call.
"""

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from onay_auth.core.database import get_db
from onay_auth.models.user import UserRole
from onay_auth.rbac.dependencies import require_admin
from onay_auth.schemas import (
    CleanupOut,
    CleanupRequest,
    CreateUserRequest,
    DeletedSessionOut,
    ExtendUserRequest,
    MessageResponse,
    SessionListOut,
    SessionOut,
    UserOut,
)
from onay_auth.services import cleanup_service, session_service, user_service
from onay_auth.services.auth_service import AuthContext

router = APIRouter(prefix="/admin", tags=["Admin"])


# ── Users ────────────────────────────────────────────────────────────
@router.post("/users", response_model=UserOut, status_code=201)
async def create_user(
    body: CreateUserRequest,
    auth: AuthContext = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    """Create an account.  Anything but "admin" becomes a regular user."""
    role = UserRole.ADMIN if body.role == UserRole.ADMIN.value else UserRole.USER
    user = await user_service.create_user(
        login=body.login,
        password=body.password,
        role=role,
        expires_at=body.expires_at,
        admin_id=auth.user_id,
        db=db,
    )
    return UserOut.model_validate(user)


@router.get("/users", response_model=list[UserOut])
async def list_users(
    auth: AuthContext = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    users = await user_service.list_users(db)
    return [UserOut.model_validate(u) for u in users]


@router.post("/users/{user_id}/reset-device", response_model=UserOut)
async def reset_device(
    user_id: int,
    auth: AuthContext = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    """Unbind the device and log out every session of the user."""
    user = await user_service.reset_device(user_id, auth.user_id, db)
    return UserOut.model_validate(user)


@router.delete("/users/{user_id}", response_model=MessageResponse)
async def delete_user(
    user_id: int,
    auth: AuthContext = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    await user_service.delete_user(user_id, auth.user_id, db)
    return MessageResponse(detail="User deleted")


@router.post("/users/{user_id}/extend", response_model=UserOut)
async def extend_user(
    user_id: int,
    body: ExtendUserRequest,
    auth: AuthContext = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    """Extend by months (default 3), make permanent, or set an explicit expiry."""
    user = await user_service.extend_expiry(
        user_id,
        auth.user_id,
        db,
        months=body.months,
        permanent=body.permanent,
        expires_at=body.expires_at,
    )
    return UserOut.model_validate(user)


# ── Sessions ─────────────────────────────────────────────────────────
@router.get("/sessions", response_model=SessionListOut)
async def list_sessions(
    auth: AuthContext = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
    active: bool = Query(False),
):
    rows, active_count = await session_service.list_sessions(db, active_only=active)
    return SessionListOut(
        sessions=[SessionOut.model_validate(r) for r in rows],
        active_count=active_count,
    )


@router.delete("/sessions/{session_id}", response_model=DeletedSessionOut)
async def delete_session(
    session_id: int,
    auth: AuthContext = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    """Remove a session row.  The session carrying this request is refused."""
    await session_service.admin_delete_session(session_id, auth.session_id, auth.user_id, db)
    return DeletedSessionOut(session_id=session_id)


# ── Cleanup ──────────────────────────────────────────────────────────
@router.post("/cleanup-expired", response_model=CleanupOut)
async def cleanup_expired(
    body: CleanupRequest | None = None,
    auth: AuthContext = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    mode = body.mode if body else cleanup_service.CleanupMode.DEACTIVATE
    result = await cleanup_service.cleanup_expired(mode, auth.user_id, db)
    return CleanupOut.model_validate(result)
