"""
Session service — CRUD & lifecycle helpers for user sessions.

Handles:
- Creating a session row at login (its id goes into the JWT)
- The single joined read used to authenticate a bearer token
- Last-seen refresh on every authenticated request
- Deactivating single sessions (logout) and all sessions of a user
  (admin reset-device)
- Admin listing & hard deletion
"""

from dataclasses import dataclass
from datetime import datetime

from fastapi import HTTPException, status
from sqlalchemy import delete, func, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from onay_auth.models.admin_action import AdminActionKind
from onay_auth.models.base import utcnow
from onay_auth.models.session import UserSession
from onay_auth.models.user import User, UserRole
from onay_auth.services import audit_service

SESSION_LIST_LIMIT = 500


@dataclass(frozen=True)
class SessionAuthRow:
    """Session joined with the CURRENT state of its user."""

    session_id: int
    user_id: int
    is_active: bool
    role: UserRole
    device_id: str | None
    expires_at: datetime | None


@dataclass(frozen=True)
class SessionListRow:
    id: int
    user_id: int
    login: str
    role: UserRole
    device_id: str
    ip: str | None
    user_agent: str | None
    login_time: datetime
    last_seen: datetime
    is_active: bool


async def create_session(
    user_id: int,
    device_id: str,
    ip: str | None,
    user_agent: str | None,
    db: AsyncSession,
) -> int:
    """Insert an active session and return its id."""
    now = utcnow()
    session = UserSession(
        user_id=user_id,
        device_id=device_id,
        ip=ip,
        user_agent=user_agent,
        login_time=now,
        last_seen=now,
        is_active=True,
    )
    db.add(session)
    await db.flush()
    return session.id


async def find_session_for_auth(
    session_id: int,
    db: AsyncSession,
) -> SessionAuthRow | None:
    stmt = (
        select(
            UserSession.id,
            UserSession.user_id,
            UserSession.is_active,
            User.role,
            User.device_id,
            User.expires_at,
        )
        .join(User, User.id == UserSession.user_id)
        .where(UserSession.id == session_id)
    )
    row = (await db.execute(stmt)).one_or_none()
    if row is None:
        return None
    return SessionAuthRow(
        session_id=row[0],
        user_id=row[1],
        is_active=row[2],
        role=row[3],
        device_id=row[4],
        expires_at=row[5],
    )


async def touch_session(session_id: int, db: AsyncSession) -> None:
    """Refresh last_seen.  Concurrent touches race harmlessly."""
    stmt = (
        update(UserSession)
        .where(UserSession.id == session_id)
        .values(last_seen=utcnow())
        .execution_options(synchronize_session=False)
    )
    await db.execute(stmt)


async def deactivate_session(
    session_id: int,
    db: AsyncSession,
) -> None:
    """Mark a single session as inactive (logout).  Idempotent."""
    stmt = (
        update(UserSession)
        .where(UserSession.id == session_id)
        .values(is_active=False, last_seen=utcnow())
        .execution_options(synchronize_session=False)
    )
    await db.execute(stmt)
    await db.flush()


async def deactivate_all_user_sessions(
    user_id: int,
    db: AsyncSession,
) -> int:
    """
    Deactivate every active session for a given user.

    Returns the number of sessions affected.
    Used by admin reset-device.
    """
    stmt = (
        update(UserSession)
        .where(
            UserSession.user_id == user_id,
            UserSession.is_active == True,  # noqa: E712
        )
        .values(is_active=False, last_seen=utcnow())
        .execution_options(synchronize_session=False)
    )
    result = await db.execute(stmt)
    await db.flush()
    return result.rowcount


async def list_sessions(
    db: AsyncSession,
    active_only: bool = False,
    limit: int = SESSION_LIST_LIMIT,
) -> tuple[list[SessionListRow], int]:
    """Newest logins first, plus the total number of active sessions."""
    stmt = (
        select(UserSession, User.login, User.role)
        .join(User, User.id == UserSession.user_id)
        .order_by(UserSession.login_time.desc(), UserSession.id.desc())
        .limit(limit)
    )
    if active_only:
        stmt = stmt.where(UserSession.is_active == True)  # noqa: E712

    rows = [
        SessionListRow(
            id=s.id,
            user_id=s.user_id,
            login=login,
            role=role,
            device_id=s.device_id,
            ip=s.ip,
            user_agent=s.user_agent,
            login_time=s.login_time,
            last_seen=s.last_seen,
            is_active=s.is_active,
        )
        for s, login, role in (await db.execute(stmt)).all()
    ]

    count_stmt = select(func.count(UserSession.id)).where(
        UserSession.is_active == True,  # noqa: E712
    )
    active_count = (await db.execute(count_stmt)).scalar_one()
    return rows, active_count


async def delete_session(session_id: int, db: AsyncSession) -> int | None:
    """Hard-delete a session row.  Returns the owner's user id, or None."""
    owner = (
        await db.execute(select(UserSession.user_id).where(UserSession.id == session_id))
    ).scalar_one_or_none()
    if owner is None:
        return None
    await db.execute(
        delete(UserSession)
        .where(UserSession.id == session_id)
        .execution_options(synchronize_session=False)
    )
    await db.flush()
    return owner


async def admin_delete_session(
    session_id: int,
    current_session_id: int,
    admin_id: int,
    db: AsyncSession,
) -> None:
    """
    Admin removal of a session row.  The session authenticating the
    admin's own request is refused (400) and left untouched.
    """
    if session_id == current_session_id:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Current session cannot be deleted",
        )

    owner_id = await delete_session(session_id, db)
    if owner_id is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Session not found")

    await audit_service.log_admin_action(
        db,
        admin_user_id=admin_id,
        action=AdminActionKind.DELETE_SESSION,
        target_user_id=owner_id,
        notes=f"session_id={session_id}",
    )
