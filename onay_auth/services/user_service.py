"""
User service — lookups, device binding & admin lifecycle operations.

Admin operations take the acting admin's id so each successful
mutation can be written to the admin action log.  Errors surface as
HTTPException with the specific status (404 / 409 / 400); storage
errors propagate untouched.
"""

import logging
from datetime import date, datetime, timedelta

from fastapi import HTTPException, status
from sqlalchemy import delete, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from onay_auth.core.security import hash_password, unauthorized
from onay_auth.models.admin_action import AdminActionKind
from onay_auth.models.base import utcnow
from onay_auth.models.user import User, UserRole, normalize_login
from onay_auth.rbac.access_policy import as_utc
from onay_auth.services import audit_service, session_service

logger = logging.getLogger(__name__)

MIN_PASSWORD_LENGTH = 6
DEFAULT_EXTEND_MONTHS = 3
MAX_EXTEND_MONTHS = 60


def _not_found() -> HTTPException:
    return HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="User not found")


def _bad_request(detail: str) -> HTTPException:
    return HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=detail)


def add_months(start: datetime, months: int) -> datetime:
    """Add calendar months, clamping the day to the target month's end."""
    year = start.year + (start.month - 1 + months) // 12
    month = (start.month - 1 + months) % 12 + 1
    day = min(start.day, _days_in_month(year, month))
    return start.replace(year=year, month=month, day=day)


def _days_in_month(year: int, month: int) -> int:
    if month == 12:
        next_month = date(year + 1, 1, 1)
    else:
        next_month = date(year, month + 1, 1)
    return (next_month - timedelta(days=1)).day


# ── Lookups ──────────────────────────────────────────────────────────

async def get_user_by_id(
    user_id: int,
    db: AsyncSession,
) -> User:
    user = (await db.execute(select(User).where(User.id == user_id))).scalar_one_or_none()
    if user is None:
        raise _not_found()
    return user


async def get_user_by_login(login: str, db: AsyncSession) -> User | None:
    stmt = select(User).where(User.login == normalize_login(login))
    return (await db.execute(stmt)).scalar_one_or_none()


async def list_users(db: AsyncSession) -> list[User]:
    stmt = select(User).order_by(User.created_at.desc(), User.id.desc())
    return list((await db.execute(stmt)).scalars().all())


async def bind_device_if_unset(user: User, device_id: str, db: AsyncSession) -> bool:
    """
    Compare-and-swap the device binding: only succeeds while the column
    is still NULL at write time.  `user` is reloaded from the database
    either way, so afterwards it reflects whoever won.  A user deleted
    in the meantime is a 401.
    """
    stmt = (
        update(User)
        .where(User.id == user.id, User.device_id.is_(None))
        .values(device_id=device_id)
        .execution_options(synchronize_session=False)
    )
    result = await db.execute(stmt)

    reloaded = (
        await db.execute(
            select(User)
            .where(User.id == user.id)
            .execution_options(populate_existing=True)
        )
    ).scalar_one_or_none()
    if reloaded is None:
        raise unauthorized("User not found")
    return result.rowcount > 0


# ── Admin lifecycle ─────────────────────────────────────────────────

async def create_user(
    login: str,
    password: str,
    role: UserRole,
    expires_at: datetime | None,
    admin_id: int | None,
    db: AsyncSession,
) -> User:
    """Create an account.  Device binding always starts empty."""
    login = normalize_login(login)
    if not login or not password:
        raise _bad_request("Fields login and password are required")
    if len(password) < MIN_PASSWORD_LENGTH:
        raise _bad_request(f"Password must be at least {MIN_PASSWORD_LENGTH} characters")

    if await get_user_by_login(login, db) is not None:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail="Login already exists")

    user = User(
        login=login,
        password_hash=hash_password(password),
        role=role,
        device_id=None,
        expires_at=as_utc(expires_at) if expires_at else None,
        created_at=utcnow(),
    )
    db.add(user)
    try:
        await db.flush()
    except IntegrityError:
        # Lost a race against a concurrent create with the same login.
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail="Login already exists")

    await audit_service.log_admin_action(
        db,
        admin_user_id=admin_id,
        action=AdminActionKind.CREATE_USER,
        target_user_id=user.id,
        notes=f"role={role.value}",
    )
    return user


async def reset_device(user_id: int, admin_id: int | None, db: AsyncSession) -> User:
    """
    Clear the device binding AND deactivate every active session, so a
    token from the old device cannot outlive its binding.
    """
    user = await get_user_by_id(user_id, db)
    user.device_id = None
    await db.flush()
    closed = await session_service.deactivate_all_user_sessions(user_id, db)

    await audit_service.log_admin_action(
        db,
        admin_user_id=admin_id,
        action=AdminActionKind.RESET_DEVICE,
        target_user_id=user_id,
        notes=f"sessions_closed={closed}",
    )
    return user


async def extend_expiry(
    user_id: int,
    admin_id: int | None,
    db: AsyncSession,
    *,
    months: int | None = None,
    permanent: bool = False,
    expires_at: datetime | None = None,
) -> User:
    """
    Three mutually exclusive modes:

    - months:     max(current expiry, now) + months; a lapsed expiry
                  restarts from now, a future one is extended.
    - permanent:  expiry removed.
    - expires_at: explicit instant.

    No mode given means `months=3`.
    """
    modes = sum([months is not None, permanent, expires_at is not None])
    if modes > 1:
        raise _bad_request("Specify only one of months, permanent or expires_at")
    if modes == 0:
        months = DEFAULT_EXTEND_MONTHS
    if months is not None and not 1 <= months <= MAX_EXTEND_MONTHS:
        raise _bad_request(f"months must be an integer in range 1..{MAX_EXTEND_MONTHS}")

    user = await get_user_by_id(user_id, db)

    if permanent:
        user.expires_at = None
        notes = "permanent"
    elif expires_at is not None:
        user.expires_at = as_utc(expires_at)
        notes = f"expires_at={user.expires_at.isoformat()}"
    else:
        now = utcnow()
        current = as_utc(user.expires_at) if user.expires_at else now
        user.expires_at = add_months(max(current, now), months)
        notes = f"months={months}"

    await db.flush()

    await audit_service.log_admin_action(
        db,
        admin_user_id=admin_id,
        action=AdminActionKind.EXTEND_USER,
        target_user_id=user_id,
        notes=notes,
    )
    return user


async def delete_user(user_id: int, admin_id: int | None, db: AsyncSession) -> None:
    """
    Hard delete.  Sessions go with the user (FK cascade); earlier log
    rows keep existing with their user references nulled, and this
    deletion is logged with the id kept in the notes.
    """
    exists = (
        await db.execute(select(User.id).where(User.id == user_id))
    ).scalar_one_or_none()
    if exists is None:
        raise _not_found()

    await db.execute(
        delete(User)
        .where(User.id == user_id)
        .execution_options(synchronize_session=False)
    )
    await db.flush()

    await audit_service.log_admin_action(
        db,
        admin_user_id=admin_id if admin_id != user_id else None,
        action=AdminActionKind.DELETE_USER,
        target_user_id=None,
        notes=f"deleted_user_id={user_id}",
    )
