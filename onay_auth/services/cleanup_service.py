"""
Expired-account cleanup.

An account is expired when `expires_at` is set and `<= now`.

- deactivate: every active session of an expired user is closed; user
  rows (and their expiry) are left as they are.
- delete:     expired users are removed; their sessions go with them
  through the FK cascade.

Shared by the admin endpoint and the `cleanup_expired` script.
"""

import enum
import logging
from dataclasses import dataclass
from datetime import datetime

from sqlalchemy import delete, func, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from onay_auth.models.admin_action import AdminActionKind
from onay_auth.models.base import utcnow
from onay_auth.models.session import UserSession
from onay_auth.models.user import User
from onay_auth.services import audit_service

logger = logging.getLogger(__name__)


class CleanupMode(str, enum.Enum):
    DEACTIVATE = "deactivate"
    DELETE = "delete"


@dataclass(frozen=True)
class CleanupResult:
    mode: CleanupMode
    expired_users: int
    affected_sessions: int


def _expired_user_ids(now: datetime):
    return select(User.id).where(
        User.expires_at.is_not(None),
        User.expires_at <= now,
    )


async def cleanup_expired_users(
    mode: CleanupMode,
    db: AsyncSession,
    now: datetime | None = None,
) -> CleanupResult:
    now = now or utcnow()
    expired_ids = _expired_user_ids(now)

    expired_users = (
        await db.execute(select(func.count()).select_from(expired_ids.subquery()))
    ).scalar_one()

    if mode == CleanupMode.DELETE:
        affected_sessions = (
            await db.execute(
                select(func.count(UserSession.id)).where(UserSession.user_id.in_(expired_ids))
            )
        ).scalar_one()
        await db.execute(
            delete(User)
            .where(User.id.in_(expired_ids))
            .execution_options(synchronize_session=False)
        )
    else:
        result = await db.execute(
            update(UserSession)
            .where(
                UserSession.user_id.in_(expired_ids),
                UserSession.is_active == True,  # noqa: E712
            )
            .values(is_active=False, last_seen=now)
            .execution_options(synchronize_session=False)
        )
        affected_sessions = result.rowcount

    await db.flush()
    logger.info(
        "Cleanup of expired users: mode=%s expired_users=%s affected_sessions=%s",
        mode.value,
        expired_users,
        affected_sessions,
    )
    return CleanupResult(
        mode=mode,
        expired_users=expired_users,
        affected_sessions=affected_sessions,
    )


async def cleanup_expired(
    mode: CleanupMode,
    admin_id: int,
    db: AsyncSession,
) -> CleanupResult:
    """Admin-triggered cleanup; the sweep is recorded in the action log."""
    result = await cleanup_expired_users(mode, db)
    await audit_service.log_admin_action(
        db,
        admin_user_id=admin_id,
        action=AdminActionKind.CLEANUP_EXPIRED,
        notes=f"mode={mode.value}; expiredUsers={result.expired_users}",
    )
    return result
