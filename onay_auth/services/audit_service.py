"""
Audit service — admin action log.

Writes are best-effort: each row goes into its own savepoint so a
failed insert rolls back only the log row, never the admin operation
that triggered it.  Failures are logged and swallowed.
"""

import logging

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from onay_auth.models.admin_action import AdminAction, AdminActionKind

logger = logging.getLogger(__name__)


async def log_admin_action(
    db: AsyncSession,
    *,
    admin_user_id: int | None,
    action: AdminActionKind,
    target_user_id: int | None = None,
    notes: str | None = None,
) -> None:
    try:
        async with db.begin_nested():
            db.add(
                AdminAction(
                    admin_user_id=admin_user_id,
                    action=action.value,
                    target_user_id=target_user_id,
                    notes=notes,
                )
            )
    except SQLAlchemyError:
        logger.warning(
            "Failed to write admin action %s (admin=%s, target=%s)",
            action.value,
            admin_user_id,
            target_user_id,
            exc_info=True,
        )
        return

    logger.info(
        "Admin %s: %s target=%s %s",
        admin_user_id,
        action.value,
        target_user_id,
        notes or "",
    )
