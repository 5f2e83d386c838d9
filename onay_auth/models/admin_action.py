"""
Admin action log — audit trail of admin mutations.

Both user references are SET NULL on delete so log rows survive the
removal of the admin or of the target user.
"""

import enum

from sqlalchemy import ForeignKey, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from onay_auth.models.base import Base, CreatedAtMixin, IntegerPrimaryKeyMixin


class AdminActionKind(str, enum.Enum):
    CREATE_USER = "create_user"
    RESET_DEVICE = "reset_device"
    DELETE_USER = "delete_user"
    EXTEND_USER = "extend_user"
    DELETE_SESSION = "delete_session"
    CLEANUP_EXPIRED = "cleanup_expired"


class AdminAction(Base, IntegerPrimaryKeyMixin, CreatedAtMixin):
    __tablename__ = "admin_actions"

    admin_user_id: Mapped[int | None] = mapped_column(
        ForeignKey("users.id", ondelete="SET NULL"),
        nullable=True,
    )
    action: Mapped[str] = mapped_column(String(64), nullable=False)
    target_user_id: Mapped[int | None] = mapped_column(
        ForeignKey("users.id", ondelete="SET NULL"),
        nullable=True,
    )
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)

    def __repr__(self) -> str:
        return f"<AdminAction {self.action} by={self.admin_user_id} target={self.target_user_id}>"
