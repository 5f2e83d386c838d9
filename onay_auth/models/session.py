"""
User session model — server-side session registry.

One row per successful login.  The JWT only references a row by id;
whether the session is still usable is decided from this table (and
the owning user) on every request, enabling:
- Server-side logout & admin force logout (reset-device)
- Last-seen tracking for the admin panel
- Cascade removal when the user is deleted
"""

from datetime import datetime

from sqlalchemy import Boolean, DateTime, ForeignKey, Index, Text, func
from sqlalchemy.orm import Mapped, mapped_column

from onay_auth.models.base import Base, IntegerPrimaryKeyMixin, utcnow


class UserSession(Base, IntegerPrimaryKeyMixin):
    __tablename__ = "sessions"

    user_id: Mapped[int] = mapped_column(
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    device_id: Mapped[str] = mapped_column(Text, nullable=False, index=True)
    ip: Mapped[str | None] = mapped_column(Text, nullable=True)
    user_agent: Mapped[str | None] = mapped_column(Text, nullable=True)
    login_time: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=utcnow,
        server_default=func.now(),
        nullable=False,
    )
    last_seen: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=utcnow,
        server_default=func.now(),
        nullable=False,
    )
    is_active: Mapped[bool] = mapped_column(
        Boolean,
        default=True,
        nullable=False,
        index=True,
    )

    __table_args__ = (
        Index("ix_sessions_user_active", "user_id", "is_active"),
    )

    def __repr__(self) -> str:
        return f"<UserSession user={self.user_id} device={self.device_id} active={self.is_active}>"
