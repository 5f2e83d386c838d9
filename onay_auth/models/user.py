"""
User model.

Design decisions:
- `login` is stored trimmed and lower-cased; every lookup normalises
  the same way (see `normalize_login`).
- `device_id` holds the single device a USER-role account is bound to.
  It is only ever set through a conditional write (bind-if-null) or
  cleared by an admin reset.  ADMIN accounts ignore it.
- `expires_at` NULL means the account never expires.
"""

import enum
from datetime import datetime

from sqlalchemy import DateTime, Enum, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from onay_auth.models.base import Base, CreatedAtMixin, IntegerPrimaryKeyMixin


class UserRole(str, enum.Enum):
    ADMIN = "admin"
    USER = "user"


def normalize_login(value: str | None) -> str:
    return (value or "").strip().lower()


class User(Base, IntegerPrimaryKeyMixin, CreatedAtMixin):
    __tablename__ = "users"

    login: Mapped[str] = mapped_column(Text, unique=True, index=True, nullable=False)
    password_hash: Mapped[str] = mapped_column(String(255), nullable=False)
    role: Mapped[UserRole] = mapped_column(
        Enum(
            UserRole,
            name="user_role",
            native_enum=False,
            length=16,
            values_callable=lambda roles: [r.value for r in roles],
        ),
        default=UserRole.USER,
        nullable=False,
    )
    device_id: Mapped[str | None] = mapped_column(Text, nullable=True, index=True)
    expires_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
    )

    def __repr__(self) -> str:
        return f"<User {self.login} role={self.role.value}>"
