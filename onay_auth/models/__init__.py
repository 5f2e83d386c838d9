"""
Models package — import every model so SQLAlchemy's Base.metadata
knows about all tables (critical for `create_all` / Alembic).
"""

from onay_auth.models.base import Base, CreatedAtMixin, IntegerPrimaryKeyMixin
from onay_auth.models.user import User, UserRole, normalize_login
from onay_auth.models.session import UserSession
from onay_auth.models.admin_action import AdminAction, AdminActionKind

__all__ = [
    "Base",
    "CreatedAtMixin",
    "IntegerPrimaryKeyMixin",
    "User",
    "UserRole",
    "normalize_login",
    "UserSession",
    "AdminAction",
    "AdminActionKind",
]
