"""
Pydantic schemas for request / response serialization.

Auth and admin payloads share one module; services hand back ORM
objects or dataclasses and routes convert them here.

Request bodies accept the camelCase names the web client sends
(`deviceId`, `expiresAt`) as well as snake_case.
"""

from datetime import datetime

from pydantic import AliasChoices, BaseModel, Field

from onay_auth.models.user import UserRole
from onay_auth.services.cleanup_service import CleanupMode


# ── Auth ─────────────────────────────────────────────────────────────
class LoginRequest(BaseModel):
    # Empty defaults: missing fields are a 400 from the service, not a 422.
    login: str = ""
    password: str = ""
    device_id: str = Field(
        default="",
        validation_alias=AliasChoices("deviceId", "device_id"),
    )


# ── User ─────────────────────────────────────────────────────────────
class UserOut(BaseModel):
    id: int
    login: str
    role: UserRole
    device_id: str | None = None
    expires_at: datetime | None = None
    created_at: datetime

    model_config = {"from_attributes": True}


class TokenResponse(BaseModel):
    token: str
    token_type: str = "Bearer"
    user: UserOut
    session_id: int


class CreateUserRequest(BaseModel):
    login: str = ""
    password: str = ""
    role: str = "user"
    expires_at: datetime | None = Field(
        default=None,
        validation_alias=AliasChoices("expiresAt", "expires_at"),
    )


class ExtendUserRequest(BaseModel):
    months: int | None = None
    permanent: bool = False
    expires_at: datetime | None = Field(
        default=None,
        validation_alias=AliasChoices("expiresAt", "expires_at"),
    )


# ── Sessions ─────────────────────────────────────────────────────────
class SessionOut(BaseModel):
    id: int
    user_id: int
    login: str
    role: UserRole
    device_id: str
    ip: str | None = None
    user_agent: str | None = None
    login_time: datetime
    last_seen: datetime
    is_active: bool

    model_config = {"from_attributes": True}


class SessionListOut(BaseModel):
    sessions: list[SessionOut]
    active_count: int


class DeletedSessionOut(BaseModel):
    session_id: int


# ── Cleanup ──────────────────────────────────────────────────────────
class CleanupRequest(BaseModel):
    mode: CleanupMode = CleanupMode.DEACTIVATE


class CleanupOut(BaseModel):
    mode: CleanupMode
    expired_users: int
    affected_sessions: int

    model_config = {"from_attributes": True}


# ── Generic ──────────────────────────────────────────────────────────
class MessageResponse(BaseModel):
    detail: str
