"""
Access policy — the single place where device binding, role and
account expiry are turned into an allow / deny decision.

Pure functions only: no I/O, no exceptions for expected outcomes.
Login and per-request authentication both delegate here, so the admin
bypass of the device lock exists exactly once.  An allowing decision
also carries the device the caller acts from, so callers never branch
on role themselves.

Evaluation order (first match wins):
  1. expired account            → 410
  2. role may use many devices  → allow, never bind
  3. no device bound yet        → allow, bind this device
  4. same device                → allow
  5. different device           → 403
"""

import enum
from dataclasses import dataclass
from datetime import datetime, timezone

from onay_auth.models.user import UserRole

ACCOUNT_EXPIRED_MESSAGE = "Срок действия аккаунта истек"
DEVICE_IN_USE_MESSAGE = "Этот аккаунт уже используется на другом устройстве"


class Capability(str, enum.Enum):
    MULTI_DEVICE = "multi_device"
    MANAGE_USERS = "manage_users"


ROLE_CAPABILITIES: dict[UserRole, frozenset[Capability]] = {
    UserRole.ADMIN: frozenset({Capability.MULTI_DEVICE, Capability.MANAGE_USERS}),
    UserRole.USER: frozenset(),
}


def has_capability(role: UserRole | str, capability: Capability) -> bool:
    try:
        role = UserRole(role)
    except ValueError:
        return False
    return capability in ROLE_CAPABILITIES.get(role, frozenset())


@dataclass(frozen=True)
class AccessDecision:
    ok: bool
    should_bind_device: bool
    status: int
    message: str | None = None
    device_id: str | None = None


def as_utc(value: datetime) -> datetime:
    """Naive timestamps (e.g. from SQLite) are taken to be UTC."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def is_expired_at(expires_at: datetime | None, now: datetime | None = None) -> bool:
    if expires_at is None:
        return False
    now = now or datetime.now(timezone.utc)
    return as_utc(expires_at) <= as_utc(now)


def evaluate_access(
    user_device_id: str | None,
    request_device_id: str,
    role: UserRole | str,
    expires_at: datetime | None,
    now: datetime | None = None,
) -> AccessDecision:
    if is_expired_at(expires_at, now):
        return AccessDecision(
            ok=False,
            should_bind_device=False,
            status=410,
            message=ACCOUNT_EXPIRED_MESSAGE,
        )

    if has_capability(role, Capability.MULTI_DEVICE):
        return AccessDecision(ok=True, should_bind_device=False, status=200, device_id=request_device_id)

    if not user_device_id:
        return AccessDecision(ok=True, should_bind_device=True, status=200, device_id=request_device_id)

    if user_device_id == request_device_id:
        return AccessDecision(ok=True, should_bind_device=False, status=200, device_id=request_device_id)

    return AccessDecision(
        ok=False,
        should_bind_device=False,
        status=403,
        message=DEVICE_IN_USE_MESSAGE,
    )
