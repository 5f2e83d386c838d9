"""
Auth dependencies — the entry point of every protected route.

`get_current_auth` runs the full per-request authentication (token →
session registry → access policy) and returns an AuthContext.

`require_capability` is a *dependency factory* on top of it: call it
with a capability and it returns a dependency that also checks the
role resolved from the database (never the role claimed by the
token).  Returns 403 with no details on failure.

Usage in a route:
    @router.get("/admin/users")
    async def list_users(auth: AuthContext = Depends(require_admin)): ...
"""

import logging

from fastapi import Depends, HTTPException, Request, status
from sqlalchemy.ext.asyncio import AsyncSession

from onay_auth.core.database import get_db
from onay_auth.core.security import oauth2_scheme, read_bearer_token
from onay_auth.rbac.access_policy import Capability, has_capability
from onay_auth.services import auth_service
from onay_auth.services.auth_service import AuthContext

logger = logging.getLogger("rbac")


async def get_current_auth(
    request: Request,
    header_token: str | None = Depends(oauth2_scheme),
    db: AsyncSession = Depends(get_db),
) -> AuthContext:
    token = read_bearer_token(request, header_token)
    return await auth_service.authenticate(token, db)


class require_capability:
    """
    Dependency factory.

    Can be used as:
        Depends(require_capability(Capability.MANAGE_USERS))
    """

    def __init__(self, capability: Capability):
        self.capability = capability

    async def __call__(self, auth: AuthContext = Depends(get_current_auth)) -> AuthContext:
        if not has_capability(auth.role, self.capability):
            logger.warning(
                "Capability %s denied for user %s (role=%s)",
                self.capability.value,
                auth.user_id,
                auth.role.value,
            )
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail="Admin access required",
            )
        return auth


require_admin = require_capability(Capability.MANAGE_USERS)
