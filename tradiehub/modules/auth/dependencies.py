"""
Auth Module - FastAPI Dependencies

Resolves the bearer token into a Caller. Credentials are issued and
verified upstream; this layer only decodes the identity and enforces roles.
"""
import uuid
from dataclasses import dataclass
from enum import Enum
from typing import Annotated

from fastapi import Depends
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from tradiehub.core.exceptions import ForbiddenError, UnauthorizedError
from tradiehub.core.logging import bind_context, get_logger
from tradiehub.core.security import verify_token

logger = get_logger(__name__)

security = HTTPBearer(auto_error=False)


class UserRole(str, Enum):
    TRADIE = "tradie"
    CLIENT = "client"
    ADMIN = "admin"


@dataclass(frozen=True)
class Caller:
    """Authenticated caller identity handed to services."""
    user_id: uuid.UUID
    role: UserRole

    @property
    def is_admin(self) -> bool:
        return self.role == UserRole.ADMIN


async def get_current_caller(
    credentials: Annotated[HTTPAuthorizationCredentials | None, Depends(security)],
) -> Caller:
    """
    Decode the bearer token into a Caller.

    Raises:
        UnauthorizedError: token missing, invalid, expired or malformed
    """
    if not credentials:
        raise UnauthorizedError("Authentication required")

    payload = verify_token(credentials.credentials)
    if not payload:
        raise UnauthorizedError("Invalid or expired token")

    try:
        caller = Caller(
            user_id=uuid.UUID(str(payload.get("sub"))),
            role=UserRole(payload.get("role")),
        )
    except ValueError:
        logger.warning("Token carries malformed identity claims", role=payload.get("role"))
        raise UnauthorizedError("Invalid token claims")

    bind_context(caller_id=str(caller.user_id), caller_role=caller.role.value)
    return caller


def require_role(roles: list[UserRole]):
    """
    Dependency factory for role-based access control.
    Admins pass every role check.

    Usage:
        caller: Annotated[Caller, Depends(require_role([UserRole.TRADIE]))]
    """
    async def role_checker(
        caller: Annotated[Caller, Depends(get_current_caller)],
    ) -> Caller:
        if caller.is_admin or caller.role in roles:
            return caller
        raise ForbiddenError(f"Required role: {', '.join(r.value for r in roles)}")

    return role_checker


# Type aliases for dependency injection
CurrentCaller = Annotated[Caller, Depends(get_current_caller)]
TradieCaller = Annotated[Caller, Depends(require_role([UserRole.TRADIE]))]
ClientCaller = Annotated[Caller, Depends(require_role([UserRole.CLIENT]))]
