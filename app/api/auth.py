"""
Caller Identity

The gateway in front of this service authenticates users and forwards the
result as headers:

    X-User-Id:   numeric id of the consumer or provider profile
    X-User-Role: consumer | provider | admin

Routes declare the role they need with `require_role(...)`.
"""
import logging
from dataclasses import dataclass
from typing import Callable, Optional

from fastapi import Depends, Header, HTTPException, status

logger = logging.getLogger(__name__)

ROLES = {"consumer", "provider", "admin"}


@dataclass(frozen=True)
class Caller:
    user_id: int
    role: str


def _auth_error(code: str, message: str, details: str, status_code: int = status.HTTP_401_UNAUTHORIZED) -> HTTPException:
    return HTTPException(
        status_code=status_code,
        detail={
            "error": {
                "code": code,
                "message": message,
                "details": details
            }
        },
    )


async def get_caller(
    x_user_id: Optional[str] = Header(None),
    x_user_role: Optional[str] = Header(None),
) -> Caller:
    """
    Read the caller from the forwarded identity headers.

    Raises:
        HTTPException: 401 when either header is missing or malformed
    """
    if not x_user_id or not x_user_role:
        raise _auth_error("AUTH_001", "Identity headers missing", "X-User-Id and X-User-Role are required")

    role = x_user_role.strip().lower()
    if role not in ROLES:
        logger.warning(f"Rejected unknown role header: {x_user_role[:20]}")
        raise _auth_error("AUTH_002", "Invalid role", f"Role must be one of {sorted(ROLES)}")

    try:
        user_id = int(x_user_id)
    except ValueError:
        raise _auth_error("AUTH_003", "Invalid user id", "X-User-Id must be an integer")
    if user_id <= 0:
        raise _auth_error("AUTH_003", "Invalid user id", "X-User-Id must be positive")

    return Caller(user_id=user_id, role=role)


def require_role(*roles: str, allow_admin: bool = True) -> Callable:
    """
    Dependency factory allowing only the given roles.

    Admin passes too unless `allow_admin` is False, which routes acting on
    the caller's own consumer or provider profile set.
    """
    allowed = set(roles) | ({"admin"} if allow_admin else set())

    async def dependency(caller: Caller = Depends(get_caller)) -> Caller:
        if caller.role not in allowed:
            raise _auth_error(
                "AUTH_004",
                "Forbidden",
                f"This endpoint requires role: {', '.join(sorted(roles))}",
                status_code=status.HTTP_403_FORBIDDEN,
            )
        return caller

    return dependency
