from __future__ import annotations

import logging
from typing import Annotated
from uuid import UUID

import jwt
from fastapi import Depends, HTTPException, Request, status
from fastapi.security import OAuth2PasswordBearer

from classroom.models.principal import Principal
from classroom.models.user import ROLE_ADMIN, ROLE_TEACHER
from classroom.services import token_service
from classroom.services.container import Services

logger = logging.getLogger(__name__)

# Tokens are issued by the platform auth service; tokenUrl only feeds the docs.
oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/oauth/token")

STAFF_ROLES = {ROLE_TEACHER, ROLE_ADMIN}


def get_services(request: Request) -> Services:
    return request.app.state.services


def require_user(
    raw_token: Annotated[str, Depends(oauth2_scheme)],
) -> Principal:
    """Extract and validate the JWT bearer token. Returns a Principal.

    Used as a FastAPI dependency on any protected endpoint.
    """
    try:
        claims = token_service.decode_access_token(raw_token)
    except jwt.ExpiredSignatureError:
        logger.warning("Expired token rejected")
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Token expired",
            headers={"WWW-Authenticate": "Bearer"},
        ) from None
    except jwt.InvalidTokenError as e:
        logger.warning("Invalid token rejected: %s", e)
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid token",
            headers={"WWW-Authenticate": "Bearer"},
        ) from None

    principal = Principal(
        user_id=claims["sub"],
        roles=frozenset(claims.get("roles", [])),
    )
    logger.debug(
        "Token validated for user=%s roles=%s",
        principal.user_id,
        sorted(principal.roles),
    )
    return principal


def require_any_role(roles: set[str]):
    """Dependency factory: demand at least one of the given roles.

    Usage: Depends(require_any_role({"teacher", "admin"}))
    """

    def _guard(
        principal: Annotated[Principal, Depends(require_user)],
    ) -> Principal:
        if not principal.has_any_role(roles):
            logger.warning(
                "Access denied: user=%s has none of roles=%s",
                principal.user_id,
                sorted(roles),
            )
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail="Insufficient permissions",
            )
        return principal

    return _guard


require_staff = require_any_role(STAFF_ROLES)


def caller_student_id(principal: Principal) -> UUID:
    """The caller's own id, for the /me and my-* routes."""
    try:
        return principal.uuid
    except ValueError:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Token subject is not a user id",
        ) from None


def require_self_or_staff(principal: Principal, student_id: UUID) -> None:
    """Students may read only their own data; teachers and admins anyone's."""
    if principal.is_staff() or principal.acts_for(student_id):
        return
    logger.warning(
        "Access denied: user=%s reading student=%s",
        principal.user_id,
        student_id,
    )
    raise HTTPException(
        status_code=status.HTTP_403_FORBIDDEN,
        detail="Insufficient permissions",
    )


ServicesDep = Annotated[Services, Depends(get_services)]
UserDep = Annotated[Principal, Depends(require_user)]
StaffDep = Annotated[Principal, Depends(require_staff)]
