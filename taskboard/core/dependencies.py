"""
FastAPI dependency injection functions.
Provides get_db, get_current_user, require_admin and the explicit Actor.
"""
from __future__ import annotations

import uuid
from typing import Annotated

from fastapi import Depends, Request
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from jose import JWTError
from sqlalchemy.ext.asyncio import AsyncSession

from taskboard.core.config import settings
from taskboard.core.exceptions import ForbiddenException, InvalidTokenException, UnauthorizedException
from taskboard.core.permissions import Actor
from taskboard.core.security import decode_access_token
from taskboard.crud.user import crud_user
from taskboard.db.session import get_db
from taskboard.models.user import User

# Re-export get_db so routes can import from one place
__all__ = ["get_db", "get_current_user", "require_admin", "DBSession", "CurrentUser"]

bearer_scheme = HTTPBearer(auto_error=False)


async def get_current_user(
    request: Request,
    db: Annotated[AsyncSession, Depends(get_db)],
    credentials: Annotated[
        HTTPAuthorizationCredentials | None, Depends(bearer_scheme)
    ] = None,
) -> User:
    """
    Resolve the JWT from the Authorization header, falling back to the
    access-token cookie, and return the authenticated User.
    """
    token = credentials.credentials if credentials else None
    if token is None:
        token = request.cookies.get(settings.ACCESS_TOKEN_COOKIE)
    if not token:
        raise UnauthorizedException("Missing authentication token")

    try:
        payload = decode_access_token(token)
    except JWTError:
        raise InvalidTokenException("Invalid or expired access token")

    try:
        user_id = uuid.UUID(payload.get("sub", ""))
    except ValueError:
        raise InvalidTokenException("Malformed token: invalid subject format")

    user = await crud_user.get(db, user_id)
    if user is None:
        raise UnauthorizedException("User not found")
    if not user.is_active or user.is_pending_deletion:
        raise UnauthorizedException("User account is deactivated")

    return user


async def require_admin(
    current_user: Annotated[User, Depends(get_current_user)],
) -> User:
    """Dependency that requires the current user to have the 'admin' role."""
    if current_user.role != "admin":
        raise ForbiddenException("Admin privileges required")
    return current_user


def get_actor(current_user: Annotated[User, Depends(get_current_user)]) -> Actor:
    return Actor.from_user(current_user)


# Convenience type aliases for route signatures
DBSession = Annotated[AsyncSession, Depends(get_db)]
CurrentUser = Annotated[User, Depends(get_current_user)]
AdminUser = Annotated[User, Depends(require_admin)]
CurrentActor = Annotated[Actor, Depends(get_actor)]
