"""
Authentication service.
Handles registration and login; routes only call these methods.
"""
from __future__ import annotations

import logging

from sqlalchemy.ext.asyncio import AsyncSession

from taskboard.core.exceptions import ConflictException, ForbiddenException, UnauthorizedException
from taskboard.core.permissions import ROLE_ADMIN, ROLE_MEMBER
from taskboard.core.security import (
    create_access_token,
    hash_password,
    is_admin_invite,
    verify_password,
)
from taskboard.crud.user import crud_user
from taskboard.models.user import User
from taskboard.schemas.user import UserCreate

logger = logging.getLogger(__name__)


class AuthService:

    async def register_user(self, db: AsyncSession, *, user_in: UserCreate) -> User:
        """
        Register a new account.
        The admin role is granted only when a matching invite token is supplied.
        """
        if await crud_user.exists(db, email=user_in.email):
            raise ConflictException("A user with this email already exists")

        role = ROLE_ADMIN if is_admin_invite(user_in.admin_invite_token) else ROLE_MEMBER
        user = await crud_user.create_user(
            db,
            name=user_in.name,
            email=user_in.email,
            hashed_password=hash_password(user_in.password),
            role=role,
            avatar_url=user_in.avatar_url,
        )
        logger.info("Registered user %s with role %s", user.id, role)
        return user

    async def authenticate_user(
        self, db: AsyncSession, *, email: str, password: str
    ) -> tuple[User, str]:
        """Verify credentials and return the user with a fresh access token."""
        user = await crud_user.get_by_email(db, email)
        if user is None or not verify_password(password, user.hashed_password):
            raise UnauthorizedException("Invalid email or password")
        if not user.is_active:
            raise ForbiddenException(
                "This account has been suspended. Contact an administrator"
            )
        return user, create_access_token(str(user.id), user.role)


auth_service = AuthService()
