"""
Authentication routes.
POST /auth/register, /auth/login, /auth/logout
"""
from __future__ import annotations

from fastapi import APIRouter, Request, Response, status
from slowapi import Limiter
from slowapi.util import get_remote_address

from taskboard.core.config import settings
from taskboard.core.dependencies import CurrentUser, DBSession
from taskboard.schemas.user import LoginRequest, Token, UserCreate, UserRead
from taskboard.services.auth_service import auth_service

router = APIRouter(prefix="/auth", tags=["Authentication"])

limiter = Limiter(key_func=get_remote_address, enabled=settings.RATE_LIMIT_ENABLED)


@router.post(
    "/register",
    response_model=UserRead,
    status_code=status.HTTP_201_CREATED,
    summary="Register a new user account",
)
async def register(
    user_in: UserCreate,
    db: DBSession,
) -> UserRead:
    user = await auth_service.register_user(db, user_in=user_in)
    return UserRead.model_validate(user)


@router.post(
    "/login",
    response_model=Token,
    summary="Authenticate and receive an access token",
)
@limiter.limit(settings.RATE_LIMIT_LOGIN)
async def login(
    request: Request,
    response: Response,
    credentials: LoginRequest,
    db: DBSession,
) -> Token:
    user, access_token = await auth_service.authenticate_user(
        db, email=credentials.email, password=credentials.password
    )
    response.set_cookie(
        settings.ACCESS_TOKEN_COOKIE,
        access_token,
        max_age=settings.access_token_expire_seconds,
        httponly=True,
        secure=not settings.DEBUG,
        samesite="lax",
    )
    return Token(access_token=access_token, user=UserRead.model_validate(user))


@router.post(
    "/logout",
    status_code=status.HTTP_204_NO_CONTENT,
    summary="Clear the access-token cookie",
)
async def logout(_current_user: CurrentUser, response: Response) -> None:
    response.delete_cookie(settings.ACCESS_TOKEN_COOKIE)
