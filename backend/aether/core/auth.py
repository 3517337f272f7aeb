"""JWT validation and authentication utilities."""

import uuid
from typing import Optional

import jwt
from fastapi import Depends, HTTPException, Request, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from pydantic import BaseModel
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from aether.config import settings
from aether.core.logging import get_logger
from aether.db.base import get_db
from aether.db.models import User

logger = get_logger(__name__)
security = HTTPBearer(auto_error=False)

SESSION_COOKIE_NAME = "aether.session-token"

DEV_TOKEN = {
    "sub": "dev-subject",
    "email": "dev@example.com",
    "name": "Developer",
    "iat": 0,
    "exp": 0,
}


class TokenPayload(BaseModel):
    """JWT payload issued by the web frontend."""

    sub: str
    email: str
    name: Optional[str] = None
    instructions: Optional[str] = None  # Advisory preferences set by the user
    iat: int
    exp: int


class CurrentUser(BaseModel):
    """Current authenticated user."""

    id: str
    email: str
    name: Optional[str] = None
    instructions: Optional[str] = None


def decode_jwt(token: str) -> TokenPayload:
    """Decode and validate a session JWT."""
    try:
        payload = jwt.decode(token, settings.auth_secret, algorithms=["HS256"])
        return TokenPayload(**payload)
    except jwt.ExpiredSignatureError:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Token has expired",
        )
    except (jwt.InvalidTokenError, ValueError) as e:
        logger.warning("jwt_validation_failed", error=str(e))
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid token",
        )


async def get_or_create_user(db: AsyncSession, token_payload: TokenPayload) -> User:
    """Get existing user or create one from the token payload."""
    result = await db.execute(select(User).where(User.subject == token_payload.sub))
    user = result.scalar_one_or_none()

    if user:
        if user.name != token_payload.name or user.instructions != token_payload.instructions:
            user.name = token_payload.name
            user.instructions = token_payload.instructions
            await db.commit()
        return user

    user = User(
        id=str(uuid.uuid4()),
        email=token_payload.email,
        name=token_payload.name,
        subject=token_payload.sub,
        instructions=token_payload.instructions,
    )
    db.add(user)
    await db.commit()
    await db.refresh(user)

    logger.info("user_created", user_id=user.id, email=user.email)
    return user


def _token_from_request(
    request: Request, credentials: Optional[HTTPAuthorizationCredentials]
) -> Optional[str]:
    if credentials:
        return credentials.credentials
    return request.cookies.get(SESSION_COOKIE_NAME)


def _to_current_user(user: User) -> CurrentUser:
    return CurrentUser(
        id=user.id,
        email=user.email,
        name=user.name,
        instructions=user.instructions,
    )


async def get_current_user(
    request: Request,
    credentials: HTTPAuthorizationCredentials = Depends(security),
    db: AsyncSession = Depends(get_db),
) -> CurrentUser:
    """Dependency to get the current authenticated user.

    Accepts the JWT from the Authorization header (Bearer token) or, failing
    that, the session cookie. With auth disabled a persistent dev user is used.
    """
    if not settings.auth_enabled:
        user = await get_or_create_user(db, TokenPayload(**DEV_TOKEN))
        return _to_current_user(user)

    token = _token_from_request(request, credentials)
    if not token:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Not authenticated",
            headers={"WWW-Authenticate": "Bearer"},
        )

    user = await get_or_create_user(db, decode_jwt(token))
    return _to_current_user(user)


async def get_optional_user(
    request: Request,
    credentials: HTTPAuthorizationCredentials = Depends(security),
    db: AsyncSession = Depends(get_db),
) -> Optional[CurrentUser]:
    """Dependency to optionally get the current user (no error if not authenticated)."""
    if settings.auth_enabled and not _token_from_request(request, credentials):
        return None

    try:
        return await get_current_user(request, credentials, db)
    except HTTPException:
        return None
