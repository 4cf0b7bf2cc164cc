"""
Authentication utilities for API endpoints
"""

import logging
from dataclasses import dataclass
from typing import Optional

import jwt
from fastapi import Header, HTTPException

from config import settings

logger = logging.getLogger(__name__)


@dataclass
class AuthContext:
    """Who the request acts for, and the token to forward to the backup service"""
    is_authenticated: bool
    user_id: str
    access_token: Optional[str] = None
    email: Optional[str] = None


def decode_user_token(token: str) -> dict:
    """Verify a Supabase access token (HS256) and return its claims"""
    if not settings.SUPABASE_JWT_SECRET:
        raise jwt.InvalidTokenError("JWT secret not configured")
    return jwt.decode(
        token,
        settings.SUPABASE_JWT_SECRET,
        algorithms=["HS256"],
        audience=settings.JWT_AUDIENCE,
        options={"require": ["sub", "exp"]},
    )


async def authenticate_user(authorization: Optional[str] = Header(None)) -> AuthContext:
    """
    FastAPI dependency for Bearer token authentication.

    With ENABLE_AUTH off every request acts as LOCAL_USER_ID.

    Raises:
        HTTPException: 401 if authentication fails
    """
    if not settings.ENABLE_AUTH:
        return AuthContext(is_authenticated=False, user_id=settings.LOCAL_USER_ID)

    if not authorization:
        logger.warning("AUTH: Request missing Authorization header")
        raise HTTPException(status_code=401, detail="Missing Authorization header")

    if not authorization.startswith("Bearer "):
        logger.warning("AUTH: Invalid Authorization header format")
        raise HTTPException(
            status_code=401,
            detail="Invalid authorization header format. Expected 'Bearer <token>'"
        )

    token = authorization[7:]
    try:
        claims = decode_user_token(token)
    except jwt.ExpiredSignatureError:
        logger.warning("AUTH: Expired access token")
        raise HTTPException(401, "Access token expired")
    except jwt.InvalidTokenError as e:
        logger.warning(f"AUTH: Invalid access token: {str(e)}")
        raise HTTPException(401, "Invalid access token")

    logger.debug(f"AUTH: Authenticated user {claims['sub']}")
    return AuthContext(
        is_authenticated=True,
        user_id=claims["sub"],
        access_token=token,
        email=claims.get("email"),
    )


class AuthConfig:
    """Centralized authentication configuration for the application"""

    @staticmethod
    def get_auth_dependency():
        return authenticate_user
