"""
Bearer token verification and signed OAuth state tokens.

Login tokens are issued elsewhere; this service only verifies them.
"""

import logging
from dataclasses import dataclass
from datetime import timedelta
from typing import Optional

import jwt
from fastapi import Depends
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from finko.core.config import config
from finko.core.exceptions import (
    ConfigurationError,
    ForbiddenError,
    UnauthorizedError,
)
from finko.utils.datetime import utc_now

logger = logging.getLogger(__name__)

JWT_ALGORITHM = "HS256"
STATE_TOKEN_TTL = timedelta(minutes=5)
ADMIN_ROLES = ("admin", "root")

bearer_scheme = HTTPBearer(auto_error=False)


@dataclass
class AuthenticatedUser:
    user_id: int
    role: str = "user"

    @property
    def is_admin(self) -> bool:
        return self.role in ADMIN_ROLES


@dataclass
class OAuthState:
    user_id: int
    platform: Optional[str] = None


def _secret() -> str:
    if not config.jwt_secret:
        raise ConfigurationError("JWT_SECRET is not configured")
    return config.jwt_secret


def decode_access_token(token: str) -> AuthenticatedUser:
    try:
        claims = jwt.decode(token, _secret(), algorithms=[JWT_ALGORITHM])
    except jwt.PyJWTError as e:
        logger.info(f"Rejected bearer token: {e}")
        raise UnauthorizedError("Invalid or expired token")

    user_id = claims.get("userId")
    if user_id is None:
        raise UnauthorizedError("Invalid or expired token")
    return AuthenticatedUser(user_id=int(user_id), role=claims.get("role") or "user")


async def get_current_user(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme),
) -> AuthenticatedUser:
    if credentials is None or not credentials.credentials:
        raise UnauthorizedError("Authentication token required")
    return decode_access_token(credentials.credentials)


async def require_admin(
    user: AuthenticatedUser = Depends(get_current_user),
) -> AuthenticatedUser:
    if not user.is_admin:
        raise ForbiddenError("Access denied. Administrator role required")
    return user


def create_state_token(user_id: int, platform: Optional[str] = None) -> str:
    """Short-lived token carried through Google's consent screen."""
    payload = {"userId": user_id, "exp": utc_now() + STATE_TOKEN_TTL}
    if platform:
        payload["platform"] = platform
    return jwt.encode(payload, _secret(), algorithm=JWT_ALGORITHM)


def verify_state_token(state: str) -> OAuthState:
    try:
        claims = jwt.decode(state, _secret(), algorithms=[JWT_ALGORITHM])
    except jwt.PyJWTError as e:
        raise UnauthorizedError(f"Invalid OAuth state: {e}")
    return OAuthState(user_id=int(claims["userId"]), platform=claims.get("platform"))
