"""
Session handling for the API.

Sessions travel in two httpOnly cookies (short-lived access token and
longer-lived refresh token). API clients may send the access token as a
Bearer header instead. The user row is loaded on every request so role and
active-state changes apply immediately.
"""

from typing import Optional

from fastapi import Depends, Request, Response
from sqlalchemy.orm import Session

from .config import settings
from .database import get_db
from .errors import AuthenticationError, PermissionDeniedError
from .logging_config import get_logger
from .models import User
from .tokens import TokenService, get_token_service

logger = get_logger(__name__)

ACCESS_COOKIE = "access_token"
REFRESH_COOKIE = "refresh_token"


def get_client_ip(request: Request) -> str:
    """Client IP: first X-Forwarded-For entry, then X-Real-IP, then the peer."""
    forwarded = request.headers.get("X-Forwarded-For")
    if forwarded:
        first = forwarded.split(",")[0].strip()
        if first:
            return first

    real_ip = request.headers.get("X-Real-IP")
    if real_ip:
        return real_ip.strip()

    return request.client.host if request.client else "unknown"


def _set_cookie(response: Response, name: str, value: str, max_age: int) -> None:
    response.set_cookie(
        key=name,
        value=value,
        max_age=max_age,
        httponly=True,
        secure=settings.COOKIE_SECURE,
        samesite=settings.COOKIE_SAMESITE,
        path="/",
    )


def set_access_cookie(response: Response, token: str, tokens: TokenService) -> None:
    _set_cookie(response, ACCESS_COOKIE, token, int(tokens.access_ttl.total_seconds()))


def set_session_cookies(response: Response, user: User, tokens: TokenService) -> None:
    """Issue a fresh access/refresh pair for the user."""
    set_access_cookie(response, tokens.create_access_token(user), tokens)
    _set_cookie(
        response,
        REFRESH_COOKIE,
        tokens.create_refresh_token(user),
        int(tokens.refresh_ttl.total_seconds()),
    )


def clear_session_cookies(response: Response) -> None:
    for name in (ACCESS_COOKIE, REFRESH_COOKIE):
        response.delete_cookie(
            key=name,
            path="/",
            httponly=True,
            secure=settings.COOKIE_SECURE,
            samesite=settings.COOKIE_SAMESITE,
        )


def _bearer_token(request: Request) -> Optional[str]:
    header = request.headers.get("Authorization", "")
    scheme, _, token = header.partition(" ")
    if scheme.lower() == "bearer" and token.strip():
        return token.strip()
    return None


def get_current_user(
    request: Request,
    db: Session = Depends(get_db),
    tokens: TokenService = Depends(get_token_service),
) -> User:
    """
    FastAPI dependency resolving the signed-in user.
    Raises AuthenticationError (401) or PermissionDeniedError (403).
    """
    token = request.cookies.get(ACCESS_COOKIE) or _bearer_token(request)
    if not token:
        raise AuthenticationError("Authentication required")

    payload = tokens.verify_access_token(token)
    if not payload:
        raise AuthenticationError("Invalid or expired session")

    try:
        user_id = int(payload["sub"])
    except (KeyError, TypeError, ValueError):
        raise AuthenticationError("Invalid or expired session")

    user = db.get(User, user_id)
    if not user:
        raise AuthenticationError("User no longer exists")
    if not user.is_active:
        raise PermissionDeniedError("Account is inactive")
    return user


def require_admin(user: User = Depends(get_current_user)) -> User:
    """FastAPI dependency allowing admins only."""
    if not user.is_admin:
        logger.warning(f"User {user.id} denied admin access")
        raise PermissionDeniedError("Insufficient permissions")
    return user
