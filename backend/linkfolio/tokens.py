"""
Signed session tokens.
Access and refresh tokens use separate secrets and lifetimes; both are
handed to the service at construction time.
"""

from datetime import timedelta
from functools import lru_cache
from typing import Any, Dict, Optional

import jwt

from .config import settings
from .logging_config import get_logger
from .utils import utc_now

logger = get_logger(__name__)

ACCESS = "access"
REFRESH = "refresh"


class TokenService:
    """Issue and verify access/refresh JWTs."""

    def __init__(
        self,
        access_secret: str,
        refresh_secret: str,
        access_ttl: timedelta,
        refresh_ttl: timedelta,
        algorithm: str = "HS256",
    ):
        if access_secret == refresh_secret:
            logger.warning("Access and refresh tokens share a signing secret")
        self._secrets = {ACCESS: access_secret, REFRESH: refresh_secret}
        self._ttls = {ACCESS: access_ttl, REFRESH: refresh_ttl}
        self.algorithm = algorithm

    @property
    def access_ttl(self) -> timedelta:
        return self._ttls[ACCESS]

    @property
    def refresh_ttl(self) -> timedelta:
        return self._ttls[REFRESH]

    def _issue(self, user, token_type: str) -> str:
        now = utc_now()
        payload = {
            "sub": str(user.id),
            "email": user.email,
            "name": user.name,
            "role": user.role,
            "type": token_type,
            "iat": now,
            "exp": now + self._ttls[token_type],
        }
        return jwt.encode(payload, self._secrets[token_type], algorithm=self.algorithm)

    def _verify(self, token: Optional[str], token_type: str) -> Optional[Dict[str, Any]]:
        if not token:
            return None
        try:
            payload = jwt.decode(
                token,
                self._secrets[token_type],
                algorithms=[self.algorithm],
                options={"require": ["exp", "sub"]},
            )
        except jwt.ExpiredSignatureError:
            logger.debug(f"Expired {token_type} token")
            return None
        except jwt.InvalidTokenError as e:
            logger.debug(f"Invalid {token_type} token: {e}")
            return None

        if payload.get("type") != token_type:
            return None
        return payload

    def create_access_token(self, user) -> str:
        return self._issue(user, ACCESS)

    def create_refresh_token(self, user) -> str:
        return self._issue(user, REFRESH)

    def verify_access_token(self, token: Optional[str]) -> Optional[Dict[str, Any]]:
        """Return the payload of a valid access token, else None."""
        return self._verify(token, ACCESS)

    def verify_refresh_token(self, token: Optional[str]) -> Optional[Dict[str, Any]]:
        """Return the payload of a valid refresh token, else None."""
        return self._verify(token, REFRESH)


@lru_cache()
def get_token_service() -> TokenService:
    """Token service built from settings (singleton)."""
    return TokenService(
        access_secret=settings.ACCESS_TOKEN_SECRET,
        refresh_secret=settings.REFRESH_TOKEN_SECRET,
        access_ttl=timedelta(minutes=settings.ACCESS_TOKEN_EXPIRE_MINUTES),
        refresh_ttl=timedelta(days=settings.REFRESH_TOKEN_EXPIRE_DAYS),
        algorithm=settings.JWT_ALGORITHM,
    )
