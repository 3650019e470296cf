"""
Bearer-token identity resolution.

The resolver is built once at startup from an explicit AuthConfig and kept on
app.state; nothing reads the signing secret from module globals. A missing,
malformed, expired or badly signed token resolves to an anonymous viewer.
"""
import logging
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Optional

from jose import JWTError, jwt

from content_api.config import Settings

logger = logging.getLogger(__name__)

BEARER_PREFIX = "Bearer "


@dataclass(frozen=True)
class AuthConfig:
    secret: str
    algorithm: str = "HS256"
    token_ttl: timedelta = timedelta(days=1)

    @classmethod
    def from_settings(cls, settings: Settings) -> "AuthConfig":
        return cls(
            secret=settings.jwt_secret,
            algorithm=settings.jwt_algorithm,
            token_ttl=timedelta(minutes=settings.access_token_ttl_minutes),
        )


class IdentityResolver:
    def __init__(self, config: AuthConfig) -> None:
        self._config = config

    def issue_token(self, user_id: str, username: str) -> str:
        claims = {
            "sub": user_id,
            "username": username,
            "exp": datetime.now(timezone.utc) + self._config.token_ttl,
        }
        return jwt.encode(claims, self._config.secret, algorithm=self._config.algorithm)

    def viewer_from_token(self, token: str) -> Optional[str]:
        try:
            claims = jwt.decode(token, self._config.secret, algorithms=[self._config.algorithm])
        except JWTError as exc:
            logger.info("Rejected bearer token: %s", exc)
            return None
        return claims.get("sub") or None

    def resolve(self, authorization: Optional[str]) -> Optional[str]:
        """Viewer id from an Authorization header value, or None for anonymous."""
        if not authorization or not authorization.startswith(BEARER_PREFIX):
            return None
        return self.viewer_from_token(authorization[len(BEARER_PREFIX):].strip())
