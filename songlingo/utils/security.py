"""Bearer token verification for tokens issued by the identity provider."""

from __future__ import annotations

from datetime import datetime
from typing import Any, Optional

from jose import JWTError, jwt
from pydantic import BaseModel, ValidationError

from songlingo.config.settings import settings


class AuthenticationError(Exception):
    """Raised when a JWT cannot be decoded or is otherwise invalid."""


class TokenPayload(BaseModel):
    """Claims used by this service; the identity provider may add more."""

    sub: str
    exp: datetime
    email: Optional[str] = None
    role: Optional[str] = None
    iat: datetime | None = None

    model_config = {"extra": "ignore"}


def decode_access_token(token: str) -> TokenPayload:
    """Decode and validate a JWT access token, returning its payload."""

    secret = settings.security.jwt_secret_key.get_secret_value()
    audience = settings.security.jwt_audience
    options: dict[str, Any] = {"verify_aud": bool(audience)}
    try:
        payload = jwt.decode(
            token,
            secret,
            algorithms=[settings.security.jwt_algorithm],
            audience=audience or None,
            options=options,
        )
        return TokenPayload.model_validate(payload)
    except (JWTError, ValidationError) as exc:
        raise AuthenticationError("Invalid authentication token") from exc


__all__ = ["AuthenticationError", "TokenPayload", "decode_access_token"]
