"""Access token encoding and verification"""
import logging
import uuid
from datetime import datetime, timedelta, timezone
from typing import Any

import jwt
from jwt import PyJWTError

from domain.constants import UserRole
from domain.errors import Unauthenticated
from settings import Settings

logger = logging.getLogger(__name__)


def create_access_token(
    user_id: str,
    role: UserRole,
    settings: Settings,
    expires_delta: timedelta | None = None,
) -> str:
    """
    Create a signed access token.

    Args:
        user_id: Subject of the token
        role: Role claim carried alongside the subject
        settings: Provides secret, algorithm and default lifetime
        expires_delta: Override for the token lifetime

    Returns:
        str: Encoded JWT
    """
    now = datetime.now(timezone.utc)
    expire = now + (expires_delta or timedelta(minutes=settings.access_token_ttl_minutes))
    payload = {
        "sub": user_id,
        "role": role.value,
        "jti": str(uuid.uuid4()),
        "iat": now,
        "exp": expire,
    }
    return jwt.encode(payload, settings.jwt_secret.get_secret_value(), algorithm=settings.jwt_algorithm)


def decode_access_token(token: str, settings: Settings) -> dict[str, Any]:
    """Verify signature and expiry, raising Unauthenticated on any failure"""
    if not token:
        raise Unauthenticated()
    try:
        payload = jwt.decode(
            token,
            settings.jwt_secret.get_secret_value(),
            algorithms=[settings.jwt_algorithm],
        )
    except PyJWTError as e:
        logger.info("Rejected access token: %s", e)
        raise Unauthenticated("Invalid or expired access token") from None

    if not isinstance(payload.get("sub"), str) or not payload["sub"]:
        raise Unauthenticated("Invalid or expired access token")
    return payload
