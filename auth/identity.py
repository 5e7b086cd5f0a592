"""Identity provider: turns a bearer credential into a verified Identity"""
import logging

from database.directory import UserDirectory
from domain.errors import Unauthenticated
from domain.models import Identity
from settings import Settings

from .tokens import decode_access_token

logger = logging.getLogger(__name__)


def bearer_token(authorization: str | None) -> str | None:
    """Extract the token from an 'Authorization: Bearer <token>' header value"""
    if not authorization:
        return None
    scheme, _, token = authorization.partition(" ")
    if scheme.lower() != "bearer" or not token.strip():
        return None
    return token.strip()


class IdentityProvider:
    """Verifies access tokens and confirms the user still exists"""

    def __init__(self, users: UserDirectory, settings: Settings) -> None:
        self.users = users
        self.settings = settings

    async def authenticate(self, token: str | None) -> Identity:
        payload = decode_access_token(token or "", self.settings)
        user = await self.users.get_user(payload["sub"])
        if user is None:
            logger.info("Token for unknown user %s rejected", payload["sub"])
            raise Unauthenticated("User not found")
        return Identity(user_id=user.user_id, role=user.role, name=user.name)
