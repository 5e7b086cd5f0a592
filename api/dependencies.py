"""FastAPI dependencies for the REST chat surface"""
from fastapi import Depends, Request
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from domain.errors import Unauthenticated
from domain.models import Identity
from services.chat_service import ChatService
from services.container import ChatContainer

bearer_scheme = HTTPBearer(auto_error=False)


def get_container(request: Request) -> ChatContainer:
    return request.app.state.container


def get_chat_service(container: ChatContainer = Depends(get_container)) -> ChatService:
    return container.service


async def get_current_identity(
    credentials: HTTPAuthorizationCredentials | None = Depends(bearer_scheme),
    container: ChatContainer = Depends(get_container),
) -> Identity:
    if credentials is None:
        raise Unauthenticated()
    return await container.identity.authenticate(credentials.credentials)
