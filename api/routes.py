"""REST chat endpoints scoped to a hire request"""
from fastapi import APIRouter, Depends, Query, status
from pydantic import BaseModel

from domain.models import Identity
from services.chat_service import ChatService

from .dependencies import get_chat_service, get_current_identity

router = APIRouter(prefix="/hires/{hire_id}/messages", tags=["chat"])


class SendMessageRequest(BaseModel):
    body: str


@router.get("")
async def list_messages(
    hire_id: str,
    cursor: str | None = Query(default=None),
    limit: int | None = Query(default=None),
    identity: Identity = Depends(get_current_identity),
    service: ChatService = Depends(get_chat_service),
) -> dict:
    """Page backward through history; each page is returned oldest first"""
    page = await service.list_messages(identity, hire_id, cursor, limit)
    return page.to_dict()


@router.post("/read")
async def mark_messages_read(
    hire_id: str,
    identity: Identity = Depends(get_current_identity),
    service: ChatService = Depends(get_chat_service),
) -> dict:
    receipts = await service.mark_all_read(identity, hire_id)
    return {"marked": len(receipts)}


@router.post("", status_code=status.HTTP_201_CREATED)
async def send_message(
    hire_id: str,
    request: SendMessageRequest,
    identity: Identity = Depends(get_current_identity),
    service: ChatService = Depends(get_chat_service),
) -> dict:
    """Send without a socket; joined peers still receive the broadcast"""
    message = await service.send_message(identity, hire_id, request.body)
    return message.to_dict()
