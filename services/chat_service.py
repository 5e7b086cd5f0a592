"""Transport-neutral chat operations shared by the REST and socket surfaces

Every operation re-runs the access checks, and every storage or lookup call
is bounded by the configured storage timeout.
"""
import asyncio
import logging
from typing import Awaitable, TypeVar

import aiosqlite

from database.messages import MessageStore
from database.rooms import RoomResolver
from domain.access import AccessPolicy
from domain.errors import ChatError, ChatValidationError, TransportFailure
from domain.models import (
    ChatRoom,
    HireRequest,
    Identity,
    Message,
    MessageCreatedEvent,
    MessagePage,
    ReadReceipt,
    ReadReceiptEvent,
)
from domain.validation import clamp_limit, parse_cursor, validate_body
from events.publisher import ChatEventPublisher
from settings import Settings

logger = logging.getLogger(__name__)

T = TypeVar("T")


class ChatService:
    def __init__(
        self,
        access: AccessPolicy,
        rooms: RoomResolver,
        messages: MessageStore,
        publisher: ChatEventPublisher,
        settings: Settings,
    ) -> None:
        self.access = access
        self.rooms = rooms
        self.messages = messages
        self.publisher = publisher
        self.settings = settings

    async def _guard(self, awaitable: Awaitable[T], operation: str, identity: Identity, hire_id: object) -> T:
        """Await a storage call with a timeout, mapping infrastructure failures"""
        try:
            return await asyncio.wait_for(awaitable, timeout=self.settings.storage_timeout_seconds)
        except ChatError:
            raise
        except asyncio.TimeoutError:
            logger.error("%s timed out (user=%s hire=%s)", operation, identity.user_id, hire_id)
            raise TransportFailure() from None
        except aiosqlite.Error as e:
            logger.error("%s failed (user=%s hire=%s): %s", operation, identity.user_id, hire_id, e)
            raise TransportFailure() from e

    async def authorize(self, identity: Identity, hire_id: object) -> HireRequest:
        return await self._guard(self.access.authorize(identity, hire_id), "authorize", identity, hire_id)

    async def open_room(self, identity: Identity, hire_id: str) -> tuple[HireRequest, ChatRoom]:
        """Authorize and resolve (or create) the hire's room"""
        hire = await self.authorize(identity, hire_id)
        room = await self._guard(self.rooms.get_or_create_room(hire.hire_id), "join", identity, hire_id)
        return hire, room

    async def recent_history(self, identity: Identity, room: ChatRoom) -> MessagePage:
        """The newest page of a room the caller was just authorized for"""
        return await self._guard(
            self.messages.list_page(room.room_id, None, self.settings.joined_history_size),
            "join", identity, room.hire_id,
        )

    async def list_messages(
        self,
        identity: Identity,
        hire_id: str,
        cursor: str | None = None,
        limit: int | None = None,
    ) -> MessagePage:
        """One page of history; an empty page when no room exists yet"""
        hire = await self.authorize(identity, hire_id)
        boundary = parse_cursor(cursor)
        page_size = clamp_limit(limit, self.settings.default_page_size, self.settings.max_page_size)

        room = await self._guard(self.rooms.get_room(hire.hire_id), "list_messages", identity, hire_id)
        if room is None:
            return MessagePage(messages=[], has_more=False)
        return await self._guard(
            self.messages.list_page(room.room_id, boundary, page_size),
            "list_messages", identity, hire_id,
        )

    async def send_message(self, identity: Identity, hire_id: str, body: object) -> Message:
        """Append a message and publish it for broadcast"""
        hire = await self.authorize(identity, hire_id)
        text = validate_body(body, self.settings.max_message_length)

        room = await self._guard(self.rooms.get_or_create_room(hire.hire_id), "send_message", identity, hire_id)
        message = await self._guard(
            self.messages.append(room.room_id, identity.user_id, text),
            "send_message", identity, hire_id,
        )
        await self.publisher.publish(
            MessageCreatedEvent(hire_id=hire.hire_id, message=message, participant_ids=hire.participant_ids)
        )
        logger.info("User %s sent message %s in hire %s", identity.user_id, message.id, hire.hire_id)
        return message

    async def mark_all_read(self, identity: Identity, hire_id: str) -> list[ReadReceipt]:
        """Mark every unread message in the hire's room as read by the caller"""
        hire = await self.authorize(identity, hire_id)
        room = await self._guard(self.rooms.get_room(hire.hire_id), "mark_all_read", identity, hire_id)
        if room is None:
            return []

        unread = await self._guard(
            self.messages.list_unread(room.room_id, identity.user_id),
            "mark_all_read", identity, hire_id,
        )
        receipts = await self._guard(
            self.messages.mark_read([message.id for message in unread], identity.user_id),
            "mark_all_read", identity, hire_id,
        )
        for receipt in receipts:
            await self.publisher.publish(ReadReceiptEvent(hire_id=hire.hire_id, receipt=receipt))
        return receipts

    async def mark_message_read(self, identity: Identity, hire_id: str, message_id: int) -> ReadReceipt | None:
        """Mark one message read; None when the caller had already read it"""
        hire = await self.authorize(identity, hire_id)
        room = await self._guard(self.rooms.get_room(hire.hire_id), "mark_message_read", identity, hire_id)
        if room is None:
            raise ChatValidationError("Chat room not found")

        message = await self._guard(
            self.messages.get_message(room.room_id, message_id),
            "mark_message_read", identity, hire_id,
        )
        if message is None:
            raise ChatValidationError("Message not found in this chat")

        receipts = await self._guard(
            self.messages.mark_read([message.id], identity.user_id),
            "mark_message_read", identity, hire_id,
        )
        if not receipts:
            return None
        receipt = receipts[0]
        await self.publisher.publish(ReadReceiptEvent(hire_id=hire.hire_id, receipt=receipt))
        return receipt
