"""Event consuming and room broadcast for the chat system"""
import asyncio
import logging

from domain.constants import (
    EVENT_TYPE_MESSAGE_CREATED,
    EVENT_TYPE_READ_RECEIPT,
    NOTIFICATION_PREVIEW_LENGTH,
    NOTIFICATION_TITLE_CHAT_MESSAGE,
    NOTIFICATION_TYPE_CHAT_MESSAGE,
    SERVER_EVENT_MESSAGE,
    SERVER_EVENT_READ,
)
from domain.models import Message, ReadReceipt
from gateway.connection_registry import ConnectionRegistry

logger = logging.getLogger(__name__)


class ChatEventConsumer:
    """Consumes chat events and fans them out to joined connections

    Every message_created event is broadcast exactly once to the room
    channel, sender included, whichever transport created it.
    """

    def __init__(self, queue: asyncio.Queue[dict], registry: ConnectionRegistry, notifier=None) -> None:
        self.queue = queue
        self.registry = registry
        self.notifier = notifier

    async def consume(self) -> None:
        """Continuously consume and process events"""
        while True:
            event = await self.queue.get()
            try:
                await self.handle_event(event)
            except Exception:
                logger.exception("Failed to handle %s event", event.get("type"))
            finally:
                self.queue.task_done()

    async def drain(self) -> None:
        """Handle every event currently queued"""
        while not self.queue.empty():
            event = self.queue.get_nowait()
            try:
                await self.handle_event(event)
            finally:
                self.queue.task_done()

    async def handle_event(self, event: dict) -> None:
        """Route event to appropriate handler"""
        event_type: str = event.get("type", "")

        if event_type == EVENT_TYPE_MESSAGE_CREATED:
            await self.handle_message_created(event)
        elif event_type == EVENT_TYPE_READ_RECEIPT:
            await self.handle_read_receipt(event)
        else:
            logger.warning("Ignoring unknown event type %r", event_type)

    async def handle_message_created(self, event: dict) -> None:
        hire_id: str = event["hire_id"]
        message: Message = event["message"]

        await self.registry.broadcast_to_room(hire_id, {
            "type": SERVER_EVENT_MESSAGE,
            "hireId": hire_id,
            "roomId": message.room_id,
            "message": message.to_dict(),
        })

        if self.notifier is None:
            return
        preview = message.body[:NOTIFICATION_PREVIEW_LENGTH]
        for user_id in event.get("participant_ids", ()):
            if user_id == message.sender_id:
                continue
            self.notifier.dispatch(
                user_id,
                NOTIFICATION_TYPE_CHAT_MESSAGE,
                NOTIFICATION_TITLE_CHAT_MESSAGE,
                preview,
            )

    async def handle_read_receipt(self, event: dict) -> None:
        hire_id: str = event["hire_id"]
        receipt: ReadReceipt = event["receipt"]

        await self.registry.broadcast_to_room(hire_id, {
            "type": SERVER_EVENT_READ,
            "hireId": hire_id,
            "messageId": str(receipt.message_id),
            "readerId": receipt.user_id,
            "readAt": receipt.read_at.isoformat(),
        })
