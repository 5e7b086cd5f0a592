"""Event publishing for the chat system"""
import asyncio

from domain.models import MessageCreatedEvent, ReadReceiptEvent


class ChatEventPublisher:
    """Publishes chat events to the in-process event queue"""

    def __init__(self, queue: asyncio.Queue[dict]) -> None:
        self.queue = queue

    async def publish(self, event: MessageCreatedEvent | ReadReceiptEvent | dict) -> None:
        """Publish an event to the queue (accepts dataclass or dict)"""
        # Built by hand so the Message object travels as-is
        if isinstance(event, MessageCreatedEvent):
            event_dict = {
                "type": event.type,
                "hire_id": event.hire_id,
                "message": event.message,
                "participant_ids": tuple(event.participant_ids),
            }
        elif isinstance(event, ReadReceiptEvent):
            event_dict = {
                "type": event.type,
                "hire_id": event.hire_id,
                "receipt": event.receipt,
            }
        else:
            event_dict = event
        await self.queue.put(event_dict)
