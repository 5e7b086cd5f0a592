"""Builds and owns every chat component for one server process"""
import asyncio
import logging

from auth.identity import IdentityProvider
from database.chat_database import ChatDatabase
from database.directory import HireRequestDirectory, UserDirectory
from database.messages import MessageStore
from database.notifications import NotificationDispatcher
from database.rooms import RoomResolver
from domain.access import AccessPolicy
from events.consumer import ChatEventConsumer
from events.publisher import ChatEventPublisher
from gateway.connection_registry import ConnectionRegistry
from gateway.handler import ChatGateway
from gateway.rate_limiter import RateLimiter
from settings import Settings

from .chat_service import ChatService

logger = logging.getLogger(__name__)


class ChatContainer:
    """Explicit wiring; tests build one per case against an in-memory database"""

    def __init__(self, settings: Settings) -> None:
        self.settings = settings

        self.db = ChatDatabase(settings.database_path)
        self.users = UserDirectory(self.db)
        self.hire_requests = HireRequestDirectory(self.db)
        self.rooms = RoomResolver(self.db)
        self.messages = MessageStore(
            self.db,
            max_length=settings.max_message_length,
            max_page_size=settings.max_page_size,
        )
        self.notifier = NotificationDispatcher(self.db)

        self.event_queue: asyncio.Queue[dict] = asyncio.Queue()
        self.publisher = ChatEventPublisher(self.event_queue)
        self.registry = ConnectionRegistry(send_timeout=settings.broadcast_send_timeout_seconds)
        self.consumer = ChatEventConsumer(self.event_queue, self.registry, self.notifier)

        self.access = AccessPolicy(self.hire_requests)
        self.identity = IdentityProvider(self.users, settings)
        self.service = ChatService(self.access, self.rooms, self.messages, self.publisher, settings)
        self.rate_limiter = RateLimiter(
            messages_per_window=settings.send_rate_limit_messages,
            window_seconds=settings.send_rate_limit_window_seconds,
            cooldown_seconds=settings.send_rate_limit_cooldown_seconds,
        )
        self.gateway = ChatGateway(self.identity, self.service, self.registry, self.rate_limiter, settings)

    async def start(self) -> None:
        await self.db.init()

    async def stop(self) -> None:
        await self.notifier.drain()
        await self.db.close()
        logger.info("Chat container stopped")
