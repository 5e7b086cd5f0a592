"""Chat room resolution: exactly one room per hire request"""
import logging
import uuid

import aiosqlite

from domain.models import ChatRoom

from .chat_database import ChatDatabase, parse_timestamp, utcnow

logger = logging.getLogger(__name__)


class RoomResolver:
    """Finds or lazily creates the chat room bound to a hire request"""

    def __init__(self, db: ChatDatabase) -> None:
        self.db = db

    async def get_room(self, hire_id: str) -> ChatRoom | None:
        cursor = await self.db.conn.execute(
            "SELECT room_id, hire_id, created_at FROM chat_rooms WHERE hire_id = ?",
            (hire_id,)
        )
        row = await cursor.fetchone()
        if row is None:
            return None
        return ChatRoom(
            room_id=row["room_id"],
            hire_id=row["hire_id"],
            created_at=parse_timestamp(row["created_at"]),
        )

    async def get_or_create_room(self, hire_id: str) -> ChatRoom:
        """Return the hire's room, creating it on first use

        A concurrent creator losing the UNIQUE(hire_id) race re-reads the
        winner's row instead of failing.
        """
        room = await self.get_room(hire_id)
        if room is not None:
            return room

        room = ChatRoom(room_id=uuid.uuid4().hex, hire_id=hire_id, created_at=utcnow())
        try:
            async with self.db.transaction() as conn:
                await conn.execute(
                    "INSERT INTO chat_rooms (room_id, hire_id, created_at) VALUES (?, ?, ?)",
                    (room.room_id, room.hire_id, room.created_at.isoformat())
                )
        except aiosqlite.IntegrityError:
            logger.debug("Room for hire %s created concurrently, re-reading", hire_id)
            existing = await self.get_room(hire_id)
            if existing is None:
                raise
            return existing

        logger.info("Created chat room %s for hire %s", room.room_id, hire_id)
        return room
