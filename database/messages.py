"""Append-only message store with per-user read receipts"""
import logging

from domain.models import Message, MessagePage, ReadReceipt
from domain.validation import validate_body

from .chat_database import ChatDatabase, parse_timestamp, utcnow

logger = logging.getLogger(__name__)

DEFAULT_MAX_LENGTH = 2000
DEFAULT_PAGE_SIZE = 20
MAX_PAGE_SIZE = 50

_SELECT_MESSAGES = """
    SELECT m.id, m.room_id, r.hire_id, m.sender_id, COALESCE(u.name, '') AS sender_name,
           m.body, m.created_at
    FROM messages m
    JOIN chat_rooms r ON r.room_id = m.room_id
    LEFT JOIN users u ON u.user_id = m.sender_id
"""

# created_at never goes backwards within a room, even if the clock does
_INSERT_MESSAGE = """
    INSERT INTO messages (room_id, sender_id, body, created_at)
    SELECT ?, ?, ?, MAX(
        strftime('%Y-%m-%dT%H:%M:%f+00:00', 'now'),
        COALESCE((SELECT MAX(created_at) FROM messages WHERE room_id = ?), '')
    )
"""


def _row_to_message(row) -> Message:
    return Message(
        id=row["id"],
        room_id=row["room_id"],
        hire_id=row["hire_id"],
        sender_id=row["sender_id"],
        sender_name=row["sender_name"],
        body=row["body"],
        created_at=parse_timestamp(row["created_at"]),
    )


class MessageStore:
    """Persists messages scoped to a room, ordered by their monotonic id"""

    def __init__(self, db: ChatDatabase, max_length: int = DEFAULT_MAX_LENGTH, max_page_size: int = MAX_PAGE_SIZE) -> None:
        self.db = db
        self.max_length = max_length
        self.max_page_size = max_page_size

    async def append(self, room_id: str, sender_id: str, body: str) -> Message:
        """Validate and persist a message, returning it with its generated id"""
        text = validate_body(body, self.max_length)
        async with self.db.transaction() as conn:
            cursor = await conn.execute(_INSERT_MESSAGE, (room_id, sender_id, text, room_id))
            message_id = cursor.lastrowid

        message = await self.get_message(room_id, message_id)
        if message is None:
            raise RuntimeError(f"Message {message_id} vanished after insert")
        return message

    async def get_message(self, room_id: str, message_id: int) -> Message | None:
        cursor = await self.db.conn.execute(
            _SELECT_MESSAGES + " WHERE m.room_id = ? AND m.id = ?",
            (room_id, message_id)
        )
        row = await cursor.fetchone()
        if row is None:
            return None
        message = _row_to_message(row)
        await self._attach_receipts([message])
        return message

    async def list_page(self, room_id: str, cursor: int | None = None, limit: int = DEFAULT_PAGE_SIZE) -> MessagePage:
        """Return up to limit messages older than cursor, oldest first

        Pages walk backward from the newest message; has_more tells whether
        an older page exists.
        """
        limit = min(self.max_page_size, max(1, limit))
        query = _SELECT_MESSAGES + " WHERE m.room_id = ?"
        params: list = [room_id]
        if cursor is not None:
            query += " AND m.id < ?"
            params.append(cursor)
        query += " ORDER BY m.id DESC LIMIT ?"
        params.append(limit + 1)

        db_cursor = await self.db.conn.execute(query, params)
        rows = await db_cursor.fetchall()

        has_more = len(rows) > limit
        newest_first = [_row_to_message(row) for row in rows[:limit]]
        next_cursor = str(newest_first[-1].id) if has_more else None

        messages = list(reversed(newest_first))
        await self._attach_receipts(messages)
        return MessagePage(messages=messages, has_more=has_more, next_cursor=next_cursor)

    async def list_unread(self, room_id: str, user_id: str) -> list[Message]:
        """Messages in the room with no receipt for user_id, oldest first"""
        cursor = await self.db.conn.execute(
            _SELECT_MESSAGES + """
            WHERE m.room_id = ?
              AND NOT EXISTS (
                SELECT 1 FROM message_reads mr WHERE mr.message_id = m.id AND mr.user_id = ?
              )
            ORDER BY m.id ASC
            """,
            (room_id, user_id)
        )
        rows = await cursor.fetchall()
        return [_row_to_message(row) for row in rows]

    async def has_read(self, message_id: int, user_id: str) -> bool:
        cursor = await self.db.conn.execute(
            "SELECT 1 FROM message_reads WHERE message_id = ? AND user_id = ?",
            (message_id, user_id)
        )
        return await cursor.fetchone() is not None

    async def mark_read(self, message_ids: list[int], user_id: str) -> list[ReadReceipt]:
        """Insert receipts for messages not yet read by user_id

        Returns only the receipts created by this call; already-read
        messages are skipped silently.
        """
        created: list[ReadReceipt] = []
        async with self.db.transaction() as conn:
            for message_id in message_ids:
                read_at = utcnow()
                cursor = await conn.execute(
                    "INSERT OR IGNORE INTO message_reads (message_id, user_id, read_at) VALUES (?, ?, ?)",
                    (message_id, user_id, read_at.isoformat())
                )
                if cursor.rowcount == 1:
                    created.append(ReadReceipt(message_id=message_id, user_id=user_id, read_at=read_at))
        return created

    async def _attach_receipts(self, messages: list[Message]) -> None:
        if not messages:
            return
        by_id = {message.id: message for message in messages}
        placeholders = ", ".join("?" for _ in by_id)
        cursor = await self.db.conn.execute(
            f"SELECT message_id, user_id, read_at FROM message_reads "
            f"WHERE message_id IN ({placeholders}) ORDER BY read_at ASC",
            list(by_id)
        )
        for row in await cursor.fetchall():
            by_id[row["message_id"]].read_by.append(
                ReadReceipt(
                    message_id=row["message_id"],
                    user_id=row["user_id"],
                    read_at=parse_timestamp(row["read_at"]),
                )
            )
