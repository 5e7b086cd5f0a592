"""Database connection and schema for the chat system"""
import asyncio
import logging
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from typing import AsyncIterator

import aiosqlite

logger = logging.getLogger(__name__)

# Database path
DB_PATH = "chat_history.db"


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def parse_timestamp(value: str) -> datetime:
    return datetime.fromisoformat(value)


class ChatDatabase:
    """Owns the SQLite connection and the chat schema

    The users, hire_requests and notifications tables back the external
    collaborators; chat_rooms, messages and message_reads belong to chat.
    """

    def __init__(self, db_path: str = DB_PATH) -> None:
        self.db_path = db_path
        self._conn: aiosqlite.Connection | None = None
        self._write_lock = asyncio.Lock()

    @property
    def conn(self) -> aiosqlite.Connection:
        if self._conn is None:
            raise RuntimeError("ChatDatabase.init() has not been called")
        return self._conn

    async def init(self) -> None:
        """Open the connection and create tables"""
        self._conn = await aiosqlite.connect(self.db_path)
        self._conn.row_factory = aiosqlite.Row

        await self.conn.execute("PRAGMA foreign_keys = ON")

        await self.conn.execute("""
            CREATE TABLE IF NOT EXISTS users (
                user_id TEXT PRIMARY KEY,
                name TEXT NOT NULL,
                role TEXT NOT NULL DEFAULT 'BUYER',
                created_at TEXT NOT NULL
            )
        """)

        await self.conn.execute("""
            CREATE TABLE IF NOT EXISTS hire_requests (
                hire_id TEXT PRIMARY KEY,
                buyer_id TEXT NOT NULL,
                student_id TEXT NOT NULL,
                service_id TEXT,
                status TEXT NOT NULL DEFAULT 'PENDING',
                created_at TEXT NOT NULL,
                FOREIGN KEY (buyer_id) REFERENCES users(user_id),
                FOREIGN KEY (student_id) REFERENCES users(user_id)
            )
        """)

        # One room per hire request; the UNIQUE constraint arbitrates creation races
        await self.conn.execute("""
            CREATE TABLE IF NOT EXISTS chat_rooms (
                room_id TEXT PRIMARY KEY,
                hire_id TEXT NOT NULL UNIQUE,
                created_at TEXT NOT NULL,
                FOREIGN KEY (hire_id) REFERENCES hire_requests(hire_id)
            )
        """)

        # AUTOINCREMENT keeps ids monotonic; they are the ordering authority
        await self.conn.execute("""
            CREATE TABLE IF NOT EXISTS messages (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                room_id TEXT NOT NULL,
                sender_id TEXT NOT NULL,
                body TEXT NOT NULL,
                created_at TEXT NOT NULL,
                FOREIGN KEY (room_id) REFERENCES chat_rooms(room_id),
                FOREIGN KEY (sender_id) REFERENCES users(user_id)
            )
        """)

        await self.conn.execute("""
            CREATE TABLE IF NOT EXISTS message_reads (
                message_id INTEGER NOT NULL,
                user_id TEXT NOT NULL,
                read_at TEXT NOT NULL,
                PRIMARY KEY (message_id, user_id),
                FOREIGN KEY (message_id) REFERENCES messages(id),
                FOREIGN KEY (user_id) REFERENCES users(user_id)
            )
        """)

        await self.conn.execute("""
            CREATE TABLE IF NOT EXISTS notifications (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                user_id TEXT NOT NULL,
                type TEXT NOT NULL,
                title TEXT NOT NULL,
                body TEXT,
                read INTEGER NOT NULL DEFAULT 0,
                created_at TEXT NOT NULL,
                FOREIGN KEY (user_id) REFERENCES users(user_id)
            )
        """)

        await self.conn.execute("""
            CREATE INDEX IF NOT EXISTS idx_messages_room
            ON messages(room_id, id)
        """)

        await self.conn.execute("""
            CREATE INDEX IF NOT EXISTS idx_notifications_user
            ON notifications(user_id, read)
        """)

        await self.conn.commit()
        logger.info("Database initialized at %s", self.db_path)

    async def close(self) -> None:
        """Close database connection"""
        if self._conn is not None:
            await self._conn.close()
            self._conn = None

    @asynccontextmanager
    async def transaction(self) -> AsyncIterator[aiosqlite.Connection]:
        """Run one write on the shared connection

        Writes are serialized, so a rollback only discards its own
        statements. Commits on success; rolls back on failure or cancellation.
        """
        conn = self.conn
        async with self._write_lock:
            try:
                yield conn
                await conn.commit()
            except BaseException:
                await conn.rollback()
                raise
