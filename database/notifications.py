"""Fire-and-forget notification dispatch"""
import asyncio
import logging

from .chat_database import ChatDatabase, utcnow

logger = logging.getLogger(__name__)


class NotificationDispatcher:
    """Enqueues user notifications without making callers wait on them"""

    def __init__(self, db: ChatDatabase) -> None:
        self.db = db
        self._pending: set[asyncio.Task] = set()

    async def create_notification(self, user_id: str, type_: str, title: str, body: str | None = None) -> int:
        async with self.db.transaction() as conn:
            cursor = await conn.execute(
                "INSERT INTO notifications (user_id, type, title, body, created_at) VALUES (?, ?, ?, ?, ?)",
                (user_id, type_, title, body, utcnow().isoformat())
            )
        return cursor.lastrowid

    def dispatch(self, user_id: str, type_: str, title: str, body: str | None = None) -> asyncio.Task:
        """Schedule a notification in the background; failures are only logged"""
        task = asyncio.create_task(self.create_notification(user_id, type_, title, body))
        self._pending.add(task)
        task.add_done_callback(self._on_done)
        return task

    def _on_done(self, task: asyncio.Task) -> None:
        self._pending.discard(task)
        if task.cancelled():
            return
        exc = task.exception()
        if exc is not None:
            logger.warning("Notification dispatch failed: %s", exc)

    async def drain(self) -> None:
        """Wait for in-flight dispatches (used at shutdown and in tests)"""
        if self._pending:
            await asyncio.gather(*self._pending, return_exceptions=True)

    async def unread_count(self, user_id: str) -> int:
        cursor = await self.db.conn.execute(
            "SELECT COUNT(*) FROM notifications WHERE user_id = ? AND read = 0",
            (user_id,)
        )
        row = await cursor.fetchone()
        return row[0]
