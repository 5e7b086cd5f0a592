"""Connection registry: which connections belong to which user and room"""
import asyncio
import logging

from .session import ChatSession, ConnectionState

logger = logging.getLogger(__name__)


class ConnectionRegistry:
    """Tracks live sessions by connection, user and room channel

    A cache rebuilt from nothing on restart; who may access a room is always
    recomputed from the hire request. Mutations are serialized by a lock.
    """

    def __init__(self, send_timeout: float = 5.0) -> None:
        self.send_timeout = send_timeout
        self._lock = asyncio.Lock()
        self._sessions: dict[str, ChatSession] = {}
        self._by_user: dict[str, set[str]] = {}
        self._by_room: dict[str, set[str]] = {}

    async def register(self, session: ChatSession) -> None:
        """Track an authenticated session"""
        if session.user_id is None:
            raise ValueError("Only authenticated sessions can be registered")
        async with self._lock:
            self._sessions[session.connection_id] = session
            self._by_user.setdefault(session.user_id, set()).add(session.connection_id)

    async def unregister(self, session: ChatSession) -> set[str]:
        """Forget a session and drop it from every room; returns the rooms it left"""
        async with self._lock:
            left = set(session.rooms)
            for hire_id in left:
                self._discard_from_room(hire_id, session.connection_id)
            session.rooms.clear()

            self._sessions.pop(session.connection_id, None)
            if session.user_id is not None:
                connections = self._by_user.get(session.user_id)
                if connections is not None:
                    connections.discard(session.connection_id)
                    if not connections:
                        del self._by_user[session.user_id]
            session.state = ConnectionState.DISCONNECTED
            return left

    async def join_room(self, session: ChatSession, hire_id: str) -> None:
        async with self._lock:
            if session.connection_id not in self._sessions:
                raise ValueError("Session is not registered")
            self._by_room.setdefault(hire_id, set()).add(session.connection_id)
            session.rooms.add(hire_id)
            session.state = ConnectionState.ROOM_JOINED

    async def leave_room(self, session: ChatSession, hire_id: str) -> bool:
        """Leave one room; a session with no rooms left is back to Authenticated"""
        async with self._lock:
            was_member = hire_id in session.rooms
            session.rooms.discard(hire_id)
            self._discard_from_room(hire_id, session.connection_id)
            if not session.rooms and session.state == ConnectionState.ROOM_JOINED:
                session.state = ConnectionState.AUTHENTICATED
            return was_member

    def _discard_from_room(self, hire_id: str, connection_id: str) -> None:
        members = self._by_room.get(hire_id)
        if members is None:
            return
        members.discard(connection_id)
        if not members:
            del self._by_room[hire_id]

    def rooms_for(self, session: ChatSession) -> set[str]:
        return set(session.rooms)

    def connections_in_room(self, hire_id: str) -> list[ChatSession]:
        return [
            self._sessions[connection_id]
            for connection_id in self._by_room.get(hire_id, ())
            if connection_id in self._sessions
        ]

    def connections_for_user(self, user_id: str) -> list[ChatSession]:
        return [
            self._sessions[connection_id]
            for connection_id in self._by_user.get(user_id, ())
            if connection_id in self._sessions
        ]

    async def broadcast_to_room(self, hire_id: str, event: dict, exclude: ChatSession | None = None) -> int:
        """Send an event to every connection in a room channel

        Args:
            hire_id: Room channel to deliver to
            event: Dictionary to be JSON-serialized
            exclude: Optional session to skip (typing indicators)

        Returns: Number of connections that received the event
        """
        async with self._lock:
            targets = [
                session for session in self.connections_in_room(hire_id)
                if session is not exclude
            ]

        # Concurrent fan-out; a reader slower than send_timeout is dropped
        results = await asyncio.gather(
            *(asyncio.wait_for(session.send(event), timeout=self.send_timeout) for session in targets),
            return_exceptions=True,
        )

        delivered = 0
        disconnected: list[ChatSession] = []
        for session, result in zip(targets, results):
            if isinstance(result, BaseException):
                logger.warning(
                    "Dropping connection %s of user %s after failed send: %r",
                    session.connection_id, session.user_id, result,
                )
                disconnected.append(session)
            else:
                delivered += 1

        # Clean up dead connections
        for session in disconnected:
            await self.unregister(session)
        return delivered

    def get_connection_count(self) -> int:
        """Get the number of registered connections"""
        return len(self._sessions)
