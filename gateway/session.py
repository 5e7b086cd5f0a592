"""Per-connection state for the socket gateway"""
import json
import uuid
from dataclasses import dataclass, field
from enum import Enum

from fastapi import WebSocket

from domain.models import Identity


class ConnectionState(str, Enum):
    """Connected -> Authenticated -> RoomJoined -> ... -> Disconnected"""
    CONNECTED = "connected"
    AUTHENTICATED = "authenticated"
    ROOM_JOINED = "room_joined"
    DISCONNECTED = "disconnected"


@dataclass(eq=False)
class ChatSession:
    """One live socket connection and the rooms it has joined"""
    websocket: WebSocket
    connection_id: str = field(default_factory=lambda: uuid.uuid4().hex)
    identity: Identity | None = None
    state: ConnectionState = ConnectionState.CONNECTED
    rooms: set[str] = field(default_factory=set)

    @property
    def user_id(self) -> str | None:
        return self.identity.user_id if self.identity else None

    def authenticate(self, identity: Identity) -> None:
        self.identity = identity
        self.state = ConnectionState.AUTHENTICATED

    def in_room(self, hire_id: str) -> bool:
        return hire_id in self.rooms

    async def send(self, event: dict) -> None:
        await self.websocket.send_text(json.dumps(event))
