"""Domain models for the chat system"""
from dataclasses import dataclass, field
from datetime import datetime

from .constants import (
    HireStatus,
    UserRole,
    EventType,
    EVENT_TYPE_MESSAGE_CREATED,
    EVENT_TYPE_READ_RECEIPT,
)


def isoformat(value: datetime) -> str:
    return value.isoformat()


@dataclass
class User:
    """A user record from the user directory"""
    user_id: str
    name: str
    role: UserRole = UserRole.BUYER


@dataclass
class Identity:
    """Verified caller identity produced by the identity provider"""
    user_id: str
    role: UserRole
    name: str = ""

    @property
    def is_admin(self) -> bool:
        return self.role == UserRole.ADMIN


@dataclass
class HireRequest:
    """Read-only view of a hire request owned by the hire lifecycle"""
    hire_id: str
    buyer_id: str
    student_id: str
    status: HireStatus
    service_id: str | None = None

    @property
    def participant_ids(self) -> tuple[str, str]:
        return (self.buyer_id, self.student_id)


@dataclass
class ChatRoom:
    """The single conversation bound to a hire request"""
    room_id: str
    hire_id: str
    created_at: datetime


@dataclass
class ReadReceipt:
    """Records that a user has seen a message"""
    message_id: int
    user_id: str
    read_at: datetime

    def to_dict(self) -> dict:
        return {"userId": self.user_id, "readAt": isoformat(self.read_at)}


@dataclass
class Message:
    """A persisted, immutable chat message"""
    id: int
    room_id: str
    hire_id: str
    sender_id: str
    sender_name: str
    body: str
    created_at: datetime
    read_by: list[ReadReceipt] = field(default_factory=list)

    def to_dict(self) -> dict:
        """Client-facing representation shared by REST and socket transports"""
        return {
            "id": str(self.id),
            "roomId": self.room_id,
            "hireId": self.hire_id,
            "body": self.body,
            "sender": {"id": self.sender_id, "name": self.sender_name},
            "createdAt": isoformat(self.created_at),
            "readBy": [receipt.to_dict() for receipt in self.read_by],
        }


@dataclass
class MessagePage:
    """One page of history, oldest first

    next_cursor is the id of the oldest message in the page when an older
    page exists, otherwise None.
    """
    messages: list[Message]
    has_more: bool
    next_cursor: str | None = None

    def to_dict(self) -> dict:
        return {
            "messages": [message.to_dict() for message in self.messages],
            "hasMore": self.has_more,
            "nextCursor": self.next_cursor,
        }


@dataclass
class MessageCreatedEvent:
    """Event: a message was appended to a room"""
    hire_id: str
    message: Message
    participant_ids: tuple[str, ...] = ()
    type: EventType = EVENT_TYPE_MESSAGE_CREATED


@dataclass
class ReadReceiptEvent:
    """Event: a user read a message"""
    hire_id: str
    receipt: ReadReceipt
    type: EventType = EVENT_TYPE_READ_RECEIPT
