"""Domain constants and type aliases"""
from enum import Enum
from typing import Literal


class HireStatus(str, Enum):
    """Hire request lifecycle states (owned by the hire-request collaborator)"""
    PENDING = "PENDING"
    ACCEPTED = "ACCEPTED"
    REJECTED = "REJECTED"
    CANCELLED = "CANCELLED"
    COMPLETED = "COMPLETED"
    # A lifecycle state this service does not recognize; never unlocks chat
    UNKNOWN = "UNKNOWN"


class UserRole(str, Enum):
    BUYER = "BUYER"
    STUDENT = "STUDENT"
    ADMIN = "ADMIN"


# Client -> server socket events
ClientEventType = Literal["join", "send", "markRead", "typing", "leave"]

CLIENT_EVENT_JOIN: ClientEventType = "join"
CLIENT_EVENT_SEND: ClientEventType = "send"
CLIENT_EVENT_MARK_READ: ClientEventType = "markRead"
CLIENT_EVENT_TYPING: ClientEventType = "typing"
CLIENT_EVENT_LEAVE: ClientEventType = "leave"

# Server -> client socket events
SERVER_EVENT_CONNECTED = "connected"
SERVER_EVENT_JOINED = "joined"
SERVER_EVENT_MESSAGE = "message"
SERVER_EVENT_READ = "read"
SERVER_EVENT_TYPING = "typing"
SERVER_EVENT_LEFT = "left"
SERVER_EVENT_ERROR = "error"

# Internal event bus
EventType = Literal["message_created", "read_receipt"]

EVENT_TYPE_MESSAGE_CREATED: EventType = "message_created"
EVENT_TYPE_READ_RECEIPT: EventType = "read_receipt"

# Notification dispatched to the other participants of a hire request
NOTIFICATION_TYPE_CHAT_MESSAGE = "chat_message"
NOTIFICATION_TITLE_CHAT_MESSAGE = "New message"
NOTIFICATION_PREVIEW_LENGTH = 100

# WebSocket close code for policy violations (failed authentication)
WS_CLOSE_POLICY_VIOLATION = 1008
