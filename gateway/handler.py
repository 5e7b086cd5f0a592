"""WebSocket gateway: authentication, room membership and event routing"""
import asyncio
import logging

from fastapi import WebSocket, WebSocketDisconnect

from auth.identity import IdentityProvider, bearer_token
from domain.constants import (
    CLIENT_EVENT_JOIN,
    CLIENT_EVENT_LEAVE,
    CLIENT_EVENT_MARK_READ,
    CLIENT_EVENT_SEND,
    CLIENT_EVENT_TYPING,
    SERVER_EVENT_CONNECTED,
    SERVER_EVENT_ERROR,
    SERVER_EVENT_JOINED,
    SERVER_EVENT_LEFT,
    SERVER_EVENT_TYPING,
    WS_CLOSE_POLICY_VIOLATION,
)
from domain.errors import ChatError, Forbidden, RateLimited, TransportFailure, Unauthenticated
from services.chat_service import ChatService
from settings import Settings

from .connection_registry import ConnectionRegistry
from .payloads import (
    JoinPayload,
    LeavePayload,
    MarkReadPayload,
    SendPayload,
    TypingPayload,
    parse_client_event,
)
from .rate_limiter import RateLimiter
from .session import ChatSession

logger = logging.getLogger(__name__)


def handshake_token(websocket: WebSocket) -> str | None:
    """Credential supplied at connection time: ?token=... or an Authorization header"""
    token = websocket.query_params.get("token", "").strip()
    if token:
        return token
    return bearer_token(websocket.headers.get("authorization"))


class ChatGateway:
    """Drives each connection through Connected -> Authenticated -> RoomJoined -> Disconnected

    Validation failures are reported as error events on the offending
    connection; only a failed authentication closes it.
    """

    def __init__(
        self,
        identity_provider: IdentityProvider,
        service: ChatService,
        registry: ConnectionRegistry,
        rate_limiter: RateLimiter,
        settings: Settings,
    ) -> None:
        self.identity_provider = identity_provider
        self.service = service
        self.registry = registry
        self.rate_limiter = rate_limiter
        self.settings = settings
        self._handlers = {
            CLIENT_EVENT_JOIN: self.on_join,
            CLIENT_EVENT_SEND: self.on_send,
            CLIENT_EVENT_MARK_READ: self.on_mark_read,
            CLIENT_EVENT_TYPING: self.on_typing,
            CLIENT_EVENT_LEAVE: self.on_leave,
        }

    async def handle_connection(self, websocket: WebSocket) -> None:
        session = ChatSession(websocket=websocket)
        await websocket.accept()

        if not await self.authenticate(session):
            return

        try:
            while True:
                raw = await websocket.receive_text()
                await self.dispatch(session, raw)
        except WebSocketDisconnect:
            logger.info("User %s disconnected (%s)", session.user_id, session.connection_id)
        except Exception:
            logger.exception("WebSocket error for user %s", session.user_id)
        finally:
            await self.on_disconnect(session)

    async def authenticate(self, session: ChatSession) -> bool:
        """Verify the handshake credential and register the session

        On failure an error event is sent and the connection is closed.
        """
        token = handshake_token(session.websocket)
        try:
            identity = await asyncio.wait_for(
                self.identity_provider.authenticate(token),
                timeout=self.settings.storage_timeout_seconds,
            )
        except ChatError as e:
            await self._reject(session, e)
            return False
        except Exception:
            logger.exception("Authentication lookup failed")
            await self._reject(session, Unauthenticated("Authentication failed"))
            return False

        session.authenticate(identity)
        await self.registry.register(session)
        logger.info(
            "User %s connected (%s). Total connections: %d",
            identity.user_id, session.connection_id, self.registry.get_connection_count(),
        )
        await session.send({
            "type": SERVER_EVENT_CONNECTED,
            "userId": identity.user_id,
            "role": identity.role.value,
        })
        return True

    async def _reject(self, session: ChatSession, error: ChatError) -> None:
        await self.send_error(session, error)
        try:
            await session.websocket.close(code=WS_CLOSE_POLICY_VIOLATION, reason=error.message)
        except Exception as e:
            logger.debug("Close after failed authentication raised: %s", e)

    async def dispatch(self, session: ChatSession, raw: str) -> None:
        """Handle one inbound frame; never raises"""
        event_type = None
        hire_id = None
        try:
            event_type, payload = parse_client_event(raw)
            hire_id = payload.hire_id
            await self._handlers[event_type](session, payload)
        except ChatError as e:
            logger.info(
                "%s rejected for user %s hire %s: %s",
                event_type or "event", session.user_id, hire_id, e.code,
            )
            await self.send_error(session, e)
        except Exception:
            logger.exception("%s failed for user %s hire %s", event_type, session.user_id, hire_id)
            await self.send_error(session, TransportFailure())

    async def send_error(self, session: ChatSession, error: ChatError) -> None:
        try:
            await session.send({"type": SERVER_EVENT_ERROR, **error.to_dict()})
        except Exception as e:
            logger.debug("Could not deliver error event to %s: %s", session.connection_id, e)

    def _require_joined(self, session: ChatSession, hire_id: str) -> None:
        if not session.in_room(hire_id):
            raise Forbidden("Join the chat room first", code="not_joined")

    async def on_join(self, session: ChatSession, payload: JoinPayload) -> None:
        hire, room = await self.service.open_room(session.identity, payload.hire_id)
        # Subscribe before reading history so no message falls between the two
        already_joined = session.in_room(payload.hire_id)
        await self.registry.join_room(session, payload.hire_id)
        try:
            recent = await self.service.recent_history(session.identity, room)
        except Exception:
            if not already_joined:
                await self.registry.leave_room(session, payload.hire_id)
            raise
        logger.info("User %s joined hire %s", session.user_id, payload.hire_id)
        await session.send({
            "type": SERVER_EVENT_JOINED,
            "hireId": payload.hire_id,
            "roomId": room.room_id,
            "participants": {
                "buyerId": hire.buyer_id,
                "studentId": hire.student_id,
            },
            "messages": [message.to_dict() for message in recent.messages],
            "hasMore": recent.has_more,
        })

    async def on_send(self, session: ChatSession, payload: SendPayload) -> None:
        self._require_joined(session, payload.hire_id)
        is_limited, error = self.rate_limiter.is_rate_limited(session.user_id)
        if is_limited:
            raise RateLimited(error)
        # Broadcast happens once the event consumer picks up the new message
        await self.service.send_message(session.identity, payload.hire_id, payload.body)

    async def on_mark_read(self, session: ChatSession, payload: MarkReadPayload) -> None:
        self._require_joined(session, payload.hire_id)
        await self.service.mark_message_read(session.identity, payload.hire_id, payload.message_id)

    async def on_typing(self, session: ChatSession, payload: TypingPayload) -> None:
        self._require_joined(session, payload.hire_id)
        await self.registry.broadcast_to_room(
            payload.hire_id,
            {
                "type": SERVER_EVENT_TYPING,
                "hireId": payload.hire_id,
                "userId": session.user_id,
                "isTyping": payload.is_typing,
            },
            exclude=session,
        )

    async def on_leave(self, session: ChatSession, payload: LeavePayload) -> None:
        self._require_joined(session, payload.hire_id)
        await self.registry.leave_room(session, payload.hire_id)
        logger.info("User %s left hire %s", session.user_id, payload.hire_id)
        await session.send({"type": SERVER_EVENT_LEFT, "hireId": payload.hire_id})

    async def on_disconnect(self, session: ChatSession) -> None:
        await self.registry.unregister(session)
        if session.user_id is not None and not self.registry.connections_for_user(session.user_id):
            self.rate_limiter.forget_user(session.user_id)
