"""Parsing of client -> server socket events"""
import json

from pydantic import BaseModel, ConfigDict, Field, StrictBool, StrictStr, ValidationError

from domain.constants import (
    CLIENT_EVENT_JOIN,
    CLIENT_EVENT_LEAVE,
    CLIENT_EVENT_MARK_READ,
    CLIENT_EVENT_SEND,
    CLIENT_EVENT_TYPING,
)
from domain.errors import ChatValidationError


class HirePayload(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    hire_id: StrictStr = Field(alias="hireId", min_length=1)


class JoinPayload(HirePayload):
    pass


class LeavePayload(HirePayload):
    pass


class SendPayload(HirePayload):
    # Length and blank checks happen in the message validation shared with REST
    body: StrictStr


class MarkReadPayload(HirePayload):
    message_id: int = Field(alias="messageId", gt=0)


class TypingPayload(HirePayload):
    is_typing: StrictBool = Field(alias="isTyping")


PAYLOAD_MODELS: dict[str, type[HirePayload]] = {
    CLIENT_EVENT_JOIN: JoinPayload,
    CLIENT_EVENT_SEND: SendPayload,
    CLIENT_EVENT_MARK_READ: MarkReadPayload,
    CLIENT_EVENT_TYPING: TypingPayload,
    CLIENT_EVENT_LEAVE: LeavePayload,
}


def parse_client_event(raw: str) -> tuple[str, HirePayload]:
    """Decode a text frame into (event type, payload)

    Any malformed input raises ChatValidationError.
    """
    try:
        data = json.loads(raw)
    except (json.JSONDecodeError, TypeError):
        raise ChatValidationError("Invalid JSON format") from None

    if not isinstance(data, dict):
        raise ChatValidationError("Event must be a JSON object")

    event_type = data.get("type")
    model = PAYLOAD_MODELS.get(event_type) if isinstance(event_type, str) else None
    if model is None:
        raise ChatValidationError(f"Unknown event type: {event_type!r}")

    try:
        return event_type, model.model_validate(data)
    except ValidationError as e:
        fields = ", ".join(".".join(str(part) for part in err["loc"]) for err in e.errors())
        raise ChatValidationError(f"Invalid {event_type} payload: {fields}") from None
