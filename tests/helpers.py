"""Helpers shared by test modules"""
import json

from domain.models import Identity, User


def identity_of(user: User) -> Identity:
    return Identity(user_id=user.user_id, role=user.role, name=user.name)


def sent_events(websocket) -> list[dict]:
    """Decode every JSON frame sent on a mocked websocket"""
    return [json.loads(call.args[0]) for call in websocket.send_text.call_args_list]


def events_of_type(websocket, event_type: str) -> list[dict]:
    return [event for event in sent_events(websocket) if event.get("type") == event_type]
