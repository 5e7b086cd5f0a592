"""Validation helpers for message bodies, cursors and page sizes"""
from .errors import ChatValidationError


def validate_body(body: object, max_length: int) -> str:
    """Return the trimmed message body or raise ChatValidationError

    The length limit applies to the body as submitted.
    """
    if not isinstance(body, str):
        raise ChatValidationError("Message body must be text")
    if len(body) > max_length:
        raise ChatValidationError(f"Message is too long (max {max_length} characters)")
    text = body.strip()
    if not text:
        raise ChatValidationError("Message cannot be empty")
    return text


def parse_cursor(cursor: str | None) -> int | None:
    """Turn a client cursor (a message id) into an integer boundary"""
    if cursor is None or cursor == "":
        return None
    try:
        value = int(cursor)
    except (TypeError, ValueError):
        raise ChatValidationError("Invalid cursor") from None
    if value <= 0:
        raise ChatValidationError("Invalid cursor")
    return value


def clamp_limit(limit: int | None, default: int, maximum: int) -> int:
    if limit is None:
        return default
    return min(maximum, max(1, limit))
