"""Error taxonomy shared by the REST and socket transports"""


class ChatError(Exception):
    """Base error carrying a client-safe code, message and HTTP status"""

    code = "error"
    status_code = 400
    default_message = "Request failed"

    def __init__(self, message: str | None = None, code: str | None = None) -> None:
        self.message = message or self.default_message
        if code is not None:
            self.code = code
        super().__init__(self.message)

    def to_dict(self) -> dict:
        return {"code": self.code, "message": self.message}


class Unauthenticated(ChatError):
    code = "unauthenticated"
    status_code = 401
    default_message = "Authentication required"


class HireRequestNotFound(ChatError):
    code = "not_found"
    status_code = 404
    default_message = "Hire request not found"


class Forbidden(ChatError):
    code = "forbidden"
    status_code = 403
    default_message = "Access denied"


class ChatUnavailable(Forbidden):
    code = "chat_unavailable"
    default_message = "Chat is only available for accepted hire requests"


class NotParticipant(Forbidden):
    code = "not_participant"
    default_message = "Access denied"


class ChatValidationError(ChatError):
    code = "validation_error"
    status_code = 422
    default_message = "Invalid request"


class RateLimited(ChatError):
    code = "rate_limited"
    status_code = 429
    default_message = "Too many messages"


class TransportFailure(ChatError):
    code = "internal_error"
    status_code = 500
    default_message = "Something went wrong, please try again"
