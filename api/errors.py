"""Map chat errors to JSON responses"""
import logging

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from domain.errors import ChatError, ChatValidationError, TransportFailure

logger = logging.getLogger(__name__)


def _error_response(error: ChatError) -> JSONResponse:
    return JSONResponse(status_code=error.status_code, content={"error": error.to_dict()})


async def chat_error_handler(request: Request, exc: ChatError) -> JSONResponse:
    logger.info(
        "%s %s -> %s (%s)",
        request.method, request.url.path, exc.status_code, exc.code,
    )
    return _error_response(exc)


async def request_validation_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    """Schema failures get the chat envelope; only field names are reported back"""
    fields = ", ".join(
        ".".join(str(part) for part in error["loc"] if part not in ("body", "query", "path"))
        or "body"
        for error in exc.errors()
    )
    logger.info("%s %s -> 422 (invalid %s)", request.method, request.url.path, fields)
    return _error_response(ChatValidationError(f"Invalid request: {fields}"))


async def unhandled_error_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.exception("Unhandled error on %s %s", request.method, request.url.path)
    return _error_response(TransportFailure())


def register_error_handlers(app: FastAPI) -> None:
    app.add_exception_handler(ChatError, chat_error_handler)
    app.add_exception_handler(RequestValidationError, request_validation_handler)
    app.add_exception_handler(Exception, unhandled_error_handler)
