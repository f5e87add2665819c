"""Translate workflow exceptions into the API's error envelope.

Every refusal leaves the API as::

    {"success": false, "error": "<category>", "message": "<first message>", "details": {field: [messages]}}
"""

import structlog
from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from protean.exceptions import (
    ExpectedVersionError,
    InvalidOperationError,
    ObjectNotFoundError,
    ValidationError,
)

from stockroom.shared.errors import error_category, error_messages, first_message

logger = structlog.get_logger(__name__)

STATUS_CODES = {
    "validation": 400,
    "not_found": 404,
    "state": 409,
    "invariant": 409,
    "conflict": 409,
}


def error_envelope(exc: Exception) -> dict:
    return {
        "success": False,
        "error": error_category(exc),
        "message": first_message(exc),
        "details": error_messages(exc),
    }


async def _handle_domain_error(request: Request, exc: Exception) -> JSONResponse:
    envelope = error_envelope(exc)
    logger.info(
        "Request refused",
        path=request.url.path,
        error=envelope["error"],
        message=envelope["message"],
    )
    return JSONResponse(status_code=STATUS_CODES.get(envelope["error"], 500), content=envelope)


def register_exception_handlers(app: FastAPI) -> None:
    """Install the envelope handlers on ``app``."""
    for exc_class in (ValidationError, InvalidOperationError, ObjectNotFoundError, ExpectedVersionError):
        app.add_exception_handler(exc_class, _handle_domain_error)
