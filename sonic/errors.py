"""Domain exceptions and their JSON error envelopes."""

import logging
import os

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException

logger = logging.getLogger(__name__)

TOKEN_OVER = "token_over"


class TokenQuotaExceeded(Exception):
    """Free user does not have enough tokens for an AI call."""

    def __init__(self, balance: int, cost: int):
        super().__init__(f"Token balance {balance} is below the call cost {cost}")
        self.balance = balance
        self.cost = cost


class UpstreamModelError(Exception):
    """The Gemini call failed or returned no usable text."""


class StaleProjectError(Exception):
    """A conversation changed between read and write."""

    def __init__(self, conversation_id: str):
        super().__init__(f"Conversation {conversation_id} was modified concurrently")
        self.conversation_id = conversation_id


class ConversationExistsError(Exception):
    """A conversation with this id is already stored."""

    def __init__(self, conversation_id: str):
        super().__init__(f"Conversation {conversation_id} already exists")
        self.conversation_id = conversation_id


def _debug_enabled() -> bool:
    return os.getenv("APP_ENV", "production") == "development"


def _error_body(message: str, exc: Exception | None = None, **extra) -> dict:
    body = {"success": False, "message": message, **extra}
    if exc is not None and _debug_enabled():
        body.setdefault("error", str(exc))
    return body


async def _http_exception_handler(request: Request, exc: HTTPException) -> JSONResponse:
    if isinstance(exc.detail, dict):
        body = {"success": False, **exc.detail}
    else:
        body = {"success": False, "message": exc.detail}
    return JSONResponse(status_code=exc.status_code, content=body, headers=exc.headers)


async def _validation_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    errors = [
        {
            "field": ".".join(str(p) for p in err.get("loc", ()) if p != "body"),
            "message": err.get("msg", "Invalid value"),
        }
        for err in exc.errors()
    ]
    return JSONResponse(
        status_code=400,
        content={"success": False, "message": "Validation failed", "errors": errors},
    )


async def _quota_handler(request: Request, exc: TokenQuotaExceeded) -> JSONResponse:
    return JSONResponse(
        status_code=403,
        content={
            "success": False,
            "error": TOKEN_OVER,
            "message": "Not enough tokens. Upgrade to continue.",
        },
    )


async def _upstream_handler(request: Request, exc: UpstreamModelError) -> JSONResponse:
    logger.error("Gemini call failed: %s", exc)
    return JSONResponse(status_code=502, content=_error_body("Error generating AI response", exc))


async def _stale_handler(request: Request, exc: StaleProjectError) -> JSONResponse:
    return JSONResponse(
        status_code=409,
        content=_error_body("Conversation was updated by another request. Please retry.", exc),
    )


async def _unhandled_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.error("Unhandled error on %s: %s", request.url.path, exc, exc_info=True)
    return JSONResponse(status_code=500, content=_error_body("Internal Server Error", exc))


def register_exception_handlers(app: FastAPI) -> None:
    app.add_exception_handler(HTTPException, _http_exception_handler)
    app.add_exception_handler(RequestValidationError, _validation_handler)
    app.add_exception_handler(TokenQuotaExceeded, _quota_handler)
    app.add_exception_handler(UpstreamModelError, _upstream_handler)
    app.add_exception_handler(StaleProjectError, _stale_handler)
    app.add_exception_handler(Exception, _unhandled_handler)
