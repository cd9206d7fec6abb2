"""Request logging, CORS and ``{"error": ...}`` responses for the API.

Every error the API returns, including request validation failures and
unhandled exceptions, uses the same ``{"error": message}`` body.
"""

import logging
import time

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from starlette.responses import JSONResponse
from starlette.types import ASGIApp, Message, Receive, Scope, Send

from servicenow_ninja.core.config import settings

logger = logging.getLogger(__name__)


def error_response(status_code: int, message: str) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"error": message})


def describe_validation_errors(exc: RequestValidationError) -> str:
    """Flatten pydantic errors into ``field: message`` pairs."""
    parts = []
    for err in exc.errors():
        field = ".".join(str(p) for p in err.get("loc", ()) if p != "body")
        parts.append(f"{field}: {err.get('msg')}" if field else str(err.get("msg")))
    return "; ".join(parts)


async def validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    message = f"Invalid request: {describe_validation_errors(exc)}"
    logger.info(f"Rejected {request.method} {request.url.path}: {message}")
    return error_response(400, message)


class CrawlerApiMiddleware:
    """Pure ASGI middleware timing each HTTP request.

    Logs method, path (never the query string, which can carry the cron
    secret), status and duration, and answers unhandled exceptions with a
    500 ``{"error": ...}`` body when no response has started yet.
    """

    def __init__(self, app: ASGIApp) -> None:
        self.app = app

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        if scope["type"] != "http":
            await self.app(scope, receive, send)
            return

        started = time.perf_counter()
        method, path = scope["method"], scope["path"]
        status_code = 0

        async def send_wrapper(message: Message) -> None:
            nonlocal status_code
            if message["type"] == "http.response.start":
                status_code = message.get("status", 0)
            await send(message)

        try:
            await self.app(scope, receive, send_wrapper)
        except Exception as e:
            logger.exception(f"Unhandled error in {method} {path}: {e}")
            if status_code:
                raise
            status_code = 500
            await error_response(500, "Internal server error")(scope, receive, send)
        finally:
            elapsed = time.perf_counter() - started
            logger.info(f"{method} {path} -> {status_code} in {elapsed:.3f}s")


def setup_middleware(app: FastAPI) -> None:
    """Configure middleware and error handlers for the FastAPI application."""
    app.add_exception_handler(RequestValidationError, validation_error_handler)

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.allowed_hosts,
        allow_credentials=True,
        allow_methods=["GET", "POST", "OPTIONS"],
        allow_headers=["*"],
    )
    app.add_middleware(CrawlerApiMiddleware)

    logger.info("Middleware setup completed")
