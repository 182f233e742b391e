from __future__ import annotations

import logging
import re
import uuid
from typing import cast

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from starlette.types import ASGIApp, Message, Receive, Scope, Send

from memories_backend.config import settings
from memories_backend.error_handlers import register_error_handlers
from memories_backend.routers import notifications, uploads
from memories_backend.schemas import HealthResponse


_REQUEST_ID_HEADER = b"x-request-id"
_REQUEST_ID_MAX_LENGTH = 128
_REQUEST_ID_RE = re.compile(rb"^[A-Za-z0-9._:-]+$")


def _inbound_request_id(scope: Scope) -> str | None:
    headers = cast(list[tuple[bytes, bytes]], scope.get("headers") or [])
    for key, value in headers:
        if key.lower() != _REQUEST_ID_HEADER:
            continue
        value = value.strip()
        # Echoed into logs and response headers; anything odd gets replaced.
        if 0 < len(value) <= _REQUEST_ID_MAX_LENGTH and _REQUEST_ID_RE.match(value):
            return value.decode("ascii")
        return None
    return None


class RequestIdMiddleware:
    """Tags every HTTP request with an id, reusing a well-formed inbound `X-Request-Id`."""

    def __init__(self, app: ASGIApp) -> None:
        self.app: ASGIApp = app

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        if scope.get("type") != "http":
            await self.app(scope, receive, send)
            return

        request_id = _inbound_request_id(scope) or uuid.uuid4().hex
        scope.setdefault("state", {})["request_id"] = request_id
        header_value = request_id.encode("ascii")

        async def send_with_request_id(message: Message) -> None:
            if message.get("type") == "http.response.start":
                headers = [
                    (k, v)
                    for (k, v) in cast(list[tuple[bytes, bytes]], message.get("headers", []))
                    if k.lower() != _REQUEST_ID_HEADER
                ]
                headers.append((_REQUEST_ID_HEADER, header_value))
                message["headers"] = headers
            await send(message)

        await self.app(scope, receive, send_with_request_id)


app = FastAPI(title=settings.app_name)

app.add_middleware(RequestIdMiddleware)
register_error_handlers(app)


logging.basicConfig(level=getattr(logging, settings.log_level.upper(), logging.INFO))

logger = logging.getLogger(__name__)
for msg in settings.security_warnings():
    logger.warning("SECURITY WARNING: %s", msg)


origins = settings.cors_origins_list()
if origins:
    app.add_middleware(
        CORSMiddleware,
        allow_origins=origins,
        # Guests are anonymous; no cookies cross origins.
        allow_credentials=False,
        allow_methods=["GET", "POST", "PUT", "OPTIONS"],
        allow_headers=["*"],
        expose_headers=["X-Request-Id"],
    )


@app.get("/health", response_model=HealthResponse)
def health() -> HealthResponse:
    return HealthResponse()


app.include_router(uploads.router, prefix=settings.api_prefix)
app.include_router(notifications.router, prefix=settings.api_prefix)
