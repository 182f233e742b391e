"""Unified exception handling.

Every endpoint answers errors with the same JSON shape
`{error, message, request_id, details}`. `message` is shown to guests as is,
so framework defaults are replaced with Spanish text.
"""

from __future__ import annotations

import logging
from http import HTTPStatus
from typing import cast

from fastapi import FastAPI, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from memories_backend.schemas import ErrorResponse

logger = logging.getLogger(__name__)

_ERROR_CODES: dict[int, str] = {
    400: "bad_request",
    403: "forbidden",
    404: "not_found",
    405: "method_not_allowed",
    413: "payload_too_large",
    422: "validation_error",
    500: "internal_error",
    502: "upstream_error",
}

_GUEST_MESSAGES: dict[int, str] = {
    404: "No encontramos lo que buscabas.",
    405: "Método no permitido.",
    413: "El archivo supera el tamaño máximo permitido.",
    500: "Ocurrió un error inesperado. Probá de nuevo en unos minutos.",
    502: "El almacenamiento no respondió. Probá de nuevo en unos minutos.",
}

VALIDATION_MESSAGE = "Revisá los datos enviados."


def error_code(status_code: int) -> str:
    return _ERROR_CODES.get(status_code, f"http_{status_code}")


def _message_for(status_code: int, detail: object) -> str:
    text = detail if isinstance(detail, str) else ""
    try:
        reason = HTTPStatus(status_code).phrase
    except ValueError:
        reason = ""
    # Starlette fills `detail` with the reason phrase when a route gives none.
    if not text or text == reason:
        return _GUEST_MESSAGES.get(status_code, reason or "Error")
    return text


def _json_error(
    request: Request,
    *,
    status_code: int,
    message: str,
    details: object | None = None,
    headers: dict[str, str] | None = None,
) -> JSONResponse:
    payload = ErrorResponse(
        error=error_code(status_code),
        message=message,
        request_id=getattr(request.state, "request_id", None),
        details=jsonable_encoder(details) if details is not None else None,
    )
    return JSONResponse(
        status_code=status_code,
        content=jsonable_encoder(payload, exclude_none=True),
        headers=headers,
    )


async def _http_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    http_exc = cast(StarletteHTTPException, exc)
    detail = http_exc.detail

    # Routes may pass {'message': str, 'details': object} to attach context.
    details: object | None = None
    if isinstance(detail, dict) and isinstance(detail.get("message"), str):
        details = detail.get("details")
        detail = detail["message"]
    elif isinstance(detail, (dict, list)):
        details = detail
        detail = None

    return _json_error(
        request,
        status_code=http_exc.status_code,
        message=_message_for(http_exc.status_code, detail),
        details=details,
        headers=getattr(http_exc, "headers", None),
    )


async def _validation_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    validation_exc = cast(RequestValidationError, exc)
    return _json_error(
        request,
        status_code=422,
        message=VALIDATION_MESSAGE,
        details=validation_exc.errors(),
    )


async def _unhandled_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.exception(
        "unhandled exception request_id=%s method=%s path=%s",
        getattr(request.state, "request_id", None),
        request.method,
        request.url.path,
        exc_info=exc,
    )
    return _json_error(request, status_code=500, message=_GUEST_MESSAGES[500])


def register_error_handlers(app: FastAPI) -> None:
    app.add_exception_handler(StarletteHTTPException, _http_exception_handler)
    app.add_exception_handler(RequestValidationError, _validation_exception_handler)
    app.add_exception_handler(Exception, _unhandled_exception_handler)
