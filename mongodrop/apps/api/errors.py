from __future__ import annotations

import logging
from typing import Any
from uuid import uuid4

from fastapi import Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from pydantic import BaseModel
from starlette.exceptions import HTTPException as StarletteHTTPException

from mongodrop.core.errors import (
    AuthenticationInvalidError,
    AuthenticationMissingError,
    MongodropError,
)


logger = logging.getLogger(__name__)

# Routing failures raised by Starlette itself; everything else is a MongodropError.
_ROUTING_CODES: dict[int, str] = {
    404: "NOT_FOUND",
    405: "METHOD_NOT_ALLOWED",
}
_BEARER_CHALLENGE = {"WWW-Authenticate": "Bearer"}


class BackupErrorBody(BaseModel):
    code: str
    message: str
    details: dict[str, Any] | None = None


class RequestMeta(BaseModel):
    request_id: str


class ErrorEnvelope(BaseModel):
    """Body of every non-2xx JSON response from the backup API."""

    error: BackupErrorBody
    meta: RequestMeta


def request_id_for(request: Request) -> str:
    # The middleware normally sets this; errors raised before it runs still get one.
    request_id = getattr(request.state, "request_id", None)
    if not request_id:
        request_id = request.headers.get("X-Request-Id") or str(uuid4())
        request.state.request_id = request_id
    return request_id


def envelope_response(
    request: Request,
    *,
    status_code: int,
    code: str,
    message: str,
    details: dict[str, Any] | None = None,
    headers: dict[str, str] | None = None,
) -> JSONResponse:
    envelope = ErrorEnvelope(
        error=BackupErrorBody(code=code, message=message, details=details),
        meta=RequestMeta(request_id=request_id_for(request)),
    )
    return JSONResponse(
        content=envelope.model_dump(exclude_none=True),
        status_code=status_code,
        headers=headers,
    )


async def mongodrop_exception_handler(request: Request, exc: MongodropError) -> JSONResponse:
    # Each error class owns its status and code; credential failures also carry the challenge.
    headers = None
    if isinstance(exc, (AuthenticationMissingError, AuthenticationInvalidError)):
        headers = _BEARER_CHALLENGE
    return envelope_response(
        request,
        status_code=exc.status_code,
        code=exc.code,
        message=str(exc),
        headers=headers,
    )


async def routing_exception_handler(
    request: Request, exc: StarletteHTTPException
) -> JSONResponse:
    code = _ROUTING_CODES.get(exc.status_code, "HTTP_ERROR")
    message = exc.detail if isinstance(exc.detail, str) else "Request failed"
    return envelope_response(
        request,
        status_code=exc.status_code,
        code=code,
        message=message,
        headers=getattr(exc, "headers", None),
    )


async def validation_exception_handler(
    request: Request, exc: RequestValidationError
) -> JSONResponse:
    return envelope_response(
        request,
        status_code=422,
        code="REQUEST_VALIDATION_ERROR",
        message="Validation error",
        details={"errors": jsonable_encoder(exc.errors())},
    )


async def unhandled_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    # Never leak stack traces to callers.
    logger.error("unhandled_exception path=%s", request.url.path, exc_info=exc)
    return envelope_response(
        request,
        status_code=500,
        code=MongodropError.code,
        message="Internal server error",
    )
