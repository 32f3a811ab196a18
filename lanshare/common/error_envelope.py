"""Canonical error envelope for every LAN Share response.

Standardized structure:
{
  "error": "Human readable message",
  "code": "share.not_found",
  "details": {}
}
"""
from __future__ import annotations

import logging
from typing import Any, Dict, Optional

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field

from lanshare.common.errors import CorruptRecord, ShareError

logger = logging.getLogger(__name__)


class ErrorEnvelope(BaseModel):
    """Top-level error body returned by all endpoints."""
    error: str
    code: str
    details: Dict[str, Any] = Field(default_factory=dict)


def build_error_envelope(
    code: str,
    message: str,
    details: Optional[Dict[str, Any]] = None,
) -> ErrorEnvelope:
    return ErrorEnvelope(error=message, code=code, details=details or {})


def error_response(
    code: str,
    message: str,
    status_code: int = 400,
    details: Optional[Dict[str, Any]] = None,
) -> JSONResponse:
    """Build a JSONResponse carrying the canonical envelope.

    Args:
        code: Machine-readable error code (e.g., "share.expired")
        message: Human-readable error message
        status_code: HTTP status code (default 400)
        details: Additional context dict
    """
    envelope = build_error_envelope(code=code, message=message, details=details)
    return JSONResponse(status_code=status_code, content=envelope.model_dump())


_PUBLIC_MESSAGES = {
    "share.corrupt_record": "Not found",
    "share.expired": "Link expired",
}


async def _share_error_handler(request: Request, exc: ShareError) -> JSONResponse:
    if isinstance(exc, CorruptRecord):
        logger.error(f"Corrupt record behind {request.url.path}: {exc.message}")
    elif exc.http_status >= 500:
        logger.error(f"{exc.code} on {request.method} {request.url.path}: {exc.message}")
        return error_response(code=exc.code, message="Server error", status_code=exc.http_status)
    message = _PUBLIC_MESSAGES.get(exc.code, exc.message)
    details = {} if isinstance(exc, CorruptRecord) else exc.details
    return error_response(code=exc.code, message=message, status_code=exc.http_status, details=details)


async def _request_validation_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    errors = exc.errors()
    fields = [".".join(str(part) for part in err.get("loc", ())) for err in errors]
    logger.info(f"Rejected {request.method} {request.url.path}: invalid {fields}")
    message = "No file uploaded" if any(f == "body.file" for f in fields) else "Invalid request"
    return error_response(
        code="share.invalid_request",
        message=message,
        status_code=400,
        details={"fields": fields},
    )


async def _unhandled_error_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.exception(f"Unhandled error on {request.method} {request.url.path}: {exc}")
    return error_response(code="share.server_error", message="Server error", status_code=500)


def install_error_handlers(app: FastAPI) -> None:
    app.add_exception_handler(ShareError, _share_error_handler)
    app.add_exception_handler(RequestValidationError, _request_validation_handler)
    app.add_exception_handler(Exception, _unhandled_error_handler)
