"""Response envelope and exception handlers for the HTTP surface."""

import logging
from typing import Any

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from courtside.errors import CourtsideError, ErrorCode
from courtside.models.team import format_time, utcnow

logger = logging.getLogger(__name__)


def success(data: Any = None, message: str | None = None) -> dict:
    body = {"success": True, "data": data}
    if message:
        body["message"] = message
    return body


def failure(error: CourtsideError) -> dict:
    return {
        "success": False,
        "error": error.to_dict(),
        "timestamp": format_time(utcnow()),
    }


def validation_details(errors: list[dict]) -> list[dict]:
    """Flatten pydantic error dicts into field/message pairs."""
    details = []
    for err in errors:
        loc = [str(part) for part in err.get("loc", ()) if part != "body"]
        details.append({"field": ".".join(loc), "message": err.get("msg", "Invalid value")})
    return details


async def courtside_error_handler(request: Request, exc: CourtsideError) -> JSONResponse:
    logger.warning(f"{request.method} {request.url.path} rejected: {exc.code.value} {exc.message}")
    return JSONResponse(status_code=exc.status_code, content=failure(exc))


async def request_validation_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    error = CourtsideError(
        ErrorCode.VALIDATION_ERROR,
        "Invalid request data",
        validation_details(exc.errors()),
    )
    return JSONResponse(status_code=error.status_code, content=failure(error))


async def unhandled_error_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.exception(f"Unhandled error on {request.method} {request.url.path}")
    error = CourtsideError(ErrorCode.INTERNAL_ERROR, "Internal server error")
    return JSONResponse(status_code=500, content=failure(error))


def register_exception_handlers(app: FastAPI) -> None:
    app.add_exception_handler(CourtsideError, courtside_error_handler)
    app.add_exception_handler(RequestValidationError, request_validation_handler)
    app.add_exception_handler(Exception, unhandled_error_handler)
