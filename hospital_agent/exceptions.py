"""Domain errors and the global exception handlers that render them."""
import uuid
import traceback
from datetime import datetime, timezone
from typing import List, Optional
from fastapi import Request, HTTPException, FastAPI
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from loguru import logger


class BookingError(Exception):
    """Base class for errors raised by the stores and the API layer."""
    status_code = 500

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class InputValidationError(BookingError):
    """Missing or malformed input, raised before any query runs."""
    status_code = 400

    def __init__(self, message: str, errors: Optional[List[str]] = None):
        super().__init__(message)
        self.errors = errors or []


class NotFoundError(BookingError):
    status_code = 404


class AuthorizationError(BookingError):
    status_code = 401


class ConflictError(BookingError):
    status_code = 409


async def booking_exception_handler(request: Request, exc: BookingError) -> JSONResponse:
    request_id = str(uuid.uuid4())

    logger.warning(
        f"{type(exc).__name__} on {request.method} {request.url.path}: {exc.message} (request_id={request_id})"
    )

    content = {"success": False, "message": exc.message, "request_id": request_id}
    if isinstance(exc, InputValidationError) and exc.errors:
        content["errors"] = exc.errors

    headers = {"WWW-Authenticate": "Bearer"} if isinstance(exc, AuthorizationError) else None
    return JSONResponse(status_code=exc.status_code, content=content, headers=headers)


async def global_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Log full error, return the message for diagnostics"""
    request_id = str(uuid.uuid4())

    logger.error(
        f"Request failed: {request.method} {request.url.path} "
        f"({type(exc).__name__}: {exc}) request_id={request_id}\n{traceback.format_exc()}"
    )

    return JSONResponse(
        status_code=500,
        content={
            "success": False,
            "message": "An error occurred while processing your request",
            "error": str(exc),
            "request_id": request_id,
            "timestamp": datetime.now(timezone.utc).isoformat()
        }
    )


async def validation_exception_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    """Handle request body/query validation errors"""
    request_id = str(uuid.uuid4())

    logger.warning(f"Validation error: {request.method} {request.url.path} request_id={request_id}")

    return JSONResponse(
        status_code=422,
        content={
            "success": False,
            "message": "Validation failed",
            "errors": jsonable_errors(exc.errors()),
            "request_id": request_id
        }
    )


async def http_exception_handler(request: Request, exc: HTTPException) -> JSONResponse:
    request_id = str(uuid.uuid4())

    if exc.status_code >= 500:
        logger.error(f"HTTP {exc.status_code}: {request.method} {request.url.path} - {exc.detail}")
        return JSONResponse(
            status_code=exc.status_code,
            content={
                "success": False,
                "message": "An error occurred",
                "error": exc.detail,
                "request_id": request_id,
                "timestamp": datetime.now(timezone.utc).isoformat()
            }
        )

    return JSONResponse(
        status_code=exc.status_code,
        content={"success": False, "message": exc.detail, "request_id": request_id},
        headers=getattr(exc, "headers", None)
    )


def jsonable_errors(errors: list) -> list:
    # pydantic may put the raw exception object under ctx
    cleaned = []
    for err in errors:
        err = dict(err)
        if "ctx" in err:
            err["ctx"] = {k: str(v) for k, v in err["ctx"].items()}
        cleaned.append(err)
    return cleaned


def register_exception_handlers(app: FastAPI) -> None:
    """Register all exception handlers"""
    app.add_exception_handler(BookingError, booking_exception_handler)
    app.add_exception_handler(RequestValidationError, validation_exception_handler)
    app.add_exception_handler(HTTPException, http_exception_handler)
    app.add_exception_handler(Exception, global_exception_handler)
