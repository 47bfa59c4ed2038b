"""
Error taxonomy shared by services and routes.

Services raise these; `register_exception_handlers` turns them into JSON
responses that always carry an ``error`` string.
"""
import logging
from typing import Any, Dict, List, Optional

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from pydantic import ValidationError as PydanticValidationError
from starlette.exceptions import HTTPException as StarletteHTTPException

logger = logging.getLogger(__name__)


class AppError(Exception):
    status_code: int = 500
    message: str = "Internal server error"

    def __init__(self, message: Optional[str] = None, **extra: Any):
        super().__init__(message or self.message)
        self.message = message or self.message
        self.extra = extra
        self.headers: Dict[str, str] = {}

    def to_dict(self) -> Dict[str, Any]:
        return {"error": self.message, **self.extra}


class ValidationError(AppError):
    status_code = 400
    message = "Validation failed"

    def __init__(self, details: List[Dict[str, Any]], message: Optional[str] = None):
        super().__init__(message, details=details)
        self.details = details


class BadRequest(AppError):
    status_code = 400
    message = "Bad request"


class Unauthorized(AppError):
    status_code = 401
    message = "Unauthorized"


class Forbidden(AppError):
    status_code = 403
    message = "Forbidden"


class NotFound(AppError):
    status_code = 404
    message = "Not found"


class Conflict(AppError):
    status_code = 409
    message = "Record has been changed by someone else. Please refresh and try again."


class RateLimited(AppError):
    status_code = 429
    message = "Rate limit exceeded"

    def __init__(self, limit: int, reset_time_ms: int, retry_after: int):
        super().__init__(
            limit=limit,
            remaining=0,
            resetTime=reset_time_ms,
            retryAfter=retry_after,
        )
        self.headers = {
            "X-RateLimit-Limit": str(limit),
            "X-RateLimit-Remaining": "0",
            "X-RateLimit-Reset": str(reset_time_ms),
            "Retry-After": str(retry_after),
        }


class DuplicateResource(AppError):
    status_code = 400
    message = "Resource already exists"


class DuplicateEmail(DuplicateResource):
    message = "An account with this email already exists. Please sign in instead."


class InternalError(AppError):
    status_code = 500


class ImportDatabaseError(InternalError):
    message = "Database error during import"


def field_errors(exc: PydanticValidationError | RequestValidationError) -> List[Dict[str, Any]]:
    """Flatten pydantic errors into ``{field, message, code}`` entries."""
    out = []
    for err in exc.errors():
        # request errors are prefixed with "body"/"query"/"path"
        loc = [str(p) for p in err.get("loc", ()) if p not in ("body", "query", "path")]
        out.append({
            "field": ".".join(loc) or "general",
            "message": err.get("msg", "Invalid value"),
            "code": err.get("type", "value_error"),
        })
    return out


def register_exception_handlers(app: FastAPI) -> None:
    @app.exception_handler(AppError)
    async def _app_error(request: Request, exc: AppError):
        if exc.status_code >= 500:
            logger.error("%s %s failed: %s", request.method, request.url.path, exc.message)
        return JSONResponse(status_code=exc.status_code, content=exc.to_dict(), headers=exc.headers or None)

    @app.exception_handler(RequestValidationError)
    @app.exception_handler(PydanticValidationError)
    async def _validation(request: Request, exc: PydanticValidationError | RequestValidationError):
        return await _app_error(request, ValidationError(field_errors(exc)))

    @app.exception_handler(StarletteHTTPException)
    async def _http_error(request: Request, exc: StarletteHTTPException):
        return JSONResponse(status_code=exc.status_code, content={"error": exc.detail}, headers=getattr(exc, "headers", None))

    @app.exception_handler(Exception)
    async def _unexpected(request: Request, exc: Exception):
        logger.exception("Unhandled error on %s %s", request.method, request.url.path)
        return JSONResponse(status_code=500, content={"error": "Internal server error"})
