import logging
import uuid
from datetime import datetime, timezone
from typing import Any, Dict, Optional

from fastapi import HTTPException, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

logger = logging.getLogger(__name__)

VALIDATION_ERROR = "VALIDATION_ERROR"
AUTHENTICATION_ERROR = "AUTHENTICATION_ERROR"
AUTHORIZATION_ERROR = "AUTHORIZATION_ERROR"
NOT_FOUND = "NOT_FOUND"
RATE_LIMIT_ERROR = "RATE_LIMIT_ERROR"
INTERNAL_ERROR = "INTERNAL_ERROR"

STATUS_CODES = {
    VALIDATION_ERROR: status.HTTP_400_BAD_REQUEST,
    AUTHENTICATION_ERROR: status.HTTP_401_UNAUTHORIZED,
    AUTHORIZATION_ERROR: status.HTTP_403_FORBIDDEN,
    NOT_FOUND: status.HTTP_404_NOT_FOUND,
    RATE_LIMIT_ERROR: status.HTTP_429_TOO_MANY_REQUESTS,
    INTERNAL_ERROR: status.HTTP_500_INTERNAL_SERVER_ERROR,
}


def status_code_for(code: str) -> int:
    return STATUS_CODES.get(code, status.HTTP_500_INTERNAL_SERVER_ERROR)


def code_for_status(status_code: int) -> str:
    for code, mapped in STATUS_CODES.items():
        if mapped == status_code:
            return code
    if status_code == status.HTTP_422_UNPROCESSABLE_ENTITY:
        return VALIDATION_ERROR
    return INTERNAL_ERROR if status_code >= 500 else VALIDATION_ERROR


class APIError(HTTPException):
    """Base error carrying a taxonomy code; the status code is derived from it."""

    code = INTERNAL_ERROR

    def __init__(
        self,
        message: str,
        details: Optional[Dict[str, Any]] = None,
        headers: Optional[Dict[str, str]] = None,
    ):
        super().__init__(status_code=status_code_for(self.code), detail=message, headers=headers)
        self.message = message
        self.details = details or {}
        self.timestamp = datetime.now(timezone.utc).isoformat()

    def to_dict(self, request_id: Optional[str] = None) -> Dict[str, Any]:
        return {
            "code": self.code,
            "message": self.message,
            "details": self.details,
            "timestamp": self.timestamp,
            "request_id": request_id,
        }


class ValidationError(APIError):
    code = VALIDATION_ERROR


class AuthenticationError(APIError):
    code = AUTHENTICATION_ERROR

    def __init__(self, message: str = "Could not validate credentials", details=None):
        super().__init__(message, details, headers={"WWW-Authenticate": "Bearer"})


class AuthorizationError(APIError):
    code = AUTHORIZATION_ERROR

    def __init__(self, message: str = "Insufficient permissions", details=None):
        super().__init__(message, details)


class NotFoundError(APIError):
    code = NOT_FOUND


class RateLimitError(APIError):
    code = RATE_LIMIT_ERROR

    def __init__(self, message: str = "Rate limit exceeded", retry_after: int = 60, details=None):
        details = dict(details or {})
        details["retry_after"] = retry_after
        super().__init__(message, details, headers={"Retry-After": str(retry_after)})
        self.retry_after = retry_after


class InternalError(APIError):
    code = INTERNAL_ERROR


def _request_id(request: Request) -> str:
    return getattr(request.state, "request_id", None) or str(uuid.uuid4())


def _error_response(request: Request, error: APIError) -> JSONResponse:
    request_id = _request_id(request)
    headers = dict(error.headers or {})
    headers["X-Request-ID"] = request_id
    return JSONResponse(
        status_code=error.status_code,
        content={"success": False, "data": None, "error": error.to_dict(request_id)},
        headers=headers,
    )


async def api_error_handler(request: Request, exc: APIError) -> JSONResponse:
    if exc.status_code >= 500:
        logger.error(f"{exc.code} on {request.url.path}: {exc.message}")
    return _error_response(request, exc)


async def http_error_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    error = APIError(str(exc.detail), headers=getattr(exc, "headers", None))
    error.code = code_for_status(exc.status_code)
    error.status_code = exc.status_code
    return _error_response(request, error)


async def validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    fields: Dict[str, list] = {}
    for issue in exc.errors():
        path = ".".join(str(part) for part in issue.get("loc", ()) if part != "body")
        fields.setdefault(path, []).append(issue.get("msg", "Invalid value"))
    return _error_response(request, ValidationError("Validation error", {"fields": fields}))


async def unhandled_error_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.exception(f"Unhandled error on {request.url.path}")
    error = InternalError("An unexpected error occurred", {"original_error": type(exc).__name__})
    return _error_response(request, error)


def register_error_handlers(app) -> None:
    app.add_exception_handler(APIError, api_error_handler)
    app.add_exception_handler(StarletteHTTPException, http_error_handler)
    app.add_exception_handler(RequestValidationError, validation_error_handler)
    app.add_exception_handler(Exception, unhandled_error_handler)
