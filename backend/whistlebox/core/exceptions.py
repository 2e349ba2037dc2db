from typing import Any, Optional

from fastapi import Request, status
from fastapi.responses import JSONResponse
from fastapi.exceptions import RequestValidationError
from starlette.exceptions import HTTPException as StarletteHTTPException
import structlog

logger = structlog.get_logger()


class WhistleboxError(Exception):
    """
    Base for domain failures.

    `public_message` is the only text that may reach a caller. Anything passed
    as the exception's own message stays server-side, in the logs.
    """

    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR
    public_message = "An unexpected error occurred. Please contact support."

    def __init__(self, message: str = "", details: Optional[Any] = None):
        super().__init__(message or self.public_message)
        self.details = details


class ValidationError(WhistleboxError):
    """Malformed or missing input. User-correctable, returned with details."""

    status_code = status.HTTP_400_BAD_REQUEST
    public_message = "Validation error"


class NotFoundError(WhistleboxError):
    status_code = status.HTTP_404_NOT_FOUND
    public_message = "Not found"


class UnauthorizedError(WhistleboxError):
    """PIN mismatch or a missing/invalid admin credential. Never says which."""

    status_code = status.HTTP_401_UNAUTHORIZED
    public_message = "Unauthorized"


class AnchorUnavailable(WhistleboxError):
    """Ledger write failed or timed out."""

    status_code = status.HTTP_503_SERVICE_UNAVAILABLE
    public_message = "Complaint could not be anchored. Please try again later."


class DecryptionError(WhistleboxError):
    pass


class StoreError(WhistleboxError):
    pass


async def domain_exception_handler(request: Request, exc: WhistleboxError):
    """
    Translate domain errors. Internal faults are logged with detail and
    surfaced generically.
    """
    if exc.status_code >= 500:
        logger.error(
            "internal_fault",
            error_type=type(exc).__name__,
            error=str(exc),
            path=request.url.path,
        )
    content: dict = {"detail": exc.public_message}
    if isinstance(exc, ValidationError):
        content["detail"] = str(exc)
        if exc.details is not None:
            content["errors"] = exc.details
    headers = {"WWW-Authenticate": "Bearer"} if isinstance(exc, UnauthorizedError) else None
    return JSONResponse(status_code=exc.status_code, content=content, headers=headers)


async def global_exception_handler(request: Request, exc: Exception):
    """
    Catch-all for unhandled exceptions.
    Prevents stack trace leakage in production.
    """
    logger.error("unhandled_exception", error=str(exc), path=request.url.path)
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={"detail": "An unexpected error occurred. Please contact support."},
    )


async def http_exception_handler(request: Request, exc: StarletteHTTPException):
    """
    Standard HTTP exception handler.
    """
    return JSONResponse(
        status_code=exc.status_code,
        content={"detail": exc.detail},
    )


async def validation_exception_handler(request: Request, exc: RequestValidationError):
    """
    Pydantic validation error handler.
    """
    logger.warning("validation_error", errors=exc.errors(), path=request.url.path)
    return JSONResponse(
        status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
        content={"detail": "Validation error", "errors": jsonable_errors(exc)},
    )


def jsonable_errors(exc: RequestValidationError) -> list:
    # pydantic v2 may embed the raw exception under "ctx"
    errors = []
    for err in exc.errors():
        err = dict(err)
        if "ctx" in err:
            err["ctx"] = {k: str(v) for k, v in err["ctx"].items()}
        errors.append(err)
    return errors
