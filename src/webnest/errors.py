"""
Domain exceptions and the HTTP handlers that render them.

Services raise subclasses of `WebNestError`. Routes let them propagate and the handlers
registered by `register_exception_handlers` turn them into the `{success: false, message}`
envelope with the mapped HTTP status.
"""

from typing import Optional

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException

from webnest.managers.logging_manager import get_logger

logger = get_logger(prefix="[Errors]")


class WebNestError(Exception):
    """Base class for every error surfaced to API clients."""

    status_code: int = status.HTTP_400_BAD_REQUEST
    default_message: str = "Request failed"

    def __init__(self, message: Optional[str] = None, status_code: Optional[int] = None):
        self.message = message or self.default_message
        if status_code is not None:
            self.status_code = status_code
        super().__init__(self.message)


class NotFoundError(WebNestError):
    status_code = status.HTTP_404_NOT_FOUND
    default_message = "Resource not found"


class ValidationFailedError(WebNestError):
    default_message = "Validation failed"


class BusinessRuleError(WebNestError):
    """A request that is well-formed but violates a business rule (duplicate account, guard, funds)."""

    default_message = "Operation not allowed"


class AuthenticationError(WebNestError):
    status_code = status.HTTP_401_UNAUTHORIZED
    default_message = "Not authorized"


class AccountLockedError(WebNestError):
    status_code = status.HTTP_403_FORBIDDEN
    default_message = "Account is deactivated"


class PermissionDeniedError(WebNestError):
    status_code = status.HTTP_403_FORBIDDEN
    default_message = "You do not have permission to perform this action"


class EmailDeliveryError(WebNestError):
    status_code = status.HTTP_502_BAD_GATEWAY
    default_message = "Failed to send email"


# --- OTP verification outcomes ---


class OTPNotFoundError(NotFoundError):
    default_message = "Account not found"


class OTPAlreadyVerifiedError(WebNestError):
    default_message = "Account is already verified"


class OTPNotIssuedError(WebNestError):
    default_message = "No verification code found. Please request a new one"


class OTPExpiredError(WebNestError):
    default_message = "Verification code has expired. Please request a new one"


class OTPTooManyAttemptsError(WebNestError):
    status_code = status.HTTP_403_FORBIDDEN
    default_message = "Too many failed attempts. Account has been locked"


class OTPInvalidCodeError(WebNestError):
    default_message = "Invalid verification code"


def error_body(message: str) -> dict:
    return {"success": False, "message": message}


async def webnest_error_handler(request: Request, exc: WebNestError) -> JSONResponse:
    log = logger.warning if exc.status_code < 500 else logger.error
    log("%s %s -> %d %s: %s", request.method, request.url.path, exc.status_code, type(exc).__name__, exc.message)
    return JSONResponse(status_code=exc.status_code, content=error_body(exc.message))


async def http_exception_handler(request: Request, exc: HTTPException) -> JSONResponse:
    return JSONResponse(
        status_code=exc.status_code,
        content=error_body(str(exc.detail)),
        headers=getattr(exc, "headers", None),
    )


async def validation_exception_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    messages = []
    for error in exc.errors():
        field = ".".join(str(loc) for loc in error["loc"][1:])
        messages.append(f"{field}: {error['msg']}" if field else error["msg"])
    return JSONResponse(status_code=status.HTTP_400_BAD_REQUEST, content=error_body("; ".join(messages)))


async def unhandled_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.error("Unhandled error on %s %s: %s", request.method, request.url.path, exc, exc_info=exc)
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content=error_body("Internal server error"),
    )


def register_exception_handlers(app: FastAPI) -> None:
    app.add_exception_handler(WebNestError, webnest_error_handler)
    app.add_exception_handler(HTTPException, http_exception_handler)
    app.add_exception_handler(RequestValidationError, validation_exception_handler)
    app.add_exception_handler(Exception, unhandled_exception_handler)
