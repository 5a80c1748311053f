"""
Application exception hierarchy and its HTTP rendering.
"""

from __future__ import annotations

import logging
from typing import Any, Iterable

from fastapi import FastAPI, Request, status
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from .config import get_settings

logger = logging.getLogger(__name__)


class AppException(Exception):
    """Base exception class for application errors."""

    status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR

    def __init__(
        self,
        message: str,
        error_code: str | None = None,
        details: dict[str, Any] | None = None,
        status_code: int | None = None,
    ):
        self.message = message
        self.error_code = error_code or "APP_ERROR"
        self.details = details or {}
        if status_code is not None:
            self.status_code = status_code
        super().__init__(self.message)

    def to_dict(self) -> dict[str, Any]:
        """Convert exception to dictionary for API responses."""
        return {"error": self.message, "code": self.error_code, **self.details}


class ValidationError(AppException):
    """Exception raised for validation errors."""

    status_code = status.HTTP_400_BAD_REQUEST

    def __init__(self, message: str, field: str | None = None, details: dict[str, Any] | None = None):
        payload = {"field": field, **(details or {})} if field else (details or {})
        super().__init__(message=message, error_code="VALIDATION_ERROR", details=payload)


class NotFoundError(AppException):
    """Exception raised when a resource is not found."""

    status_code = status.HTTP_404_NOT_FOUND

    def __init__(self, resource: str, identifier: Any = None, details: dict[str, Any] | None = None):
        super().__init__(
            message=f"{resource} not found",
            error_code="NOT_FOUND",
            details={"resource": resource, "identifier": identifier, **(details or {})},
        )


class ConflictError(AppException):
    """Exception raised when an operation conflicts with existing records."""

    status_code = status.HTTP_409_CONFLICT

    def __init__(self, message: str, details: dict[str, Any] | None = None):
        super().__init__(message=message, error_code="CONFLICT", details=details)


class RateLimitedError(AppException):
    status_code = status.HTTP_429_TOO_MANY_REQUESTS

    def __init__(self, message: str = "rate limited"):
        super().__init__(message=message, error_code="RATE_LIMITED")


class AuthenticationError(AppException):
    """Authentication failures; rendered as 401 with a bearer challenge."""

    status_code = status.HTTP_401_UNAUTHORIZED

    def __init__(self, message: str = "Authentication failed", error_code: str = "AUTHENTICATION_ERROR"):
        super().__init__(message=message, error_code=error_code)


class MissingToken(AuthenticationError):
    def __init__(self) -> None:
        super().__init__("Access token required", error_code="MISSING_TOKEN")


class InvalidOrExpiredToken(AuthenticationError):
    def __init__(self) -> None:
        super().__init__("Invalid or expired token", error_code="INVALID_OR_EXPIRED_TOKEN")


class InactiveOrUnknownAccount(AuthenticationError):
    def __init__(self) -> None:
        super().__init__("User not found or inactive", error_code="INACTIVE_OR_UNKNOWN_ACCOUNT")


class InvalidCredentials(AuthenticationError):
    def __init__(self, message: str = "Invalid email or password") -> None:
        super().__init__(message, error_code="INVALID_CREDENTIALS")


class AuthorizationError(AppException):
    """Authorization failures for authenticated accounts."""

    status_code = status.HTTP_403_FORBIDDEN

    def __init__(
        self,
        message: str = "Access denied",
        error_code: str = "AUTHORIZATION_ERROR",
        details: dict[str, Any] | None = None,
    ):
        super().__init__(message=message, error_code=error_code, details=details)


class InsufficientRole(AuthorizationError):
    def __init__(self, required: Iterable[str], actual: str) -> None:
        self.required = frozenset(required)
        self.actual = actual
        super().__init__(
            "Insufficient permissions",
            error_code="INSUFFICIENT_ROLE",
            details={"required": sorted(self.required), "current": actual},
        )


class ScopeDenied(AuthorizationError):
    def __init__(self, role: str, entity_kind: str, entity_id: int) -> None:
        self.role = role
        self.entity_kind = entity_kind
        self.entity_id = entity_id
        super().__init__(
            f"Access denied to this {entity_kind.replace('_', ' ')}",
            error_code="SCOPE_DENIED",
            details={"role": role, "entity_kind": entity_kind, "entity_id": entity_id},
        )


def install_exception_handlers(app: FastAPI) -> None:
    """Register the JSON renderers for application and unexpected errors."""

    @app.exception_handler(AppException)
    async def _handle_app_exception(request: Request, exc: AppException) -> JSONResponse:
        headers = {"WWW-Authenticate": "Bearer"} if isinstance(exc, AuthenticationError) else None
        return JSONResponse(status_code=exc.status_code, content=exc.to_dict(), headers=headers)

    @app.exception_handler(RequestValidationError)
    async def _handle_request_validation(request: Request, exc: RequestValidationError) -> JSONResponse:
        return JSONResponse(
            status_code=status.HTTP_400_BAD_REQUEST,
            content={"error": "Validation failed", "code": "VALIDATION_ERROR", "details": jsonable_encoder(exc.errors())},
        )

    @app.exception_handler(Exception)
    async def _handle_unexpected(request: Request, exc: Exception) -> JSONResponse:
        logger.error("unhandled error on %s %s", request.method, request.url.path, exc_info=exc)
        content: dict[str, Any] = {"error": "Internal server error"}
        if get_settings().is_development:
            content["detail"] = repr(exc)
        return JSONResponse(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, content=content)
