"""
Domain exceptions for the road damage reporting backend.

All exceptions follow the standard error format:
{
    "error": {
        "code": "ERROR_CODE",
        "message": "Human-readable description",
        "details": {}
    }
"""

from rest_framework.views import exception_handler
from rest_framework.response import Response
from rest_framework import status
import logging

logger = logging.getLogger(__name__)


class DomainError(Exception):
    """Base exception for all domain errors."""

    def __init__(self, code, message, details=None):
        self.code = code
        self.message = message
        self.details = details or {}
        super().__init__(self.message)


class ValidationError(DomainError):
    """Validation error - request body or parameters fail validation."""

    def __init__(self, message, details=None):
        super().__init__("VALIDATION_ERROR", message, details)


class NotFoundError(DomainError):
    """Requested resource does not exist."""

    def __init__(self, message, details=None):
        super().__init__("NOT_FOUND", message, details)


class PermissionDeniedError(DomainError):
    """Actor lacks the required role or ownership."""

    def __init__(self, message, details=None):
        super().__init__("FORBIDDEN", message, details)


class UnknownStatusError(DomainError):
    """Requested status is not part of the workflow."""

    def __init__(self, status_value):
        super().__init__(
            "UNKNOWN_STATUS",
            f"Unknown report status: {status_value}",
            {"status": status_value},
        )


class IllegalTransitionError(DomainError):
    """Requested status exists but is not reachable from the current one."""

    def __init__(self, from_status, to_status, allowed_targets):
        self.from_status = from_status
        self.to_status = to_status
        self.allowed_targets = list(allowed_targets)
        if self.allowed_targets:
            message = (
                f"Cannot transition report from {from_status} to {to_status}"
            )
        else:
            message = (
                f"Report in state {from_status} is terminal and cannot transition"
            )
        super().__init__(
            "ILLEGAL_TRANSITION",
            message,
            {
                "from": from_status,
                "to": to_status,
                "allowedTargets": self.allowed_targets,
            },
        )


class ConflictError(DomainError):
    """Concurrent modification detected; the caller should re-read and retry."""

    def __init__(self, message, details=None):
        super().__init__("CONFLICT", message, details)


class StorageError(DomainError):
    """Underlying persistence is unavailable."""

    def __init__(self, message, details=None):
        super().__init__("STORAGE_FAILURE", message, details)


class InvalidPageError(DomainError):
    """Requested page number is out of range."""

    def __init__(self, page):
        super().__init__(
            "INVALID_PAGE", "Page must be greater than or equal to 1", {"page": page}
        )


STATUS_CODE_MAP = {
    "VALIDATION_ERROR": status.HTTP_400_BAD_REQUEST,
    "NOT_FOUND": status.HTTP_404_NOT_FOUND,
    "FORBIDDEN": status.HTTP_403_FORBIDDEN,
    "UNKNOWN_STATUS": status.HTTP_400_BAD_REQUEST,
    "ILLEGAL_TRANSITION": status.HTTP_400_BAD_REQUEST,
    "INVALID_PAGE": status.HTTP_400_BAD_REQUEST,
    "CONFLICT": status.HTTP_409_CONFLICT,
    "STORAGE_FAILURE": status.HTTP_503_SERVICE_UNAVAILABLE,
}

FRAMEWORK_CODE_MAP = {
    status.HTTP_400_BAD_REQUEST: "VALIDATION_ERROR",
    status.HTTP_401_UNAUTHORIZED: "UNAUTHORIZED",
    status.HTTP_403_FORBIDDEN: "FORBIDDEN",
    status.HTTP_404_NOT_FOUND: "NOT_FOUND",
    status.HTTP_405_METHOD_NOT_ALLOWED: "METHOD_NOT_ALLOWED",
    status.HTTP_415_UNSUPPORTED_MEDIA_TYPE: "UNSUPPORTED_MEDIA_TYPE",
    status.HTTP_429_TOO_MANY_REQUESTS: "THROTTLED",
}


def error_response(code, message, details=None, status_code=None):
    """Build a Response carrying the standard error envelope."""
    if status_code is None:
        status_code = STATUS_CODE_MAP.get(code, status.HTTP_400_BAD_REQUEST)
    return Response(
        {
            "error": {
                "code": code,
                "message": message,
                "details": details or {},
            }
        },
        status=status_code,
    )


def domain_exception_handler(exc, context):
    """
    Custom exception handler for domain exceptions.

    Returns standard error format:
    {
        "error": {
            "code": "ERROR_CODE",
            "message": "Human-readable description",
            "details": {}
        }
    }
    """
    # Handle domain exceptions
    if isinstance(exc, DomainError):
        return error_response(exc.code, exc.message, exc.details)

    # Use default REST framework exception handler for other exceptions
    response = exception_handler(exc, context)

    if response is not None:
        code = FRAMEWORK_CODE_MAP.get(response.status_code, "INTERNAL_ERROR")
        if isinstance(response.data, dict) and "detail" in response.data:
            error_data = {
                "error": {
                    "code": code,
                    "message": str(response.data["detail"]),
                    "details": {},
                }
            }
        else:
            error_data = {
                "error": {
                    "code": code,
                    "message": "Request validation failed",
                    "details": response.data,
                }
            }

        response.data = error_data
        return response

    # Log unhandled exceptions
    logger.exception("Unhandled exception", exc_info=exc)
    return error_response(
        "INTERNAL_ERROR",
        "An internal error occurred",
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
    )
