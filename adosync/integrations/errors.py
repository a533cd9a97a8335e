"""Coded error taxonomy for Azure DevOps access.

Every failure that reaches a user is a DomainError with one of the closed
set of ErrorCode values, a diagnostic message, a ready-to-display
user_message and a fixed retryable flag.

Propagation policy:
    AzureDevOpsClient is the only component that raises DomainError.
    Everything above it (WorkItemValidator, WorkItemRefresher) converts
    exceptions into result objects carrying the DomainError.
"""

from __future__ import annotations

from enum import Enum
from typing import Any, ClassVar

from adosync.utils.errors import AdoSyncError, ExitCode

HTTP_UNAUTHORIZED = 401
HTTP_FORBIDDEN = 403
HTTP_NOT_FOUND = 404
HTTP_TOO_MANY_REQUESTS = 429

# Maximum length for error response details kept in exception messages.
# Prevents PII leakage and huge HTML payloads in logs.
MAX_ERROR_DETAIL_LENGTH = 200


class ErrorCode(str, Enum):
    """Closed set of error codes."""

    INVALID_PAT = "INVALID_PAT"
    INSUFFICIENT_PERMISSIONS = "INSUFFICIENT_PERMISSIONS"
    WORK_ITEM_NOT_FOUND = "WORK_ITEM_NOT_FOUND"
    RATE_LIMIT_EXCEEDED = "RATE_LIMIT_EXCEEDED"
    SERVER_ERROR = "SERVER_ERROR"
    API_ERROR = "API_ERROR"
    NETWORK_ERROR = "NETWORK_ERROR"
    INVALID_PBI_INFO = "INVALID_PBI_INFO"
    INVALID_PBI_DATA = "INVALID_PBI_DATA"
    VALIDATION_ERROR = "VALIDATION_ERROR"


# code -> (retryable, default user message)
_ERROR_DEFAULTS: dict[ErrorCode, tuple[bool, str]] = {
    ErrorCode.INVALID_PAT: (
        False,
        "Your Personal Access Token is invalid or expired. Please update your credentials.",
    ),
    ErrorCode.INSUFFICIENT_PERMISSIONS: (
        False,
        "Your Personal Access Token lacks the required permissions to access this work item.",
    ),
    ErrorCode.WORK_ITEM_NOT_FOUND: (
        False,
        "The specified work item does not exist or you do not have access to it.",
    ),
    ErrorCode.RATE_LIMIT_EXCEEDED: (
        True,
        "Too many requests. Please wait a moment before trying again.",
    ),
    ErrorCode.SERVER_ERROR: (
        True,
        "Azure DevOps service is temporarily unavailable. Please try again later.",
    ),
    ErrorCode.API_ERROR: (
        False,
        "An unexpected error occurred while accessing Azure DevOps.",
    ),
    ErrorCode.NETWORK_ERROR: (
        True,
        "Unable to connect to Azure DevOps. Please check your internet connection.",
    ),
    ErrorCode.INVALID_PBI_INFO: (
        False,
        "The provided work item information is incomplete or invalid.",
    ),
    ErrorCode.INVALID_PBI_DATA: (
        False,
        "The work item data from Azure DevOps is missing required fields.",
    ),
    ErrorCode.VALIDATION_ERROR: (
        True,
        "Unable to validate the work item. Please check your connection and try again.",
    ),
}

_STATUS_CODES: dict[int, ErrorCode] = {
    HTTP_UNAUTHORIZED: ErrorCode.INVALID_PAT,
    HTTP_FORBIDDEN: ErrorCode.INSUFFICIENT_PERMISSIONS,
    HTTP_NOT_FOUND: ErrorCode.WORK_ITEM_NOT_FOUND,
    HTTP_TOO_MANY_REQUESTS: ErrorCode.RATE_LIMIT_EXCEEDED,
}

_STATUS_PREFIXES: dict[ErrorCode, str] = {
    ErrorCode.INVALID_PAT: "Authentication failed",
    ErrorCode.INSUFFICIENT_PERMISSIONS: "Access denied",
    ErrorCode.WORK_ITEM_NOT_FOUND: "Work item not found",
    ErrorCode.RATE_LIMIT_EXCEEDED: "Rate limit exceeded",
}


def truncate_detail(detail: str) -> str:
    """Truncate remote error details before they land in messages or logs."""
    if len(detail) <= MAX_ERROR_DETAIL_LENGTH:
        return detail
    return detail[:MAX_ERROR_DETAIL_LENGTH] + "... [truncated]"


def status_to_error_code(status_code: int) -> ErrorCode:
    """Map a non-2xx HTTP status to its ErrorCode."""
    if status_code in _STATUS_CODES:
        return _STATUS_CODES[status_code]
    if 500 <= status_code < 600:
        return ErrorCode.SERVER_ERROR
    return ErrorCode.API_ERROR


class DomainError(AdoSyncError):
    """Coded Azure DevOps access error.

    Attributes:
        code: One of the ErrorCode values
        message: Diagnostic message (safe to log, never contains the PAT)
        user_message: Display text for the end user
        retryable: Whether retrying the same request may succeed
    """

    _default_exit_code: ClassVar[ExitCode] = ExitCode.REMOTE_ERROR

    def __init__(
        self,
        code: ErrorCode,
        message: str,
        user_message: str | None = None,
        retryable: bool | None = None,
    ) -> None:
        default_retryable, default_user_message = _ERROR_DEFAULTS[code]
        self.code = code
        self.message = message
        self.user_message = user_message or default_user_message
        self.retryable = default_retryable if retryable is None else retryable
        super().__init__(message)

    @classmethod
    def create(cls, code: ErrorCode, message: str, user_message: str | None = None) -> DomainError:
        """Build an error with the taxonomy's fixed retryable flag."""
        return cls(code=code, message=message, user_message=user_message)

    @classmethod
    def from_status(cls, status_code: int, detail: str = "Unknown API error") -> DomainError:
        """Build the error for a non-2xx HTTP response.

        Args:
            status_code: HTTP status of the response
            detail: Error detail extracted from the response body
        """
        code = status_to_error_code(status_code)
        detail = truncate_detail(detail)
        if code in _STATUS_PREFIXES:
            message = f"{_STATUS_PREFIXES[code]}: {detail}"
        elif code is ErrorCode.SERVER_ERROR:
            message = f"Server error ({status_code}): {detail}"
        else:
            message = f"HTTP {status_code}: {detail}"
        return cls.create(code, message)

    def to_dict(self) -> dict[str, Any]:
        return {
            "code": self.code.value,
            "message": self.message,
            "userMessage": self.user_message,
            "retryable": self.retryable,
        }

    def __repr__(self) -> str:
        return f"DomainError(code={self.code.value!r}, retryable={self.retryable})"


__all__ = [
    "HTTP_UNAUTHORIZED",
    "HTTP_FORBIDDEN",
    "HTTP_NOT_FOUND",
    "HTTP_TOO_MANY_REQUESTS",
    "MAX_ERROR_DETAIL_LENGTH",
    "ErrorCode",
    "DomainError",
    "status_to_error_code",
    "truncate_detail",
]
