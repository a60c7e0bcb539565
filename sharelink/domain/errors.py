"""
Error Handling Module

Defines error categories and the exception hierarchy shared by every layer.
The HTTP layer maps each exception to a status code without inspecting messages,
so "file gone", "not allowed" and "try again later" stay distinguishable all the
way to the client.
"""

from enum import Enum
from typing import Any, Dict, Optional


class ErrorCategory(Enum):
    """Error category enumeration for structured error handling."""

    FILE_NOT_FOUND = "file_not_found"
    UNAUTHORIZED = "unauthorized"
    INVALID_REQUEST = "invalid_request"
    FILE_TOO_LARGE = "file_too_large"
    FILE_TYPE_NOT_ALLOWED = "file_type_not_allowed"
    INVALID_PASSWORD = "invalid_password"
    RATE_LIMITED = "rate_limited"
    BACKEND_UNAVAILABLE = "backend_unavailable"
    STORAGE_INCONSISTENCY = "storage_inconsistency"
    SYSTEM_ERROR = "system_error"


# User-friendly error messages with actionable guidance
ERROR_MESSAGES: Dict[ErrorCategory, Dict[str, str]] = {
    ErrorCategory.FILE_NOT_FOUND: {
        "title": "File Not Found",
        "message": "The requested file does not exist or its share link has expired.",
        "action": "Ask the sender to upload the file again.",
    },
    ErrorCategory.UNAUTHORIZED: {
        "title": "Not Allowed",
        "message": "Only the session that uploaded this file can change or delete it.",
        "action": "Use the browser session the file was uploaded from.",
    },
    ErrorCategory.INVALID_REQUEST: {
        "title": "Invalid Request",
        "message": "The request is missing required information or contains invalid data.",
        "action": "Please check your input and try again.",
    },
    ErrorCategory.FILE_TOO_LARGE: {
        "title": "File Too Large",
        "message": "The selected file exceeds the maximum allowed size.",
        "action": "Compress the file or split it into smaller parts.",
    },
    ErrorCategory.FILE_TYPE_NOT_ALLOWED: {
        "title": "File Type Not Allowed",
        "message": "This kind of file cannot be shared.",
        "action": "Upload an image, video, audio, document or archive instead.",
    },
    ErrorCategory.INVALID_PASSWORD: {
        "title": "Incorrect Password",
        "message": "The password for this file is not correct.",
        "action": "Check the password with the sender and try again.",
    },
    ErrorCategory.RATE_LIMITED: {
        "title": "Too Many Requests",
        "message": "You've made too many requests in a short time.",
        "action": "Please wait a moment before trying again.",
    },
    ErrorCategory.BACKEND_UNAVAILABLE: {
        "title": "Service Temporarily Unavailable",
        "message": "File storage could not be reached.",
        "action": "Please try again later.",
    },
    ErrorCategory.STORAGE_INCONSISTENCY: {
        "title": "Storage Error",
        "message": "The file storage is in an inconsistent state.",
        "action": "Please try again. If the problem persists, contact support.",
    },
    ErrorCategory.SYSTEM_ERROR: {
        "title": "System Error",
        "message": "An unexpected error occurred while processing your request.",
        "action": "Please try again later. If the problem persists, contact support.",
    },
}


class ApplicationError(Exception):
    """
    Base application error with category and user-friendly messaging.

    Bridges domain failures with user-facing error messages and HTTP responses.
    Logging is left to the caller; the exception only carries context.
    """

    http_status_code = 500

    def __init__(
        self,
        category: ErrorCategory,
        technical_message: Optional[str] = None,
        context: Optional[Dict[str, Any]] = None,
    ):
        """
        Initialize application error.

        Args:
            category: Error category
            technical_message: Technical error details for logging
            context: Additional context information
        """
        self.category = category
        self.technical_message = technical_message or ""
        self.context = context or {}

        error_info = ERROR_MESSAGES.get(
            category, ERROR_MESSAGES[ErrorCategory.SYSTEM_ERROR]
        )
        self.title = error_info["title"]
        self.message = error_info["message"]
        self.action = error_info["action"]

        super().__init__(self.technical_message or self.message)

    def to_dict(self) -> Dict[str, Any]:
        """
        Convert error to dictionary for API response.

        Returns:
            Dictionary with error information
        """
        return {
            "error": self.category.value,
            "title": self.title,
            "message": self.message,
            "action": self.action,
        }


class ShareError(ApplicationError):
    """Base class for errors raised by the file-sharing core."""

    default_category = ErrorCategory.SYSTEM_ERROR

    def __init__(
        self,
        technical_message: Optional[str] = None,
        context: Optional[Dict[str, Any]] = None,
        category: Optional[ErrorCategory] = None,
    ):
        super().__init__(category or self.default_category, technical_message, context)


class NotFoundError(ShareError):
    """Raised when a record is absent from both backends or has expired."""

    default_category = ErrorCategory.FILE_NOT_FOUND
    http_status_code = 404


class UnauthorizedError(ShareError):
    """Raised when the requesting owner does not match the stored owner."""

    default_category = ErrorCategory.UNAUTHORIZED
    http_status_code = 403


class InvalidPasswordError(ShareError):
    """Raised when a download or verification presents the wrong file password."""

    default_category = ErrorCategory.INVALID_PASSWORD
    http_status_code = 401


class ValidationError(ShareError):
    """Raised for bad TTLs, empty passwords, oversized files and disallowed types."""

    default_category = ErrorCategory.INVALID_REQUEST
    http_status_code = 400


class EmptyInputError(ValidationError):
    """Raised when a password operation receives an empty secret."""


class RateLimitedError(ShareError):
    """Raised when a client exceeds its request window."""

    default_category = ErrorCategory.RATE_LIMITED
    http_status_code = 429

    def __init__(
        self,
        retry_after: int,
        technical_message: Optional[str] = None,
        context: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(technical_message, context)
        self.retry_after = max(0, int(retry_after))


class BackendUnavailableError(ShareError):
    """
    Raised when a storage backend cannot be reached.

    The metadata store recovers from this by retrying against the fallback;
    callers only see it when the fallback fails too.
    """

    default_category = ErrorCategory.BACKEND_UNAVAILABLE
    http_status_code = 503

    def __init__(
        self,
        technical_message: Optional[str] = None,
        context: Optional[Dict[str, Any]] = None,
        original_error: Optional[Exception] = None,
    ):
        super().__init__(technical_message, context)
        self.original_error = original_error


class StorageInconsistencyError(ShareError):
    """Raised when blob and metadata deletion diverge. Logged, never fatal."""

    default_category = ErrorCategory.STORAGE_INCONSISTENCY
    http_status_code = 500


def create_error_response(
    category: ErrorCategory,
    technical_message: Optional[str] = None,
    context: Optional[Dict[str, Any]] = None,
    status_code: int = 400,
) -> tuple[Dict[str, Any], int]:
    """
    Create a structured error response for API endpoints.

    Args:
        category: Error category
        technical_message: Technical error details for logging
        context: Additional context information
        status_code: HTTP status code

    Returns:
        Tuple of (error_dict, status_code)
    """
    error = ApplicationError(category, technical_message, context)
    return error.to_dict(), status_code
