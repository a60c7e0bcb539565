"""
API Error Mapping

Turns core exceptions into JSON error bodies and status codes so clients
can tell "file gone" (404) from "not allowed" (403) from "try again
later" (429/503).
"""

from functools import wraps
from typing import Any, Dict, Tuple

from flask import current_app

from ..domain.errors import (
    ErrorCategory,
    RateLimitedError,
    ShareError,
    create_error_response,
)


def share_error_response(error: ShareError) -> Tuple[Dict[str, Any], int, Dict[str, str]]:
    """
    Build the response for a core exception.

    Returns:
        Tuple of (error_dict, status_code, headers)
    """
    headers: Dict[str, str] = {}
    if isinstance(error, RateLimitedError):
        headers["Retry-After"] = str(error.retry_after)
    status_code = error.http_status_code
    if status_code >= 500:
        current_app.logger.warning("%s: %s", type(error).__name__, error.technical_message)
    return error.to_dict(), status_code, headers


def handles_errors(f):
    """
    Decorator mapping exceptions raised by a resource method to responses.

    Core exceptions map through their ``http_status_code``; anything else
    is logged with its traceback and reported as a 500.
    """

    @wraps(f)
    def decorated_function(*args, **kwargs):
        try:
            return f(*args, **kwargs)
        except ShareError as e:
            return share_error_response(e)
        except Exception as e:
            current_app.logger.exception("Unexpected error in %s: %s", f.__name__, e)
            return create_error_response(
                ErrorCategory.SYSTEM_ERROR,
                f"Unexpected error: {e}",
                status_code=500,
            )

    return decorated_function
