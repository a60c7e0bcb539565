"""
Rate Limit Decorator

Applies per-client fixed-window limits to Flask routes and adds the
X-RateLimit-* headers to responses.
"""

from functools import wraps

from flask import current_app, make_response, request

from ..application.rate_limit_service import UNKNOWN_CLIENT, RateLimitService
from ..domain.errors import RateLimitedError
from ..domain.rate_limiting import RateLimitManager


def rate_limit(endpoint: str = "default"):
    """
    Decorator to apply rate limiting to Flask routes.

    Args:
        endpoint: Endpoint group whose configured limit applies
                  (``upload`` or ``default``)

    Usage:
        @rate_limit("upload")
        def post(self):
            pass
    """

    def decorator(f):
        @wraps(f)
        def decorated_function(*args, **kwargs):
            container = getattr(current_app, "container", None)
            if container is None:
                return f(*args, **kwargs)
            rate_limit_service = container.resolve(RateLimitService)

            client_id = extract_client_id(request)
            try:
                decision = rate_limit_service.check_endpoint(client_id, endpoint)
            except RateLimitedError as e:
                current_app.logger.info(
                    "Rate limit exceeded for %s on %s", client_id, endpoint
                )
                headers = {
                    "Retry-After": str(e.retry_after),
                    "X-RateLimit-Limit": str(e.context.get("limit", "")),
                    "X-RateLimit-Remaining": "0",
                }
                return e.to_dict(), 429, headers

            response = make_response(f(*args, **kwargs))
            if decision is not None:
                now = container.resolve(RateLimitManager).clock()
                response.headers.update(decision.to_headers(now))
            return response

        return decorated_function

    return decorator


def extract_client_id(req) -> str:
    """
    Extract the client identity from a request.

    Order: first X-Forwarded-For entry, X-Real-IP, the socket address,
    then ``unknown``.
    """
    forwarded_for = req.headers.get("X-Forwarded-For")
    if forwarded_for:
        first = forwarded_for.split(",")[0].strip()
        if first:
            return first

    real_ip = req.headers.get("X-Real-IP")
    if real_ip and real_ip.strip():
        return real_ip.strip()

    return req.remote_addr or UNKNOWN_CLIENT
