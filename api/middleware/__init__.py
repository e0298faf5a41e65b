from .body_limit import BodySizeLimitMiddleware, BodyTooLargeError, body_too_large_handler
from .logging import RequestLoggingMiddleware

__all__ = ["BodySizeLimitMiddleware", "BodyTooLargeError", "RequestLoggingMiddleware", "body_too_large_handler"]
