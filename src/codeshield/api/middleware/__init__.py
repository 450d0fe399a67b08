from .error_handler import codeshield_error_handler, error_payload, http_exception_handler
from .request_id import RequestIDMiddleware

__all__ = [
    "RequestIDMiddleware",
    "codeshield_error_handler",
    "error_payload",
    "http_exception_handler",
]
