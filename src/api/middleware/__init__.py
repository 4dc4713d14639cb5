"""API middleware modules."""

from .auth import api_key_middleware
from .logging import request_logging_middleware

__all__ = [
    "api_key_middleware",
    "request_logging_middleware",
]
