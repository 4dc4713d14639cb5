"""Request logging middleware."""

import time
import uuid
from typing import Callable

import structlog
from fastapi import Request

from src.utils.logging import get_logger

logger = get_logger(__name__)


async def request_logging_middleware(request: Request, call_next: Callable):
    """
    Log every request with status and duration.

    A short request id is bound to the structlog context so service-level
    log lines (sheet reads, appends) can be tied back to the request.
    """
    request_id = request.headers.get("X-Request-ID") or uuid.uuid4().hex[:12]
    started = time.perf_counter()

    with structlog.contextvars.bound_contextvars(request_id=request_id):
        response = await call_next(request)
        duration_ms = round((time.perf_counter() - started) * 1000, 2)

        log_data = {
            "method": request.method,
            "path": request.url.path,
            "status_code": response.status_code,
            "duration_ms": duration_ms,
        }
        if request.client:
            log_data["client_ip"] = request.client.host

        if response.status_code >= 500:
            logger.error("Request failed", **log_data)
        elif response.status_code >= 400:
            logger.warning("Request error", **log_data)
        else:
            logger.info("Request completed", **log_data)

    response.headers["X-Request-ID"] = request_id
    return response
