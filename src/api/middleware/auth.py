"""Authentication middleware for API key validation."""

import secrets
from typing import Callable

from fastapi import Request, status
from fastapi.responses import JSONResponse

from src.utils.logging import get_logger

logger = get_logger(__name__)


async def api_key_middleware(request: Request, call_next: Callable):
    """
    Validate API key for /api/ endpoints.

    Accepts the X-API-Key header, or the api_key query parameter for
    callback (script-tag) clients that cannot set headers.
    """
    # Skip auth for non-API endpoints (health, docs)
    if not request.url.path.startswith("/api/"):
        return await call_next(request)

    api_key = request.headers.get("X-API-Key") or request.query_params.get("api_key")

    if not api_key:
        logger.warning(
            "Missing API key",
            path=request.url.path,
            client_ip=request.client.host if request.client else None,
        )
        return JSONResponse(
            status_code=status.HTTP_401_UNAUTHORIZED,
            content={"detail": "Missing API key. Provide X-API-Key header."},
        )

    expected_key = request.app.state.settings.admin.api_key.get_secret_value()
    if not secrets.compare_digest(api_key, expected_key):
        logger.warning(
            "Invalid API key",
            path=request.url.path,
            client_ip=request.client.host if request.client else None,
        )
        return JSONResponse(
            status_code=status.HTTP_403_FORBIDDEN,
            content={"detail": "Invalid API key"},
        )

    return await call_next(request)
