# backend/middleware.py

import logging
import time
import uuid
from typing import Callable

from fastapi import Request, Response
from starlette.middleware.base import BaseHTTPMiddleware

logger = logging.getLogger(__name__)

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"


def configure_logging(level: str = "INFO") -> None:
    """Install a single console handler on the root logger."""
    root = logging.getLogger()
    root.setLevel(level)
    if not any(getattr(h, "_tradeledger", False) for h in root.handlers):
        handler = logging.StreamHandler()
        handler.setFormatter(logging.Formatter(LOG_FORMAT))
        handler._tradeledger = True
        root.addHandler(handler)


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    """Tag each request with a short id and log its outcome and duration."""

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        request_id = str(uuid.uuid4())[:8]
        request.state.request_id = request_id
        start_time = time.time()

        try:
            response = await call_next(request)
        except Exception as e:
            logger.error(
                "[%s] %s %s failed after %.2fms: %s",
                request_id,
                request.method,
                request.url.path,
                (time.time() - start_time) * 1000,
                type(e).__name__,
                exc_info=True,
            )
            raise

        logger.info(
            "[%s] %s %s -> %s (%.2fms)",
            request_id,
            request.method,
            request.url.path,
            response.status_code,
            (time.time() - start_time) * 1000,
        )
        response.headers["X-Request-ID"] = request_id
        return response
