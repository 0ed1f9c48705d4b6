"""
Request logging middleware.

Every request under the configured prefix is logged with its method, path,
status code and duration. Requests that raise are logged and re-raised so
the exception handlers still shape the response.
"""

from __future__ import annotations

import logging
import time
from typing import Any, Callable, Optional, Sequence

from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import Response


logger = logging.getLogger(__name__)


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    def __init__(
        self,
        app: Any,
        *,
        path_prefix: str = "",
        skip_paths: Optional[Sequence[str]] = None,
    ) -> None:
        super().__init__(app)
        self.path_prefix = path_prefix.rstrip("/")
        self.skip_paths = tuple(skip_paths or ())

    def _should_log(self, path: str) -> bool:
        if self.path_prefix and not path.startswith(self.path_prefix):
            return False
        return path not in self.skip_paths

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        path = request.url.path
        if not self._should_log(path):
            return await call_next(request)

        started = time.perf_counter()
        try:
            response = await call_next(request)
        except Exception:
            logger.exception("%s %s raised", request.method, path)
            raise

        elapsed_ms = (time.perf_counter() - started) * 1000
        level = logging.WARNING if response.status_code >= 500 else logging.INFO
        logger.log(
            level,
            "%s %s -> %d (%.1f ms)",
            request.method,
            path,
            response.status_code,
            elapsed_ms,
        )
        return response
