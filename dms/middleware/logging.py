from __future__ import annotations

import json
import logging
import time
import uuid
from typing import Callable

from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import Response

ACCESS_LOGGER_NAME = "dms.access"
QUIET_PATHS = frozenset({"/health", "/healthz", "/metrics"})
ACTOR_FIELDS = ("user_id", "role", "division_id")


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    """One JSON access line per request, tagged with the acting user once authenticated."""

    def __init__(self, app, logger: logging.Logger | None = None) -> None:
        super().__init__(app)
        self.logger = logger if logger is not None else logging.getLogger(ACCESS_LOGGER_NAME)

    async def dispatch(self, request: Request, call_next: Callable[[Request], Response]) -> Response:
        request_id = request.headers.get("x-request-id") or uuid.uuid4().hex
        request.state.request_id = request_id
        start = time.perf_counter()

        try:
            response = await call_next(request)
        except Exception:
            self._log(self._entry(request, "http_request_error", 500, start), level=logging.ERROR)
            raise

        response.headers.setdefault("x-request-id", request_id)
        level = logging.DEBUG if request.url.path in QUIET_PATHS else logging.INFO
        self._log(self._entry(request, "http_request", response.status_code, start), level=level)
        return response

    @staticmethod
    def _entry(request: Request, event: str, status: int, start: float) -> dict[str, object]:
        entry: dict[str, object] = {
            "event": event,
            "request_id": request.state.request_id,
            "method": request.method,
            "path": request.url.path,
            "status": status,
            "duration_ms": int((time.perf_counter() - start) * 1000),
        }
        if request.client is not None:
            entry["client"] = request.client.host
        for field in ACTOR_FIELDS:
            value = getattr(request.state, field, None)
            if value:
                entry[field] = value
        return entry

    def _log(self, payload: dict[str, object], level: int = logging.INFO) -> None:
        self.logger.log(level, json.dumps(payload, separators=(",", ":")))
