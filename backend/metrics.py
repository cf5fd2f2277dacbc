"""
Process-wide request counters exposed on GET /metrics.
"""

from __future__ import annotations

import threading
import time
from datetime import timedelta
from typing import Callable

from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request


class RequestMetrics:
    """Uptime plus request and error totals; a response >= 400 counts as an error."""

    def __init__(self, clock: Callable[[], float] = time.monotonic):
        self._clock = clock
        self._started = clock()
        self._lock = threading.Lock()
        self.requests_total = 0
        self.errors_total = 0

    def record(self, status_code: int) -> None:
        with self._lock:
            self.requests_total += 1
            if status_code >= 400:
                self.errors_total += 1

    def uptime_seconds(self) -> float:
        return self._clock() - self._started

    def snapshot(self) -> dict:
        uptime = self.uptime_seconds()
        with self._lock:
            requests_total, errors_total = self.requests_total, self.errors_total
        return {
            "uptime": str(timedelta(seconds=int(uptime))),
            "uptime_seconds": round(uptime, 2),
            "requests_total": requests_total,
            "errors_total": errors_total,
            "threads": threading.active_count(),
        }


class MetricsMiddleware(BaseHTTPMiddleware):
    def __init__(self, app, metrics: RequestMetrics):
        super().__init__(app)
        self.metrics = metrics

    async def dispatch(self, request: Request, call_next):
        try:
            response = await call_next(request)
        except Exception:
            # Unhandled errors become a 500 further out.
            self.metrics.record(500)
            raise
        self.metrics.record(response.status_code)
        return response
