"""Request telemetry and access logging for the HTTP surface."""

from __future__ import annotations

import logging
import os
import time
from typing import Optional

from opentelemetry import trace
from opentelemetry.metrics import get_meter
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import Response

ACCESS_LOGGER = logging.getLogger("AccessWhitelist.service.access")


def _otel_disabled() -> bool:
    return os.getenv("OTEL_SDK_DISABLED", "").lower() in {"1", "true"}


def _get_tracer(name: str):  # pragma: no cover - thin wrapper
    if _otel_disabled() or os.getenv("OTEL_TRACES_EXPORTER", "").lower() in {"", "none"}:
        return None
    return trace.get_tracer(name)


def _get_meter(name: str):  # pragma: no cover - thin wrapper
    if _otel_disabled() or os.getenv("OTEL_METRICS_EXPORTER", "").lower() in {"", "none"}:
        return None
    return get_meter(name)


class TelemetryMiddleware(BaseHTTPMiddleware):
    """Records request duration and status, and writes one access-log line per request."""

    def __init__(self, app, *, service_name: str = "access_whitelist.service") -> None:
        super().__init__(app)
        self._tracer = _get_tracer(service_name)
        meter = _get_meter(service_name)
        self._request_counter = None
        self._request_duration = None
        if meter:
            try:
                self._request_counter = meter.create_counter(
                    "service_requests_total", unit="1", description="Total HTTP requests processed"
                )
                self._request_duration = meter.create_histogram(
                    "service_request_duration_ms",
                    unit="ms",
                    description="Request latency in milliseconds",
                )
            except Exception:  # pragma: no cover - meter setup optional
                self._request_counter = None
                self._request_duration = None

    async def dispatch(self, request: Request, call_next) -> Response:
        start = time.perf_counter()
        span = None
        if self._tracer:
            span = self._tracer.start_span(
                "http.request",
                attributes={"http.method": request.method, "http.route": request.url.path},
            )
        response: Optional[Response] = None
        try:
            response = await call_next(request)
            return response
        finally:
            duration_ms = (time.perf_counter() - start) * 1000.0
            status_code = response.status_code if response is not None else 500
            if span:
                span.set_attribute("http.status_code", status_code)
                span.set_attribute("http.duration_ms", duration_ms)
                span.end()
            attributes = {
                "http.method": request.method,
                "http.route": request.url.path,
                "http.status_code": str(status_code),
            }
            if self._request_counter:
                try:
                    self._request_counter.add(1, attributes=attributes)
                except Exception:  # pragma: no cover - metrics optional
                    pass
            if self._request_duration:
                try:
                    self._request_duration.record(duration_ms, attributes=attributes)
                except Exception:  # pragma: no cover
                    pass
            ACCESS_LOGGER.info(
                "%s %s %s %.1fms",
                request.method,
                request.url.path,
                status_code,
                duration_ms,
                extra={"peer": request.client.host if request.client else None},
            )


__all__ = ["TelemetryMiddleware"]
