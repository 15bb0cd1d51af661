"""Tracing and metrics for remote policy operations."""

from __future__ import annotations

import os
from contextlib import contextmanager
from typing import Any, Dict, Iterator, Optional

from opentelemetry import trace
from opentelemetry.metrics import get_meter

_SCOPE = "access_whitelist.policy"


def _otel_disabled() -> bool:
    return os.getenv("OTEL_SDK_DISABLED", "").lower() in {"1", "true"}


def _get_tracer():  # pragma: no cover - thin wrapper
    if _otel_disabled() or os.getenv("OTEL_TRACES_EXPORTER", "").lower() in {"", "none"}:
        return None
    return trace.get_tracer(_SCOPE)


def _get_meter():  # pragma: no cover - thin wrapper
    if _otel_disabled() or os.getenv("OTEL_METRICS_EXPORTER", "").lower() in {"", "none"}:
        return None
    return get_meter(_SCOPE)


@contextmanager
def policy_span(name: str, attributes: Optional[Dict[str, Any]] = None) -> Iterator[Any]:
    """Record a span around a policy operation when tracing is enabled."""

    tracer = _get_tracer()
    if tracer is None:
        yield None
        return
    with tracer.start_as_current_span(name, attributes=attributes or {}) as span:
        yield span


def record_policy_outcome(operation: str, outcome: str) -> None:
    meter = _get_meter()
    if meter is None:
        return
    try:
        counter = meter.create_counter("policy_operations_total", unit="1")
        counter.add(1, attributes={"policy.operation": operation, "policy.outcome": outcome})
    except Exception:  # pragma: no cover - metrics are best effort
        return


__all__ = ["policy_span", "record_policy_outcome"]
