"""Prometheus metrics definitions and helpers."""

from __future__ import annotations

from prometheus_client import Counter, Histogram

REQUEST_COUNT = Counter(
    "http_requests_total",
    "Total HTTP requests processed",
    ("method", "route", "status"),
)

REQUEST_LATENCY = Histogram(
    "http_request_duration_seconds",
    "HTTP request duration in seconds",
    ("method", "route"),
    buckets=(
        0.005,
        0.01,
        0.025,
        0.05,
        0.1,
        0.25,
        0.5,
        1.0,
        2.5,
        5.0,
        10.0,
    ),
)

ERROR_COUNTER = Counter(
    "app_internal_errors_total",
    "Number of requests ending in internal server error responses",
    ("method", "route"),
)

PROVIDER_CALLS = Counter(
    "provider_calls_total",
    "External AI provider calls by outcome",
    ("provider", "operation", "outcome"),
)

PROVIDER_LATENCY = Histogram(
    "provider_call_duration_seconds",
    "External AI provider call duration in seconds",
    ("provider", "operation"),
    buckets=(0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0, 20.0, 30.0, 60.0),
)

EXERCISE_OUTCOMES = Counter(
    "pronunciation_exercises_total",
    "Generated pronunciation exercises by pipeline outcome",
    ("outcome",),
)


def observe_request(
    method: str,
    route: str,
    status_code: int,
    duration_seconds: float,
) -> None:
    """Record metrics for a completed HTTP request."""

    safe_route = route or "unknown"
    safe_method = method or "UNKNOWN"
    status_label = str(status_code)
    observed_duration = duration_seconds if duration_seconds >= 0 else 0

    REQUEST_COUNT.labels(
        method=safe_method,
        route=safe_route,
        status=status_label,
    ).inc()
    REQUEST_LATENCY.labels(
        method=safe_method,
        route=safe_route,
    ).observe(observed_duration)

    if status_code >= 500:
        ERROR_COUNTER.labels(
            method=safe_method,
            route=safe_route,
        ).inc()


def observe_provider_call(
    provider: str,
    operation: str,
    outcome: str,
    duration_seconds: float,
) -> None:
    """Record one outbound provider call."""

    PROVIDER_CALLS.labels(provider=provider, operation=operation, outcome=outcome).inc()
    PROVIDER_LATENCY.labels(provider=provider, operation=operation).observe(
        max(duration_seconds, 0)
    )


def record_exercise_outcome(outcome: str) -> None:
    EXERCISE_OUTCOMES.labels(outcome=outcome).inc()
