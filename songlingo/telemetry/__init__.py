"""Telemetry helpers and metrics."""

from .metrics import (
    ERROR_COUNTER,
    EXERCISE_OUTCOMES,
    PROVIDER_CALLS,
    PROVIDER_LATENCY,
    REQUEST_COUNT,
    REQUEST_LATENCY,
    observe_provider_call,
    observe_request,
    record_exercise_outcome,
)

__all__ = [
    "ERROR_COUNTER",
    "EXERCISE_OUTCOMES",
    "PROVIDER_CALLS",
    "PROVIDER_LATENCY",
    "REQUEST_COUNT",
    "REQUEST_LATENCY",
    "observe_provider_call",
    "observe_request",
    "record_exercise_outcome",
]
