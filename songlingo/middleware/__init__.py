"""Application middleware package."""

from .cors import PermissiveCorsMiddleware
from .logging import StructuredLoggingMiddleware
from .telemetry import TelemetryMiddleware

__all__ = ["PermissiveCorsMiddleware", "StructuredLoggingMiddleware", "TelemetryMiddleware"]
