"""Tracing — named OpenTelemetry tracers for the runner and tool layer.

``runner.run`` and ``tools.call`` spans are recorded through these.
main.py hands the tracer provider to logfire; without LOGFIRE_TOKEN the
spans are never exported.
"""

from __future__ import annotations

from opentelemetry import trace


def get_tracer(name: str) -> trace.Tracer:
    """Get a named tracer for a module."""
    return trace.get_tracer(name)
