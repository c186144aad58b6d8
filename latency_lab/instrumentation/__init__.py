"""
Instrumentation module for transport latency benchmarking.

Provides timing utilities, sample aggregation and tracing integration.
"""

from .timing import (
    AggregateResult,
    SampleSet,
    Timer,
    aggregate,
    async_timed,
    percentile,
    time_call,
    trimmed_mean,
)

from .traces import (
    Tracer,
    TracingConfig,
)

__all__ = [
    # Timing
    "AggregateResult",
    "SampleSet",
    "Timer",
    "aggregate",
    "async_timed",
    "percentile",
    "time_call",
    "trimmed_mean",
    # Tracing
    "Tracer",
    "TracingConfig",
]
