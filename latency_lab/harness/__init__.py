"""
Benchmark harness for transport latency comparisons.

Provides orchestration and reporting capabilities.
"""

from .errors import (
    BenchmarkCancelledError,
    BenchmarkFailedError,
    InvalidConfigurationError,
    LatencyLabError,
    RunInProgressError,
    TrialFailedError,
    TrialsCancelledError,
)

from .runner import (
    Arm,
    BenchmarkConfig,
    ComparisonResult,
    ComparisonRunner,
    ProgressUpdate,
    RunState,
    TrialRunner,
    improvement_label,
    improvement_ratio,
)

from .reporter import (
    ChartReporter,
    ConsoleReporter,
    JSONReporter,
)

__all__ = [
    # Errors
    "BenchmarkCancelledError",
    "BenchmarkFailedError",
    "InvalidConfigurationError",
    "LatencyLabError",
    "RunInProgressError",
    "TrialFailedError",
    "TrialsCancelledError",
    # Runner
    "Arm",
    "BenchmarkConfig",
    "ComparisonResult",
    "ComparisonRunner",
    "ProgressUpdate",
    "RunState",
    "TrialRunner",
    "improvement_label",
    "improvement_ratio",
    # Reporter
    "ChartReporter",
    "ConsoleReporter",
    "JSONReporter",
]
