"""
Transport Latency Lab - compare request mechanisms by round-trip latency.

Key modules:
- instrumentation: Timing, sample aggregation and tracing
- harness: Comparison orchestration and reporting
- benchmarks: Arms for concrete transports (websocket RPC, HTTP)
- server: Demo backend serving the same data over both transports
"""

__version__ = "0.1.0"

from . import instrumentation
from . import harness
from . import benchmarks

__all__ = [
    "instrumentation",
    "harness",
    "benchmarks",
]
