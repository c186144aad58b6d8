"""
Benchmark modules for transport latency testing.

Each submodule supplies the arms for one comparison.
"""

from . import transport

__all__ = [
    "transport",
]
