"""
Timing utilities for transport latency benchmarking.

Provides the pieces used to turn individual awaited calls into samples:
- Timer / async_timed for wall-clock measurement
- SampleSet, an append-only record of per-trial durations
- trimmed_mean / aggregate for robust per-arm latency figures
"""

import math
import time
from contextlib import asynccontextmanager
from dataclasses import dataclass
from typing import AsyncIterator, Awaitable, Callable, Iterator, Optional, Sequence

Clock = Callable[[], float]

TRIM_FRACTION = 0.1


class Timer:
    """Simple timer for manual timing control."""

    def __init__(self, name: str = "timer", clock: Clock = time.perf_counter):
        self.name = name
        self.clock = clock
        self.start_time: float = 0.0
        self.end_time: float = 0.0
        self._running = False

    def start(self) -> "Timer":
        """Start the timer."""
        self.start_time = self.clock()
        self._running = True
        return self

    def stop(self) -> "Timer":
        """Stop the timer."""
        self.end_time = self.clock()
        self._running = False
        return self

    @property
    def elapsed_ms(self) -> float:
        """Elapsed time in milliseconds."""
        end = self.end_time if not self._running else self.clock()
        return (end - self.start_time) * 1000


@asynccontextmanager
async def async_timed(
    name: str = "operation",
    clock: Clock = time.perf_counter,
) -> AsyncIterator[Timer]:
    """Async context manager for timing async operations.

    Usage:
        async with async_timed("fetch") as timer:
            await fetch()
        print(f"Elapsed: {timer.elapsed_ms}ms")
    """
    timer = Timer(name, clock).start()
    try:
        yield timer
    finally:
        timer.stop()


async def time_call(
    operation: Callable[[], Awaitable[object]],
    clock: Clock = time.perf_counter,
) -> float:
    """Await one call of ``operation`` and return its duration in ms.

    Exceptions raised by the operation propagate unchanged.
    """
    start = clock()
    await operation()
    end = clock()
    return (end - start) * 1000


class SampleSet:
    """Append-only, ordered durations (ms) recorded for one arm.

    Samples keep trial order. Callers only ever receive tuples, so the
    underlying list cannot be changed from outside.
    """

    def __init__(self, name: str):
        self.name = name
        self._samples: list[float] = []

    def append(self, duration_ms: float) -> None:
        """Record the duration of one completed trial."""
        if duration_ms < 0:
            raise ValueError(f"Negative duration for {self.name}: {duration_ms}")
        self._samples.append(float(duration_ms))

    def snapshot(self) -> tuple[float, ...]:
        """Immutable copy of the samples recorded so far."""
        return tuple(self._samples)

    @property
    def count(self) -> int:
        """Number of recorded samples."""
        return len(self._samples)

    def __len__(self) -> int:
        return len(self._samples)

    def __iter__(self) -> Iterator[float]:
        return iter(self.snapshot())

    def percentile(self, p: float) -> float:
        """Calculate a percentile with linear interpolation."""
        return percentile(self._samples, p)

    def stats(self) -> dict:
        """Calculate descriptive statistics for reports."""
        samples = self._samples
        return {
            "count": self.count,
            "latency_trimmed_mean_ms": trimmed_mean(samples),
            "latency_mean_ms": sum(samples) / len(samples) if samples else 0,
            "latency_p50_ms": percentile(samples, 50),
            "latency_p95_ms": percentile(samples, 95),
            "latency_p99_ms": percentile(samples, 99),
            "latency_min_ms": min(samples) if samples else 0,
            "latency_max_ms": max(samples) if samples else 0,
        }


def percentile(values: Sequence[float], p: float) -> float:
    """Calculate percentile of a list of values."""
    if not values:
        return 0.0
    sorted_values = sorted(values)
    k = (len(sorted_values) - 1) * (p / 100)
    f = int(k)
    c = f + 1 if f + 1 < len(sorted_values) else f
    return sorted_values[f] + (k - f) * (sorted_values[c] - sorted_values[f])


def trimmed_mean(samples: Sequence[float]) -> float:
    """Symmetric 10% trimmed mean.

    floor(n * 0.1) values are dropped from each end of a sorted copy, with
    no interpolation at the boundary. Empty input, or a slice that ends up
    empty, yields 0.
    """
    if not samples:
        return 0
    ordered = sorted(samples)
    trim_count = math.floor(len(ordered) * TRIM_FRACTION)
    trimmed = ordered[trim_count:len(ordered) - trim_count]
    if not trimmed:
        return 0
    return sum(trimmed) / len(trimmed)


@dataclass(frozen=True)
class AggregateResult:
    """Robust latency figure for one completed arm."""

    arm: str
    mean: float
    sample_count: int

    def to_dict(self) -> dict:
        """Convert to dictionary for serialization."""
        return {
            "arm": self.arm,
            "mean_ms": self.mean,
            "sample_count": self.sample_count,
        }


def aggregate(samples: Sequence[float], arm: Optional[str] = None) -> AggregateResult:
    """Reduce a sample set to its AggregateResult."""
    if isinstance(samples, SampleSet):
        arm = arm or samples.name
        samples = samples.snapshot()
    return AggregateResult(
        arm=arm or "",
        mean=trimmed_mean(samples),
        sample_count=len(samples),
    )
