"""Shared pytest fixtures for the latency lab tests.

Timing tests use a FakeClock that only moves when an operation advances
it, so every sample is exact and deterministic.
"""

from typing import Iterable, Optional

import pytest

from latency_lab.harness import Arm, ComparisonRunner


class FakeClock:
    """Manually advanced clock measured in seconds."""

    def __init__(self, start: float = 0.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class Recorder:
    """Builds arms that advance a FakeClock and log when they run."""

    def __init__(self, clock: FakeClock):
        self.clock = clock
        self.events: list[tuple[str, str, float]] = []
        self.calls: dict[str, int] = {}

    def arm(
        self,
        name: str,
        seconds: float | Iterable[float] = 1.0,
        fail_on: Optional[int] = None,
    ) -> Arm:
        """Arm whose n-th call (0-based) raises when n == fail_on, or always if fail_on < 0."""
        durations = iter(seconds) if not isinstance(seconds, (int, float)) else None

        async def operation():
            call = self.calls.get(name, 0)
            self.calls[name] = call + 1
            self.events.append((name, "start", self.clock.now))
            if fail_on is not None and (fail_on < 0 or call == fail_on):
                raise ConnectionError(f"{name} unavailable")
            self.clock.advance(next(durations) if durations else seconds)
            self.events.append((name, "end", self.clock.now))
            return call

        return Arm(name, operation)


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def recorder(clock: FakeClock) -> Recorder:
    return Recorder(clock)


@pytest.fixture
def runner(clock: FakeClock) -> ComparisonRunner:
    return ComparisonRunner(clock=clock, verbose=False)
