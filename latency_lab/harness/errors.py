"""Exceptions raised by the benchmark harness."""

from typing import TYPE_CHECKING, Optional

if TYPE_CHECKING:
    from .runner import ComparisonResult


class LatencyLabError(Exception):
    """Base class for harness errors."""


class InvalidConfigurationError(LatencyLabError, ValueError):
    """Raised before any trial starts when a run request is malformed."""


class RunInProgressError(LatencyLabError):
    """Raised when a run is requested while another is still running."""


class TrialFailedError(LatencyLabError):
    """An arm's operation raised during a timed trial (or a warmup call).

    ``samples`` holds the durations recorded before the failure. For a
    warmup failure ``trial_index`` counts warmup calls, not timed trials.
    """

    def __init__(
        self,
        arm: str,
        trial_index: int,
        samples: tuple[float, ...],
        warmup: bool = False,
    ):
        self.arm = arm
        self.trial_index = trial_index
        self.samples = samples
        self.warmup = warmup
        kind = "warmup call" if warmup else "trial"
        super().__init__(f"Arm {arm!r} failed on {kind} {trial_index + 1}")


class TrialsCancelledError(LatencyLabError):
    """The trial loop stopped at a trial boundary after cancellation."""

    def __init__(self, arm: str, samples: tuple[float, ...]):
        self.arm = arm
        self.samples = samples
        super().__init__(f"Arm {arm!r} cancelled after {len(samples)} trials")


class BenchmarkFailedError(LatencyLabError):
    """A comparison run ended in the FAILED state."""

    def __init__(self, message: str, result: Optional["ComparisonResult"] = None):
        super().__init__(message)
        self.result = result


class BenchmarkCancelledError(LatencyLabError):
    """A comparison run ended in the CANCELLED state."""

    def __init__(self, message: str, result: Optional["ComparisonResult"] = None):
        super().__init__(message)
        self.result = result
