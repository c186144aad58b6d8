"""
Benchmark orchestrator for transport latency comparisons.

Runs each arm's trials strictly in sequence, one arm after another,
aggregates every completed arm with a trimmed mean and publishes the run
state to observers after every trial and once when the run ends.
"""

import asyncio
import contextlib
import json
import time
from dataclasses import dataclass, field, replace
from datetime import datetime
from enum import Enum
from pathlib import Path
from types import MappingProxyType
from typing import Any, AsyncIterator, Awaitable, Callable, Mapping, Optional, Sequence

from ..instrumentation.timing import AggregateResult, Clock, SampleSet, aggregate, time_call
from ..instrumentation.traces import Tracer
from .errors import (
    BenchmarkCancelledError,
    BenchmarkFailedError,
    InvalidConfigurationError,
    RunInProgressError,
    TrialFailedError,
    TrialsCancelledError,
)


class RunState(Enum):
    """Lifecycle of a comparison run."""

    IDLE = "idle"
    RUNNING = "running"
    DONE = "done"
    FAILED = "failed"
    CANCELLED = "cancelled"

    @property
    def is_terminal(self) -> bool:
        return self in (RunState.DONE, RunState.FAILED, RunState.CANCELLED)


@dataclass(frozen=True)
class Arm:
    """One named operation under test."""

    name: str
    operation: Callable[[], Awaitable[Any]]


@dataclass
class BenchmarkConfig:
    """Configuration for a comparison run."""

    name: str = "comparison"
    description: str = ""
    iterations: int = 100
    warmup_runs: int = 0
    timeout_seconds: Optional[float] = None
    metadata: dict = field(default_factory=dict)

    def validate(self) -> None:
        """Reject settings that cannot produce a meaningful run."""
        if isinstance(self.iterations, bool) or not isinstance(self.iterations, int):
            raise InvalidConfigurationError(
                f"iterations must be an integer, got {self.iterations!r}"
            )
        if self.iterations < 1:
            raise InvalidConfigurationError(
                f"iterations must be at least 1, got {self.iterations}"
            )
        if self.warmup_runs < 0:
            raise InvalidConfigurationError(
                f"warmup_runs cannot be negative, got {self.warmup_runs}"
            )
        if self.timeout_seconds is not None and self.timeout_seconds <= 0:
            raise InvalidConfigurationError(
                f"timeout_seconds must be positive, got {self.timeout_seconds}"
            )

    def to_dict(self) -> dict:
        """Convert config to dictionary."""
        return {
            "name": self.name,
            "description": self.description,
            "iterations": self.iterations,
            "warmup_runs": self.warmup_runs,
            "timeout_seconds": self.timeout_seconds,
            "metadata": self.metadata,
        }


def improvement_ratio(
    candidate: AggregateResult,
    baseline: AggregateResult,
) -> Optional[float]:
    """How many times faster the candidate is than the baseline.

    Returns None when the candidate's mean is zero.
    """
    if candidate.mean == 0:
        return None
    return baseline.mean / candidate.mean


def improvement_label(ratio: Optional[float]) -> str:
    """Format a ratio as "2.5x", or "-" when undefined."""
    if ratio is None:
        return "-"
    return f"{ratio:.1f}x"


@dataclass
class ComparisonResult:
    """Outcome of a comparison run.

    ``per_arm`` only holds arms whose phase completed. Improvement ratios
    are only filled in for runs that reached DONE.
    """

    config: BenchmarkConfig
    state: RunState
    arm_names: tuple[str, ...]
    sample_sets: dict[str, tuple[float, ...]]
    per_arm: list[AggregateResult]
    improvement_ratios: dict[str, Optional[float]]
    start_time: datetime
    end_time: datetime
    error: Optional[str] = None

    @property
    def improvement_ratio(self) -> Optional[float]:
        """Ratio of the second arm against the first."""
        if len(self.arm_names) < 2:
            return None
        return self.improvement_ratios.get(self.arm_names[1])

    def aggregate_for(self, arm_name: str) -> Optional[AggregateResult]:
        """AggregateResult for an arm, if its phase completed."""
        for result in self.per_arm:
            if result.arm == arm_name:
                return result
        return None

    def to_dict(self) -> dict:
        """Convert result to dictionary for serialization."""
        return {
            "config": self.config.to_dict(),
            "state": self.state.value,
            "arms": list(self.arm_names),
            "sample_sets": {name: list(s) for name, s in self.sample_sets.items()},
            "per_arm": [r.to_dict() for r in self.per_arm],
            "improvement_ratio": self.improvement_ratio,
            "improvement_ratios": self.improvement_ratios,
            "start_time": self.start_time.isoformat(),
            "end_time": self.end_time.isoformat(),
            "duration_seconds": (self.end_time - self.start_time).total_seconds(),
            "error": self.error,
        }

    def save(self, path: Path) -> None:
        """Save results to JSON file."""
        path.parent.mkdir(parents=True, exist_ok=True)
        with open(path, "w") as f:
            json.dump(self.to_dict(), f, indent=2)


@dataclass(frozen=True)
class ProgressUpdate:
    """Notification sent to observers after each trial and at the end."""

    state: RunState
    arm_index: Optional[int]
    arm_name: Optional[str]
    trial_index: Optional[int]
    sample_sets: Mapping[str, tuple[float, ...]]
    result: Optional[ComparisonResult] = None

    @property
    def final(self) -> bool:
        return self.result is not None


Observer = Callable[[ProgressUpdate], None]
TrialCallback = Callable[[int, tuple[float, ...]], None]


class TrialRunner:
    """Times back-to-back calls of a single arm."""

    def __init__(
        self,
        clock: Clock = time.perf_counter,
        timeout_seconds: Optional[float] = None,
        warmup_runs: int = 0,
        tracer: Optional[Tracer] = None,
    ):
        self.clock = clock
        self.timeout_seconds = timeout_seconds
        self.warmup_runs = warmup_runs
        self.tracer = tracer

    async def _call(self, arm: Arm) -> None:
        if self.timeout_seconds is None:
            await arm.operation()
            return
        try:
            await asyncio.wait_for(arm.operation(), timeout=self.timeout_seconds)
        except asyncio.TimeoutError:
            raise TimeoutError(f"Trial timed out after {self.timeout_seconds}s")

    def _span(self, name: str, attributes: dict):
        if self.tracer is None:
            return contextlib.nullcontext()
        return self.tracer.span(name, attributes)

    async def run(
        self,
        arm: Arm,
        iterations: int,
        on_trial: Optional[TrialCallback] = None,
        should_stop: Optional[Callable[[], bool]] = None,
    ) -> tuple[float, ...]:
        """Run ``iterations`` timed trials of ``arm`` and return the samples.

        Args:
            arm: Arm to time
            iterations: Number of timed trials
            on_trial: Optional callback(trial_index, samples_so_far)
            should_stop: Checked before every call; True ends the loop with
                TrialsCancelledError
        """
        if iterations < 1:
            raise InvalidConfigurationError(
                f"iterations must be at least 1, got {iterations}"
            )

        samples = SampleSet(arm.name)

        for i in range(self.warmup_runs):
            if should_stop and should_stop():
                raise TrialsCancelledError(arm.name, samples.snapshot())
            try:
                await self._call(arm)
            except Exception as exc:
                raise TrialFailedError(arm.name, i, samples.snapshot(), warmup=True) from exc

        for i in range(iterations):
            if should_stop and should_stop():
                raise TrialsCancelledError(arm.name, samples.snapshot())

            with self._span("benchmark.trial", {"arm.name": arm.name, "trial.index": i}) as span:
                try:
                    duration_ms = await time_call(lambda: self._call(arm), self.clock)
                except Exception as exc:
                    raise TrialFailedError(arm.name, i, samples.snapshot()) from exc
                if span is not None:
                    span.set_attribute("trial.duration_ms", duration_ms)

            samples.append(duration_ms)
            if on_trial:
                on_trial(i, samples.snapshot())

        return samples.snapshot()


class ComparisonRunner:
    """Orchestrates comparison runs across several arms.

    One runner executes at most one run at a time. Observers registered
    with ``add_observer`` receive every ProgressUpdate of every run.
    """

    def __init__(
        self,
        clock: Clock = time.perf_counter,
        verbose: bool = True,
        tracer: Optional[Tracer] = None,
    ):
        self.clock = clock
        self.verbose = verbose
        self.tracer = tracer
        self.last_result: Optional[ComparisonResult] = None
        self._observers: list[Observer] = []
        self._state = RunState.IDLE
        self._current_arm: Optional[int] = None
        self._cancel_requested = False

    @property
    def state(self) -> RunState:
        return self._state

    @property
    def current_arm(self) -> Optional[int]:
        """Index of the arm being timed while RUNNING."""
        return self._current_arm

    @property
    def is_running(self) -> bool:
        return self._state is RunState.RUNNING

    def add_observer(self, observer: Observer) -> None:
        """Register an observer for all future runs."""
        self._observers.append(observer)

    def remove_observer(self, observer: Observer) -> None:
        """Unregister an observer."""
        self._observers.remove(observer)

    def cancel(self) -> None:
        """Stop the current run at the next trial boundary."""
        if self.is_running:
            self._cancel_requested = True

    def _prepare(
        self,
        arms: Sequence[Arm],
        iterations: Optional[int],
        config: Optional[BenchmarkConfig],
    ) -> BenchmarkConfig:
        config = config or BenchmarkConfig()
        if iterations is not None:
            config = replace(config, iterations=iterations)
        config.validate()

        if not arms:
            raise InvalidConfigurationError("At least one arm is required")
        names = [arm.name for arm in arms]
        if len(set(names)) != len(names):
            raise InvalidConfigurationError(f"Arm names must be unique: {names}")

        if self.is_running:
            raise RunInProgressError("A comparison run is already in progress")
        return config

    def _arm_span(self, arm: Arm, index: int, iterations: int):
        if self.tracer is None:
            return contextlib.nullcontext()
        return self.tracer.span(
            "benchmark.arm",
            {"arm.name": arm.name, "arm.index": index, "arm.iterations": iterations},
        )

    @staticmethod
    def _notify(observers: list[Observer], update: ProgressUpdate) -> None:
        for observer in observers:
            observer(update)

    async def run(
        self,
        arms: Sequence[Arm],
        iterations: Optional[int] = None,
        config: Optional[BenchmarkConfig] = None,
        observer: Optional[Observer] = None,
    ) -> ComparisonResult:
        """Run every arm to completion, in order, and compare them.

        The first arm is the candidate; every later arm's improvement
        ratio is its trimmed mean divided by the candidate's.

        Raises:
            InvalidConfigurationError: no arms, duplicate names or a
                non-positive iteration count
            RunInProgressError: another run is still RUNNING
            BenchmarkFailedError: an arm's operation raised
            BenchmarkCancelledError: ``cancel`` was called
        """
        config = self._prepare(arms, iterations, config)
        arms = tuple(arms)
        observers = list(self._observers)
        if observer is not None:
            observers.append(observer)

        self._state = RunState.RUNNING
        self._cancel_requested = False
        sample_sets: dict[str, tuple[float, ...]] = {arm.name: () for arm in arms}
        per_arm: list[AggregateResult] = []
        start_time = datetime.now()

        trial_runner = TrialRunner(
            clock=self.clock,
            timeout_seconds=config.timeout_seconds,
            warmup_runs=config.warmup_runs,
            tracer=self.tracer,
        )

        if self.verbose:
            print(f"\nRunning comparison: {config.name}")
            print(f"  Arms: {[arm.name for arm in arms]}")
            print(f"  Iterations per arm: {config.iterations}")
            if config.warmup_runs:
                print(f"  Warmup runs per arm: {config.warmup_runs}")

        def finish(state: RunState, error: Optional[str] = None) -> ComparisonResult:
            ratios: dict[str, Optional[float]] = {}
            if state is RunState.DONE:
                candidate = per_arm[0]
                for other in per_arm[1:]:
                    ratios[other.arm] = improvement_ratio(candidate, other)

            result = ComparisonResult(
                config=config,
                state=state,
                arm_names=tuple(arm.name for arm in arms),
                sample_sets=dict(sample_sets),
                per_arm=list(per_arm),
                improvement_ratios=ratios,
                start_time=start_time,
                end_time=datetime.now(),
                error=error,
            )
            self._state = state
            self._current_arm = None
            self.last_result = result

            if self.verbose:
                self._print_summary(result)

            self._notify(observers, ProgressUpdate(
                state=state,
                arm_index=None,
                arm_name=None,
                trial_index=None,
                sample_sets=MappingProxyType(dict(sample_sets)),
                result=result,
            ))
            return result

        try:
            for index, arm in enumerate(arms):
                self._current_arm = index
                if self.verbose:
                    print(f"\n  Arm {index + 1}/{len(arms)}: {arm.name}")

                def on_trial(trial_index: int, snapshot: tuple[float, ...], index=index, arm=arm):
                    sample_sets[arm.name] = snapshot
                    if self.verbose:
                        print(f"  Run {trial_index + 1}/{config.iterations}: {snapshot[-1]:.1f}ms")
                    self._notify(observers, ProgressUpdate(
                        state=RunState.RUNNING,
                        arm_index=index,
                        arm_name=arm.name,
                        trial_index=trial_index,
                        sample_sets=MappingProxyType(dict(sample_sets)),
                    ))

                with self._arm_span(arm, index, config.iterations) as span:
                    samples = await trial_runner.run(
                        arm,
                        config.iterations,
                        on_trial=on_trial,
                        should_stop=lambda: self._cancel_requested,
                    )
                    result = aggregate(samples, arm.name)
                    if span is not None:
                        span.set_attribute("arm.trimmed_mean_ms", result.mean)
                per_arm.append(result)

        except TrialFailedError as exc:
            sample_sets[exc.arm] = exc.samples
            final = finish(RunState.FAILED, error=f"{exc}: {exc.__cause__!r}")
            raise BenchmarkFailedError(final.error, final) from exc

        except TrialsCancelledError as exc:
            sample_sets[exc.arm] = exc.samples
            final = finish(RunState.CANCELLED, error=str(exc))
            raise BenchmarkCancelledError(final.error, final) from exc

        except asyncio.CancelledError:
            finish(RunState.CANCELLED, error="Run task was cancelled")
            raise

        except Exception as exc:
            final = finish(RunState.FAILED, error=f"Run aborted: {exc!r}")
            raise BenchmarkFailedError(final.error, final) from exc

        return finish(RunState.DONE)

    async def iter_progress(
        self,
        arms: Sequence[Arm],
        iterations: Optional[int] = None,
        config: Optional[BenchmarkConfig] = None,
    ) -> AsyncIterator[ProgressUpdate]:
        """Run a comparison and yield every ProgressUpdate as it happens.

        The last update yielded is the final one. A failed or cancelled
        run re-raises after that update has been yielded. Closing the
        iterator early cancels the run.

        Usage:
            async for update in runner.iter_progress(arms, 100):
                render(update.sample_sets)
        """
        self._prepare(arms, iterations, config)

        queue: asyncio.Queue[ProgressUpdate] = asyncio.Queue()
        task = asyncio.ensure_future(
            self.run(arms, iterations, config=config, observer=queue.put_nowait)
        )
        try:
            while True:
                if task.done() and queue.empty():
                    break
                getter = asyncio.ensure_future(queue.get())
                await asyncio.wait({getter, task}, return_when=asyncio.FIRST_COMPLETED)
                if not getter.done():
                    getter.cancel()
                    continue
                update = getter.result()
                yield update
                if update.final:
                    break
            await task
        finally:
            if not task.done():
                self.cancel()
                with contextlib.suppress(BenchmarkCancelledError):
                    await task

    def _print_summary(self, result: ComparisonResult) -> None:
        print(f"\nResults for {result.config.name} ({result.state.value}):")
        for aggregate_result in result.per_arm:
            print(f"  {aggregate_result.arm}: {aggregate_result.mean:.1f}ms "
                  f"(trimmed mean of {aggregate_result.sample_count})")
        if result.state is RunState.DONE and len(result.arm_names) > 1:
            for name, ratio in result.improvement_ratios.items():
                print(f"  {result.arm_names[0]} vs {name}: {improvement_label(ratio)}")
        if result.error:
            print(f"  Error: {result.error}")
