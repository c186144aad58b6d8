"""
Results reporting for comparison runs.

Provides CLI tables, JSON export and charts.
"""

import json
from datetime import datetime
from pathlib import Path
from typing import Optional

import matplotlib

matplotlib.use("Agg")  # Non-interactive backend

import matplotlib.pyplot as plt  # noqa: E402
import numpy as np  # noqa: E402

from .runner import ComparisonResult, ProgressUpdate, RunState, improvement_label  # noqa: E402


class ConsoleReporter:
    """Generates console/CLI reports."""

    def __init__(self, use_color: bool = True, network: str = "Current Connection"):
        self.use_color = use_color
        self.network = network

    def _color(self, text: str, color: str) -> str:
        """Apply ANSI color if enabled."""
        if not self.use_color:
            return text

        colors = {
            "green": "\033[92m",
            "red": "\033[91m",
            "yellow": "\033[93m",
            "blue": "\033[94m",
            "bold": "\033[1m",
            "reset": "\033[0m",
        }

        return f"{colors.get(color, '')}{text}{colors['reset']}"

    def format_duration(self, ms: float) -> str:
        """Format duration for display."""
        if ms < 1000:
            return f"{ms:.1f}ms"
        return f"{ms / 1000:.2f}s"

    def _arm_cell(self, result: ComparisonResult, index: int) -> str:
        name = result.arm_names[index]
        aggregate_result = result.aggregate_for(name)
        if aggregate_result is not None:
            return f"{aggregate_result.mean:.0f}"
        # the arm that was running when the run stopped
        if index == len(result.per_arm) and result.state is not RunState.DONE:
            return result.state.value.capitalize()
        return "-"

    def summary_table(self, result: ComparisonResult) -> str:
        """One-row summary: trimmed mean per arm and the improvement ratio."""
        headers = ["Network"] + [f"{name} Avg (ms)" for name in result.arm_names] + ["Improvement"]
        col_widths = [22] + [max(16, len(h) + 2) for h in headers[1:-1]] + [12]

        lines = []
        lines.append(self._color(f"\n{'=' * sum(col_widths)}", "blue"))
        lines.append(self._color(f"Summary: {result.config.name}", "bold"))
        lines.append(self._color(f"{'=' * sum(col_widths)}", "blue"))

        header_row = ""
        for i, header in enumerate(headers):
            header_row += f"{header:<{col_widths[i]}}"
        lines.append(self._color(header_row, "bold"))
        lines.append("-" * sum(col_widths))

        row = [f"{self.network:<{col_widths[0]}}"]
        for i in range(len(result.arm_names)):
            row.append(f"{self._arm_cell(result, i):<{col_widths[i + 1]}}")
        label = improvement_label(result.improvement_ratio)
        row.append(self._color(f"{label:<{col_widths[-1]}}", "green") if label != "-" else label)
        lines.append("".join(row))

        if result.state is not RunState.DONE:
            lines.append(self._color(f"\nRun {result.state.value}: {result.error or ''}", "red"))

        return "\n".join(lines)

    def detailed_table(self, result: ComparisonResult) -> str:
        """Per-trial timings for every arm, in trial order."""
        iterations = max(
            [result.config.iterations] + [len(s) for s in result.sample_sets.values()]
        )
        headers = ["Request #"] + [f"{name} (ms)" for name in result.arm_names]
        col_widths = [12] + [max(14, len(h) + 2) for h in headers[1:]]

        lines = []
        lines.append(self._color(f"\nDetailed Results ({iterations} requests)", "bold"))
        header_row = ""
        for i, header in enumerate(headers):
            header_row += f"{header:<{col_widths[i]}}"
        lines.append(self._color(header_row, "bold"))
        lines.append("-" * sum(col_widths))

        for trial in range(iterations):
            row = [f"{trial + 1:<{col_widths[0]}}"]
            for i, name in enumerate(result.arm_names):
                samples = result.sample_sets.get(name, ())
                cell = f"{samples[trial]:.2f}" if trial < len(samples) else "-"
                row.append(f"{cell:<{col_widths[i + 1]}}")
            lines.append("".join(row))

        return "\n".join(lines)

    def progress_line(self, update: ProgressUpdate) -> str:
        """Single line describing a progress notification."""
        if update.final:
            result = update.result
            return f"{result.config.name}: {result.state.value} ({improvement_label(result.improvement_ratio)})"
        samples = update.sample_sets[update.arm_name]
        return (f"{update.arm_name} trial {update.trial_index + 1}: "
                f"{self.format_duration(samples[-1])}")

    def single_result(self, result: ComparisonResult) -> str:
        """Summary block with descriptive statistics per arm."""
        lines = [self.summary_table(result)]

        for name in result.arm_names:
            samples = result.sample_sets.get(name, ())
            if not samples:
                continue
            ordered = sorted(samples)
            lines.append(f"\n{self._color(name, 'bold')} ({len(samples)} samples)")
            lines.append(f"  {'Min:':<8} {self.format_duration(ordered[0])}")
            lines.append(f"  {'Median:':<8} {self.format_duration(ordered[len(ordered) // 2])}")
            lines.append(f"  {'Max:':<8} {self.format_duration(ordered[-1])}")

        duration = (result.end_time - result.start_time).total_seconds()
        lines.append(f"\nTotal duration: {duration:.1f}s")
        return "\n".join(lines)


class ChartReporter:
    """Generates visual charts using matplotlib."""

    def __init__(self, output_dir: Optional[Path] = None):
        self.output_dir = output_dir or Path("results/charts")

    def _save(self, fig, filename: str) -> Path:
        self.output_dir.mkdir(parents=True, exist_ok=True)
        filepath = self.output_dir / filename
        fig.savefig(filepath, dpi=150, bbox_inches="tight")
        plt.close(fig)
        return filepath

    def trial_timeline(
        self,
        result: ComparisonResult,
        filename: Optional[str] = None,
    ) -> Optional[Path]:
        """Plot each arm's per-trial latency in trial order."""
        if not any(result.sample_sets.values()):
            return None

        fig, ax = plt.subplots(figsize=(12, 6))
        for name in result.arm_names:
            samples = result.sample_sets.get(name, ())
            if not samples:
                continue
            ax.plot(np.arange(1, len(samples) + 1), samples, label=name, alpha=0.8)
            aggregate_result = result.aggregate_for(name)
            if aggregate_result is not None:
                ax.axhline(aggregate_result.mean, linestyle="--", alpha=0.6,
                           label=f"{name} trimmed mean: {aggregate_result.mean:.1f}ms")

        ax.set_xlabel("Request #")
        ax.set_ylabel("Latency (ms)")
        ax.set_title(f"Per-request Latency: {result.config.name}")
        ax.legend()

        return self._save(fig, filename or f"{result.config.name}_timeline.png")

    def comparison_bar_chart(
        self,
        result: ComparisonResult,
        filename: Optional[str] = None,
    ) -> Optional[Path]:
        """Bar chart of trimmed means per completed arm."""
        if not result.per_arm:
            return None

        names = [r.arm for r in result.per_arm]
        means = [r.mean for r in result.per_arm]
        x = np.arange(len(names))

        fig, ax = plt.subplots(figsize=(8, 6))
        ax.bar(x, means, 0.5, color="steelblue")
        ax.set_xlabel("Arm")
        ax.set_ylabel("Trimmed mean latency (ms)")
        ax.set_title(f"Latency Comparison ({improvement_label(result.improvement_ratio)})")
        ax.set_xticks(x)
        ax.set_xticklabels(names)

        fig.tight_layout()
        return self._save(fig, filename or f"{result.config.name}_comparison.png")


class JSONReporter:
    """Exports results as JSON for further analysis."""

    def __init__(self, output_dir: Optional[Path] = None):
        self.output_dir = output_dir or Path("results")

    def save_result(self, result: ComparisonResult) -> Path:
        """Save a single result to JSON."""
        timestamp = result.start_time.strftime("%Y%m%d_%H%M%S")
        filepath = self.output_dir / f"{result.config.name}_{timestamp}.json"
        result.save(filepath)
        return filepath

    def save_history(
        self,
        results: list[ComparisonResult],
        name: str = "history",
    ) -> Path:
        """Save several runs in one JSON document."""
        self.output_dir.mkdir(parents=True, exist_ok=True)
        timestamp = datetime.now().strftime("%Y%m%d_%H%M%S")
        filepath = self.output_dir / f"{name}_{timestamp}.json"

        data = {
            "name": name,
            "timestamp": timestamp,
            "results": [r.to_dict() for r in results],
        }

        with open(filepath, "w") as f:
            json.dump(data, f, indent=2)

        return filepath

    def load_result(self, filepath: Path) -> dict:
        """Load a result from JSON."""
        with open(filepath) as f:
            return json.load(f)

    def load_all_results(self, pattern: str = "*.json") -> list[dict]:
        """Load all results matching a pattern."""
        results = []
        for filepath in sorted(self.output_dir.glob(pattern)):
            results.append(self.load_result(filepath))
        return results
