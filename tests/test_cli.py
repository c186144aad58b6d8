"""Tests for the command line entry point."""

import json
from datetime import datetime
from pathlib import Path

import pytest

import main
from latency_lab.harness import (
    BenchmarkCancelledError,
    BenchmarkConfig,
    BenchmarkFailedError,
    ComparisonResult,
    RunState,
)
from latency_lab.instrumentation import AggregateResult


def make_result(state: RunState) -> ComparisonResult:
    done = state is RunState.DONE
    return ComparisonResult(
        config=BenchmarkConfig(name="rpc_vs_http", iterations=3),
        state=state,
        arm_names=("RPC", "HTTP"),
        sample_sets={"RPC": (110.0, 90.0, 100.0), "HTTP": (240.0, 260.0, 250.0) if done else (240.0,)},
        per_arm=[AggregateResult("RPC", 100.0, 3)] + ([AggregateResult("HTTP", 250.0, 3)] if done else []),
        improvement_ratios={"HTTP": 2.5} if done else {},
        start_time=datetime(2025, 1, 1, 12, 0, 0),
        end_time=datetime(2025, 1, 1, 12, 0, 2),
        error=None if done else "Arm 'HTTP' failed on trial 2",
    )


class TestParser:
    def test_compare_defaults(self, monkeypatch):
        monkeypatch.delenv("LATENCY_LAB_BASE_URL", raising=False)
        args = main.build_parser().parse_args(["compare"])

        assert args.command == "compare"
        assert args.base_url == "http://127.0.0.1:8000"
        assert args.iterations == 100
        assert args.warmup == 0
        assert args.status == "open"
        assert args.output_dir == Path("results")

    def test_compare_options(self):
        args = main.build_parser().parse_args([
            "compare", "--base-url", "http://backend:9000", "--iterations", "20",
            "--status", "closed", "--chart", "--detailed", "--no-color",
        ])

        assert args.base_url == "http://backend:9000"
        assert args.iterations == 20
        assert args.status == "closed"
        assert args.chart and args.detailed and args.no_color

    def test_serve_options(self):
        args = main.build_parser().parse_args(["serve", "--port", "9001", "--delay-ms", "0"])
        assert args.port == 9001
        assert args.delay_ms == 0.0

    def test_command_required(self):
        with pytest.raises(SystemExit):
            main.build_parser().parse_args([])

    def test_invalid_status(self):
        with pytest.raises(SystemExit):
            main.build_parser().parse_args(["compare", "--status", "archived"])


class TestMain:
    def test_failed_comparison_exits_with_error(self, monkeypatch, capsys, tmp_path):
        async def failing_compare(**kwargs):
            raise BenchmarkFailedError("Arm 'RPC' failed on trial 1")

        monkeypatch.setattr(
            "latency_lab.benchmarks.transport.compare_rpc_vs_http", failing_compare
        )

        with pytest.raises(SystemExit) as excinfo:
            main.main(["compare", "--output-dir", str(tmp_path), "--quiet"])

        assert excinfo.value.code == 1
        assert "Arm 'RPC' failed on trial 1" in capsys.readouterr().out

    def test_successful_comparison_reports_everything(self, monkeypatch, capsys, tmp_path):
        calls = []

        async def finished_compare(**kwargs):
            calls.append(kwargs)
            return make_result(RunState.DONE)

        monkeypatch.setattr(
            "latency_lab.benchmarks.transport.compare_rpc_vs_http", finished_compare
        )

        main.main([
            "compare", "--output-dir", str(tmp_path), "--iterations", "3",
            "--warmup", "1", "--status", "closed", "--chart", "--detailed",
            "--quiet", "--no-color",
        ])

        out = capsys.readouterr().out
        assert calls[0]["iterations"] == 3
        assert calls[0]["warmup_runs"] == 1
        assert calls[0]["status"] == "closed"
        assert not calls[0]["runner"].verbose
        assert "Summary: rpc_vs_http" in out
        assert "Detailed Results (3 requests)" in out
        saved = list(tmp_path.glob("rpc_vs_http_*.json"))
        assert len(saved) == 1
        assert json.loads(saved[0].read_text())["state"] == "done"
        assert sorted(p.name for p in (tmp_path / "charts").iterdir()) == [
            "rpc_vs_http_comparison.png",
            "rpc_vs_http_timeline.png",
        ]

    def test_failed_comparison_saves_partial_result(self, monkeypatch, capsys, tmp_path):
        partial = make_result(RunState.FAILED)

        async def failing_compare(**kwargs):
            raise BenchmarkFailedError(partial.error, partial)

        monkeypatch.setattr(
            "latency_lab.benchmarks.transport.compare_rpc_vs_http", failing_compare
        )

        with pytest.raises(SystemExit) as excinfo:
            main.main(["compare", "--output-dir", str(tmp_path), "--quiet", "--no-color", "--detailed"])

        out = capsys.readouterr().out
        assert excinfo.value.code == 1
        assert "Run failed: Arm 'HTTP' failed on trial 2" in out
        assert "Detailed Results" in out
        saved = list(tmp_path.glob("rpc_vs_http_*.json"))
        assert len(saved) == 1
        data = json.loads(saved[0].read_text())
        assert data["state"] == "failed"
        assert data["sample_sets"]["HTTP"] == [240.0]

    def test_cancelled_comparison_saves_partial_result(self, monkeypatch, tmp_path):
        partial = make_result(RunState.CANCELLED)

        async def cancelled_compare(**kwargs):
            raise BenchmarkCancelledError("Arm 'HTTP' cancelled after 1 trials", partial)

        monkeypatch.setattr(
            "latency_lab.benchmarks.transport.compare_rpc_vs_http", cancelled_compare
        )

        with pytest.raises(SystemExit):
            main.main(["compare", "--output-dir", str(tmp_path), "--quiet"])

        data = json.loads(next(tmp_path.glob("rpc_vs_http_*.json")).read_text())
        assert data["state"] == "cancelled"
