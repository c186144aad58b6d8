#!/usr/bin/env python3
"""
Transport Latency Lab - Main entry point.

Usage:
    python main.py [command] [options]

Commands:
    serve     - Run the demo backend (HTTP + websocket RPC)
    compare   - Run the RPC vs HTTP latency comparison against a backend
"""

import argparse
import asyncio
import os
import sys
from pathlib import Path

from dotenv import load_dotenv

# Load environment variables from .env file
load_dotenv()

DEFAULT_BASE_URL = "http://127.0.0.1:8000"


def run_server(args):
    """Run the demo backend."""
    import uvicorn

    from latency_lab.server import TaskStore, create_app

    store = TaskStore(delay_ms=args.delay_ms)
    uvicorn.run(create_app(store), host=args.host, port=args.port)


def report_result(result, args, reporter):
    """Print the tables and save the JSON (and charts) for a finished run."""
    from latency_lab.harness import ChartReporter, JSONReporter

    print(reporter.summary_table(result))
    if args.detailed:
        print(reporter.detailed_table(result))

    path = JSONReporter(args.output_dir).save_result(result)
    print(f"\nResults saved to {path}")

    if args.chart:
        charts = ChartReporter(args.output_dir / "charts")
        for chart in (charts.trial_timeline(result), charts.comparison_bar_chart(result)):
            if chart:
                print(f"Chart saved to {chart}")


async def run_comparison(args):
    """Run the RPC vs HTTP comparison and report the results.

    A failed or cancelled run still reports its partial samples before
    the error is re-raised.
    """
    from latency_lab.benchmarks.transport import compare_rpc_vs_http
    from latency_lab.harness import (
        BenchmarkCancelledError,
        BenchmarkFailedError,
        ComparisonRunner,
        ConsoleReporter,
    )
    from latency_lab.instrumentation import Tracer, TracingConfig

    tracer = Tracer(TracingConfig(enable_console_export=True)) if args.trace else None
    runner = ComparisonRunner(verbose=not args.quiet, tracer=tracer)
    reporter = ConsoleReporter(use_color=not args.no_color)

    try:
        result = await compare_rpc_vs_http(
            base_url=args.base_url,
            iterations=args.iterations,
            status=args.status,
            warmup_runs=args.warmup,
            runner=runner,
        )
    except (BenchmarkFailedError, BenchmarkCancelledError) as e:
        if e.result is not None:
            report_result(e.result, args, reporter)
        raise
    finally:
        if tracer:
            tracer.shutdown()

    report_result(result, args, reporter)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Transport Latency Lab - Compare websocket RPC and HTTP latency",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
    python main.py serve --port 8000
    python main.py compare --iterations 100
    python main.py compare --base-url http://localhost:8000 --chart --detailed
        """,
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    serve = subparsers.add_parser("serve", help="Run the demo backend")
    serve.add_argument("--host", default="127.0.0.1", help="Bind address (default: 127.0.0.1)")
    serve.add_argument("--port", type=int, default=8000, help="Port (default: 8000)")
    serve.add_argument(
        "--delay-ms",
        type=float,
        default=float(os.environ.get("LATENCY_LAB_DELAY_MS", 100)),
        help="Simulated server delay per read (default: 100)",
    )

    compare = subparsers.add_parser("compare", help="Run the RPC vs HTTP comparison")
    compare.add_argument(
        "--base-url",
        default=os.environ.get("LATENCY_LAB_BASE_URL", DEFAULT_BASE_URL),
        help=f"Backend base URL (default: {DEFAULT_BASE_URL})",
    )
    compare.add_argument(
        "--iterations",
        type=int,
        default=100,
        help="Timed requests per transport (default: 100)",
    )
    compare.add_argument(
        "--warmup",
        type=int,
        default=0,
        help="Untimed requests per transport before timing (default: 0)",
    )
    compare.add_argument(
        "--status",
        choices=["open", "closed"],
        default="open",
        help="Task status to request (default: open)",
    )
    compare.add_argument(
        "--output-dir",
        type=Path,
        default=Path("results"),
        help="Directory to save results (default: results/)",
    )
    compare.add_argument("--detailed", action="store_true", help="Print per-request timings")
    compare.add_argument("--chart", action="store_true", help="Save matplotlib charts")
    compare.add_argument("--trace", action="store_true", help="Export OpenTelemetry spans to the console")
    compare.add_argument("--quiet", action="store_true", help="Suppress per-request progress lines")
    compare.add_argument("--no-color", action="store_true", help="Disable ANSI colors")

    return parser


def main(argv=None):
    args = build_parser().parse_args(argv)

    try:
        if args.command == "serve":
            run_server(args)
        else:
            asyncio.run(run_comparison(args))
    except KeyboardInterrupt:
        print("\nInterrupted by user")
        sys.exit(1)
    except Exception as e:
        print(f"\nError: {e}")
        sys.exit(1)


if __name__ == "__main__":
    main()
