"""
Transport benchmarks - websocket RPC vs plain HTTP.

Both arms perform the same logical read (the task list filtered by
status) against the same backend, so their latencies are comparable.
"""

from contextlib import asynccontextmanager
from typing import AsyncIterator, Optional

import httpx

from ...harness.runner import (
    Arm,
    BenchmarkConfig,
    ComparisonResult,
    ComparisonRunner,
    Observer,
)
from .rpc import RpcClient, rpc_url


def http_fetch_tasks(
    client: httpx.AsyncClient,
    status: Optional[str] = "open",
    name: str = "HTTP",
) -> Arm:
    """Arm issuing ``GET /api/get-tasks`` through an httpx client."""
    params = {"status": status} if status else {}

    async def operation():
        response = await client.get(
            "/api/get-tasks",
            params=params,
            headers={"Content-Type": "application/json"},
        )
        response.raise_for_status()
        return response.json()

    return Arm(name, operation)


def rpc_fetch_tasks(
    client: RpcClient,
    status: Optional[str] = "open",
    name: str = "RPC",
) -> Arm:
    """Arm calling ``getTasks`` over the RPC websocket."""
    params = {"status": status} if status else {}

    async def operation():
        return await client.call("getTasks", params)

    return Arm(name, operation)


@asynccontextmanager
async def transport_arms(
    base_url: str,
    status: Optional[str] = "open",
    timeout_seconds: float = 30.0,
    http_transport: Optional[httpx.AsyncBaseTransport] = None,
) -> AsyncIterator[tuple[Arm, Arm]]:
    """Open both clients and yield ``(rpc_arm, http_arm)``.

    The RPC arm comes first: it is the candidate the HTTP arm is
    compared against. ``http_transport`` replaces httpx's network
    transport, e.g. with an ``httpx.ASGITransport`` around the app.
    """
    async with httpx.AsyncClient(
        base_url=base_url, timeout=timeout_seconds, transport=http_transport
    ) as http_client:
        async with RpcClient(rpc_url(base_url)) as rpc_client:
            yield (
                rpc_fetch_tasks(rpc_client, status),
                http_fetch_tasks(http_client, status),
            )


async def compare_rpc_vs_http(
    base_url: str = "http://127.0.0.1:8000",
    iterations: int = 100,
    status: Optional[str] = "open",
    warmup_runs: int = 0,
    runner: Optional[ComparisonRunner] = None,
    observer: Optional[Observer] = None,
    http_transport: Optional[httpx.AsyncBaseTransport] = None,
) -> ComparisonResult:
    """Run the RPC vs HTTP comparison against a running backend.

    Returns the ComparisonResult; failures surface as the harness's
    BenchmarkFailedError.
    """
    runner = runner or ComparisonRunner()
    config = BenchmarkConfig(
        name="rpc_vs_http",
        description="Websocket RPC vs HTTP GET of the task list",
        iterations=iterations,
        warmup_runs=warmup_runs,
        metadata={"base_url": base_url, "status": status},
    )

    async with transport_arms(base_url, status, http_transport=http_transport) as arms:
        return await runner.run(arms, config=config, observer=observer)
