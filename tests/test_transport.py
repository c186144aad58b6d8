"""Tests for the RPC and HTTP arms and the end-to-end comparison."""

import json

import httpx
import pytest

from latency_lab.benchmarks.transport import rpc as rpc_module
from latency_lab.benchmarks.transport import (
    RpcClient,
    RpcError,
    compare_rpc_vs_http,
    http_fetch_tasks,
    rpc_fetch_tasks,
    rpc_url,
    transport_arms,
)
from latency_lab.harness import BenchmarkFailedError, ComparisonRunner, RunState
from latency_lab.server import TaskStore, create_app, generate_tasks, handle_rpc_frame


class LoopbackConnection:
    """Stands in for a websocket, answering frames with handle_rpc_frame."""

    def __init__(self, store: TaskStore):
        self.store = store
        self.sent: list[dict] = []
        self._replies: list[str] = []
        self.closed = False

    async def send(self, raw: str) -> None:
        self.sent.append(json.loads(raw))
        reply = await handle_rpc_frame(raw, self.store)
        self._replies.append(reply.model_dump_json(exclude_none=True))

    async def recv(self) -> str:
        return self._replies.pop(0)

    async def close(self) -> None:
        self.closed = True


class ScriptedConnection:
    """Returns canned replies regardless of what is sent."""

    def __init__(self, replies: list[dict]):
        self._replies = [json.dumps(r) for r in replies]

    async def send(self, raw: str) -> None:
        pass

    async def recv(self) -> str:
        return self._replies.pop(0)

    async def close(self) -> None:
        pass


@pytest.fixture
def store() -> TaskStore:
    return TaskStore(tasks=generate_tasks(20, seed=1), delay_ms=0)


class TestRpcUrl:
    @pytest.mark.parametrize(
        "base_url, expected",
        [
            ("http://127.0.0.1:8000", "ws://127.0.0.1:8000/rpc"),
            ("http://localhost:8000/", "ws://localhost:8000/rpc"),
            ("https://example.com", "wss://example.com/rpc"),
        ],
    )
    def test_maps_scheme(self, base_url, expected):
        assert rpc_url(base_url) == expected


class TestRpcClient:
    @pytest.mark.asyncio
    async def test_call_returns_result(self, store):
        connection = LoopbackConnection(store)
        client = RpcClient("ws://test/rpc", connection=connection)

        result = await client.call("getTasks", {"status": "open"})

        assert len(result) == 10
        assert connection.sent == [{"id": 1, "method": "getTasks", "params": {"status": "open"}}]

    @pytest.mark.asyncio
    async def test_request_ids_increase(self, store):
        connection = LoopbackConnection(store)
        client = RpcClient("ws://test/rpc", connection=connection)

        await client.call("getTasks")
        await client.call("getTasks")

        assert [frame["id"] for frame in connection.sent] == [1, 2]

    @pytest.mark.asyncio
    async def test_error_reply_raises(self, store):
        client = RpcClient("ws://test/rpc", connection=LoopbackConnection(store))

        with pytest.raises(RpcError) as excinfo:
            await client.call("nope")

        assert excinfo.value.code == -32601

    @pytest.mark.asyncio
    async def test_mismatched_reply_id_raises(self):
        client = RpcClient("ws://test/rpc", connection=ScriptedConnection([{"id": 99, "result": []}]))

        with pytest.raises(RpcError, match="does not match"):
            await client.call("getTasks")

    @pytest.mark.asyncio
    async def test_close(self, store):
        connection = LoopbackConnection(store)
        client = RpcClient("ws://test/rpc", connection=connection)

        await client.close()

        assert connection.closed
        assert not client.connected


class TestHttpArm:
    @pytest.mark.asyncio
    async def test_requests_status_filter(self):
        seen = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request)
            return httpx.Response(200, json=[{"name": "Task name 2"}])

        async with httpx.AsyncClient(
            transport=httpx.MockTransport(handler), base_url="http://test"
        ) as client:
            arm = http_fetch_tasks(client, "open")
            result = await arm.operation()

        assert arm.name == "HTTP"
        assert result == [{"name": "Task name 2"}]
        assert seen[0].url.path == "/api/get-tasks"
        assert seen[0].url.params["status"] == "open"

    @pytest.mark.asyncio
    async def test_error_status_fails_the_run(self):
        async with httpx.AsyncClient(
            transport=httpx.MockTransport(lambda request: httpx.Response(503)),
            base_url="http://test",
        ) as client:
            runner = ComparisonRunner(verbose=False)
            with pytest.raises(BenchmarkFailedError) as excinfo:
                await runner.run([http_fetch_tasks(client)], 3)

        assert excinfo.value.result.state is RunState.FAILED
        assert isinstance(excinfo.value.__cause__.__cause__, httpx.HTTPStatusError)


class TestEndToEnd:
    @pytest.mark.asyncio
    async def test_rpc_vs_http_against_backend(self, store):
        app = create_app(store)
        rpc_client = RpcClient("ws://test/rpc", connection=LoopbackConnection(store))

        async with httpx.AsyncClient(
            transport=httpx.ASGITransport(app=app), base_url="http://test"
        ) as http_client:
            arms = [rpc_fetch_tasks(rpc_client), http_fetch_tasks(http_client)]
            updates = []
            result = await ComparisonRunner(verbose=False).run(arms, 5, observer=updates.append)

        assert result.state is RunState.DONE
        assert result.arm_names == ("RPC", "HTTP")
        assert all(len(s) == 5 for s in result.sample_sets.values())
        assert all(sample >= 0 for s in result.sample_sets.values() for sample in s)
        assert len(updates) == 11


@pytest.fixture
def loopback_connect(monkeypatch, store):
    """Route RpcClient.connect to LoopbackConnections, recording the URLs."""
    connections: list[tuple[str, LoopbackConnection]] = []

    async def connect(url, **kwargs):
        connection = LoopbackConnection(store)
        connections.append((url, connection))
        return connection

    monkeypatch.setattr(rpc_module, "connect", connect)
    return connections


class TestTransportArms:
    @pytest.mark.asyncio
    async def test_yields_rpc_then_http_and_closes_both(self, store, loopback_connect):
        app = create_app(store)

        async with transport_arms(
            "http://test", "closed", http_transport=httpx.ASGITransport(app=app)
        ) as (rpc_arm, http_arm):
            rpc_tasks = await rpc_arm.operation()
            http_tasks = await http_arm.operation()

        assert (rpc_arm.name, http_arm.name) == ("RPC", "HTTP")
        assert rpc_tasks == http_tasks
        assert {t["status"] for t in rpc_tasks} == {"closed"}
        url, connection = loopback_connect[0]
        assert url == "ws://test/rpc"
        assert connection.sent[0]["params"] == {"status": "closed"}
        assert connection.closed

    @pytest.mark.asyncio
    async def test_compare_rpc_vs_http(self, store, loopback_connect):
        app = create_app(store)
        updates = []

        result = await compare_rpc_vs_http(
            base_url="http://test",
            iterations=4,
            warmup_runs=1,
            runner=ComparisonRunner(verbose=False),
            observer=updates.append,
            http_transport=httpx.ASGITransport(app=app),
        )

        assert result.state is RunState.DONE
        assert result.arm_names == ("RPC", "HTTP")
        assert result.config.name == "rpc_vs_http"
        assert result.config.metadata == {"base_url": "http://test", "status": "open"}
        assert [len(result.sample_sets[name]) for name in result.arm_names] == [4, 4]
        assert len(updates) == 2 * 4 + 1
        assert len(loopback_connect[0][1].sent) == 4 + 1
        assert loopback_connect[0][1].closed

    @pytest.mark.asyncio
    async def test_compare_rpc_vs_http_failure_still_closes_clients(self, loopback_connect):
        with pytest.raises(BenchmarkFailedError) as excinfo:
            await compare_rpc_vs_http(
                base_url="http://test",
                iterations=2,
                runner=ComparisonRunner(verbose=False),
                http_transport=httpx.MockTransport(lambda request: httpx.Response(500)),
            )

        result = excinfo.value.result
        assert [r.arm for r in result.per_arm] == ["RPC"]
        assert result.sample_sets["HTTP"] == ()
        assert loopback_connect[0][1].closed
