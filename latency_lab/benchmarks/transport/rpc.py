"""Minimal request/reply client for the backend's websocket RPC channel."""

import json
from typing import Any, Optional

from websockets.asyncio.client import ClientConnection, connect


class RpcError(Exception):
    """The server answered a call with an error frame."""

    def __init__(self, code: int, message: str):
        self.code = code
        self.message = message
        super().__init__(f"RPC error {code}: {message}")


def rpc_url(base_url: str) -> str:
    """Map an HTTP base URL to the websocket RPC endpoint."""
    base = base_url.rstrip("/")
    if base.startswith("https://"):
        base = "wss://" + base[len("https://"):]
    elif base.startswith("http://"):
        base = "ws://" + base[len("http://"):]
    return f"{base}/rpc"


class RpcClient:
    """Sends one call at a time over a single websocket connection.

    Usage:
        async with RpcClient("ws://127.0.0.1:8000/rpc") as client:
            tasks = await client.call("getTasks", {"status": "open"})
    """

    def __init__(self, url: str, connection: Optional[ClientConnection] = None):
        self.url = url
        self._connection = connection
        self._next_id = 0

    @property
    def connected(self) -> bool:
        return self._connection is not None

    async def connect(self) -> "RpcClient":
        """Open the websocket if it is not open yet."""
        if self._connection is None:
            self._connection = await connect(self.url, max_size=None)
        return self

    async def close(self) -> None:
        """Close the websocket."""
        if self._connection is not None:
            await self._connection.close()
            self._connection = None

    async def __aenter__(self) -> "RpcClient":
        return await self.connect()

    async def __aexit__(self, *exc_info) -> None:
        await self.close()

    async def call(self, method: str, params: Optional[dict] = None) -> Any:
        """Send a request frame and wait for its reply."""
        await self.connect()
        self._next_id += 1
        request_id = self._next_id

        await self._connection.send(json.dumps({
            "id": request_id,
            "method": method,
            "params": params or {},
        }))
        reply = json.loads(await self._connection.recv())

        if reply.get("id") != request_id:
            raise RpcError(-32603, f"Reply id {reply.get('id')!r} does not match request {request_id}")
        if "error" in reply:
            error = reply["error"]
            raise RpcError(error.get("code", -32603), error.get("message", ""))
        return reply.get("result")
