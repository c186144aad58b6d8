"""Transport Latency Lab demo backend - FastAPI application.

Serves the same task read over plain HTTP and over a websocket RPC
channel so the two can be benchmarked against each other.
"""

import json
import os
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI, WebSocket, WebSocketDisconnect
from fastapi.middleware.cors import CORSMiddleware
from pydantic import ValidationError

from .models import (
    INVALID_PARAMS,
    INVALID_REQUEST,
    METHOD_NOT_FOUND,
    PARSE_ERROR,
    GetTasksParams,
    HealthResponse,
    RpcErrorBody,
    RpcRequest,
    RpcResponse,
    Task,
    TaskStatus,
)
from .tasks import DEFAULT_DELAY_MS, TaskStore

VERSION = "1.0.0"


async def handle_rpc_frame(raw: str, store: TaskStore) -> RpcResponse:
    """Decode one request frame, dispatch it and build the reply."""
    try:
        payload = json.loads(raw)
    except json.JSONDecodeError as e:
        return RpcResponse(error=RpcErrorBody(code=PARSE_ERROR, message=str(e)))

    try:
        request = RpcRequest.model_validate(payload)
    except ValidationError as e:
        request_id = payload.get("id") if isinstance(payload, dict) else None
        if not isinstance(request_id, (int, str)):
            request_id = None
        return RpcResponse(
            id=request_id,
            error=RpcErrorBody(code=INVALID_REQUEST, message=str(e)),
        )

    if request.method != "getTasks":
        return RpcResponse(
            id=request.id,
            error=RpcErrorBody(code=METHOD_NOT_FOUND, message=f"Unknown method: {request.method}"),
        )

    try:
        params = GetTasksParams.model_validate(request.params)
    except ValidationError as e:
        return RpcResponse(
            id=request.id,
            error=RpcErrorBody(code=INVALID_PARAMS, message=str(e)),
        )

    tasks = await store.get_tasks(params.status)
    return RpcResponse(id=request.id, result=[t.model_dump(mode="json") for t in tasks])


def create_app(store: Optional[TaskStore] = None) -> FastAPI:
    """Build the backend around a TaskStore.

    Without an explicit store, the simulated delay comes from
    LATENCY_LAB_DELAY_MS (default 100 ms).
    """
    if store is None:
        store = TaskStore(delay_ms=float(os.environ.get("LATENCY_LAB_DELAY_MS", DEFAULT_DELAY_MS)))

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """Application lifespan handler."""
        print("Starting Transport Latency Lab backend...")
        print(f"Tasks loaded: {len(store)}")
        print(f"Simulated delay: {store.delay_ms:.0f}ms")
        yield
        print("Shutting down Transport Latency Lab backend...")

    app = FastAPI(
        title="Transport Latency Lab API",
        description="Task data served over HTTP and websocket RPC for latency comparison",
        version=VERSION,
        lifespan=lifespan,
    )
    app.state.store = store

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.get("/api/health", response_model=HealthResponse, tags=["health"])
    async def health_check():
        """Health check endpoint."""
        return HealthResponse(status="healthy", version=VERSION, task_count=len(store))

    @app.get("/api/get-tasks", response_model=list[Task], tags=["tasks"])
    async def get_tasks(status: Optional[TaskStatus] = None):
        """Plain HTTP read of the task list."""
        return await store.get_tasks(status)

    @app.websocket("/rpc")
    async def rpc_endpoint(websocket: WebSocket):
        """Request/reply RPC over a long-lived websocket."""
        await websocket.accept()
        try:
            while True:
                raw = await websocket.receive_text()
                response = await handle_rpc_frame(raw, store)
                await websocket.send_text(response.model_dump_json(exclude_none=True))
        except WebSocketDisconnect:
            return

    return app


app = create_app()
