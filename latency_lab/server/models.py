"""Pydantic schemas for the demo backend's HTTP and RPC payloads."""

from enum import Enum
from typing import Any, Optional, Union

from pydantic import BaseModel, Field


class TaskStatus(str, Enum):
    """Task states."""

    OPEN = "open"
    CLOSED = "closed"


class Task(BaseModel):
    """A task returned by both transports."""

    name: str
    status: TaskStatus
    description: str
    date: str
    priority: int = Field(ge=1, le=5)


class GetTasksParams(BaseModel):
    """Parameters accepted by the getTasks method."""

    status: Optional[TaskStatus] = None


class RpcRequest(BaseModel):
    """A request frame sent over the RPC websocket."""

    id: Union[int, str]
    method: str
    params: dict[str, Any] = Field(default_factory=dict)


class RpcErrorBody(BaseModel):
    """Error details in an RPC reply."""

    code: int
    message: str


class RpcResponse(BaseModel):
    """A reply frame. Exactly one of result and error is set."""

    id: Optional[Union[int, str]] = None
    result: Optional[Any] = None
    error: Optional[RpcErrorBody] = None


class HealthResponse(BaseModel):
    """Health check response."""

    status: str = "healthy"
    version: str = "1.0.0"
    task_count: int = 0


# Error codes follow JSON-RPC 2.0
PARSE_ERROR = -32700
INVALID_REQUEST = -32600
METHOD_NOT_FOUND = -32601
INVALID_PARAMS = -32602
