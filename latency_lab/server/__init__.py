"""
Demo backend serving task data over HTTP and websocket RPC.
"""

from .app import create_app, handle_rpc_frame
from .models import GetTasksParams, RpcRequest, RpcResponse, Task, TaskStatus
from .tasks import TaskStore, generate_tasks

__all__ = [
    "create_app",
    "handle_rpc_frame",
    "GetTasksParams",
    "RpcRequest",
    "RpcResponse",
    "Task",
    "TaskStatus",
    "TaskStore",
    "generate_tasks",
]
