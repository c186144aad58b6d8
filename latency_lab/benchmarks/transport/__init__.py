"""
Transport benchmarks - websocket RPC vs plain HTTP.
"""

from .benchmark import (
    compare_rpc_vs_http,
    http_fetch_tasks,
    rpc_fetch_tasks,
    transport_arms,
)
from .rpc import RpcClient, RpcError, rpc_url

__all__ = [
    "compare_rpc_vs_http",
    "http_fetch_tasks",
    "rpc_fetch_tasks",
    "transport_arms",
    "RpcClient",
    "RpcError",
    "rpc_url",
]
