"""Message-bus RPC surface of the input service."""

from __future__ import annotations

from .dispatcher import RpcDispatcher, RpcHandler
from .handlers import INPUT_GIT_PATH, PING_PATH, GitInputHandler, ping, register_input_routes
from .schema import ApiRequest, ApiResponse

__all__ = [
    "INPUT_GIT_PATH",
    "PING_PATH",
    "ApiRequest",
    "ApiResponse",
    "GitInputHandler",
    "RpcDispatcher",
    "RpcHandler",
    "ping",
    "register_input_routes",
]
