"""MCP protocol layer: transport, sessions and JSON-RPC dispatch."""

from .dispatcher import BatchProcessor, MessageDispatcher
from .server import create_mcp_server
from .session import InMemorySessionStore, SessionStore
from .tools import ToolRegistry, UnknownTool, build_tool_registry

__all__ = [
    "BatchProcessor",
    "InMemorySessionStore",
    "MessageDispatcher",
    "SessionStore",
    "ToolRegistry",
    "UnknownTool",
    "build_tool_registry",
    "create_mcp_server",
]
