"""JSON-RPC 2.0 wire types shared by the dispatcher and the HTTP gateway.

Error codes are part of the data contract: every ``ProtocolError`` subclass
carries its JSON-RPC ``code`` as a class attribute, so callers never infer the
code from whichever exception type happened to be caught.
"""

from __future__ import annotations

from enum import Enum
from typing import Any, Optional

JSONRPC_VERSION = "2.0"
PROTOCOL_VERSION = "2025-03-26"

SESSION_HEADER = "Mcp-Session-Id"

PARSE_ERROR = -32700
INVALID_REQUEST = -32600
METHOD_NOT_FOUND = -32601
INTERNAL_ERROR = -32603


class ProtocolError(Exception):
    """Base class for errors reported inside a JSON-RPC error envelope."""

    code: int = INTERNAL_ERROR

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class ParseError(ProtocolError):
    code = PARSE_ERROR


class InvalidRequest(ProtocolError):
    code = INVALID_REQUEST


class MethodNotFound(ProtocolError):
    code = METHOD_NOT_FOUND


class InternalError(ProtocolError):
    code = INTERNAL_ERROR


class Method(str, Enum):
    """Closed set of JSON-RPC methods the server understands."""

    INITIALIZE = "initialize"
    INITIALIZED = "initialized"
    NOTIFICATIONS_INITIALIZED = "notifications/initialized"
    NOTIFICATIONS_CANCELLED = "notifications/cancelled"
    TOOLS_LIST = "tools/list"
    TOOLS_CALL = "tools/call"
    PING = "ping"

    @classmethod
    def parse(cls, name: Any) -> Optional["Method"]:
        """Return the member for ``name`` or None for unknown strings."""
        try:
            return cls(name)
        except ValueError:
            return None

    @property
    def is_notification(self) -> bool:
        """Methods that never produce a response, even when an id is sent."""
        return self in _NOTIFICATION_METHODS


_NOTIFICATION_METHODS = frozenset(
    {
        Method.INITIALIZED,
        Method.NOTIFICATIONS_INITIALIZED,
        Method.NOTIFICATIONS_CANCELLED,
    }
)


def result_response(message_id: Any, result: Any) -> dict[str, Any]:
    return {"jsonrpc": JSONRPC_VERSION, "id": message_id, "result": result}


def error_response(message_id: Any, code: int, message: str) -> dict[str, Any]:
    return {
        "jsonrpc": JSONRPC_VERSION,
        "id": message_id,
        "error": {"code": code, "message": message},
    }


def has_id(message: dict[str, Any]) -> bool:
    """True when the ``id`` key is present, even with a null value.

    A missing key marks a notification; ``"id": null`` is still a request.
    """
    return "id" in message
