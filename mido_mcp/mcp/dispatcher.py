"""JSON-RPC message dispatch.

``MessageDispatcher`` handles exactly one decoded message and returns a
``DispatchResult`` value: either a result, a coded ``ProtocolError``, or a
notification marker meaning no response is ever emitted.

``BatchProcessor`` applies the dispatcher to a single message or a batch and
decides the HTTP shape: ``202`` with an empty body when nothing needs an
answer, ``200`` with the response (or array of responses) otherwise. It also
mints the session after a successful ``initialize``.
"""

from __future__ import annotations

import json
from dataclasses import dataclass
from typing import Any, Optional

from mido_mcp import __version__
from mido_mcp.config import Settings, get_settings
from mido_mcp.utils import get_logger

from .protocol import (
    INVALID_REQUEST,
    PROTOCOL_VERSION,
    InternalError,
    InvalidRequest,
    Method,
    MethodNotFound,
    ProtocolError,
    error_response,
    has_id,
    result_response,
)
from .session import SessionStore
from .tools import ToolContent, ToolInvoker, UnknownTool


@dataclass(frozen=True)
class DispatchResult:
    """Outcome of one message. ``result`` and ``error`` are mutually exclusive."""

    method: Optional[Method]
    has_id: bool
    message_id: Any = None
    result: Any = None
    error: Optional[ProtocolError] = None
    notification: bool = False

    @property
    def response(self) -> Optional[dict[str, Any]]:
        """The wire response, or None when the message must stay unanswered."""
        if self.notification or not self.has_id:
            return None
        if self.error is not None:
            return error_response(self.message_id, self.error.code, self.error.message)
        return result_response(self.message_id, self.result)

    @property
    def opens_session(self) -> bool:
        """A successful, answered ``initialize``."""
        return self.method is Method.INITIALIZE and self.error is None and self.response is not None


def wrap_tool_content(content: ToolContent) -> dict[str, Any]:
    """Wrap tool output in an MCP ``content`` envelope."""
    if isinstance(content, str):
        text = content
    else:
        text = json.dumps(content, indent=2, ensure_ascii=False, default=str)
    return {"content": [{"type": "text", "text": text}]}


def requests_initialize(body: Any) -> bool:
    """True when ``body`` is, or (as a batch) contains, an ``initialize`` call."""
    if isinstance(body, dict):
        return body.get("method") == Method.INITIALIZE.value
    if isinstance(body, list):
        return any(
            isinstance(item, dict) and item.get("method") == Method.INITIALIZE.value
            for item in body
        )
    return False


class MessageDispatcher:
    """Route a single JSON-RPC message to its handler."""

    def __init__(self, tools: ToolInvoker, settings: Settings | None = None):
        self.tools = tools
        self.settings = settings or get_settings()
        self.logger = get_logger("mcp.dispatcher")

    def server_info(self) -> dict[str, Any]:
        return {"name": self.settings.server_name, "version": __version__}

    async def process(self, message: dict[str, Any]) -> DispatchResult:
        raw_method = message.get("method")
        message_id = message.get("id")
        with_id = has_id(message)
        method = Method.parse(raw_method) if isinstance(raw_method, str) else None

        if method is not None and method.is_notification:
            self.logger.debug("mcp_notification", method=method.value)
            return DispatchResult(method=method, has_id=with_id, message_id=message_id, notification=True)

        params = message.get("params")
        if not isinstance(params, dict):
            params = {}

        try:
            if not isinstance(raw_method, str):
                raise InvalidRequest("Invalid Request: method must be a string")
            result = await self._call(method, raw_method, params)
        except ProtocolError as e:
            self._log_failure(raw_method, with_id, e)
            return DispatchResult(method=method, has_id=with_id, message_id=message_id, error=e)
        except Exception as e:
            self.logger.exception("jsonrpc_processing_error", method=raw_method, error=str(e))
            return DispatchResult(
                method=method,
                has_id=with_id,
                message_id=message_id,
                error=self._internal_error(e),
            )

        if not with_id:
            self.logger.debug("notification_result_dropped", method=raw_method)
        return DispatchResult(method=method, has_id=with_id, message_id=message_id, result=result)

    async def _call(self, method: Optional[Method], raw_method: str, params: dict[str, Any]) -> Any:
        if method is Method.INITIALIZE:
            return {
                "protocolVersion": PROTOCOL_VERSION,
                "capabilities": {"tools": {"listChanged": False}},
                "serverInfo": self.server_info(),
            }
        if method is Method.TOOLS_LIST:
            return {"tools": self.tools.list_tools()}
        if method is Method.TOOLS_CALL:
            return await self._tools_call(params)
        if method is Method.PING:
            return {}
        raise MethodNotFound(f"Unknown method: {raw_method}")

    async def _tools_call(self, params: dict[str, Any]) -> dict[str, Any]:
        name = params.get("name")
        name = "" if name is None else str(name)
        arguments = params.get("arguments") or {}

        try:
            content = await self.tools.invoke(name, arguments)
        except UnknownTool as e:
            raise MethodNotFound(str(e)) from e

        self.logger.info("tool_called", tool=name)
        return wrap_tool_content(content)

    def _internal_error(self, exc: Exception) -> InternalError:
        if self.settings.mcp_sanitize_internal_errors:
            return InternalError("Internal error")
        return InternalError(f"Internal error: {exc}")

    def _log_failure(self, method: Any, with_id: bool, error: ProtocolError) -> None:
        self.logger.info(
            "jsonrpc_error",
            method=method,
            code=error.code,
            error=error.message,
            notification=not with_id,
        )


@dataclass(frozen=True)
class BatchOutcome:
    """HTTP-facing outcome: status, JSON payload (if any) and a new session id."""

    status_code: int
    payload: Any = None
    session_id: Optional[str] = None


class BatchProcessor:
    """Apply :class:`MessageDispatcher` to one message or a batch."""

    def __init__(self, dispatcher: MessageDispatcher, sessions: SessionStore):
        self.dispatcher = dispatcher
        self.sessions = sessions

    async def process_single(self, message: dict[str, Any]) -> BatchOutcome:
        outcome = await self.dispatcher.process(message)
        response = outcome.response
        if response is None:
            return BatchOutcome(status_code=202)

        session_id = await self.sessions.create() if outcome.opens_session else None
        return BatchOutcome(status_code=200, payload=response, session_id=session_id)

    async def process_batch(self, messages: list[Any]) -> BatchOutcome:
        responses: list[dict[str, Any]] = []
        open_session = False

        for item in messages:
            if not isinstance(item, dict):
                responses.append(error_response(None, INVALID_REQUEST, "Invalid Request"))
                continue

            outcome = await self.dispatcher.process(item)
            if outcome.opens_session:
                open_session = True
            response = outcome.response
            if response is not None:
                responses.append(response)

        if not responses:
            return BatchOutcome(status_code=202)

        # One session per batch, however many initialize calls it carried.
        session_id = await self.sessions.create() if open_session else None
        return BatchOutcome(status_code=200, payload=responses, session_id=session_id)
