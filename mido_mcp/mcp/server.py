"""MCP Server implementation (Streamable HTTP transport).

Routes:

- ``POST /mcp``: JSON-RPC requests, notifications and batches.
- ``GET /mcp``: SSE stream for server-to-client notifications.
- ``DELETE /mcp``: terminate the session named in ``Mcp-Session-Id``.
- ``OPTIONS /mcp``: CORS preflight, always ``204`` with no checks.
- ``GET /mcp/info``: auth-gated descriptor of the server.
- any other verb on ``/mcp``: ``405`` with a JSON-RPC error body.

Admission order on ``/mcp``: bearer token, then Origin, then Accept, then (for
POST) session. Protocol-level failures are returned as HTTP 200 with a
JSON-RPC error body; only transport problems (parse errors, bad verbs, Accept,
auth, origin, unknown sessions) change the HTTP status.

Every response carries the CORS headers below; preflights are answered by the
``OPTIONS`` route rather than ``CORSMiddleware``.
"""

from __future__ import annotations

from typing import Any, Optional

from fastapi import FastAPI, Request, Response
from fastapi.exception_handlers import http_exception_handler
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from mido_mcp import __version__
from mido_mcp.config import Settings, get_settings
from mido_mcp.utils import get_logger, timestamp_ms

from .dispatcher import BatchProcessor, MessageDispatcher, requests_initialize
from .protocol import (
    PROTOCOL_VERSION,
    SESSION_HEADER,
    InvalidRequest,
    ParseError,
    ProtocolError,
    error_response,
)
from .security import AuthGate, OriginGuard, Rejection
from .session import InMemorySessionStore, SessionStore
from .stream import NotificationStream
from .tools import ToolInvoker

CORS_HEADERS = {
    "Access-Control-Allow-Origin": "*",
    "Access-Control-Allow-Methods": "GET, POST, DELETE, OPTIONS",
    "Access-Control-Allow-Headers": "Content-Type, Accept, Authorization, Mcp-Session-Id, Last-Event-ID",
    "Access-Control-Expose-Headers": "Mcp-Session-Id",
    "Access-Control-Max-Age": "86400",
}


def _accepts(request: Request, media_type: str) -> bool:
    accept = request.headers.get("accept", "")
    return accept == "" or media_type in accept or "*/*" in accept


def create_mcp_server(
    tools: ToolInvoker,
    sessions: SessionStore | None = None,
    settings: Settings | None = None,
) -> FastAPI:
    """Create the FastAPI app serving the MCP endpoint.

    Args:
        tools: catalog and invoker for ``tools/list`` / ``tools/call``.
        sessions: session store; an in-memory store is created when omitted.
        settings: defaults to the process-wide settings.
    """

    settings = settings or get_settings()
    logger = get_logger("mcp.server")

    if sessions is None:
        sessions = InMemorySessionStore(ttl_sec=settings.mcp_session_ttl_sec)

    auth = AuthGate(settings.api_token_list)
    origins = OriginGuard(settings.allowed_origin_list, settings.mcp_allow_missing_origin)
    dispatcher = MessageDispatcher(tools, settings)
    batches = BatchProcessor(dispatcher, sessions)
    stream = NotificationStream(
        keepalive_sec=settings.mcp_sse_keepalive_sec,
        max_duration_sec=settings.mcp_sse_max_duration_sec,
    )

    # -------------------------
    # Response helpers
    # -------------------------

    def _cors(response: Response) -> Response:
        response.headers.update(CORS_HEADERS)
        return response

    def _rpc_error(status_code: int, error: ProtocolError) -> Response:
        return _cors(
            JSONResponse(
                status_code=status_code,
                content=error_response(None, error.code, error.message),
            )
        )

    def _reject(rejection: Rejection) -> Response:
        return _rpc_error(rejection.status_code, InvalidRequest(rejection.message))

    def _admit(request: Request, check_origin: bool = True) -> Optional[Response]:
        rejection = auth.check(request.headers)
        if rejection is None and check_origin:
            rejection = origins.check(request.headers.get("origin"))
        if rejection is None:
            return None
        logger.warning(
            "mcp_request_rejected",
            path=request.url.path,
            status=rejection.status_code,
            reason=rejection.message,
        )
        return _reject(rejection)

    async def _check_session(request: Request, body: Any) -> Optional[Response]:
        # initialize is how a session is obtained, so it is never checked
        if requests_initialize(body):
            return None

        session_id = request.headers.get(SESSION_HEADER)
        if session_id is None:
            if settings.mcp_require_session:
                return _rpc_error(400, InvalidRequest(f"{SESSION_HEADER} header required"))
            return None

        if await sessions.touch(session_id) is None:
            logger.info("session_not_found", session_id=session_id)
            return _rpc_error(404, InvalidRequest("Session not found or expired. Please reinitialize."))
        return None

    # -------------------------
    # FastAPI app
    # -------------------------

    app = FastAPI(
        title=settings.server_name,
        description=settings.server_description,
        version=__version__,
    )
    app.state.sessions = sessions
    app.state.tools = tools

    def _tool_names() -> list[str]:
        return [t["name"] for t in tools.list_tools()]

    @app.get("/healthz")
    async def health_check():
        return {
            "status": "healthy",
            "timestamp": timestamp_ms(),
            "service": "mido-mcp",
            "version": __version__,
            "sessions": await sessions.count(),
        }

    @app.get("/")
    async def root():
        return {
            "name": settings.server_name,
            "version": __version__,
            "description": settings.server_description,
            "endpoints": {
                "mcp": "/mcp",
                "info": "/mcp/info",
                "health": "/healthz",
            },
        }

    @app.get("/mcp/info")
    async def mcp_info(request: Request):
        rejected = _admit(request, check_origin=False)
        if rejected is not None:
            return rejected

        return _cors(
            JSONResponse(
                content={
                    "name": settings.server_name,
                    "version": __version__,
                    "description": settings.server_description,
                    "protocol": "MCP Streamable HTTP",
                    "protocolVersion": PROTOCOL_VERSION,
                    "endpoints": {
                        "GET /mcp/info": "This info page",
                        "POST /mcp": "MCP JSON-RPC requests",
                        "GET /mcp": "MCP SSE stream for server notifications",
                        "DELETE /mcp": "Terminate MCP session",
                    },
                    "tools": _tool_names(),
                }
            )
        )

    @app.options("/mcp")
    async def mcp_preflight():
        return _cors(Response(status_code=204))

    @app.get("/mcp")
    async def mcp_stream(request: Request):
        rejected = _admit(request)
        if rejected is not None:
            return rejected

        if not _accepts(request, "text/event-stream"):
            return _rpc_error(406, InvalidRequest("Accept header must include text/event-stream"))

        return stream.open(request, headers=CORS_HEADERS)

    @app.post("/mcp")
    async def mcp_endpoint(request: Request):
        """Streamable HTTP MCP endpoint.

        Responses are always ``application/json``. Payloads that need no
        answer (notifications only) return ``202`` with an empty body.
        """
        rejected = _admit(request)
        if rejected is not None:
            return rejected

        if not _accepts(request, "application/json"):
            return _rpc_error(406, InvalidRequest("Accept header must include application/json"))

        try:
            body = await request.json()
        except ValueError:
            return _rpc_error(400, ParseError("Parse error: invalid JSON"))

        if not isinstance(body, (dict, list)) or body == []:
            return _rpc_error(400, InvalidRequest("Invalid Request"))

        rejected = await _check_session(request, body)
        if rejected is not None:
            return rejected

        if isinstance(body, list):
            outcome = await batches.process_batch(body)
        else:
            outcome = await batches.process_single(body)

        if outcome.payload is None:
            return _cors(Response(status_code=outcome.status_code))

        response = JSONResponse(status_code=outcome.status_code, content=outcome.payload)
        if outcome.session_id is not None:
            response.headers[SESSION_HEADER] = outcome.session_id
        return _cors(response)

    @app.delete("/mcp")
    async def mcp_delete(request: Request):
        rejected = _admit(request)
        if rejected is not None:
            return rejected

        session_id = request.headers.get(SESSION_HEADER)
        if session_id is None:
            return _rpc_error(400, InvalidRequest(f"{SESSION_HEADER} header required"))

        await sessions.delete(session_id)
        return _cors(Response(status_code=204))

    @app.exception_handler(StarletteHTTPException)
    async def http_error(request: Request, exc: StarletteHTTPException):
        # unrouted verbs on /mcp surface as a routing 405
        if exc.status_code == 405 and request.url.path == "/mcp":
            return _rpc_error(405, InvalidRequest("Method not allowed. Use GET, POST, or DELETE."))
        return await http_exception_handler(request, exc)

    return app
