"""Server-to-client notification stream (``GET /mcp``).

The stream currently carries keep-alive comments only; it is the place where
server-initiated notifications will be pushed. It ends after
``max_duration_sec`` or when the peer goes away, whichever comes first.

Keep-alives after the first one come from sse-starlette's ping ticker, so the
handler spends its life in cancellable ``asyncio.sleep`` calls instead of
holding a worker.
"""

from __future__ import annotations

import asyncio
import time
from typing import AsyncIterator, Callable, Mapping

from fastapi import Request
from sse_starlette.sse import EventSourceResponse, ServerSentEvent

from mido_mcp.utils import get_logger

SSE_HEADERS = {
    "Cache-Control": "no-cache, no-store, must-revalidate",
    "Connection": "keep-alive",
    "X-Accel-Buffering": "no",
    "X-Content-Type-Options": "nosniff",
}


def keep_alive_event() -> ServerSentEvent:
    return ServerSentEvent(comment="keep-alive")


class NotificationStream:
    def __init__(
        self,
        keepalive_sec: float = 15.0,
        max_duration_sec: float = 300.0,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.keepalive_sec = keepalive_sec
        self.max_duration_sec = max_duration_sec
        self._clock = clock
        self.logger = get_logger("mcp.stream")

    async def events(self, request: Request) -> AsyncIterator[ServerSentEvent]:
        """Yield the opening keep-alive, then idle until the deadline or disconnect."""
        started = self._clock()
        reason = "max_duration"
        self.logger.info("sse_connection_started", client=_client(request))
        try:
            yield keep_alive_event()
            while True:
                remaining = self.max_duration_sec - (self._clock() - started)
                if remaining <= 0:
                    break
                if await request.is_disconnected():
                    reason = "disconnected"
                    break
                await asyncio.sleep(min(self.keepalive_sec, remaining))
        except asyncio.CancelledError:
            reason = "cancelled"
            raise
        finally:
            self.logger.info(
                "sse_connection_closed",
                client=_client(request),
                reason=reason,
                duration_sec=round(self._clock() - started, 3),
            )

    def open(self, request: Request, headers: Mapping[str, str] | None = None) -> EventSourceResponse:
        return EventSourceResponse(
            self.events(request),
            ping=self.keepalive_sec,
            ping_message_factory=keep_alive_event,
            headers={**SSE_HEADERS, **(headers or {})},
        )


def _client(request: Request) -> str | None:
    return request.client.host if request.client else None
