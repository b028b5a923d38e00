"""Main entry point for the MIDO MCP Server."""

from __future__ import annotations

import signal
import sys
from contextlib import asynccontextmanager
from typing import AsyncGenerator

import uvicorn
from dotenv import load_dotenv
from fastapi import FastAPI

# Load environment variables before settings are built
load_dotenv()

from mido_mcp.config import get_settings  # noqa: E402
from mido_mcp.market import DrawdownCalculator, YahooChartClient  # noqa: E402
from mido_mcp.mcp import InMemorySessionStore, build_tool_registry, create_mcp_server  # noqa: E402
from mido_mcp.utils import get_logger, setup_logging  # noqa: E402


class MidoMcpServer:
    """Owns the long-lived components and their start/stop lifecycle."""

    def __init__(self):
        self.settings = get_settings()
        self.logger = get_logger("server")

        # Clients
        self.yahoo = YahooChartClient(self.settings)

        # Tools
        self.drawdown = DrawdownCalculator(self.yahoo)
        self.tools = build_tool_registry(self.drawdown)

        # Sessions
        self.sessions = InMemorySessionStore(ttl_sec=self.settings.mcp_session_ttl_sec)

    def create_app(self) -> FastAPI:
        app = create_mcp_server(self.tools, sessions=self.sessions, settings=self.settings)
        app.router.lifespan_context = self.lifespan
        return app

    async def start(self) -> None:
        self.sessions.start_sweeper(self.settings.mcp_session_sweep_interval_sec)
        self.logger.info("server_started", tools=self.tools.names)

    async def stop(self) -> None:
        self.logger.info("stopping_server")
        await self.sessions.stop_sweeper()
        await self.yahoo.close()
        self.logger.info("server_stopped")

    @asynccontextmanager
    async def lifespan(self, app: FastAPI) -> AsyncGenerator[None, None]:
        """FastAPI lifespan context manager."""
        await self.start()
        try:
            yield
        finally:
            await self.stop()


def main():
    """Main entry point."""
    setup_logging()
    logger = get_logger("main")
    settings = get_settings()

    server = MidoMcpServer()
    app = server.create_app()

    def signal_handler(sig, frame):
        logger.info("shutdown_signal_received", signal=sig)
        sys.exit(0)

    signal.signal(signal.SIGINT, signal_handler)
    signal.signal(signal.SIGTERM, signal_handler)

    logger.info("starting_uvicorn", host=settings.mcp_host, port=settings.mcp_port)

    uvicorn.run(
        app,
        host=settings.mcp_host,
        port=settings.mcp_port,
        log_level=settings.log_level.lower(),
        access_log=settings.debug,
    )


if __name__ == "__main__":
    main()
