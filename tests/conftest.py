import httpx
import pytest

from mido_mcp.config import Settings
from mido_mcp.mcp import InMemorySessionStore, ToolRegistry, create_mcp_server


@pytest.fixture
def anyio_backend():
    return "asyncio"


class FakeClock:
    """Manually advanced epoch-seconds clock."""

    def __init__(self, start: float = 1_700_000_000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def sessions(clock):
    return InMemorySessionStore(ttl_sec=3600, clock=clock)


@pytest.fixture
def registry():
    """Small tool catalog covering text, structured and failing tools."""
    reg = ToolRegistry()
    calls = []

    reg.register(
        "echo",
        "Return the arguments as structured content",
        {"type": "object", "properties": {}},
        lambda arguments: {"echo": arguments},
    )

    async def _greet(arguments):
        calls.append(arguments)
        return f"Hello, {arguments.get('name', 'world')}"

    reg.register(
        "greet",
        "Return a greeting as text",
        {"type": "object", "properties": {"name": {"type": "string"}}},
        _greet,
    )

    def _boom(arguments):
        raise RuntimeError("upstream feed unavailable")

    reg.register("boom", "Always fails", {"type": "object", "properties": {}}, _boom)
    reg.calls = calls
    return reg


@pytest.fixture
def make_settings():
    """Settings built from overrides only, ignoring any local .env file."""

    def _make(**overrides) -> Settings:
        return Settings(_env_file=None, **overrides)

    return _make


@pytest.fixture
def make_app(registry, make_settings):
    def _make(sessions=None, tools=None, **overrides):
        return create_mcp_server(
            tools if tools is not None else registry,
            sessions=sessions,
            settings=make_settings(**overrides),
        )

    return _make


@pytest.fixture
def make_client():
    def _make(app) -> httpx.AsyncClient:
        return httpx.AsyncClient(transport=httpx.ASGITransport(app=app), base_url="http://testserver")

    return _make
