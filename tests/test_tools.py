"""Tests for the tool registry and the bundled drawdown tool."""

from unittest.mock import AsyncMock

import pytest

from mido_mcp.mcp import ToolRegistry, UnknownTool, build_tool_registry

DRAWDOWN = {
    "index": "IWDA.AS",
    "lookback_days": 252,
    "current_price": 92.0,
    "high_52w": 100.0,
    "high_52w_date": "2024-06-03",
    "drawdown_pct": -8.0,
    "phase": "Minor pullback",
    "currency": "EUR",
}


@pytest.fixture
def calculator():
    calc = AsyncMock()
    calc.get_drawdown.return_value = DRAWDOWN
    return calc


def test_duplicate_registration_rejected():
    registry = ToolRegistry()
    registry.register("a", "first", {"type": "object"}, lambda arguments: "a")

    with pytest.raises(ValueError):
        registry.register("a", "again", {"type": "object"}, lambda arguments: "b")


def test_decorator_registers_in_order():
    registry = ToolRegistry()

    @registry.tool("first", "First tool", {"type": "object"})
    def first(arguments):
        return "1"

    @registry.tool("second", "Second tool", {"type": "object"})
    def second(arguments):
        return "2"

    assert registry.names == ["first", "second"]
    assert registry.list_tools()[0] == {
        "name": "first",
        "description": "First tool",
        "inputSchema": {"type": "object"},
    }


@pytest.mark.anyio
async def test_invoke_unknown_tool():
    with pytest.raises(UnknownTool) as excinfo:
        await ToolRegistry().invoke("missing", {})

    assert excinfo.value.name == "missing"
    assert str(excinfo.value) == "Unknown tool: missing"


@pytest.mark.anyio
async def test_invoke_normalizes_arguments(registry):
    assert await registry.invoke("echo", None) == {"echo": {}}
    assert await registry.invoke("greet", {"name": "desk"}) == "Hello, desk"


def test_build_tool_registry(calculator):
    registry = build_tool_registry(calculator)

    assert registry.names == ["mido_drawdown_calculator"]
    schema = registry.list_tools()[0]["inputSchema"]
    assert set(schema["properties"]) == {"index", "lookback_days", "format"}


@pytest.mark.anyio
async def test_drawdown_tool_markdown_by_default(calculator):
    registry = build_tool_registry(calculator)

    text = await registry.invoke("mido_drawdown_calculator", {})

    assert isinstance(text, str)
    assert "| Phase | Minor pullback |" in text
    calculator.get_drawdown.assert_awaited_once_with("IWDA.AS", 252)


@pytest.mark.anyio
async def test_drawdown_tool_json(calculator):
    registry = build_tool_registry(calculator)

    data = await registry.invoke(
        "mido_drawdown_calculator",
        {"index": "SPY", "lookback_days": 100, "format": "json"},
    )

    assert data == DRAWDOWN
    calculator.get_drawdown.assert_awaited_once_with("SPY", 100)
