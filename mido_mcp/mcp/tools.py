"""Tool catalog and invoker.

The MCP layer only needs two things from the business side: a catalog for
``tools/list`` and ``invoke(name, arguments)`` for ``tools/call``. A tool
returns either text (``str``) or structured content (any JSON-serializable
value); the dispatcher wraps both into MCP content blocks.
"""

from __future__ import annotations

import inspect
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Protocol, Union

from mido_mcp.market.drawdown import (
    DEFAULT_INDEX,
    DEFAULT_LOOKBACK_DAYS,
    DrawdownCalculator,
    format_drawdown_markdown,
)

ToolContent = Union[str, dict, list]
ToolHandler = Callable[[dict[str, Any]], Union[ToolContent, Awaitable[ToolContent]]]


class UnknownTool(LookupError):
    """Raised by ``invoke`` for a name that is not registered."""

    def __init__(self, name: str):
        super().__init__(f"Unknown tool: {name}")
        self.name = name


class ToolInvoker(Protocol):
    def list_tools(self) -> list[dict[str, Any]]: ...

    async def invoke(self, name: str, arguments: dict[str, Any]) -> ToolContent: ...


@dataclass(frozen=True)
class ToolDefinition:
    name: str
    description: str
    input_schema: dict[str, Any]
    handler: ToolHandler = field(repr=False, compare=False)

    def describe(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "description": self.description,
            "inputSchema": self.input_schema,
        }


class ToolRegistry:
    """Name -> handler map implementing ``ToolInvoker``."""

    def __init__(self) -> None:
        self._tools: dict[str, ToolDefinition] = {}

    def register(
        self,
        name: str,
        description: str,
        input_schema: dict[str, Any],
        handler: ToolHandler,
    ) -> None:
        if name in self._tools:
            raise ValueError(f"Tool already registered: {name}")
        self._tools[name] = ToolDefinition(name, description, input_schema, handler)

    def tool(self, name: str, description: str, input_schema: dict[str, Any]):
        """Decorator form of :meth:`register`."""

        def decorator(fn: ToolHandler) -> ToolHandler:
            self.register(name, description, input_schema, fn)
            return fn

        return decorator

    @property
    def names(self) -> list[str]:
        return list(self._tools)

    def list_tools(self) -> list[dict[str, Any]]:
        return [t.describe() for t in self._tools.values()]

    async def invoke(self, name: str, arguments: dict[str, Any]) -> ToolContent:
        definition = self._tools.get(name)
        if definition is None:
            raise UnknownTool(name)
        if not isinstance(arguments, dict):
            arguments = {}
        result = definition.handler(arguments)
        if inspect.isawaitable(result):
            result = await result
        return result


_FORMAT_PROPERTY = {
    "type": "string",
    "enum": ["markdown", "json"],
    "default": "markdown",
    "description": "Output format",
}


def register_drawdown_tool(registry: ToolRegistry, calculator: DrawdownCalculator) -> None:
    """Expose :class:`DrawdownCalculator` as ``mido_drawdown_calculator``."""

    async def _drawdown(arguments: dict[str, Any]) -> ToolContent:
        data = await calculator.get_drawdown(
            str(arguments.get("index") or DEFAULT_INDEX),
            int(arguments.get("lookback_days", DEFAULT_LOOKBACK_DAYS) or DEFAULT_LOOKBACK_DAYS),
        )
        if arguments.get("format") == "json":
            return data
        return format_drawdown_markdown(data)

    registry.register(
        "mido_drawdown_calculator",
        (
            "Calculate MSCI World/IWDA drawdown vs 52-week high. Returns current price, "
            "52w high, drawdown percentage, and phase classification."
        ),
        {
            "type": "object",
            "properties": {
                "index": {
                    "type": "string",
                    "default": DEFAULT_INDEX,
                    "description": "Index/ETF ticker symbol (default: IWDA.AS for iShares MSCI World)",
                },
                "lookback_days": {
                    "type": "integer",
                    "default": DEFAULT_LOOKBACK_DAYS,
                    "minimum": 30,
                    "maximum": 504,
                    "description": "Days for 52-week high calculation (default: 252 trading days)",
                },
                "format": _FORMAT_PROPERTY,
            },
        },
        _drawdown,
    )


def build_tool_registry(calculator: DrawdownCalculator) -> ToolRegistry:
    """Registry with every tool bundled in this package."""
    registry = ToolRegistry()
    register_drawdown_tool(registry, calculator)
    return registry
