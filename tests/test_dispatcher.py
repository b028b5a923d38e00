"""Tests for single-message JSON-RPC dispatch."""

import json

import pytest

from mido_mcp import __version__
from mido_mcp.mcp.dispatcher import MessageDispatcher, requests_initialize, wrap_tool_content
from mido_mcp.mcp.protocol import PROTOCOL_VERSION, Method


@pytest.fixture
def dispatcher(registry, make_settings):
    return MessageDispatcher(registry, make_settings())


@pytest.mark.anyio
async def test_ping_returns_empty_object(dispatcher):
    outcome = await dispatcher.process({"jsonrpc": "2.0", "id": 1, "method": "ping"})

    assert outcome.response == {"jsonrpc": "2.0", "id": 1, "result": {}}


@pytest.mark.anyio
async def test_initialize_reports_protocol_and_server(dispatcher):
    outcome = await dispatcher.process({"jsonrpc": "2.0", "id": 0, "method": "initialize", "params": {}})

    result = outcome.response["result"]
    assert result["protocolVersion"] == PROTOCOL_VERSION
    assert result["capabilities"] == {"tools": {"listChanged": False}}
    assert result["serverInfo"]["version"] == __version__
    assert outcome.opens_session is True


@pytest.mark.anyio
async def test_initialize_as_notification_does_not_open_session(dispatcher):
    outcome = await dispatcher.process({"jsonrpc": "2.0", "method": "initialize"})

    assert outcome.response is None
    assert outcome.opens_session is False


@pytest.mark.anyio
@pytest.mark.parametrize(
    "method",
    ["initialized", "notifications/initialized", "notifications/cancelled"],
)
async def test_notification_methods_never_respond(dispatcher, method):
    with_id = await dispatcher.process({"jsonrpc": "2.0", "id": 5, "method": method})
    without_id = await dispatcher.process({"jsonrpc": "2.0", "method": method})

    assert with_id.notification and with_id.response is None
    assert without_id.notification and without_id.response is None


@pytest.mark.anyio
async def test_null_id_is_a_request(dispatcher):
    outcome = await dispatcher.process({"jsonrpc": "2.0", "id": None, "method": "ping"})

    assert outcome.response == {"jsonrpc": "2.0", "id": None, "result": {}}


@pytest.mark.anyio
async def test_unknown_method(dispatcher):
    outcome = await dispatcher.process({"jsonrpc": "2.0", "id": "a", "method": "resources/list"})

    assert outcome.response["error"] == {"code": -32601, "message": "Unknown method: resources/list"}
    assert "result" not in outcome.response


@pytest.mark.anyio
async def test_missing_method_is_invalid_request(dispatcher):
    outcome = await dispatcher.process({"jsonrpc": "2.0", "id": 3})

    assert outcome.response["id"] == 3
    assert outcome.response["error"]["code"] == -32600


@pytest.mark.anyio
async def test_tools_list_uses_catalog(dispatcher, registry):
    outcome = await dispatcher.process({"jsonrpc": "2.0", "id": 2, "method": "tools/list"})

    tools = outcome.response["result"]["tools"]
    assert [t["name"] for t in tools] == registry.names
    assert {"name", "description", "inputSchema"} <= set(tools[0])


@pytest.mark.anyio
async def test_tools_call_unknown_tool(dispatcher):
    outcome = await dispatcher.process(
        {"jsonrpc": "2.0", "id": "x", "method": "tools/call", "params": {"name": "nonexistent"}}
    )

    assert outcome.response == {
        "jsonrpc": "2.0",
        "id": "x",
        "error": {"code": -32601, "message": "Unknown tool: nonexistent"},
    }


@pytest.mark.anyio
@pytest.mark.parametrize(
    "params, message",
    [
        ({}, "Unknown tool: "),
        ({"name": None}, "Unknown tool: "),
        ({"name": 123}, "Unknown tool: 123"),
    ],
)
async def test_tools_call_unresolvable_name(dispatcher, params, message):
    outcome = await dispatcher.process({"jsonrpc": "2.0", "id": 9, "method": "tools/call", "params": params})

    assert outcome.response["error"] == {"code": -32601, "message": message}


@pytest.mark.anyio
async def test_tools_call_text_content(dispatcher):
    outcome = await dispatcher.process(
        {
            "jsonrpc": "2.0",
            "id": 4,
            "method": "tools/call",
            "params": {"name": "greet", "arguments": {"name": "MIDO"}},
        }
    )

    assert outcome.response["result"] == {"content": [{"type": "text", "text": "Hello, MIDO"}]}


@pytest.mark.anyio
async def test_tools_call_structured_content_is_serialized(dispatcher):
    outcome = await dispatcher.process(
        {
            "jsonrpc": "2.0",
            "id": 4,
            "method": "tools/call",
            "params": {"name": "echo", "arguments": {"ticker": "IWDA.AS"}},
        }
    )

    block = outcome.response["result"]["content"][0]
    assert block["type"] == "text"
    assert json.loads(block["text"]) == {"echo": {"ticker": "IWDA.AS"}}


@pytest.mark.anyio
async def test_tool_failure_is_internal_error_with_message(dispatcher):
    outcome = await dispatcher.process(
        {"jsonrpc": "2.0", "id": 7, "method": "tools/call", "params": {"name": "boom"}}
    )

    assert outcome.response["error"] == {
        "code": -32603,
        "message": "Internal error: upstream feed unavailable",
    }


@pytest.mark.anyio
async def test_tool_failure_message_can_be_sanitized(registry, make_settings):
    dispatcher = MessageDispatcher(registry, make_settings(mcp_sanitize_internal_errors=True))

    outcome = await dispatcher.process(
        {"jsonrpc": "2.0", "id": 7, "method": "tools/call", "params": {"name": "boom"}}
    )

    assert outcome.response["error"] == {"code": -32603, "message": "Internal error"}


@pytest.mark.anyio
async def test_tool_call_notification_still_runs(dispatcher, registry):
    outcome = await dispatcher.process(
        {"jsonrpc": "2.0", "method": "tools/call", "params": {"name": "greet", "arguments": {"name": "x"}}}
    )

    assert outcome.response is None
    assert registry.calls == [{"name": "x"}]


@pytest.mark.anyio
async def test_failed_notification_stays_silent(dispatcher):
    outcome = await dispatcher.process({"jsonrpc": "2.0", "method": "no/such/method"})

    assert outcome.error is not None
    assert outcome.response is None


def test_method_parse():
    assert Method.parse("tools/call") is Method.TOOLS_CALL
    assert Method.parse("tools/unknown") is None
    assert Method.NOTIFICATIONS_CANCELLED.is_notification
    assert not Method.PING.is_notification


def test_requests_initialize():
    assert requests_initialize({"method": "initialize"})
    assert requests_initialize([{"method": "ping"}, {"method": "initialize"}])
    assert not requests_initialize([1, {"method": "ping"}])
    assert not requests_initialize({"method": "ping"})


def test_wrap_tool_content_keeps_unicode():
    wrapped = wrap_tool_content({"amount": "€25.000"})

    assert "€25.000" in wrapped["content"][0]["text"]
