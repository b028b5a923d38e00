import pytest

from mido_mcp.main import MidoMcpServer


@pytest.mark.anyio
async def test_start_stop_manages_sweeper_and_client(monkeypatch):
    server = MidoMcpServer()
    closed = []

    async def fake_close():
        closed.append(True)

    monkeypatch.setattr(server.yahoo, "close", fake_close)

    await server.start()
    assert server.sessions._sweeper is not None
    assert not server.sessions._sweeper.done()

    await server.stop()
    assert server.sessions._sweeper is None
    assert closed == [True]


@pytest.mark.anyio
async def test_app_exposes_drawdown_tool():
    server = MidoMcpServer()
    app = server.create_app()

    assert app.state.sessions is server.sessions
    assert app.state.tools.names == ["mido_drawdown_calculator"]
