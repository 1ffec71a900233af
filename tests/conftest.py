from __future__ import annotations
import pytest, pytest_asyncio

from clipsync.server import RelayServer

PAGES = {
    "index.html": ("text/html; charset=utf-8", b"<h1>ClipSync</h1>"),
    "app.js": ("text/javascript; charset=utf-8", b"console.log(1)"),
}


@pytest.fixture(autouse=True)
def _env_isolation(tmp_path, monkeypatch):
    """history and diagnostics go to temporary files"""
    monkeypatch.setenv("HISTORY_FILE", str(tmp_path / "history.json"))
    monkeypatch.setenv("DIAG_LOG", str(tmp_path / "diag.log"))
    yield


@pytest.fixture
def received():
    return []


@pytest_asyncio.fixture
async def relay(received):
    srv = RelayServer(PAGES.get, on_message=received.append, host="127.0.0.1", port=0, send_timeout=1.0)
    await srv.start()
    yield srv
    await srv.stop()
