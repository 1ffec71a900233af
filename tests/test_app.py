# tests/test_app.py
import json
import logging
import pytest

from app import setup_logging
from clipsync.config import Settings
from clipsync.server import RelayServer
from clipsync.store import ClipboardStore
from conftest import PAGES
from wsclient import recv_text, send_text, ws_connect


@pytest.mark.asyncio
async def test_history_and_diag_log_follow_settings(tmp_path):
    cfg = Settings(HOST="127.0.0.1", PORT=0)
    assert cfg.HISTORY_FILE == str(tmp_path / "history.json")
    assert cfg.DIAG_LOG == str(tmp_path / "diag.log")
    diag = logging.getLogger("clip_diag")
    setup_logging(cfg)
    try:
        store = ClipboardStore(cfg.HISTORY_FILE, max_items=cfg.HISTORY_LIMIT)
        srv = RelayServer.from_settings(cfg, PAGES.get, on_message=store)
        await srv.start()
        try:
            r, w, _ = await ws_connect(srv.port)
            await send_text(w, "saved")
            assert await recv_text(r) == "saved"
            w.close()
        finally:
            await srv.stop()
    finally:
        for handler in list(diag.handlers):
            diag.removeHandler(handler)
            handler.close()
    saved = json.loads((tmp_path / "history.json").read_text(encoding="utf-8"))
    assert saved[0]["content"] == "saved"
    assert "| 5 chars" in (tmp_path / "diag.log").read_text(encoding="utf-8")
