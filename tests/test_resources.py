# tests/test_resources.py
from clipsync.config import Settings
from clipsync.resources import Resource, StaticResources, content_type_for
from clipsync.utils import get_local_ip


def test_from_directory(tmp_path):
    (tmp_path / "index.html").write_bytes(b"<p>hi</p>")
    (tmp_path / "logo.png").write_bytes(b"\x89PNG")
    (tmp_path / "sub").mkdir()
    res = StaticResources.from_directory(str(tmp_path))
    assert res.names() == ["index.html", "logo.png"]
    assert res.resolve("index.html") == Resource("text/html; charset=utf-8", b"<p>hi</p>")
    assert res.resolve("logo.png").content_type == "image/png"
    assert res.resolve("sub") is None
    assert res.resolve("missing.css") is None


def test_content_types():
    assert content_type_for("styles.css") == "text/css; charset=utf-8"
    assert content_type_for("app.js").endswith("javascript; charset=utf-8")
    assert content_type_for("blob") == "application/octet-stream"


def test_bundled_web_client():
    res = StaticResources.bundled()
    for name in ("index.html", "styles.css", "app.js"):
        assert res.resolve(name) is not None
    assert b"new WebSocket" in res.resolve("app.js").body


def test_settings_from_environment(monkeypatch):
    monkeypatch.setenv("PORT", "4848")
    monkeypatch.setenv("send_timeout", "0.5")
    settings = Settings()
    assert settings.PORT == 4848
    assert settings.SEND_TIMEOUT == 0.5
    assert settings.HISTORY_LIMIT == 20
    assert settings.WEB_ROOT is None


def test_local_ip_is_ipv4():
    parts = get_local_ip().split(".")
    assert len(parts) == 4 and all(p.isdigit() for p in parts)
