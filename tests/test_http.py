# tests/test_http.py
import pytest

from clipsync import http
from clipsync.errors import HandshakeMissingKey, MalformedRequest
from clipsync.handshake import compute_accept_key
from wsclient import upgrade_request


def test_rfc_accept_key():
    assert compute_accept_key("dGhlIHNhbXBsZSBub25jZQ==") == "s3pPLMBiTxaQ9kYGzzhZRbK+xOo="


def test_root_is_default_resource():
    assert http.classify("GET / HTTP/1.1\r\nHost: x\r\n\r\n") == http.ResourceRequest("index.html")


@pytest.mark.parametrize("path,name", [
    ("/styles.css", "styles.css"), ("/app.js?v=3", "app.js"), ("", "index.html"), ("/#top", "index.html"),
])
def test_resource_names(path, name):
    assert http.resource_name(path) == name


def test_any_method_is_a_resource_request():
    assert http.classify("POST /app.js HTTP/1.1\r\n\r\n") == http.ResourceRequest("app.js")


def test_upgrade_request():
    raw = upgrade_request("dGhlIHNhbXBsZSBub25jZQ==").decode()
    assert http.classify(raw) == http.UpgradeRequest("dGhlIHNhbXBsZSBub25jZQ==")


def test_upgrade_header_case_insensitive():
    raw = "GET /ws HTTP/1.1\r\nupgrade: WebSocket\r\nSec-WebSocket-Key:  abc==  \r\n\r\n"
    assert http.classify(raw) == http.UpgradeRequest("abc==")


def test_upgrade_without_key():
    with pytest.raises(HandshakeMissingKey):
        http.classify("GET / HTTP/1.1\r\nUpgrade: websocket\r\n\r\n")


@pytest.mark.parametrize("raw", ["", "GET\r\n\r\n", " / HTTP/1.1\r\n\r\n"])
def test_malformed(raw):
    with pytest.raises(MalformedRequest):
        http.classify(raw)


def test_headers_last_set_wins():
    req = http.parse_request("GET / HTTP/1.1\r\nX-A: 1\r\nX-A: 2\r\nbroken line\r\n\r\nbody: ignored")
    assert req.method == "GET" and req.path == "/"
    assert req.headers == {"X-A": "2"}


def test_responses():
    ok = http.ok_response("text/css; charset=utf-8", b"a{}")
    assert ok.startswith(b"HTTP/1.1 200 OK\r\n")
    assert b"Content-Type: text/css; charset=utf-8\r\n" in ok
    assert b"Content-Length: 3\r\n" in ok and b"Connection: close\r\n" in ok
    assert ok.endswith(b"\r\n\r\na{}")
    assert http.not_found_response().startswith(b"HTTP/1.1 404 Not Found\r\n")
    switching = http.switching_protocols_response("dGhlIHNhbXBsZSBub25jZQ==")
    assert b"HTTP/1.1 101 Switching Protocols\r\n" in switching
    assert b"Sec-WebSocket-Accept: s3pPLMBiTxaQ9kYGzzhZRbK+xOo=\r\n" in switching
