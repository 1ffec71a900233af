"""
Minimal HTTP/1.1 handling: request parsing, upgrade detection and the few
responses the relay ever sends.
"""

from typing import Dict, NamedTuple, Union

from .errors import HandshakeMissingKey, MalformedRequest
from .handshake import compute_accept_key

DEFAULT_RESOURCE = "index.html"
HEAD_TERMINATOR = b"\r\n\r\n"


class Request(NamedTuple):
    method: str
    path: str
    headers: Dict[str, str]


class UpgradeRequest(NamedTuple):
    key: str


class ResourceRequest(NamedTuple):
    path: str


def parse_request(raw: str) -> Request:
    """
    Split a request head into method, path and headers.

    Header names keep their original spelling; a repeated name keeps the
    last value.
    """
    lines = raw.split("\r\n")
    parts = lines[0].split(" ")
    if len(parts) < 2 or not parts[0]:
        raise MalformedRequest(f"bad request line: {lines[0][:80]!r}")

    headers = {}
    for line in lines[1:]:
        if not line:
            break
        name, sep, value = line.partition(":")
        if not sep:
            continue
        headers[name.strip()] = value.strip()
    return Request(parts[0], parts[1], headers)


def is_upgrade(request: Request) -> bool:
    return any(
        name.lower() == "upgrade" and "websocket" in value.lower()
        for name, value in request.headers.items()
    )


def resource_name(path: str) -> str:
    """
    '/' and '' map to the default resource, '/app.js?v=2' to 'app.js'.
    """
    path = path.split("?", 1)[0].split("#", 1)[0]
    name = path.lstrip("/")
    return name or DEFAULT_RESOURCE


def classify(raw: str) -> Union[UpgradeRequest, ResourceRequest]:
    """
    Decide what an incoming request wants.

    :raises MalformedRequest: the request line cannot be parsed
    :raises HandshakeMissingKey: upgrade requested without a key
    """
    request = parse_request(raw)
    if is_upgrade(request):
        key = request.headers.get("Sec-WebSocket-Key", "").strip()
        if not key:
            raise HandshakeMissingKey()
        return UpgradeRequest(key)
    return ResourceRequest(resource_name(request.path))


def ok_response(content_type: str, body: bytes) -> bytes:
    head = (
        "HTTP/1.1 200 OK\r\n"
        f"Content-Type: {content_type}\r\n"
        f"Content-Length: {len(body)}\r\n"
        "Connection: close\r\n"
        "\r\n"
    )
    return head.encode("latin-1") + body


def not_found_response() -> bytes:
    return (
        b"HTTP/1.1 404 Not Found\r\n"
        b"Content-Length: 0\r\n"
        b"Connection: close\r\n"
        b"\r\n"
    )


def switching_protocols_response(client_key: str) -> bytes:
    return (
        "HTTP/1.1 101 Switching Protocols\r\n"
        "Upgrade: websocket\r\n"
        "Connection: Upgrade\r\n"
        f"Sec-WebSocket-Accept: {compute_accept_key(client_key)}\r\n"
        "\r\n"
    ).encode("ascii")
