"""
Derivation of the Sec-WebSocket-Accept value for the opening handshake.
"""

import base64
import hashlib

WS_GUID = "258EAFA5-E914-47DA-95CA-C5AB0DC85B11"


def compute_accept_key(client_key: str) -> str:
    """
    base64(SHA-1(client_key + GUID)).

    :param client_key: value of the request's Sec-WebSocket-Key header
    :return: value for the response's Sec-WebSocket-Accept header
    """
    digest = hashlib.sha1((client_key + WS_GUID).encode("utf-8")).digest()
    return base64.b64encode(digest).decode("ascii")
