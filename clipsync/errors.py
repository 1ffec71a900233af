"""
Exceptions raised by the relay core.
"""


class ClipSyncError(Exception): ...


class BindError(ClipSyncError):
    """The listening socket could not be opened."""

    def __init__(self, host: str, port: int, reason: Exception):
        super().__init__(f"cannot listen on {host}:{port}: {reason}")
        self.host = host
        self.port = port
        self.reason = reason


class MalformedRequest(ClipSyncError): ...


class HandshakeMissingKey(MalformedRequest):
    def __init__(self):
        super().__init__("upgrade request without Sec-WebSocket-Key")


class FrameError(ClipSyncError): ...


class FrameIncomplete(FrameError):
    """More bytes are needed before the frame can be decoded."""


class FrameInvalid(FrameError): ...


class FrameClosed(FrameError):
    """The peer sent a close frame."""

    def __init__(self, payload: bytes = b""):
        super().__init__("close frame received")
        self.payload = payload


class PeerSendFailure(ClipSyncError):
    def __init__(self, peer, reason: Exception):
        super().__init__(f"send to {peer} failed: {reason!r}")
        self.peer = peer
        self.reason = reason
