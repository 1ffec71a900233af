"""
Broadcast: registry of upgraded WebSocket connections and fan-out of text
messages to them.
"""

import asyncio
import logging
from typing import Optional

from . import frames
from .errors import PeerSendFailure

DEFAULT_SEND_TIMEOUT = 5.0
CLOSE_TIMEOUT = 1.0


class Connection:
    """
    One accepted socket. Owned by the server task that accepted it.
    """

    def __init__(self, writer: asyncio.StreamWriter):
        self.writer = writer
        self.peer = writer.get_extra_info("peername")

    async def send(self, data: bytes, timeout: Optional[float] = None):
        """
        Write ``data`` and wait until the transport has taken it.

        :raises PeerSendFailure: the peer is gone or did not drain in time
        """
        try:
            if self.writer.is_closing():
                raise ConnectionResetError("connection is closing")
            self.writer.write(data)
            await asyncio.wait_for(self.writer.drain(), timeout)
        except (OSError, asyncio.TimeoutError) as exc:
            raise PeerSendFailure(self.peer, exc) from exc

    def close(self):
        """Graceful close: pending output is flushed first."""
        if not self.writer.is_closing():
            self.writer.close()

    def abort(self):
        """Drop the socket at once, discarding unsent output."""
        self.writer.transport.abort()

    async def wait_closed(self, timeout: float = CLOSE_TIMEOUT):
        try:
            await asyncio.wait_for(self.writer.wait_closed(), timeout)
        except asyncio.TimeoutError:
            # the peer stopped reading and the buffer never flushed
            self.abort()
        except OSError:
            pass  # already reset by the peer

    def __repr__(self):
        return f"<Connection {self.peer}>"


class ConnectionRegistry:
    """
    Set of live connections shared by all connection tasks.
    """

    def __init__(self, send_timeout: float = DEFAULT_SEND_TIMEOUT):
        self.send_timeout = send_timeout
        self._connections = set()
        self._lock = asyncio.Lock()
        self._drops = set()

    async def add(self, conn: Connection):
        async with self._lock:
            self._connections.add(conn)
            total = len(self._connections)
        logging.info(f"WS client added {conn.peer} ({total} connected)")

    async def remove(self, conn: Connection):
        async with self._lock:
            if conn not in self._connections:
                return
            self._connections.discard(conn)
            total = len(self._connections)
        logging.info(f"WS client removed {conn.peer} ({total} connected)")

    def count(self) -> int:
        return len(self._connections)

    def snapshot(self):
        return list(self._connections)

    async def broadcast(self, message: str, exclude: Optional[Connection] = None) -> int:
        """
        Send ``message`` to every registered connection.

        The frame is encoded once. Peers are written concurrently; a peer
        that fails or does not drain within ``send_timeout`` is closed and
        removed without affecting the others.

        :param message: text to send
        :param exclude: connection that should not receive it (usually the sender)
        :return: number of peers that received the message
        """
        data = frames.encode(message)
        async with self._lock:
            targets = [c for c in self._connections if c is not exclude]
        if not targets:
            return 0

        results = await asyncio.gather(
            *(conn.send(data, self.send_timeout) for conn in targets),
            return_exceptions=True,
        )
        delivered = 0
        for conn, result in zip(targets, results):
            if isinstance(result, PeerSendFailure):
                logging.warning(f"Dropping WS client after failed send: {result}")
                self._schedule_drop(conn)
            elif isinstance(result, BaseException):
                logging.error(f"Unexpected error sending to {conn.peer}", exc_info=result)
                self._schedule_drop(conn)
            else:
                delivered += 1
        return delivered

    def _schedule_drop(self, conn: Connection):
        task = asyncio.ensure_future(self._drop(conn))
        self._drops.add(task)
        task.add_done_callback(self._drops.discard)

    async def _drop(self, conn: Connection):
        await self.remove(conn)
        # abort, not close: the handler's pending read must see EOF
        conn.abort()

    async def close_all(self):
        async with self._lock:
            connections = list(self._connections)
            self._connections.clear()
        for conn in connections:
            conn.abort()
        for conn in connections:
            await conn.wait_closed()
