"""
Relay server: one TCP port that serves the web client over HTTP and speaks
WebSocket to the same clients after an Upgrade.
"""

import asyncio
import inspect
import logging
from typing import Awaitable, Callable, Optional, Tuple, Union

from . import frames, http
from .broadcast import DEFAULT_SEND_TIMEOUT, Connection, ConnectionRegistry
from .errors import BindError, FrameClosed, FrameIncomplete, FrameInvalid, MalformedRequest, PeerSendFailure
from .utils import get_local_ip

DEFAULT_HOST = "0.0.0.0"
DEFAULT_PORT = 3737
MAX_REQUEST_BYTES = 64 * 1024
READ_CHUNK = 64 * 1024

diag = logging.getLogger("clip_diag")

ResourceResolver = Callable[[str], Optional[Tuple[str, bytes]]]
MessageSink = Callable[[str], Union[None, Awaitable[None]]]


def is_coroutine_callable(fn) -> bool:
    return inspect.iscoroutinefunction(fn) or inspect.iscoroutinefunction(getattr(fn, "__call__", None))


class RelayServer:
    """
    Accepts connections, answers resource requests and relays text messages
    between upgraded WebSocket clients.

    :param resolve_resource: name -> (content_type, body) or None
    :param on_message: called once per received message, before the broadcast;
        may be a coroutine function, or a plain callable which then runs in a
        worker thread
    """

    def __init__(
        self,
        resolve_resource: ResourceResolver,
        on_message: Optional[MessageSink] = None,
        host: str = DEFAULT_HOST,
        port: int = DEFAULT_PORT,
        max_request_bytes: int = MAX_REQUEST_BYTES,
        max_message_bytes: int = frames.MAX_PAYLOAD,
        send_timeout: float = DEFAULT_SEND_TIMEOUT,
    ):
        self.resolve_resource = resolve_resource
        self.on_message = on_message
        self._async_sink = is_coroutine_callable(on_message)
        self.host = host
        self.requested_port = port
        self.max_request_bytes = max_request_bytes
        self.max_message_bytes = max_message_bytes
        self.send_timeout = send_timeout
        self.registry = ConnectionRegistry(send_timeout)
        self._server: Optional[asyncio.AbstractServer] = None
        self._loop: Optional[asyncio.AbstractEventLoop] = None
        self._stopped = asyncio.Event()
        self._connections = set()  # every accepted, not yet closed connection
        self._tasks = set()

    @classmethod
    def from_settings(cls, settings, resolve_resource: ResourceResolver, on_message: Optional[MessageSink] = None):
        return cls(
            resolve_resource,
            on_message,
            host=settings.HOST,
            port=settings.PORT,
            max_request_bytes=settings.MAX_REQUEST_BYTES,
            max_message_bytes=settings.MAX_MESSAGE_BYTES,
            send_timeout=settings.SEND_TIMEOUT,
        )

    # --- read-only snapshots ---

    @property
    def is_running(self) -> bool:
        return self._server is not None

    @property
    def client_count(self) -> int:
        return self.registry.count()

    @property
    def port(self) -> int:
        if self._server is not None and self._server.sockets:
            return self._server.sockets[0].getsockname()[1]
        return self.requested_port

    @property
    def url(self) -> str:
        return f"http://{get_local_ip()}:{self.port}"

    # --- lifecycle ---

    async def start(self):
        """
        Open the listening socket.

        :raises BindError: the port cannot be bound
        """
        if self._server is not None:
            return
        try:
            self._server = await asyncio.start_server(
                self._handle_client,
                self.host,
                self.requested_port,
                reuse_address=True,
                limit=self.max_request_bytes,
            )
        except OSError as e:
            raise BindError(self.host, self.requested_port, e) from e
        self._loop = asyncio.get_running_loop()
        self._stopped.clear()
        logging.info(f"Relay listening on {self.host}:{self.port}")

    async def serve_forever(self):
        await self.start()
        try:
            await self._stopped.wait()
        finally:
            await self.stop()

    async def stop(self):
        """
        Stop accepting, close every connection and wait for their tasks.
        """
        if self._server is None:
            return
        server, self._server = self._server, None
        server.close()
        await self.registry.close_all()
        for conn in list(self._connections):
            conn.abort()
        tasks = [t for t in self._tasks if t is not asyncio.current_task()]
        for task in tasks:
            task.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)
        await server.wait_closed()
        self._stopped.set()
        logging.info("Relay stopped")

    # --- outbound ---

    async def broadcast(self, message: str, exclude: Optional[Connection] = None) -> int:
        return await self.registry.broadcast(message, exclude=exclude)

    def publish(self, message: str):
        """
        Broadcast from a thread other than the server's event loop.

        :return: concurrent.futures.Future with the number of peers reached
        """
        if self._loop is None or self._server is None:
            raise RuntimeError("relay is not running")
        return asyncio.run_coroutine_threadsafe(self.broadcast(message), self._loop)

    # --- per connection ---

    async def _handle_client(self, reader: asyncio.StreamReader, writer: asyncio.StreamWriter):
        conn = Connection(writer)
        task = asyncio.current_task()
        self._connections.add(conn)
        self._tasks.add(task)
        logging.info(f"New connection: {conn.peer}")
        completed = False
        try:
            raw = await self._read_request(reader)
            route = http.classify(raw)
            if isinstance(route, http.UpgradeRequest):
                await self._upgrade(conn, reader, route.key)
            else:
                await self._serve_resource(conn, route.path)
            completed = True
        except MalformedRequest as e:
            logging.warning(f"Malformed request from {conn.peer}: {e}")
        except FrameInvalid as e:
            logging.warning(f"Invalid frame from {conn.peer}: {e}")
        except PeerSendFailure as e:
            logging.warning(str(e))
        except (OSError, asyncio.IncompleteReadError) as e:
            logging.info(f"Connection {conn.peer} lost: {e!r}")
        except Exception:
            logging.error(f"Unexpected error on {conn.peer}", exc_info=True)
        finally:
            self._connections.discard(conn)
            self._tasks.discard(task)
            if completed:
                conn.close()
            else:
                conn.abort()
            await self.registry.remove(conn)
            await conn.wait_closed()
            logging.info(f"Connection closed: {conn.peer}")

    async def _read_request(self, reader: asyncio.StreamReader) -> str:
        # the head may arrive over several reads; wait for the blank line
        try:
            head = await reader.readuntil(http.HEAD_TERMINATOR)
        except asyncio.IncompleteReadError as e:
            raise MalformedRequest(f"connection closed after {len(e.partial)} bytes of request") from e
        except asyncio.LimitOverrunError as e:
            raise MalformedRequest(f"request head exceeds {self.max_request_bytes} bytes") from e
        try:
            return head.decode("utf-8")
        except UnicodeDecodeError as e:
            raise MalformedRequest("request head is not UTF-8") from e

    async def _serve_resource(self, conn: Connection, name: str):
        resource = self.resolve_resource(name)
        if resource is None:
            logging.info(f"404 {name!r} for {conn.peer}")
            await conn.send(http.not_found_response(), self.send_timeout)
            return
        content_type, body = resource
        logging.info(f"200 {name!r} ({len(body)} bytes) for {conn.peer}")
        await conn.send(http.ok_response(content_type, body), self.send_timeout)

    async def _upgrade(self, conn: Connection, reader: asyncio.StreamReader, key: str):
        try:
            await conn.send(http.switching_protocols_response(key), self.send_timeout)
        except PeerSendFailure as e:
            logging.warning(f"Handshake with {conn.peer} failed: {e}")
            return
        await self.registry.add(conn)
        await self._receive_loop(conn, reader)

    async def _receive_loop(self, conn: Connection, reader: asyncio.StreamReader):
        buffer = bytearray()
        while True:
            try:
                frame, consumed = frames.parse_frame(buffer, self.max_message_bytes)
            except FrameIncomplete:
                chunk = await reader.read(READ_CHUNK)
                if not chunk:
                    logging.info(f"Peer {conn.peer} disconnected")
                    return
                buffer += chunk
                continue
            del buffer[:consumed]

            if frame.opcode == frames.OP_PING:
                await conn.send(frames.encode_frame(frames.OP_PONG, frame.payload), self.send_timeout)
                continue
            if frame.opcode == frames.OP_PONG:
                continue
            try:
                message = frames.text_of(frame)
            except FrameClosed as e:
                logging.info(f"Peer {conn.peer} sent close")
                await self.registry.remove(conn)
                try:
                    await conn.send(frames.close_frame(e.payload), self.send_timeout)
                except PeerSendFailure:
                    pass  # peer already went away
                return
            await self._dispatch(conn, message)

    async def _dispatch(self, conn: Connection, message: str):
        logging.info(f"Message from {conn.peer}: {len(message)} chars")
        logging.debug(f"Message text: {message!r}")
        diag.info(f"{conn.peer} | {len(message)} chars")
        if self.on_message is not None:
            try:
                if self._async_sink:
                    await self.on_message(message)
                else:
                    # plain sinks may touch the disk; keep them off the loop
                    await asyncio.to_thread(self.on_message, message)
            except Exception:
                logging.error("Message sink failed", exc_info=True)
        reached = await self.registry.broadcast(message)
        logging.debug(f"Broadcast reached {reached} clients")
