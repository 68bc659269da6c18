"""HTTP catcher that logs every request and always answers 200."""

from __future__ import annotations

import socket
import sys
import threading
from collections.abc import Iterable
from datetime import datetime
from email.message import Message
from http.server import BaseHTTPRequestHandler, ThreadingHTTPServer
from typing import BinaryIO

from ..common.exceptions import ListenerClosedError, ListenerError
from ..common.logging import get_logger
from .base import BaseListener, close_socket
from .models import EventKind, ListenerDescriptor, ListenerState, ListenerType

logger = get_logger(__name__)

MAX_HTTP_BODY_LOG_SIZE = 1024 * 1024
ENTRY_DELIMITER = b"----\n"
RESPONSE_BODY = b"ok\n"
_MAX_LINE = 65536


def canonical_header_key(key: str) -> str:
    """``content-type`` -> ``Content-Type``."""
    return "-".join(part.capitalize() for part in key.split("-"))


def _read_chunked(rfile: BinaryIO, max_bytes: int) -> bytes:
    """Decode a chunked body, stopping once more than ``max_bytes`` are collected."""
    data = bytearray()
    while len(data) < max_bytes:
        line = rfile.readline(_MAX_LINE + 1)
        if not line:
            raise ValueError("unexpected EOF in chunked body")
        size = int(line.split(b";", 1)[0].strip(), 16)
        if size == 0:
            while rfile.readline(_MAX_LINE + 1) not in (b"\r\n", b"\n", b""):
                pass
            break
        chunk = rfile.read(size)
        if len(chunk) < size:
            raise ValueError("unexpected EOF in chunked body")
        data += chunk
        rfile.readline(_MAX_LINE + 1)
    return bytes(data)


def read_request_body(
    rfile: BinaryIO, headers: Message, limit: int = MAX_HTTP_BODY_LOG_SIZE
) -> tuple[bytes, bool, bool]:
    """Read at most ``limit`` body bytes.

    Returns:
        (body, truncated, complete). ``complete`` is False when the request
        body was not consumed to its end, so the connection can't be reused.
        A read failure is reported inline as the body text.
    """
    try:
        if "chunked" in headers.get("Transfer-Encoding", "").lower():
            data = _read_chunked(rfile, limit + 1)
        else:
            length = int(headers.get("Content-Length") or 0)
            if length < 0:
                raise ValueError(f"invalid Content-Length {length}")
            wanted = min(length, limit + 1)
            data = rfile.read(wanted) if wanted else b""
            if len(data) < wanted:
                raise ValueError("unexpected EOF")
    except (OSError, ValueError) as e:
        return f"[body read error: {e}]\n".encode(), False, False

    if len(data) > limit:
        return data[:limit], True, False
    return data, False, True


def format_request_log(
    method: str,
    target: str,
    proto: str,
    remote: str,
    headers: Iterable[tuple[str, str]],
    body: bytes,
    truncated: bool,
    now: datetime | None = None,
) -> bytes:
    """Render one request as a ``----`` delimited log entry."""
    host = ""
    grouped: dict[str, list[str]] = {}
    for key, value in headers:
        name = canonical_header_key(key)
        if name == "Host":
            host = host or value
            continue
        grouped.setdefault(name, []).append(value)

    timestamp = (now or datetime.now().astimezone()).isoformat(timespec="seconds")
    lines = [f"{timestamp} {method} {target} {proto} from {remote}"]
    if host:
        lines.append(f"Host: {host}")
    for name in sorted(grouped):
        lines.append(f"{name}: {', '.join(grouped[name])}")

    entry = bytearray(ENTRY_DELIMITER)
    # http.server decodes the request line and headers as latin-1; this restores the wire bytes.
    entry += ("\n".join(lines) + "\n").encode("latin-1", errors="replace")
    if body:
        entry += b"\n"
        entry += body
        if not body.endswith(b"\n"):
            entry += b"\n"
    if truncated:
        entry += b"[body truncated]\n"
    entry += ENTRY_DELIMITER
    return bytes(entry)


class _CaptureHandler(BaseHTTPRequestHandler):
    """Routes every HTTP method to the owning listener."""

    server: _CaptureServer
    protocol_version = "HTTP/1.1"

    def __getattr__(self, name: str):
        if name.startswith("do_"):
            return self._capture
        raise AttributeError(name)

    def _capture(self) -> None:
        self.server.listener.handle_request(self)

    def log_message(self, format: str, *args) -> None:
        logger.debug("HTTP request served", port=self.server.listener.port, line=format % args)


class _CaptureServer(ThreadingHTTPServer):
    daemon_threads = True

    def __init__(self, address: tuple[str, int], listener: HTTPListener) -> None:
        self.listener = listener
        self._connections: set[socket.socket] = set()
        self._connections_lock = threading.Lock()
        super().__init__(address, _CaptureHandler)

    def process_request(self, request, client_address) -> None:
        with self._connections_lock:
            self._connections.add(request)
        super().process_request(request, client_address)

    def shutdown_request(self, request) -> None:
        with self._connections_lock:
            self._connections.discard(request)
        super().shutdown_request(request)

    def close_connections(self) -> None:
        """Drop every accepted connection, including idle keep-alive ones."""
        with self._connections_lock:
            connections = list(self._connections)
            self._connections.clear()
        for conn in connections:
            close_socket(conn)

    def handle_error(self, request, client_address) -> None:
        if self.listener.closed:
            return
        self.listener._record_error(
            f"http request failed port={self.listener.port} "
            f"from {client_address[0]}:{client_address[1]}: {sys.exc_info()[1]}"
        )


class HTTPListener(BaseListener):
    """Records one log entry per request.

    Requests are served concurrently, one thread each. A failing request
    never affects the server's ability to serve the next one.
    """

    listener_type = ListenerType.HTTP

    def __init__(
        self, port: int, *, body_limit: int = MAX_HTTP_BODY_LOG_SIZE, **kwargs
    ) -> None:
        super().__init__(port, **kwargs)
        self.body_limit = body_limit
        self._server: _CaptureServer | None = None
        self._worker: threading.Thread | None = None
        self._request_count = 0
        self._count_lock = threading.Lock()

    @property
    def request_count(self) -> int:
        with self._count_lock:
            return self._request_count

    def _next_request(self) -> int:
        with self._count_lock:
            self._request_count += 1
            return self._request_count

    def start(self) -> None:
        """Bind the local socket and start serving.

        Raises:
            ListenerError: If the address can't be bound
        """
        with self._lock:
            if self._state != ListenerState.PENDING:
                raise ListenerClosedError(f"port {self.port} listener already closed")
            try:
                self._server = _CaptureServer((self.host, self.port), self)
            except OSError as e:
                raise ListenerError(f"failed to listen on {self.port}: {e}") from e
            self._state = ListenerState.LISTENING
            self._worker = threading.Thread(
                target=self._serve,
                args=(self._server,),
                name=f"http-listener-{self.port}",
                daemon=True,
            )
            # shutdown() in close() waits on serve_forever(), so the worker must exist with the server
            self._worker.start()
        self._log.info("Serving HTTP")

    def close(self) -> None:
        """Release tunnel, then the server socket, then any open connection.

        Raises:
            ListenerError: If any resource failed to close
        """
        if not self._begin_close():
            return
        with self._lock:
            tunnel, server = self._tunnel, self._server

        self._release(
            [
                ("tunnel", tunnel.close if tunnel is not None else None),
                ("http server", server.shutdown if server is not None else None),
                ("listener", server.server_close if server is not None else None),
                ("connections", server.close_connections if server is not None else None),
            ]
        )

    def describe(self) -> ListenerDescriptor:
        return ListenerDescriptor(
            id=self.id,
            protocol=self.listener_type,
            port=self.port,
            public_url=self.public_url,
            state=self.state,
            requests=self.request_count,
            errors=self.errors.messages(),
        )

    def handle_request(self, handler: BaseHTTPRequestHandler) -> None:
        if self.closed:
            # A request that raced close(): answer it, record nothing.
            handler.close_connection = True
            self._respond(handler)
            return

        self._next_request()
        try:
            body, truncated, complete = read_request_body(
                handler.rfile, handler.headers, self.body_limit
            )
            if not complete:
                handler.close_connection = True
            entry = format_request_log(
                handler.command,
                handler.path,
                handler.request_version,
                f"{handler.client_address[0]}:{handler.client_address[1]}",
                handler.headers.items(),
                body,
                truncated,
            )
            self.log_store.append(entry)
        except Exception as e:
            handler.close_connection = True
            self._record_error(f"http log failed port={self.port}: {e}")
        self._post(EventKind.REQUEST, f"New HTTP request on port {self.port}")
        self._respond(handler)

    @staticmethod
    def _respond(handler: BaseHTTPRequestHandler) -> None:
        handler.send_response(200)
        handler.send_header("Content-Type", "text/plain; charset=utf-8")
        handler.send_header("Content-Length", str(len(RESPONSE_BODY)))
        handler.end_headers()
        if handler.command != "HEAD":
            handler.wfile.write(RESPONSE_BODY)

    def _serve(self, server: _CaptureServer) -> None:
        try:
            server.serve_forever(poll_interval=0.2)
        except Exception as e:
            message = f"http serve failed port={self.port}: {e}"
            self._record_error(message)
            self._post(EventKind.ERROR, message)
