"""Single-connection TCP catcher."""

from __future__ import annotations

import socket
import threading

from ..common.exceptions import (
    ListenerClosedError,
    ListenerError,
    ListenerIOError,
    NoActiveConnectionError,
)
from .base import BaseListener, close_socket
from .models import EventKind, ListenerDescriptor, ListenerState, ListenerType


class TCPListener(BaseListener):
    """Accepts one connection and records every byte exchanged on it.

    State machine::

        PENDING --start--> LISTENING --accept--> CONNECTED
        LISTENING --accept error--> CLOSED
        CONNECTED --read error / EOF--> CLOSED

    The worker services the live connection synchronously and never accepts a
    second one: once the connection ends the listener tears itself down.
    """

    listener_type = ListenerType.TCP

    def __init__(self, port: int, *, read_size: int = 4096, **kwargs) -> None:
        super().__init__(port, **kwargs)
        self.read_size = read_size
        self._sock: socket.socket | None = None
        self._conn: socket.socket | None = None
        self._remote: str | None = None
        self._worker: threading.Thread | None = None
        self._send_lock = threading.Lock()

    @property
    def connected(self) -> bool:
        return self.state == ListenerState.CONNECTED

    @property
    def remote_address(self) -> str | None:
        return self._remote

    def bind(self) -> None:
        """Bind the local socket.

        Raises:
            ListenerError: If the address can't be bound
        """
        with self._lock:
            if self._state != ListenerState.PENDING:
                raise ListenerClosedError(f"port {self.port} listener already closed")
            try:
                self._sock = socket.create_server((self.host, self.port), backlog=1)
            except OSError as e:
                raise ListenerError(f"failed to listen on {self.port}: {e}") from e
        self._log.debug("Socket bound", host=self.host)

    def start(self) -> None:
        """Start the background accept worker."""
        with self._lock:
            if self._state != ListenerState.PENDING or self._sock is None:
                raise ListenerClosedError(f"port {self.port} listener is not bound")
            self._state = ListenerState.LISTENING
            self._worker = threading.Thread(
                target=self._serve,
                args=(self._sock,),
                name=f"tcp-listener-{self.port}",
                daemon=True,
            )
        self._worker.start()
        self._log.info("Listening")

    def join(self, timeout: float | None = None) -> None:
        if self._worker is not None:
            self._worker.join(timeout)

    def send(self, data: bytes) -> int:
        """Write ``data`` to the live connection and record it.

        Returns:
            Number of bytes sent

        Raises:
            NoActiveConnectionError: If no connection is live
            ListenerIOError: If the write fails; nothing is recorded then
        """
        with self._send_lock:
            with self._lock:
                conn = self._conn if self._state == ListenerState.CONNECTED else None
            if conn is None:
                raise NoActiveConnectionError("no active connection")

            try:
                conn.sendall(data)
            except OSError as e:
                raise ListenerIOError(f"failed to send data: {e}") from e

            self.log_store.append(data)
        self._log.debug("Data sent", bytes=len(data))
        return len(data)

    def close(self) -> None:
        """Release tunnel, then listening socket, then connection.

        Idempotent. Every step is attempted; the first failure is raised afterwards.

        Raises:
            ListenerError: If any resource failed to close
        """
        if not self._begin_close():
            return
        with self._lock:
            tunnel, sock, conn = self._tunnel, self._sock, self._conn
            self._conn = None

        self._release(
            [
                ("tunnel", tunnel.close if tunnel is not None else None),
                ("listener", (lambda: close_socket(sock)) if sock is not None else None),
                ("connection", (lambda: close_socket(conn)) if conn is not None else None),
            ]
        )

    def describe(self) -> ListenerDescriptor:
        state = self.state
        return ListenerDescriptor(
            id=self.id,
            protocol=self.listener_type,
            port=self.port,
            public_url=self.public_url,
            state=state,
            connected=state == ListenerState.CONNECTED,
            errors=self.errors.messages(),
        )

    def _serve(self, sock: socket.socket) -> None:
        try:
            conn, addr = sock.accept()
        except OSError as e:
            self._fail(f"accept failed port={self.port}: {e}")
            return

        if not self._attach(conn, addr):
            close_socket(conn)
            return

        self._log.info("Connection accepted", remote=self._remote)
        self._post(EventKind.CONNECTED, f"New connection on port {self.port}")
        self._read_loop(conn)

    def _attach(self, conn: socket.socket, addr: tuple) -> bool:
        """LISTENING -> CONNECTED. Fails if the listener was closed meanwhile."""
        with self._lock:
            if self._state != ListenerState.LISTENING or self._conn is not None:
                return False
            self._conn = conn
            self._remote = f"{addr[0]}:{addr[1]}"
            self._state = ListenerState.CONNECTED
            return True

    def _read_loop(self, conn: socket.socket) -> None:
        while True:
            try:
                chunk = conn.recv(self.read_size)
            except OSError as e:
                self._fail(f"read failed port={self.port}: {e}")
                return
            if not chunk:
                self._fail(f"read failed port={self.port}: EOF")
                return
            self.log_store.append(chunk)

    def _fail(self, message: str) -> None:
        """Record a terminal worker condition and tear the listener down."""
        if self.closed:
            self._log.debug("Worker stopped after close", reason=message)
        else:
            self._record_error(message)
            try:
                self.close()
            except ListenerError as e:
                self._record_error(str(e))
        self._post(EventKind.CLOSED, message)
