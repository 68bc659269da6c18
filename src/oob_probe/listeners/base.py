"""Behaviour shared by TCP and HTTP listeners."""

from __future__ import annotations

import queue
import socket
import threading
import uuid
from collections.abc import Callable
from typing import TYPE_CHECKING

from ..common.exceptions import ListenerClosedError, ListenerError
from ..common.logging import get_logger
from ..common.utils import validate_port
from ..store import ErrorLog, LogStore, LogWindow
from .models import (
    EventKind,
    ListenerDescriptor,
    ListenerEvent,
    ListenerState,
    ListenerType,
)

if TYPE_CHECKING:
    from ..tunnels.interfaces import Tunnel


def close_socket(sock: socket.socket) -> None:
    # shutdown() wakes threads blocked in accept()/recv(); close() alone does not on Linux.
    try:
        sock.shutdown(socket.SHUT_RDWR)
    except OSError:
        pass
    sock.close()


class BaseListener:
    """A local endpoint that records traffic into its own LogStore.

    The listener exclusively owns its tunnel, its local socket and its logs.
    Background workers report lifecycle changes by posting ListenerEvents on
    ``events`` rather than touching registry state.
    """

    listener_type: ListenerType

    def __init__(
        self,
        port: int,
        *,
        host: str = "127.0.0.1",
        log_max_size: int = 0,
        error_capacity: int = 100,
        events: queue.SimpleQueue[ListenerEvent] | None = None,
    ) -> None:
        self.id = str(uuid.uuid4())
        self.port = validate_port(port)
        self.host = host
        self.log_store = LogStore(log_max_size)
        self.errors = ErrorLog(error_capacity)
        self._events = events
        self._tunnel: Tunnel | None = None
        self._state = ListenerState.PENDING
        self._lock = threading.Lock()
        self._log = get_logger(
            __name__,
            listener_type=self.listener_type.value,
            port=self.port,
            listener_id=self.id,
        )

    @property
    def state(self) -> ListenerState:
        with self._lock:
            return self._state

    @property
    def closed(self) -> bool:
        return self.state == ListenerState.CLOSED

    @property
    def tunnel(self) -> Tunnel | None:
        return self._tunnel

    @property
    def public_url(self) -> str:
        return self._tunnel.public_url if self._tunnel is not None else ""

    def attach_tunnel(self, tunnel: Tunnel) -> None:
        """Take ownership of ``tunnel``.

        Raises:
            ListenerClosedError: If the listener was closed in the meantime; the
                caller still owns the tunnel in that case.
        """
        with self._lock:
            if self._state == ListenerState.CLOSED:
                raise ListenerClosedError(f"port {self.port} listener already closed")
            self._tunnel = tunnel

    def read(self, offset: int = 0, limit: int = 0) -> LogWindow:
        return self.log_store.read(offset, limit)

    def describe(self) -> ListenerDescriptor:
        raise NotImplementedError

    def close(self) -> None:
        raise NotImplementedError

    def _begin_close(self) -> bool:
        """Flip to CLOSED. Returns False if the listener was already closed."""
        with self._lock:
            if self._state == ListenerState.CLOSED:
                return False
            self._state = ListenerState.CLOSED
            return True

    def _release(self, steps: list[tuple[str, Callable[[], None] | None]]) -> None:
        """Run every release step in order, then raise the first failure."""
        first_error: ListenerError | None = None
        for name, step in steps:
            if step is None:
                continue
            try:
                step()
            except Exception as e:
                self._log.warning("Release step failed", step=name, error=str(e))
                if first_error is None:
                    first_error = ListenerError(f"failed to close {name}: {e}")
                    first_error.__cause__ = e
        self._log.info("Listener closed")
        if first_error is not None:
            raise first_error

    def _record_error(self, message: str) -> None:
        self.errors.append(message)
        self._log.warning("Listener error", error=message)

    def _post(self, kind: EventKind, message: str = "") -> None:
        if self._events is not None:
            self._events.put(
                ListenerEvent(kind, self.listener_type, self.port, self.id, message)
            )
