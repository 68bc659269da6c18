"""Port-keyed registry of live TCP and HTTP listeners."""

from __future__ import annotations

import queue
import threading
from collections.abc import Iterator
from contextlib import contextmanager
from types import TracebackType
from typing import TYPE_CHECKING, Literal, TypeVar

from ..common.exceptions import (
    ListenerClosedError,
    ListenerError,
    ListenerNotFoundError,
    PortConflictError,
    TunnelError,
)
from ..common.logging import get_logger
from ..common.utils import validate_port
from ..config import ProbeConfig
from ..notify import Notifier
from ..store import ErrorLog
from .base import BaseListener
from .http import HTTPListener
from .models import (
    BackgroundError,
    EventKind,
    ListenerDescriptor,
    ListenerEvent,
    ListenerType,
)
from .tcp import TCPListener

if TYPE_CHECKING:
    from ..tunnels.interfaces import Tunnel, TunnelProvider

logger = get_logger(__name__)

L = TypeVar("L", bound=BaseListener)


class ListenerRegistry:
    """Owns every listener, keyed by port across both listener kinds.

    A port can be claimed by at most one listener of either kind. The port
    is reserved under the registry lock before any blocking work starts, so
    concurrent requests for the same port conflict instead of racing.
    Listener workers report back through an event queue which is applied
    under the same lock, both by a pump thread and at the start of every
    public call.
    """

    def __init__(
        self,
        tunnel_provider: TunnelProvider,
        config: ProbeConfig | None = None,
        notifier: Notifier | None = None,
    ) -> None:
        self.config = config or ProbeConfig()
        self._tunnel_provider = tunnel_provider
        self._notifier = notifier or Notifier(self.config.desktop_notifications)
        self._tcp: dict[int, TCPListener] = {}
        self._http: dict[int, HTTPListener] = {}
        self._errors = ErrorLog(self.config.background_error_capacity)
        self._events: queue.SimpleQueue[ListenerEvent | None] = queue.SimpleQueue()
        self._lock = threading.RLock()
        self._pump = threading.Thread(
            target=self._pump_events, name="listener-events", daemon=True
        )
        self._pump.start()
        logger.info(
            "Initialized ListenerRegistry",
            bind_host=self.config.bind_host,
            log_max_size=self.config.log_max_size,
        )

    def _maps(self, listener_type: ListenerType) -> dict:
        return self._tcp if listener_type == ListenerType.TCP else self._http

    def open_tcp(self, port: int) -> TCPListener:
        """Start a TCP listener: reserve, open tunnel, bind, start accept worker.

        The tunnel is opened before the socket accepts anything so the first
        inbound connection is never lost.

        Raises:
            PortConflictError: If the port is claimed by any listener
            TunnelError: If the tunnel can't be opened
            ListenerError: If the local socket can't be bound
        """
        validate_port(port)
        listener = TCPListener(
            port,
            host=self.config.bind_host,
            read_size=self.config.tcp_read_size,
            log_max_size=self.config.log_max_size,
            error_capacity=self.config.error_log_capacity,
            events=self._events,
        )
        self._reserve(self._tcp, listener)
        try:
            self._attach_tunnel(listener)
            listener.bind()
            listener.start()
        except Exception:
            self._rollback(self._tcp, listener)
            raise

        logger.info(
            "TCP listener opened",
            port=port,
            listener_id=listener.id,
            public_url=listener.public_url,
        )
        return listener

    def open_http(self, port: int) -> HTTPListener:
        """Start an HTTP listener: reserve, bind and serve, then open tunnel.

        Raises:
            PortConflictError: If the port is claimed by any listener
            ListenerError: If the local socket can't be bound
            TunnelError: If the tunnel can't be opened
        """
        validate_port(port)
        listener = HTTPListener(
            port,
            host=self.config.bind_host,
            body_limit=self.config.http_body_limit,
            log_max_size=self.config.log_max_size,
            error_capacity=self.config.error_log_capacity,
            events=self._events,
        )
        self._reserve(self._http, listener)
        try:
            listener.start()
            self._attach_tunnel(listener)
        except Exception:
            self._rollback(self._http, listener)
            raise

        logger.info(
            "HTTP listener opened",
            port=port,
            listener_id=listener.id,
            public_url=listener.public_url,
        )
        return listener

    def close_tcp(self, port: int) -> None:
        """Remove and tear down the TCP listener on ``port``.

        Raises:
            ListenerNotFoundError: If no TCP listener owns the port
            ListenerError: If a resource failed to close (the port is freed anyway)
        """
        self._close(self._tcp, port, f"port {port} not listening")

    def close_http(self, port: int) -> None:
        """Remove and tear down the HTTP listener on ``port``.

        Raises:
            ListenerNotFoundError: If no HTTP listener owns the port
            ListenerError: If a resource failed to close (the port is freed anyway)
        """
        self._close(self._http, port, f"port {port} not listening (http)")

    def close_all(self) -> None:
        """Best-effort close of every listener; bookkeeping is always cleared."""
        with self._synced():
            listeners: list[BaseListener] = [*self._tcp.values(), *self._http.values()]
            self._tcp.clear()
            self._http.clear()

        for listener in listeners:
            try:
                listener.close()
            except ListenerError as e:
                logger.warning(
                    "Failed to close listener", port=listener.port, error=str(e)
                )
                self._errors.append(str(e))
        if listeners:
            logger.info("Closed all listeners", count=len(listeners))

    def shutdown(self) -> None:
        """Close all listeners and stop the event pump."""
        self.close_all()
        self._events.put(None)
        self._pump.join(timeout=5.0)

    def get_tcp(self, port: int) -> TCPListener | None:
        with self._synced():
            return self._tcp.get(port)

    def get_http(self, port: int) -> HTTPListener | None:
        with self._synced():
            return self._http.get(port)

    def status(self) -> list[ListenerDescriptor]:
        """Snapshot of every live listener, ordered by port."""
        with self._synced():
            listeners: list[BaseListener] = [*self._tcp.values(), *self._http.values()]
        descriptors = [listener.describe() for listener in listeners if not listener.closed]
        return sorted(descriptors, key=lambda d: (d.port, d.protocol.value))

    def background_errors(self) -> list[BackgroundError]:
        """Errors from listeners that have since gone away or from serve loops."""
        with self._synced():
            entries = self._errors.entries()
        return [
            BackgroundError(time=entry.time, message=entry.message) for entry in entries
        ]

    def _reserve(self, listeners: dict[int, L], listener: L) -> None:
        with self._synced():
            port = listener.port
            if port in self._tcp:
                raise PortConflictError(f"port {port} already listening (tcp)")
            if port in self._http:
                raise PortConflictError(f"port {port} already listening (http)")
            listeners[port] = listener

    def _rollback(self, listeners: dict[int, L], listener: L) -> None:
        with self._lock:
            if listeners.get(listener.port) is listener:
                del listeners[listener.port]
        try:
            listener.close()
        except ListenerError as e:
            logger.warning(
                "Rollback close failed", port=listener.port, error=str(e)
            )

    def _attach_tunnel(self, listener: BaseListener) -> None:
        try:
            tunnel = self._tunnel_provider.open_tunnel(
                listener.port, listener.listener_type
            )
        except TunnelError:
            raise
        except Exception as e:
            raise TunnelError(f"failed to start tunnel: {e}") from e

        try:
            listener.attach_tunnel(tunnel)
        except ListenerClosedError:
            self._close_orphan_tunnel(tunnel, listener.port)
            raise

    @staticmethod
    def _close_orphan_tunnel(tunnel: Tunnel, port: int) -> None:
        try:
            tunnel.close()
        except Exception as e:
            logger.warning("Failed to close orphaned tunnel", port=port, error=str(e))

    def _close(self, listeners: dict[int, L], port: int, missing: str) -> None:
        with self._synced():
            listener = listeners.pop(port, None)
        if listener is None:
            raise ListenerNotFoundError(missing)
        listener.close()
        logger.info(
            "Listener closed on request",
            port=port,
            listener_type=listener.listener_type.value,
        )

    def _pump_events(self) -> None:
        while True:
            event = self._events.get()
            if event is None:
                return
            with self._lock:
                notifications = self._apply(event)
            self._send_notifications(notifications)

    @contextmanager
    def _synced(self) -> Iterator[None]:
        """Hold the registry lock with worker events applied.

        Notifications raised by those events are sent once the lock is released.
        """
        notifications: list[str] = []
        try:
            with self._lock:
                notifications = self._drain_events()
                self._prune_closed()
                yield
        finally:
            self._send_notifications(notifications)

    def _drain_events(self) -> list[str]:
        """Apply queued worker events and return their notifications. Caller holds the lock."""
        notifications: list[str] = []
        while True:
            try:
                event = self._events.get_nowait()
            except queue.Empty:
                break
            if event is None:
                # Keep the shutdown sentinel for the pump thread.
                self._events.put(None)
                break
            notifications.extend(self._apply(event))
        return notifications

    def _prune_closed(self) -> None:
        """Forget listeners that tore themselves down before their CLOSED event arrived."""
        for listeners in (self._tcp, self._http):
            closed = [listener for listener in listeners.values() if listener.closed]
            for listener in closed:
                self._forget(listeners, listener, "closed")

    def _apply(self, event: ListenerEvent) -> list[str]:
        if event.kind == EventKind.CLOSED:
            listeners = self._maps(event.listener_type)
            listener = listeners.get(event.port)
            if listener is not None and listener.id == event.listener_id:
                self._forget(listeners, listener, event.message)
            return []
        if event.kind == EventKind.ERROR:
            self._errors.append(event.message)
            return []
        return [event.message]

    def _forget(self, listeners: dict, listener: BaseListener, reason: str) -> None:
        del listeners[listener.port]
        self._errors.extend(listener.errors.entries())
        logger.info(
            "Listener closed itself",
            port=listener.port,
            listener_type=listener.listener_type.value,
            reason=reason,
        )

    def _send_notifications(self, messages: list[str]) -> None:
        for message in messages:
            self._notifier.notify(message)

    def __enter__(self) -> "ListenerRegistry":
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: TracebackType | None,
    ) -> Literal[False]:
        try:
            self.shutdown()
        except Exception as e:
            logger.error("Error during context exit", error=str(e))
        return False  # Don't suppress exceptions
