"""Shared pytest fixtures for oob-probe tests."""

import socket
import time
from collections.abc import Callable
from unittest.mock import Mock

import pytest

from oob_probe.common.exceptions import TunnelError
from oob_probe.config import ProbeConfig
from oob_probe.listeners.registry import ListenerRegistry


class FakeTunnel:
    """In-memory tunnel that records whether it was closed."""

    def __init__(self, port: int, kind: str, fail_close: bool = False) -> None:
        self.port = port
        self.kind = kind
        self.closed = False
        self.fail_close = fail_close

    @property
    def public_url(self) -> str:
        return f"{self.kind}://probe.example.com:{self.port}"

    def close(self) -> None:
        self.closed = True
        if self.fail_close:
            raise TunnelError("tunnel close failed")


class FakeTunnelProvider:
    """Tunnel provider that can be told to fail and remembers what it opened."""

    def __init__(self) -> None:
        self.opened: list[FakeTunnel] = []
        self.fail_open = False
        self.fail_close = False
        self.on_open: Callable[[int], None] | None = None

    def open_tunnel(self, local_port, listener_type):
        if self.on_open is not None:
            self.on_open(local_port)
        if self.fail_open:
            raise TunnelError("tunnel provider unavailable")
        tunnel = FakeTunnel(local_port, listener_type.value, self.fail_close)
        self.opened.append(tunnel)
        return tunnel


def free_port() -> int:
    """Ask the OS for a currently unused loopback port."""
    with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as sock:
        sock.bind(("127.0.0.1", 0))
        return sock.getsockname()[1]


def free_ports(count: int) -> list[int]:
    """Allocate ``count`` distinct unused loopback ports."""
    sockets = []
    try:
        for _ in range(count):
            sock = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
            sock.bind(("127.0.0.1", 0))
            sockets.append(sock)
        return [sock.getsockname()[1] for sock in sockets]
    finally:
        for sock in sockets:
            sock.close()


def wait_for(predicate: Callable[[], bool], timeout: float = 3.0) -> bool:
    """Poll ``predicate`` until it is true or ``timeout`` expires."""
    deadline = time.monotonic() + timeout
    while time.monotonic() < deadline:
        if predicate():
            return True
        time.sleep(0.01)
    return predicate()


@pytest.fixture
def port() -> int:
    return free_port()


@pytest.fixture
def tunnel_provider() -> FakeTunnelProvider:
    return FakeTunnelProvider()


@pytest.fixture
def notifier() -> Mock:
    return Mock()


@pytest.fixture
def probe_config() -> ProbeConfig:
    return ProbeConfig(desktop_notifications=False, log_max_size=0)


@pytest.fixture
def registry(tunnel_provider, probe_config, notifier):
    """Registry wired to the fake tunnel provider; shut down after the test."""
    registry = ListenerRegistry(tunnel_provider, config=probe_config, notifier=notifier)
    yield registry
    registry.shutdown()


@pytest.fixture
def connect():
    """Open loopback client sockets and close them after the test."""
    sockets: list[socket.socket] = []

    def _connect(port: int) -> socket.socket:
        sock = socket.create_connection(("127.0.0.1", port), timeout=3.0)
        sockets.append(sock)
        return sock

    yield _connect
    for sock in sockets:
        sock.close()
