"""High-level control API for oob-probe.

This module exposes the operations a control channel (an MCP server, a CLI,
a test harness) drives: open and close listeners, send data, page through
captured logs and query status. Results are pydantic models ready to be
serialized with ``model_dump()``.
"""

from collections.abc import Iterator
from contextlib import contextmanager
from types import TracebackType
from typing import Literal

from pydantic import BaseModel, Field

from .common.exceptions import ListenerNotFoundError
from .common.logging import get_logger
from .common.utils import decode_data, encode_data, normalize_encoding
from .config import ProbeConfig
from .listeners.base import BaseListener
from .listeners.models import BackgroundError, ListenerDescriptor
from .listeners.registry import ListenerRegistry
from .notify import Notifier
from .tunnels import TunnelProvider, build_tunnel_provider

logger = get_logger(__name__)


class ListenResult(BaseModel):
    port: int = Field(description="Local port")
    public_url: str = Field(default="", description="Public tunnel URL")


class CloseResult(BaseModel):
    port: int


class StatusResult(BaseModel):
    listeners: list[ListenerDescriptor] = Field(default_factory=list)
    errors: list[BackgroundError] = Field(default_factory=list)


class SendResult(BaseModel):
    port: int
    bytes: int = Field(description="Bytes sent")


class ReadResult(BaseModel):
    port: int
    offset: int = Field(description="Requested offset")
    next: int = Field(description="Offset to pass to the next read")
    total: int = Field(description="Total bytes ever captured")
    truncated: bool = Field(description="True when the offset was behind the buffer")
    encoding: str
    data: str


class ListenerControl:
    """Control operations over a ListenerRegistry."""

    def __init__(self, registry: ListenerRegistry) -> None:
        self.registry = registry

    def listen_tcp(self, port: int) -> ListenResult:
        listener = self.registry.open_tcp(port)
        return ListenResult(port=listener.port, public_url=listener.public_url)

    def listen_http(self, port: int) -> ListenResult:
        listener = self.registry.open_http(port)
        return ListenResult(port=listener.port, public_url=listener.public_url)

    def close_tcp(self, port: int) -> CloseResult:
        self.registry.close_tcp(port)
        return CloseResult(port=port)

    def close_http(self, port: int) -> CloseResult:
        self.registry.close_http(port)
        return CloseResult(port=port)

    def status(self) -> StatusResult:
        return StatusResult(
            listeners=self.registry.status(),
            errors=self.registry.background_errors(),
        )

    def send_tcp(self, port: int, data: str, encoding: str = "utf8") -> SendResult:
        """Send ``data`` on the live connection of the TCP listener on ``port``.

        Raises:
            EncodingError: If the encoding is unsupported or ``data`` doesn't decode
            ListenerNotFoundError: If no TCP listener owns the port
            NoActiveConnectionError: If nothing is connected yet
            ListenerIOError: If the write fails
        """
        payload = decode_data(data, encoding)
        listener = self.registry.get_tcp(port)
        if listener is None:
            raise ListenerNotFoundError(f"port {port} not listening")
        sent = listener.send(payload)
        return SendResult(port=port, bytes=sent)

    def read_tcp(
        self, port: int, offset: int = 0, limit: int = 0, encoding: str = "utf8"
    ) -> ReadResult:
        """Page through the TCP log; pass ``next`` back as ``offset``."""
        listener = self.registry.get_tcp(port)
        if listener is None:
            raise ListenerNotFoundError(f"port {port} not listening")
        return self._read(listener, offset, limit, encoding)

    def read_http(
        self, port: int, offset: int = 0, limit: int = 0, encoding: str = "utf8"
    ) -> ReadResult:
        """Page through the HTTP request log; pass ``next`` back as ``offset``."""
        listener = self.registry.get_http(port)
        if listener is None:
            raise ListenerNotFoundError(f"port {port} not listening (http)")
        return self._read(listener, offset, limit, encoding)

    @staticmethod
    def _read(
        listener: BaseListener, offset: int, limit: int, encoding: str
    ) -> ReadResult:
        encoding = normalize_encoding(encoding)
        window = listener.read(offset, limit)
        return ReadResult(
            port=listener.port,
            offset=offset,
            next=window.next,
            total=window.total,
            truncated=window.truncated,
            encoding=encoding,
            data=encode_data(window.data, encoding),
        )

    def close_all(self) -> None:
        self.registry.close_all()

    def __enter__(self) -> "ListenerControl":
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: TracebackType | None,
    ) -> Literal[False]:
        self.registry.__exit__(exc_type, exc_val, exc_tb)
        return False


def create_control(
    config: ProbeConfig | None = None,
    tunnel_provider: TunnelProvider | None = None,
    notifier: Notifier | None = None,
) -> ListenerControl:
    """Build a ListenerControl with its registry.

    Args:
        config: Runtime configuration (defaults to ProbeConfig())
        tunnel_provider: Tunnel collaborator (chosen from config if None)
        notifier: Desktop notifier (built from config if None)

    Example:
        >>> control = create_control()
        >>> result = control.listen_tcp(4444)
        >>> print(result.public_url)
        tcp://127.0.0.1:4444
    """
    config = config or ProbeConfig()
    provider = tunnel_provider or build_tunnel_provider(config)
    registry = ListenerRegistry(provider, config=config, notifier=notifier)
    return ListenerControl(registry)


@contextmanager
def managed_control(
    config: ProbeConfig | None = None,
    tunnel_provider: TunnelProvider | None = None,
    notifier: Notifier | None = None,
) -> Iterator[ListenerControl]:
    """ListenerControl whose listeners are all closed on exit.

    Example:
        >>> with managed_control() as control:
        ...     control.listen_http(8080)
        ...     # listeners are torn down when the block exits
    """
    control = create_control(config, tunnel_provider, notifier)
    try:
        yield control
    finally:
        control.registry.shutdown()
        logger.debug("Managed control shut down")
