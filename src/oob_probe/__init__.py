"""oob-probe - ephemeral TCP/HTTP listeners for catching out-of-band traffic."""

from .api import (
    CloseResult,
    ListenerControl,
    ListenResult,
    ReadResult,
    SendResult,
    StatusResult,
    create_control,
    managed_control,
)
from .common.exceptions import (
    ConfigurationError,
    EncodingError,
    ListenerError,
    ListenerIOError,
    ListenerNotFoundError,
    NoActiveConnectionError,
    OOBProbeError,
    PortConflictError,
    TunnelError,
)
from .common.logging import get_logger, setup_logging
from .config import ProbeConfig, TunnelSettings, load_config
from .listeners import (
    HTTPListener,
    ListenerDescriptor,
    ListenerRegistry,
    ListenerState,
    ListenerType,
    TCPListener,
)
from .notify import Notifier
from .store import ErrorLog, LogStore, LogWindow
from .tunnels import FRPTunnelProvider, LocalTunnelProvider, build_tunnel_provider

# Setup logging on package initialization
setup_logging(level="INFO")

logger = get_logger(__name__)

__version__ = "0.1.0"


__all__ = [
    # High-level API
    "create_control",
    "managed_control",
    "ListenerControl",
    "ListenResult",
    "CloseResult",
    "StatusResult",
    "SendResult",
    "ReadResult",
    # Listeners
    "ListenerRegistry",
    "TCPListener",
    "HTTPListener",
    "ListenerDescriptor",
    "ListenerState",
    "ListenerType",
    # Stores
    "LogStore",
    "LogWindow",
    "ErrorLog",
    # Configuration
    "ProbeConfig",
    "TunnelSettings",
    "load_config",
    # Tunnels
    "LocalTunnelProvider",
    "FRPTunnelProvider",
    "build_tunnel_provider",
    "Notifier",
    # Exceptions
    "OOBProbeError",
    "ConfigurationError",
    "TunnelError",
    "ListenerError",
    "PortConflictError",
    "ListenerNotFoundError",
    "NoActiveConnectionError",
    "ListenerIOError",
    "EncodingError",
    # Logging
    "get_logger",
    "setup_logging",
]
