"""Common utilities and shared functionality."""

from .exceptions import (
    BinaryNotFoundError,
    ConfigurationError,
    EncodingError,
    ListenerClosedError,
    ListenerError,
    ListenerIOError,
    ListenerNotFoundError,
    NoActiveConnectionError,
    OOBProbeError,
    PortConflictError,
    ProcessError,
    TunnelError,
)
from .logging import get_logger, setup_logging
from .process import ProcessManager
from .utils import (
    BASE64,
    MAX_PORT,
    MIN_PORT,
    SUPPORTED_ENCODINGS,
    UTF8,
    decode_data,
    encode_data,
    mask_sensitive_data,
    normalize_encoding,
    parse_bool,
    sanitize_log_data,
    validate_port,
)

__all__ = [
    # Process management
    "ProcessManager",
    # Exceptions
    "OOBProbeError",
    "ConfigurationError",
    "ProcessError",
    "BinaryNotFoundError",
    "TunnelError",
    "ListenerError",
    "PortConflictError",
    "ListenerNotFoundError",
    "NoActiveConnectionError",
    "ListenerIOError",
    "ListenerClosedError",
    "EncodingError",
    # Logging
    "get_logger",
    "setup_logging",
    # Utils
    "validate_port",
    "normalize_encoding",
    "decode_data",
    "encode_data",
    "parse_bool",
    "mask_sensitive_data",
    "sanitize_log_data",
    "MIN_PORT",
    "MAX_PORT",
    "UTF8",
    "BASE64",
    "SUPPORTED_ENCODINGS",
]
