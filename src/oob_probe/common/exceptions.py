"""Custom exceptions for oob-probe."""


class OOBProbeError(Exception):
    """Base exception for all oob-probe errors."""
    pass


class ConfigurationError(OOBProbeError):
    """Raised when configuration is invalid."""
    pass


class ProcessError(OOBProbeError):
    """Raised when an external helper process fails."""
    pass


class BinaryNotFoundError(OOBProbeError):
    """Raised when a required binary is not found or not executable."""
    pass


class TunnelError(OOBProbeError):
    """Raised when a tunnel cannot be opened or closed."""
    pass


class ListenerError(OOBProbeError):
    """Base exception for listener operations."""
    pass


class PortConflictError(ListenerError):
    """Raised when a port is already claimed by another listener."""
    pass


class ListenerNotFoundError(ListenerError):
    """Raised when no listener is registered on a port."""
    pass


class NoActiveConnectionError(ListenerError):
    """Raised when sending on a TCP listener without a live connection."""
    pass


class ListenerIOError(ListenerError):
    """Raised when writing to a live connection fails."""
    pass


class ListenerClosedError(ListenerError):
    """Raised when operating on a listener that has already been torn down."""
    pass


class EncodingError(OOBProbeError, ValueError):
    """Raised for unsupported payload encodings or undecodable payloads."""
    pass
