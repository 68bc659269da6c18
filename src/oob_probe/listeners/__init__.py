"""TCP and HTTP traffic listeners and the registry that owns them."""

from .base import BaseListener
from .http import HTTPListener, format_request_log, read_request_body
from .models import (
    BackgroundError,
    EventKind,
    ListenerDescriptor,
    ListenerEvent,
    ListenerState,
    ListenerType,
)
from .registry import ListenerRegistry
from .tcp import TCPListener

__all__ = [
    "BaseListener",
    "TCPListener",
    "HTTPListener",
    "ListenerRegistry",
    "ListenerType",
    "ListenerState",
    "ListenerEvent",
    "EventKind",
    "ListenerDescriptor",
    "BackgroundError",
    "format_request_log",
    "read_request_body",
]
