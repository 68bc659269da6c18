"""Listener models shared by the TCP/HTTP listeners and the registry."""

from enum import Enum
from typing import NamedTuple

from pydantic import BaseModel, ConfigDict, Field


class ListenerType(str, Enum):
    """Listener type enumeration."""

    TCP = "tcp"
    HTTP = "http"


class ListenerState(str, Enum):
    """Lifecycle of a listener.

    TCP listeners walk PENDING -> LISTENING -> CONNECTED -> CLOSED. HTTP
    listeners never enter CONNECTED.
    """

    PENDING = "pending"
    LISTENING = "listening"
    CONNECTED = "connected"
    CLOSED = "closed"


class EventKind(str, Enum):
    CONNECTED = "connected"
    REQUEST = "request"
    ERROR = "error"
    CLOSED = "closed"


class ListenerEvent(NamedTuple):
    """Lifecycle notification posted by a listener worker to its registry."""

    kind: EventKind
    listener_type: ListenerType
    port: int
    listener_id: str
    message: str = ""


class BackgroundError(BaseModel):
    """An error raised on a background worker, surfaced through status."""

    model_config = ConfigDict(frozen=True)

    time: str = Field(description="RFC3339 timestamp")
    message: str = Field(description="Error message")


class ListenerDescriptor(BaseModel):
    """Status snapshot of one live listener."""

    model_config = ConfigDict(frozen=True)

    id: str = Field(min_length=1, description="Unique listener identifier")
    protocol: ListenerType
    port: int = Field(ge=1, le=65535)
    public_url: str
    state: ListenerState
    connected: bool | None = Field(default=None, description="TCP only")
    requests: int | None = Field(default=None, description="HTTP only")
    errors: list[str] = Field(default_factory=list)
