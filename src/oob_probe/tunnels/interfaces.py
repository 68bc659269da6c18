"""Protocol interfaces for the tunnel collaborator."""

from __future__ import annotations

from typing import TYPE_CHECKING, Protocol

if TYPE_CHECKING:
    from ..listeners.models import ListenerType


class Tunnel(Protocol):
    """A public endpoint forwarding to one local port."""

    @property
    def public_url(self) -> str:
        """Publicly reachable URL of the tunnel."""
        ...

    def close(self) -> None:
        """Tear the tunnel down. Raises TunnelError on failure."""
        ...


class TunnelProvider(Protocol):
    """Opens tunnels for listeners."""

    def open_tunnel(self, local_port: int, listener_type: ListenerType) -> Tunnel:
        """Expose ``local_port``. Raises TunnelError on failure."""
        ...
