"""Loopback-only tunnel provider used when no public tunnel is configured."""

from ..common.logging import get_logger
from ..listeners.models import ListenerType

logger = get_logger(__name__)


class LocalTunnel:
    """Tunnel stand-in whose public URL is the local listener address."""

    def __init__(self, public_url: str) -> None:
        self._public_url = public_url
        self.closed = False

    @property
    def public_url(self) -> str:
        return self._public_url

    def close(self) -> None:
        self.closed = True


class LocalTunnelProvider:
    """Exposes nothing publicly; reports the loopback address instead."""

    def __init__(self, host: str = "127.0.0.1") -> None:
        self.host = host

    def open_tunnel(self, local_port: int, listener_type: ListenerType) -> LocalTunnel:
        if listener_type == ListenerType.HTTP:
            url = f"http://{self.host}:{local_port}/"
        else:
            url = f"tcp://{self.host}:{local_port}"
        logger.debug("Local tunnel opened", port=local_port, url=url)
        return LocalTunnel(url)
