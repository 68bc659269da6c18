"""Tunnel providers that give listeners a public endpoint."""

from ..config import ProbeConfig
from .config_builder import ConfigBuilder
from .frp import FRPTunnel, FRPTunnelProvider
from .interfaces import Tunnel, TunnelProvider
from .local import LocalTunnel, LocalTunnelProvider


def build_tunnel_provider(config: ProbeConfig) -> TunnelProvider:
    """Use frp when a tunnel server is configured, loopback otherwise."""
    if config.tunnel is not None:
        return FRPTunnelProvider(config.tunnel)
    return LocalTunnelProvider(config.bind_host)


__all__ = [
    "ConfigBuilder",
    "FRPTunnel",
    "FRPTunnelProvider",
    "LocalTunnel",
    "LocalTunnelProvider",
    "Tunnel",
    "TunnelProvider",
    "build_tunnel_provider",
]
