"""Tunnel strategies: native ssh subprocess and in-process asyncssh."""

from .embedded import EmbeddedSshTunnel, EmbeddedTunnel, describe_tunnel_error
from .interfaces import OpenTunnel, TunnelStrategy
from .native import NativeSshTunnel, NativeTunnel

__all__ = [
    "TunnelStrategy",
    "OpenTunnel",
    "NativeSshTunnel",
    "NativeTunnel",
    "EmbeddedSshTunnel",
    "EmbeddedTunnel",
    "describe_tunnel_error",
]
