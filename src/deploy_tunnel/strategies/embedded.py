"""In-process local port forward using asyncssh."""

from __future__ import annotations

import errno
from collections.abc import Callable
from typing import Any

import asyncssh

from ..common.logging import get_logger
from ..config import TunnelSettings
from ..models import AddressTriple

logger = get_logger(__name__)

ErrorCallback = Callable[[BaseException], Any]

AUTH_FAILED_MESSAGE = "All configured authentication methods failed"


def describe_tunnel_error(exc: BaseException) -> str:
    """Human readable summary of an error raised by an open tunnel."""
    if isinstance(exc, ConnectionRefusedError) or getattr(exc, "errno", None) == errno.ECONNREFUSED:
        return "Failed to reach SSH server."
    if isinstance(exc, asyncssh.PermissionDenied) or AUTH_FAILED_MESSAGE in str(exc):
        return "Failed to authenticate user."
    return "Unexpected SSH tunnel error."


class _TunnelClient(asyncssh.SSHClient):
    """Forwards unexpected connection loss to the owning tunnel."""

    def __init__(self) -> None:
        self.tunnel: EmbeddedTunnel | None = None

    def connection_lost(self, exc: Exception | None) -> None:
        if exc is not None and self.tunnel is not None:
            self.tunnel.report_error(exc)


class EmbeddedTunnel:
    """An asyncssh connection with a single local port forward."""

    def __init__(self, conn: asyncssh.SSHClientConnection, listener: asyncssh.SSHListener):
        self._conn = conn
        self._listener = listener
        self._error_callbacks: list[ErrorCallback] = []
        self._closing = False

    def on_error(self, callback: ErrorCallback) -> None:
        """Register a callback for errors raised after the tunnel opened."""
        self._error_callbacks.append(callback)

    def report_error(self, exc: BaseException) -> None:
        if self._closing:
            logger.debug("Ignoring error on closing tunnel", error=str(exc))
            return
        logger.error("SSH tunnel error", error=str(exc), error_type=type(exc).__name__)
        for callback in list(self._error_callbacks):
            try:
                callback(exc)
            except Exception as e:
                logger.exception("Tunnel error callback failed", error=str(e))

    def close(self) -> None:
        self._closing = True
        self._listener.close()
        self._conn.close()

    async def wait_closed(self) -> None:
        self.close()
        await self._listener.wait_closed()
        await self._conn.wait_closed()


class EmbeddedSshTunnel:
    """Opens tunnels in-process, authenticating with a private key."""

    name = "embedded"

    def __init__(self, settings: TunnelSettings | None = None):
        self.settings = settings or TunnelSettings()

    def connect_options(self, username: str, private_key: bytes, keep_alive: bool = True) -> dict[str, Any]:
        """Build keyword arguments for ``asyncssh.create_connection``."""
        options: dict[str, Any] = {
            "username": username,
            "client_keys": [asyncssh.import_private_key(private_key)],
            "agent_path": None,
        }
        if not self.settings.verify_host_keys:
            options["known_hosts"] = None
        elif self.settings.known_hosts:
            options["known_hosts"] = self.settings.known_hosts
        if keep_alive:
            options["keepalive_interval"] = self.settings.keepalive_interval
            options["keepalive_count_max"] = self.settings.keepalive_count_max
        return options

    async def open(
        self,
        addresses: AddressTriple,
        username: str,
        *,
        private_key: bytes,
        keep_alive: bool = True,
        **kwargs: Any,
    ) -> EmbeddedTunnel:
        """Connect to the SSH server and start forwarding the local port.

        Connection and forwarding errors propagate unchanged.
        """
        server, local, dest = addresses.server, addresses.from_, addresses.to
        options = self.connect_options(username, private_key, keep_alive)

        logger.info("Connecting to SSH server", server=str(server), username=username)
        conn, client = await asyncssh.create_connection(
            _TunnelClient, server.host, server.port, **options
        )
        try:
            listener = await conn.forward_local_port(local.host, local.port, dest.host, dest.port)
        except Exception:
            conn.close()
            raise

        tunnel = EmbeddedTunnel(conn, listener)
        client.tunnel = tunnel
        logger.info("SSH tunnel established", local=str(local), destination=str(dest))
        return tunnel
