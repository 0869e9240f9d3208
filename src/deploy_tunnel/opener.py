"""Open the SSH tunnel used by the deploy command.

The opener validates its input, resolves the three endpoints of the
forward, then delegates to the native ssh client when one is on PATH and
to the in-process asyncssh tunnel otherwise. Every step is narrated to the
caller through a progress callback.
"""

from __future__ import annotations

import shutil
from collections.abc import Awaitable, Callable, Mapping
from pathlib import Path
from typing import Any
from urllib.parse import urlsplit

from pydantic import ValidationError

from .common.exceptions import ConfigurationError, ProtocolInvalid, TunnelRuntimeError
from .common.logging import get_logger
from .common.utils import default_private_key_path, find_free_port, read_private_key
from .config import DeployDefaults, TunnelSettings
from .models import (
    Address,
    AddressTriple,
    ProgressCallback,
    ProgressEvent,
    ProgressType,
    TunnelHandle,
    TunnelRequest,
)
from .strategies.embedded import EmbeddedSshTunnel, describe_tunnel_error
from .strategies.interfaces import TunnelStrategy
from .strategies.native import NativeSshTunnel

logger = get_logger(__name__)

SSH_SCHEME = "ssh"
DEFAULT_SSH_PORT = 22
LOCAL_HOST = "localhost"

PortAllocator = Callable[[], Awaitable[int]]
FileReader = Callable[[Path], Awaitable[bytes]]
ErrorSink = Callable[[TunnelRuntimeError], Any]


class TunnelOpener:
    """Opens a single local port forward to the deployment server.

    Collaborators default to the real implementations and can be replaced,
    mostly for tests.

    Args:
        defaults: Destination endpoint on the deployment server
        settings: Strategy tuning
        port_allocator: Coroutine function returning a free local port
        which: Lookup of an executable on PATH, like ``shutil.which``
        read_file: Coroutine function reading the private key
        native: Strategy used when the ssh client is available
        embedded: Strategy used otherwise
        error_sink: Called with errors raised by an embedded tunnel after
            it opened, in addition to ``TunnelHandle.errors``
    """

    def __init__(
        self,
        defaults: DeployDefaults | None = None,
        settings: TunnelSettings | None = None,
        *,
        port_allocator: PortAllocator | None = None,
        which: Callable[[str], str | None] | None = None,
        read_file: FileReader | None = None,
        native: TunnelStrategy | None = None,
        embedded: TunnelStrategy | None = None,
        error_sink: ErrorSink | None = None,
    ):
        self.defaults = defaults or DeployDefaults()
        self.settings = settings or TunnelSettings()
        self._port_allocator = port_allocator or (lambda: find_free_port(LOCAL_HOST))
        self._which = which or shutil.which
        self._read_file = read_file or read_private_key
        self.native = native or NativeSshTunnel(self.settings)
        self.embedded = embedded or EmbeddedSshTunnel(self.settings)
        self._error_sink = error_sink

    @property
    def private_key_path(self) -> Path:
        return self.settings.private_key_path or default_private_key_path()

    async def open(
        self,
        options: TunnelRequest | Mapping[str, Any] | None,
        progress: ProgressCallback | None,
    ) -> TunnelHandle:
        """Open the tunnel and return a handle the caller must close.

        Raises:
            ConfigurationError: If options, server, username or progress are missing
            ProtocolInvalid: If the server URL does not use the ssh scheme
            OSError: If the private key cannot be read
            TunnelOpenError: If the native ssh client fails to open the tunnel
        """
        request = self._validate(options, progress)
        username: str = request.username  # type: ignore[assignment]

        server = self._parse_server(request.server, progress)  # type: ignore[arg-type]
        addresses = AddressTriple(
            server=server,
            from_=Address(host=LOCAL_HOST, port=await self._port_allocator()),
            to=Address(host=self.defaults.host, port=self.defaults.port),
        )

        if self._which(self.settings.ssh_binary):
            logger.info("Using native ssh client", binary=self.settings.ssh_binary)
            tunnel = await self.native.open(addresses, username)
            handle = TunnelHandle(tunnel, addresses, self.native.name)
        else:
            logger.info("No native ssh client found, using embedded tunnel")
            handle = await self._open_embedded(addresses, username, progress)

        _emit(
            progress,
            f"Opened SSH tunnel from {addresses.from_.host}:{addresses.from_.port} "
            f"to {addresses.server.host}:{addresses.server.port}.",
        )
        return handle

    def _validate(
        self,
        options: TunnelRequest | Mapping[str, Any] | None,
        progress: ProgressCallback | None,
    ) -> TunnelRequest:
        if options is None:
            raise ConfigurationError("Options are missing.")
        if isinstance(options, TunnelRequest):
            request = options
        else:
            try:
                request = TunnelRequest.model_validate(options)
            except ValidationError as e:
                raise ConfigurationError(f"Options are invalid: {e}") from e
        if not request.server:
            raise ConfigurationError("Server is missing.")
        if not request.username:
            raise ConfigurationError("Username is missing.")
        if progress is None:
            raise ConfigurationError("Progress is missing.")
        return request

    def _parse_server(self, server: str | None, progress: ProgressCallback) -> Address:
        url = urlsplit(server or "")
        if url.scheme != SSH_SCHEME:
            _emit(progress, "Protocol is invalid.")
            raise ProtocolInvalid()
        try:
            port = url.port
        except ValueError as e:
            raise ConfigurationError(f"Server port is invalid: {e}") from e
        if not url.hostname:
            raise ConfigurationError("Server host is missing.")
        try:
            return Address(host=url.hostname, port=DEFAULT_SSH_PORT if port is None else port)
        except ValidationError as e:
            raise ConfigurationError(f"Server port is invalid: {port}") from e

    async def _open_embedded(
        self, addresses: AddressTriple, username: str, progress: ProgressCallback
    ) -> TunnelHandle:
        key_path = self.private_key_path
        try:
            try:
                private_key = await self._read_file(key_path)
            except Exception:
                _emit(progress, f"Failed to load private SSH key from {key_path}.")
                raise

            tunnel = await self.embedded.open(
                addresses, username, private_key=private_key, keep_alive=True
            )
        except Exception as e:
            logger.error("Failed to open SSH tunnel", error=str(e), error_type=type(e).__name__)
            _emit(progress, "Failed to open SSH tunnel.", ProgressType.INFO)
            raise

        handle = TunnelHandle(tunnel, addresses, self.embedded.name)
        on_error = getattr(tunnel, "on_error", None)
        if on_error is not None:
            on_error(self._runtime_error_handler(handle, progress))
        return handle

    def _runtime_error_handler(
        self, handle: TunnelHandle, progress: ProgressCallback
    ) -> Callable[[BaseException], None]:
        def handle_error(exc: BaseException) -> None:
            description = describe_tunnel_error(exc)
            _emit(progress, description, ProgressType.INFO)
            _emit(progress, "Failed to deploy application.", ProgressType.ERROR)
            runtime_error = TunnelRuntimeError(description, exc)
            handle.errors.put_nowait(runtime_error)
            if self._error_sink is not None:
                self._error_sink(runtime_error)

        return handle_error


def _emit(progress: ProgressCallback, message: str, type: ProgressType | None = None) -> None:
    progress(ProgressEvent(message=message, type=type))


async def start_tunnel(
    options: TunnelRequest | Mapping[str, Any] | None,
    progress: ProgressCallback | None,
    **kwargs: Any,
) -> TunnelHandle:
    """Open a tunnel with a default :class:`TunnelOpener`.

    Keyword arguments are passed to the opener.

    Example:
        >>> handle = await start_tunnel(
        ...     {"server": "ssh://deploy.example.com", "username": "alice"}, print
        ... )
        >>> handle.close()
    """
    return await TunnelOpener(**kwargs).open(options, progress)
