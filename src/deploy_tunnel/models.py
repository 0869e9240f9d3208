"""Data models for tunnel requests, addresses, progress and handles."""

from __future__ import annotations

import asyncio
from collections.abc import Callable
from enum import Enum
from types import TracebackType
from typing import TYPE_CHECKING, Any

from pydantic import BaseModel, ConfigDict, Field

from .common.exceptions import TunnelRuntimeError
from .common.logging import get_logger

if TYPE_CHECKING:
    from .strategies.interfaces import OpenTunnel

logger = get_logger(__name__)


class ProgressType(str, Enum):
    """Severity of a progress event."""

    INFO = "info"
    ERROR = "error"


class ProgressEvent(BaseModel):
    """User-facing narration of what the opener is doing."""

    model_config = ConfigDict(frozen=True)

    message: str
    type: ProgressType | None = None


ProgressCallback = Callable[[ProgressEvent], Any]


class TunnelRequest(BaseModel):
    """Input of a tunnel open call."""

    model_config = ConfigDict(str_strip_whitespace=True)

    server: str | None = Field(default=None, description="ssh://host[:port] of the SSH server")
    username: str | None = Field(default=None, description="SSH login name")


class Address(BaseModel):
    """A host/port endpoint."""

    model_config = ConfigDict(frozen=True)

    host: str = Field(min_length=1)
    port: int = Field(ge=1, le=65535)

    def __str__(self) -> str:
        return f"{self.host}:{self.port}"


class AddressTriple(BaseModel):
    """The three endpoints of a local port forward."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    server: Address = Field(description="Remote SSH endpoint")
    from_: Address = Field(alias="from", description="Local listening endpoint")
    to: Address = Field(description="Destination endpoint as seen from the SSH server")


class TunnelHandle:
    """Caller-owned handle of an opened tunnel.

    ``close()`` releases the local port and the underlying connection or
    process. Errors raised by the tunnel after it was opened are put on
    ``errors``.
    """

    def __init__(self, tunnel: OpenTunnel, addresses: AddressTriple, strategy: str):
        self._tunnel = tunnel
        self.addresses = addresses
        self.strategy = strategy
        self.errors: asyncio.Queue[TunnelRuntimeError] = asyncio.Queue()
        self._closed = False

    @property
    def host(self) -> str:
        return self.addresses.from_.host

    @property
    def port(self) -> int:
        return self.addresses.from_.port

    @property
    def server(self) -> Address:
        return self.addresses.server

    @property
    def closed(self) -> bool:
        return self._closed

    def raise_for_error(self) -> None:
        """Raise the oldest pending runtime error, if any."""
        try:
            error = self.errors.get_nowait()
        except asyncio.QueueEmpty:
            return
        raise error

    def close(self) -> None:
        """Close the tunnel. Calling it again is a no-op."""
        if self._closed:
            return
        self._closed = True
        logger.info("Closing tunnel", strategy=self.strategy, local=str(self.addresses.from_))
        try:
            self._tunnel.close()
        except Exception as e:
            logger.error("Error closing tunnel", strategy=self.strategy, error=str(e))

    async def wait_closed(self) -> None:
        """Close the tunnel and wait until its resources are released"""
        self.close()
        wait_closed = getattr(self._tunnel, "wait_closed", None)
        if wait_closed is None:
            return
        try:
            await wait_closed()
        except Exception as e:
            logger.error("Error waiting for tunnel shutdown", strategy=self.strategy, error=str(e))

    async def __aenter__(self) -> TunnelHandle:
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: TracebackType | None,
    ) -> None:
        await self.wait_closed()

    def __repr__(self) -> str:
        state = "closed" if self._closed else "open"
        return (
            f"TunnelHandle({self.strategy}, {self.addresses.from_} -> "
            f"{self.addresses.server} -> {self.addresses.to}, {state})"
        )
