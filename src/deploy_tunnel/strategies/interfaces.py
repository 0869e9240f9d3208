"""Protocol interfaces shared by the tunnel strategies."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, Protocol

if TYPE_CHECKING:
    from ..models import AddressTriple


class OpenTunnel(Protocol):
    """An established tunnel owned by a TunnelHandle."""

    def close(self) -> None:
        """Start shutting the tunnel down."""
        ...


class TunnelStrategy(Protocol):
    """A way of opening a local port forward."""

    name: str

    async def open(self, addresses: AddressTriple, username: str, **kwargs: Any) -> OpenTunnel:
        """Open a forward from ``addresses.from_`` to ``addresses.to`` via ``addresses.server``."""
        ...
