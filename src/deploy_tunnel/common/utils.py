"""Utility functions for deploy tunnel."""

import asyncio
import os
import socket
from pathlib import Path

DEFAULT_PRIVATE_KEY = Path(".ssh") / "id_rsa"


def validate_non_empty_string(value: str, field_name: str) -> str:
    """Validate that a string is not empty or only whitespace.

    Args:
        value: String value to validate
        field_name: Name of the field for error messages

    Returns:
        Stripped string value

    Raises:
        ValueError: If string is empty or only whitespace
    """
    if not value or not value.strip():
        raise ValueError(f"{field_name} cannot be empty")
    return value.strip()


def default_private_key_path(home: str | os.PathLike[str] | None = None) -> Path:
    """Return the conventional private key location, ``<home>/.ssh/id_rsa``."""
    base = Path(home) if home is not None else Path.home()
    return base / DEFAULT_PRIVATE_KEY


def _bind_ephemeral(host: str) -> int:
    with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as sock:
        sock.bind((host, 0))
        return int(sock.getsockname()[1])


async def find_free_port(host: str = "localhost") -> int:
    """Ask the OS for a currently unused TCP port on ``host``.

    The port is released before returning, so another process may grab it
    before the tunnel binds it.
    """
    return await asyncio.to_thread(_bind_ephemeral, host)


async def read_private_key(path: str | os.PathLike[str]) -> bytes:
    """Read a private key file without blocking the event loop.

    Raises:
        OSError: If the file cannot be read
    """
    return await asyncio.to_thread(Path(path).read_bytes)
