"""Common utilities and shared functionality."""

from .exceptions import (
    ConfigurationError,
    DeployTunnelError,
    ProtocolInvalid,
    TunnelError,
    TunnelOpenError,
    TunnelRuntimeError,
)
from .logging import get_logger, setup_logging
from .utils import (
    default_private_key_path,
    find_free_port,
    read_private_key,
    validate_non_empty_string,
)

__all__ = [
    # Exceptions
    "DeployTunnelError",
    "ConfigurationError",
    "ProtocolInvalid",
    "TunnelError",
    "TunnelOpenError",
    "TunnelRuntimeError",
    # Logging
    "get_logger",
    "setup_logging",
    # Utils
    "validate_non_empty_string",
    "default_private_key_path",
    "find_free_port",
    "read_private_key",
]
