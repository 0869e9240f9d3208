"""Deploy Tunnel - SSH local port forwarding for deployments."""

from .common.exceptions import (
    ConfigurationError,
    DeployTunnelError,
    ProtocolInvalid,
    TunnelError,
    TunnelOpenError,
    TunnelRuntimeError,
)
from .common.logging import get_logger, setup_logging
from .config import DeployDefaults, TunnelSettings
from .models import (
    Address,
    AddressTriple,
    ProgressEvent,
    ProgressType,
    TunnelHandle,
    TunnelRequest,
)
from .opener import TunnelOpener, start_tunnel
from .strategies import (
    EmbeddedSshTunnel,
    NativeSshTunnel,
    TunnelStrategy,
)

# Setup logging on package initialization
setup_logging()

# Package level logger
logger = get_logger(__name__)

__version__ = "0.1.0"


__all__ = [
    # High-level API
    "start_tunnel",
    "TunnelOpener",
    # Models
    "Address",
    "AddressTriple",
    "TunnelRequest",
    "TunnelHandle",
    "ProgressEvent",
    "ProgressType",
    # Configuration
    "DeployDefaults",
    "TunnelSettings",
    # Strategies
    "TunnelStrategy",
    "NativeSshTunnel",
    "EmbeddedSshTunnel",
    # Exceptions
    "DeployTunnelError",
    "ConfigurationError",
    "ProtocolInvalid",
    "TunnelError",
    "TunnelOpenError",
    "TunnelRuntimeError",
    # Utilities
    "get_logger",
    "setup_logging",
]
