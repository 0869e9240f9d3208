"""Custom exceptions for deploy tunnel."""


class DeployTunnelError(Exception):
    """Base exception for all deploy tunnel errors."""
    pass


class ConfigurationError(DeployTunnelError):
    """Raised when required options are missing or invalid."""
    pass


class ProtocolInvalid(DeployTunnelError):
    """Raised when the server URL does not use the ssh scheme."""

    def __init__(self, message: str = "Protocol is invalid.") -> None:
        super().__init__(message)


class TunnelError(DeployTunnelError):
    """Base exception for tunnel lifecycle failures."""
    pass


class TunnelOpenError(TunnelError):
    """Raised when a native ssh tunnel fails to come up."""

    def __init__(self, message: str, stderr: str | None = None) -> None:
        super().__init__(message)
        self.stderr = stderr


class TunnelRuntimeError(TunnelError):
    """Wraps an error reported by an already opened tunnel."""

    def __init__(self, message: str, error: BaseException) -> None:
        super().__init__(message)
        self.error = error
        self.__cause__ = error
