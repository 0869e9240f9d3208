"""Configuration models for deploy tunnels."""

from pathlib import Path

from pydantic import BaseModel, ConfigDict, Field, field_validator

from .common.utils import validate_non_empty_string


class DeployDefaults(BaseModel):
    """Destination endpoint on the deployment server.

    The tunnel forwards the local port to this host/port as seen from the
    SSH server.
    """

    model_config = ConfigDict(frozen=True, str_strip_whitespace=True, extra="forbid")

    host: str = Field(default="localhost", min_length=1, description="Destination host")
    port: int = Field(default=3000, ge=1, le=65535, description="Destination port")


class TunnelSettings(BaseModel):
    """Tunable behaviour of the tunnel strategies"""

    model_config = ConfigDict(
        str_strip_whitespace=True,
        validate_assignment=True,
        extra="forbid",
    )

    ssh_binary: str = Field(default="ssh", description="Native ssh client to look up on PATH")
    private_key_path: Path | None = Field(
        default=None, description="Private key for the embedded tunnel, ~/.ssh/id_rsa if unset"
    )
    keepalive_interval: float = Field(default=30.0, ge=1.0, le=600.0, description="Keep-alive interval in seconds")
    keepalive_count_max: int = Field(default=3, ge=1, le=100, description="Missed keep-alives before disconnect")
    startup_timeout: float = Field(default=15.0, ge=0.1, le=300.0, description="Native tunnel startup timeout")
    graceful_shutdown_timeout: float = Field(default=3.0, ge=0.1, le=30.0, description="Wait before killing ssh")
    known_hosts: str | None = Field(
        default=None, description="known_hosts file for the embedded tunnel, ~/.ssh/known_hosts if unset"
    )
    verify_host_keys: bool = Field(default=True, description="Check server host keys in the embedded tunnel")
    extra_ssh_options: list[str] = Field(default_factory=list, description="Extra -o options for native ssh")

    @field_validator("ssh_binary")
    @classmethod
    def validate_ssh_binary(cls, v: str) -> str:
        return validate_non_empty_string(v, "ssh_binary")

    @field_validator("extra_ssh_options")
    @classmethod
    def validate_ssh_options(cls, v: list[str]) -> list[str]:
        """Options are passed as ``-o Key=Value``"""
        for option in v:
            if "=" not in option or option.startswith("-"):
                raise ValueError(f"SSH option must look like Key=Value: {option!r}")
        return v
