"""Local port forward through the host's native ssh client."""

from __future__ import annotations

import asyncio
import shlex
from typing import Any

from ..common.exceptions import TunnelOpenError
from ..common.logging import get_logger
from ..config import TunnelSettings
from ..models import Address, AddressTriple

logger = get_logger(__name__)

READY_POLL_INTERVAL = 0.1


class NativeTunnel:
    """A running ``ssh -N -L`` process."""

    def __init__(
        self,
        process: asyncio.subprocess.Process,
        addresses: AddressTriple,
        graceful_shutdown_timeout: float = 3.0,
    ):
        self._process = process
        self.addresses = addresses
        self.graceful_shutdown_timeout = graceful_shutdown_timeout
        self._stderr_task: asyncio.Task[None] | None = None

    @property
    def pid(self) -> int | None:
        """Get process ID if running"""
        if self.is_running():
            return self._process.pid
        return None

    def is_running(self) -> bool:
        return self._process.returncode is None

    def start_draining(self) -> None:
        """Keep reading ssh's stderr so a full pipe never blocks the process."""
        if self._stderr_task is None and self._process.stderr is not None:
            self._stderr_task = asyncio.create_task(self._drain_stderr(self._process.stderr))

    async def _drain_stderr(self, stream: asyncio.StreamReader) -> None:
        while True:
            try:
                line = await stream.readline()
            except ValueError:
                # Line longer than the stream limit; the buffer was discarded
                logger.warning("Discarded overlong ssh stderr line", pid=self._process.pid)
                continue
            if not line:
                return
            logger.debug("ssh stderr", pid=self._process.pid, message=line.decode(errors="replace").rstrip())

    def close(self) -> None:
        """Ask ssh to terminate."""
        if self._stderr_task is not None:
            self._stderr_task.cancel()

        if not self.is_running():
            logger.debug("ssh process not running, nothing to stop")
            return

        logger.info("Stopping ssh process", pid=self._process.pid)
        try:
            self._process.terminate()
        except ProcessLookupError:
            logger.debug("ssh process already gone", pid=self._process.pid)

    async def wait_closed(self) -> None:
        """Terminate ssh and reap it, force killing after the grace period."""
        self.close()
        try:
            await asyncio.wait_for(self._process.wait(), timeout=self.graceful_shutdown_timeout)
        except TimeoutError:
            logger.warning(
                "ssh did not terminate gracefully, force killing", pid=self._process.pid
            )
            try:
                self._process.kill()
            except ProcessLookupError:
                pass
            else:
                await self._process.wait()

        if self._stderr_task is not None:
            try:
                await self._stderr_task
            except asyncio.CancelledError:
                pass


class NativeSshTunnel:
    """Opens tunnels by spawning the ssh binary found on PATH."""

    name = "native"

    def __init__(self, settings: TunnelSettings | None = None, binary_path: str | None = None):
        """Initialize the strategy.

        Args:
            settings: Tunnel settings, defaults if not given
            binary_path: ssh executable, ``settings.ssh_binary`` if not given
        """
        self.settings = settings or TunnelSettings()
        self.binary_path = binary_path or self.settings.ssh_binary

    def build_command(self, addresses: AddressTriple, username: str) -> list[str]:
        """Build the ssh command line for a local port forward."""
        local, dest, server = addresses.from_, addresses.to, addresses.server
        options = [
            "ExitOnForwardFailure=yes",
            "BatchMode=yes",
            f"ServerAliveInterval={int(self.settings.keepalive_interval)}",
            f"ServerAliveCountMax={self.settings.keepalive_count_max}",
            *self.settings.extra_ssh_options,
        ]
        cmd = [self.binary_path, "-N"]
        for option in options:
            cmd += ["-o", option]
        cmd += [
            "-L",
            f"{local.host}:{local.port}:{dest.host}:{dest.port}",
            "-p",
            str(server.port),
            f"{username}@{server.host}",
        ]
        return cmd

    async def open(self, addresses: AddressTriple, username: str, **kwargs: Any) -> NativeTunnel:
        """Spawn ssh and wait until the local end of the forward accepts connections.

        Raises:
            TunnelOpenError: If ssh cannot be started, exits early or is not
                ready within ``settings.startup_timeout``
        """
        cmd = self.build_command(addresses, username)
        logger.info("Starting ssh process", command=" ".join(shlex.quote(c) for c in cmd))
        try:
            process = await asyncio.create_subprocess_exec(
                *cmd,
                stdin=asyncio.subprocess.DEVNULL,
                stdout=asyncio.subprocess.DEVNULL,
                stderr=asyncio.subprocess.PIPE,
            )
        except OSError as e:
            logger.error("Failed to start ssh process", error=str(e))
            raise TunnelOpenError(f"Failed to start ssh process: {e}") from e

        tunnel = NativeTunnel(process, addresses, self.settings.graceful_shutdown_timeout)
        try:
            await asyncio.wait_for(
                self._wait_until_ready(process, addresses.from_),
                timeout=self.settings.startup_timeout,
            )
        except TimeoutError:
            logger.error("ssh tunnel not ready in time", timeout=self.settings.startup_timeout)
            await tunnel.wait_closed()
            raise TunnelOpenError(
                f"ssh tunnel was not ready within {self.settings.startup_timeout:.1f}s"
            ) from None

        tunnel.start_draining()
        logger.info("ssh process started successfully", pid=process.pid)
        return tunnel

    async def _wait_until_ready(self, process: asyncio.subprocess.Process, local: Address) -> None:
        while True:
            if process.returncode is not None:
                stderr = b""
                if process.stderr is not None:
                    stderr = await process.stderr.read()
                message = stderr.decode(errors="replace").strip()
                logger.error("ssh exited early", returncode=process.returncode, stderr=message)
                raise TunnelOpenError(
                    f"ssh exited with code {process.returncode}", stderr=message or None
                )
            if await self._port_open(local):
                return
            await asyncio.sleep(READY_POLL_INTERVAL)

    @staticmethod
    async def _port_open(local: Address) -> bool:
        try:
            _, writer = await asyncio.open_connection(local.host, local.port)
        except OSError:
            return False
        writer.close()
        try:
            await writer.wait_closed()
        except OSError:
            pass
        return True
