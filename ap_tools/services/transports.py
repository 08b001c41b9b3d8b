"""Shell transports: a direct SSH channel or ssh run inside a container.

Both give the session driver the same small surface (open, read, write,
finish, close) and differ only in how they reach the device and in what a
deadline means for them.  The SSH transport uses scrapli (paramiko
transport) run inside a per-session thread pool so the event loop is never
blocked and concurrent sessions really run in parallel.
"""

from __future__ import annotations

import asyncio
from abc import ABC, abstractmethod
from concurrent.futures import Future, ThreadPoolExecutor
from typing import Callable, Optional

from scrapli.driver import Driver
from scrapli.exceptions import (
    ScrapliAuthenticationFailed,
    ScrapliConnectionError,
    ScrapliException,
)

from ap_tools.config import ConnectionParameters, Settings
from ap_tools.errors import DeviceConnectionError
from ap_tools.utils.logging import get_logger

log = get_logger(__name__)


class ShellTransport(ABC):
    """One interactive shell; a new instance is used for every session."""

    name: str = "shell"
    # Supervised transports report a deadline as an error instead of
    # returning the partial transcript.
    raises_on_timeout: bool = False

    @abstractmethod
    async def open(self, params: ConnectionParameters) -> None: ...

    @abstractmethod
    async def read(self) -> str:
        """Next chunk of output with carriage returns removed; "" at EOF."""

    @abstractmethod
    async def write(self, text: str, *, secret: bool = False) -> None:
        """Send *text* followed by a line terminator."""

    async def finish(self, timeout: float) -> None:
        """Called once the conversation is over, before close()."""

    @abstractmethod
    async def close(self) -> None:
        """Release the channel; safe to call more than once."""


# ---------------------------------------------------------------------------
# Direct SSH (scrapli / paramiko)
# ---------------------------------------------------------------------------


class SSHTransport(ShellTransport):
    name = "ssh"
    raises_on_timeout = False

    def __init__(self, *, timeout: float = 10.0) -> None:
        self._timeout = timeout
        self._driver: Optional[Driver] = None
        self._opening: Optional[Future] = None
        # Two workers so close() can run while a read is blocked
        self._executor = ThreadPoolExecutor(max_workers=2, thread_name_prefix="ssh")
        self._closed = False

    def _build_driver(self, params: ConnectionParameters) -> Driver:
        return Driver(
            host=params.host,
            port=params.port,
            auth_username=params.username,
            auth_password=params.password.get_secret_value(),
            auth_strict_key=False,
            transport="paramiko",
            timeout_socket=self._timeout,
            timeout_transport=self._timeout,
            timeout_ops=self._timeout,
        )

    async def _run(self, fn, *args):
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(self._executor, fn, *args)

    async def open(self, params: ConnectionParameters) -> None:
        log.info("ssh.connecting", host=params.host, port=params.port)
        driver = self._build_driver(params)
        # Tracked before connecting so close() can reach a driver that is
        # still opening when the caller gives up on it.
        self._driver = driver
        self._opening = self._executor.submit(_open_wrapper, driver)
        try:
            await asyncio.wrap_future(self._opening)
        except ScrapliAuthenticationFailed as exc:
            self._driver = None
            raise DeviceConnectionError(
                f"SSH authentication failed for {params.username}@{params.host}",
            ) from exc
        except (ScrapliException, OSError) as exc:
            self._driver = None
            raise DeviceConnectionError(f"SSH connection failed: {exc}") from exc
        log.info("ssh.connected", host=params.host)

    async def read(self) -> str:
        if self._driver is None:
            return ""
        data = await self._run(_read_wrapper, self._driver)
        return data.decode("utf-8", errors="replace")

    async def write(self, text: str, *, secret: bool = False) -> None:
        if self._driver is None:
            raise DeviceConnectionError("SSH channel is not open")
        try:
            await self._run(_write_wrapper, self._driver, text, secret)
        except ScrapliException as exc:
            raise DeviceConnectionError(f"SSH write failed: {exc}") from exc

    async def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        driver, self._driver = self._driver, None
        if driver is not None:
            if self._opening is not None and not self._opening.done():
                # open() was abandoned mid-connect; close once it returns
                log.debug("ssh.close_deferred")
                self._opening.add_done_callback(_close_when_opened(driver))
            else:
                await self._run(_close_wrapper, driver)
                log.info("ssh.closed")
        self._executor.shutdown(wait=False)


# ── module-level sync wrappers (executor-friendly) ────────────────────────


def _open_wrapper(driver: Driver) -> None:
    driver.open()


def _read_wrapper(driver: Driver) -> bytes:
    """Bytes read; b"" once the device closes the channel."""
    try:
        return driver.channel.read()
    except ScrapliConnectionError:
        return b""


def _write_wrapper(driver: Driver, text: str, secret: bool) -> None:
    driver.channel.write(channel_input=text, redacted=secret)
    driver.channel.send_return()


def _close_wrapper(driver: Driver) -> None:
    try:
        driver.close()
    except ScrapliException as exc:
        log.debug("ssh.close_failed", error=str(exc))


def _close_when_opened(driver: Driver) -> Callable[[Future], None]:
    def callback(future: Future) -> None:
        if future.cancelled() or future.exception() is not None:
            return
        _close_wrapper(driver)
        log.info("ssh.closed", deferred=True)

    return callback


# ---------------------------------------------------------------------------
# ssh inside a container (process-supervised)
# ---------------------------------------------------------------------------

DEFAULT_DOCKER_IMAGE = "dogkeeper886/ssh-sshrsa"
READ_CHUNK = 4096


class DockerTransport(ShellTransport):
    """Runs the OpenSSH client in ``docker run -i`` and talks over its pipes."""

    name = "docker"
    raises_on_timeout = True

    def __init__(
        self,
        image: str = DEFAULT_DOCKER_IMAGE,
        *,
        connect_timeout: int = 30,
    ) -> None:
        self._image = image
        self._connect_timeout = connect_timeout
        self._proc: Optional[asyncio.subprocess.Process] = None
        self._stderr: Optional[asyncio.Task] = None

    def command_line(self, params: ConnectionParameters) -> list[str]:
        return [
            "docker", "run", "--rm", "-i",
            self._image,
            "ssh",
            "-o", "StrictHostKeyChecking=no",
            "-o", "UserKnownHostsFile=/dev/null",
            "-o", f"ConnectTimeout={self._connect_timeout}",
            "-p", str(params.port),
            f"{params.username}@{params.host}",
        ]

    async def open(self, params: ConnectionParameters) -> None:
        log.info("docker.starting", image=self._image, host=params.host)
        try:
            self._proc = await asyncio.create_subprocess_exec(
                *self.command_line(params),
                stdin=asyncio.subprocess.PIPE,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
            )
        except OSError as exc:
            raise DeviceConnectionError(
                f"Failed to start Docker process: {exc}",
            ) from exc
        self._stderr = asyncio.ensure_future(self._proc.stderr.read())

    async def read(self) -> str:
        if self._proc is None:
            return ""
        data = await self._proc.stdout.read(READ_CHUNK)
        return data.decode("utf-8", errors="replace").replace("\r", "")

    async def write(self, text: str, *, secret: bool = False) -> None:
        if self._proc is None:
            raise DeviceConnectionError("Docker process is not running")
        try:
            self._proc.stdin.write(f"{text}\n".encode())
            await self._proc.stdin.drain()
        except (BrokenPipeError, ConnectionResetError) as exc:
            raise DeviceConnectionError("SSH process closed its input") from exc

    async def finish(self, timeout: float) -> None:
        """Wait for ssh to exit; asyncio.TimeoutError if it doesn't in time."""
        if self._proc is None:
            return
        rc = await asyncio.wait_for(self._proc.wait(), timeout)
        log.debug("docker.exit", rc=rc)
        if rc != 0:
            err = (await self._stderr).decode(errors="replace") if self._stderr else ""
            raise DeviceConnectionError(
                f"SSH process exited with code {rc}. Error: {err.strip()}",
            )

    async def close(self) -> None:
        proc, self._proc = self._proc, None
        if proc is not None and proc.returncode is None:
            proc.kill()
            await proc.wait()
        if self._stderr is not None and not self._stderr.done():
            self._stderr.cancel()


# ---------------------------------------------------------------------------
# Factory
# ---------------------------------------------------------------------------

TransportFactory = Callable[[], ShellTransport]


def transport_factory(cfg: Settings) -> TransportFactory:
    """Return a callable building a fresh transport for every session."""
    if cfg.ap_transport == "docker":
        return lambda: DockerTransport(cfg.ap_docker_image)
    return lambda: SSHTransport(timeout=cfg.ap_session_timeout_seconds)
