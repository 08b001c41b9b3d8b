"""Single-command rkscli session driver.

A session opens one shell, answers the device's login and password prompts,
sends at most one command, waits for the prompt to come back, exits and
returns everything the device printed.  Nothing survives between sessions.
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass
from enum import Enum

from ap_tools.config import ConnectionParameters
from ap_tools.errors import DeviceConnectionError, SessionTimeoutError
from ap_tools.services.transports import ShellTransport
from ap_tools.utils import prompts
from ap_tools.utils.logging import get_logger

log = get_logger(__name__)

# Delay before "exit": long enough for a slow command to finish printing,
# longer without a command so the whole banner arrives.
COMMAND_SETTLE_SECONDS = 0.1
BANNER_SETTLE_SECONDS = 1.0
DRAIN_SECONDS = 2.0


class SessionState(str, Enum):
    AWAITING_LOGIN = "awaiting_login"
    AWAITING_PASSWORD = "awaiting_password"
    AUTHENTICATED = "authenticated"
    COMMAND_SENT = "command_sent"
    DONE = "done"


@dataclass(frozen=True)
class Reply:
    """Text to write to the shell (a line terminator is appended)."""

    text: str
    delay: float = 0.0
    secret: bool = False


class LoginHandshake:
    """State machine fed with received text, answering with replies.

    Markers are searched in the cumulative buffer from the end of the last
    match, so prompts split across reads are still found and an old prompt
    is never taken for a new one.
    """

    def __init__(
        self,
        params: ConnectionParameters,
        command: str = "",
        *,
        command_settle: float | None = None,
        banner_settle: float | None = None,
    ) -> None:
        self._params = params
        self._command = command.strip()
        self._command_settle = COMMAND_SETTLE_SECONDS if command_settle is None else command_settle
        self._banner_settle = BANNER_SETTLE_SECONDS if banner_settle is None else banner_settle
        self._scan_from = 0
        self.buffer = ""
        self.state = SessionState.AWAITING_LOGIN
        self.history: list[SessionState] = [self.state]

    @property
    def authenticated(self) -> bool:
        return self.state in (
            SessionState.AUTHENTICATED,
            SessionState.COMMAND_SENT,
            SessionState.DONE,
        )

    @property
    def done(self) -> bool:
        return self.state is SessionState.DONE

    def feed(self, chunk: str) -> list[Reply]:
        """Append *chunk* and return the replies it triggers, in order."""
        self.buffer += chunk
        replies: list[Reply] = []
        while not self.done:
            reply = self._step()
            if reply is None:
                break
            replies.append(reply)
        return replies

    # ── transitions ───────────────────────────────────────────────────

    def _advance(self, state: SessionState, end: int) -> None:
        self._scan_from = end
        self.state = state
        self.history.append(state)

    def _step(self) -> Reply | None:
        if self.state is SessionState.AWAITING_LOGIN:
            end = prompts.find_login(self.buffer, self._scan_from)
            if end is None:
                return None
            self._advance(SessionState.AWAITING_PASSWORD, end)
            return Reply(self._params.username)

        if self.state is SessionState.AWAITING_PASSWORD:
            end = prompts.find_password(self.buffer, self._scan_from)
            if end is None:
                return None
            self._advance(SessionState.AUTHENTICATED, end)
            return Reply(self._params.password.get_secret_value(), secret=True)

        if self.state is SessionState.AUTHENTICATED:
            end = prompts.find_prompt(self.buffer, self._scan_from)
            retry = prompts.find_login_retry(self.buffer, self._scan_from)
            if retry is not None and (end is None or retry < end):
                raise DeviceConnectionError(
                    f"Authentication rejected for user {self._params.username!r}",
                )
            if end is None:
                return None
            if self._command:
                self._advance(SessionState.COMMAND_SENT, end)
                return Reply(self._command)
            self._advance(SessionState.DONE, end)
            return Reply(prompts.EXIT_COMMAND, delay=self._banner_settle)

        if self.state is SessionState.COMMAND_SENT:
            end = prompts.find_prompt(self.buffer, self._scan_from)
            if end is None:
                return None
            self._advance(SessionState.DONE, end)
            return Reply(prompts.EXIT_COMMAND, delay=self._command_settle)

        return None


# ---------------------------------------------------------------------------
# Session runner
# ---------------------------------------------------------------------------


async def _read(transport: ShellTransport, deadline: float) -> str | None:
    """Next chunk, None at EOF; asyncio.TimeoutError once *deadline* passes."""
    remaining = deadline - asyncio.get_running_loop().time()
    if remaining <= 0:
        raise asyncio.TimeoutError
    # wait_for on 3.10/3.11 can swallow a cancellation that races the read
    task = asyncio.ensure_future(transport.read())
    try:
        done, _ = await asyncio.wait({task}, timeout=remaining)
    finally:
        if not task.done():
            task.cancel()
    if not done:
        raise asyncio.TimeoutError
    return task.result() or None


async def run_session(
    params: ConnectionParameters,
    command: str = "",
    *,
    transport: ShellTransport,
    timeout: float,
    drain_timeout: float = DRAIN_SECONDS,
    handshake: LoginHandshake | None = None,
) -> str:
    """Run one command (or none, for the banner) and return the transcript.

    Raises DeviceConnectionError when the shell can't be opened or the login
    never completes.  When the deadline fires after login the transport's
    policy applies: direct transports return what was collected, supervised
    ones raise SessionTimeoutError.
    """
    hs = handshake or LoginHandshake(params, command)
    loop = asyncio.get_running_loop()
    deadline = loop.time() + timeout
    slog = log.bind(
        host=params.host,
        transport=transport.name,
        command=command or "<banner>",
    )

    try:
        try:
            await asyncio.wait_for(transport.open(params), timeout)
        except asyncio.TimeoutError as exc:
            raise DeviceConnectionError(
                f"Timed out connecting to {params.host}",
            ) from exc

        while not hs.done:
            chunk = await _read(transport, deadline)
            if chunk is None:
                slog.debug("session.eof", state=hs.state.value)
                break
            slog.debug("session.recv", state=hs.state.value, text=chunk[:100])
            for reply in hs.feed(chunk):
                if reply.delay:
                    await asyncio.sleep(reply.delay)
                slog.debug(
                    "session.send",
                    state=hs.state.value,
                    text="<redacted>" if reply.secret else reply.text,
                )
                await transport.write(reply.text, secret=reply.secret)

        if hs.done:
            await _drain(transport, hs, min(deadline, loop.time() + drain_timeout))

        await transport.finish(max(deadline - loop.time(), 0.0))

    except asyncio.TimeoutError:
        slog.warning("session.timeout", state=hs.state.value, received=len(hs.buffer))
        await transport.close()
        if transport.raises_on_timeout:
            raise SessionTimeoutError(
                f"SSH session to {params.host} timed out after {timeout:g}s "
                f"(state={hs.state.value})",
            ) from None
        if not hs.authenticated:
            raise DeviceConnectionError(
                f"Login to {params.host} did not complete within {timeout:g}s",
            ) from None
        return hs.buffer
    finally:
        await transport.close()

    if not hs.authenticated:
        raise DeviceConnectionError(
            f"Connection to {params.host} closed before login completed",
        )
    slog.debug("session.complete", states=[s.value for s in hs.history])
    return hs.buffer


async def _drain(transport: ShellTransport, hs: LoginHandshake, until: float) -> None:
    """Collect what the device prints after ``exit`` until EOF or *until*."""
    while True:
        try:
            chunk = await _read(transport, until)
        except asyncio.TimeoutError:
            return
        if chunk is None:
            return
        hs.feed(chunk)
