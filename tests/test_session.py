"""Tests for the login state machine and the session runner."""

from __future__ import annotations

import asyncio

import pytest

from ap_tools.errors import DeviceConnectionError, SessionTimeoutError
from ap_tools.services.session import LoginHandshake, SessionState, run_session
from tests.mock_transport import (
    GET_ACX,
    TEST_PASSWORD,
    FakeRksDevice,
    FakeTransport,
    params,
    transcript,
)

FULL_ORDER = [
    SessionState.AWAITING_LOGIN,
    SessionState.AWAITING_PASSWORD,
    SessionState.AUTHENTICATED,
    SessionState.COMMAND_SENT,
    SessionState.DONE,
]


class TestLoginHandshake:
    def test_step_by_step(self):
        hs = LoginHandshake(params(), "get acx", command_settle=0.1)
        assert hs.state is SessionState.AWAITING_LOGIN

        [reply] = hs.feed("Ruckus banner\nPlease login: ")
        assert reply.text == "admin"
        assert hs.state is SessionState.AWAITING_PASSWORD

        [reply] = hs.feed("admin\npassword : ")
        assert reply.text == TEST_PASSWORD
        assert reply.secret
        assert hs.state is SessionState.AUTHENTICATED

        [reply] = hs.feed("\nrkscli: ")
        assert reply.text == "get acx"
        assert hs.state is SessionState.COMMAND_SENT

        assert hs.feed("get acx\nState: RUN_STATE\n") == []
        [reply] = hs.feed("OK\nrkscli: ")
        assert reply.text == "exit"
        assert reply.delay == 0.1
        assert hs.state is SessionState.DONE
        assert hs.history == FULL_ORDER

    def test_empty_command_exits_at_prompt(self):
        hs = LoginHandshake(params(), "", banner_settle=1.0)
        hs.feed("Please login: ")
        hs.feed("password : ")
        [reply] = hs.feed("rkscli: ")
        assert reply.text == "exit"
        assert reply.delay == 1.0
        assert SessionState.COMMAND_SENT not in hs.history
        assert hs.state is SessionState.DONE

    def test_marker_split_across_chunks(self):
        hs = LoginHandshake(params(), "get acx")
        assert hs.feed("Please log") == []
        assert [r.text for r in hs.feed("in: ")] == ["admin"]
        assert hs.feed("pass") == []
        assert [r.text for r in hs.feed("word : rks")] == [TEST_PASSWORD]
        assert [r.text for r in hs.feed("cli: ")] == ["get acx"]

    @pytest.mark.parametrize("size", [1, 2, 3, 7, 64])
    def test_state_order_for_any_fragmentation(self, size):
        raw = transcript("get acx", GET_ACX)
        hs = LoginHandshake(params(), "get acx")
        for i in range(0, len(raw), size):
            hs.feed(raw[i:i + size])
        assert hs.history == FULL_ORDER
        assert hs.buffer == raw

    def test_whole_transcript_in_one_chunk(self):
        hs = LoginHandshake(params(), "get acx")
        replies = hs.feed(transcript("get acx", GET_ACX))
        assert [r.text for r in replies] == ["admin", TEST_PASSWORD, "get acx", "exit"]

    def test_old_prompt_not_taken_as_completion(self):
        hs = LoginHandshake(params(), "get acx")
        hs.feed("Please login: password : rkscli: ")
        assert hs.state is SessionState.COMMAND_SENT
        assert hs.feed("get acx\n") == []
        assert hs.state is SessionState.COMMAND_SENT

    def test_rejected_credentials(self):
        hs = LoginHandshake(params(), "get acx")
        hs.feed("Please login: ")
        hs.feed("password : ")
        with pytest.raises(DeviceConnectionError, match="Authentication rejected"):
            hs.feed("\nLogin incorrect\nPlease login: ")

    def test_no_replies_after_done(self):
        hs = LoginHandshake(params(), "")
        hs.feed("Please login: password : rkscli: ")
        assert hs.done
        assert hs.feed("rkscli: rkscli: ") == []


class TestRunSession:
    @pytest.mark.asyncio
    async def test_command_session(self):
        transport = FakeTransport()
        raw = await run_session(params(), "get acx", transport=transport, timeout=2)
        assert "ACX Service is enabled." in raw
        assert raw.rstrip().endswith("exit")
        assert transport.device.inputs == ["admin", TEST_PASSWORD, "get acx", "exit"]
        assert transport.secret_writes == [False, True, False, False]
        assert transport.closed
        assert transport.finished

    @pytest.mark.asyncio
    async def test_banner_session(self):
        transport = FakeTransport()
        raw = await run_session(params(), "", transport=transport, timeout=2)
        assert "Ruckus T670 Multimedia Hotzone Wireless AP: 952443000155" in raw
        assert transport.device.inputs == ["admin", TEST_PASSWORD, "exit"]

    @pytest.mark.asyncio
    async def test_one_char_chunks(self):
        transport = FakeTransport(FakeRksDevice(chunk_size=1))
        raw = await run_session(params(), "get acx", transport=transport, timeout=5)
        assert "State: RUN_STATE" in raw

    @pytest.mark.asyncio
    async def test_wrong_password(self):
        transport = FakeTransport(FakeRksDevice(password="other"))
        with pytest.raises(DeviceConnectionError, match="Authentication rejected"):
            await run_session(params(), "get acx", transport=transport, timeout=2)
        assert transport.closed

    @pytest.mark.asyncio
    async def test_timeout_after_login_returns_partial_output(self):
        device = FakeRksDevice(hang_on=("get acx",))
        transport = FakeTransport(device)
        raw = await run_session(params(), "get acx", transport=transport, timeout=0.3)
        assert "ACX Service is enabled." in raw
        assert "exit" not in device.inputs
        assert transport.closed

    @pytest.mark.asyncio
    async def test_timeout_on_supervised_transport_raises(self):
        device = FakeRksDevice(hang_on=("get acx",))
        transport = FakeTransport(device, raises_on_timeout=True)
        with pytest.raises(SessionTimeoutError):
            await run_session(params(), "get acx", transport=transport, timeout=0.3)
        assert transport.closed

    @pytest.mark.asyncio
    async def test_timeout_before_login_is_connection_error(self):
        transport = FakeTransport(FakeRksDevice(silent=True))
        with pytest.raises(DeviceConnectionError, match="did not complete"):
            await run_session(params(), "get acx", transport=transport, timeout=0.2)

    @pytest.mark.asyncio
    async def test_eof_before_login(self):
        device = FakeRksDevice(silent=True)
        device.eof = True
        transport = FakeTransport(device)
        with pytest.raises(DeviceConnectionError, match="closed before login"):
            await run_session(params(), "get acx", transport=transport, timeout=2)

    @pytest.mark.asyncio
    async def test_password_never_logged(self, capsys):
        import structlog

        from ap_tools.utils.logging import setup_logging

        setup_logging(verbose=True)
        try:
            await run_session(params(), "get acx", transport=FakeTransport(), timeout=2)
        finally:
            structlog.reset_defaults()
        captured = capsys.readouterr()
        assert "session.send" in captured.err
        assert "<redacted>" in captured.err
        assert TEST_PASSWORD not in captured.err
        assert TEST_PASSWORD not in captured.out

    @pytest.mark.asyncio
    async def test_cancelled_mid_read_closes_transport(self):
        transport = FakeTransport(FakeRksDevice(hang_on=("get acx",)))
        task = asyncio.ensure_future(
            run_session(params(), "get acx", transport=transport, timeout=5),
        )
        for _ in range(200):
            if "get acx" in transport.device.inputs:
                break
            await asyncio.sleep(0.01)
        task.cancel()
        with pytest.raises(asyncio.CancelledError):
            await task
        assert transport.closed
        assert "exit" not in transport.device.inputs
