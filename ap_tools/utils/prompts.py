"""rkscli prompt markers and buffer scanning helpers.

The device emits its prompts in arbitrary fragments, so every search here
runs over the cumulative session buffer starting at an offset, never over a
single received chunk.
"""

from __future__ import annotations

import re

LOGIN_MARKER = "login:"
PASSWORD_MARKER = "password"
COMMAND_PROMPT = "rkscli:"
LOGIN_RETRY_MARKER = "Please login:"
EXIT_COMMAND = "exit"


def find_marker(
    buffer: str,
    marker: str,
    start: int = 0,
    *,
    ignore_case: bool = False,
) -> int | None:
    """Return the offset just past *marker* in ``buffer[start:]``, or None."""
    haystack = buffer.lower() if ignore_case else buffer
    needle = marker.lower() if ignore_case else marker
    pos = haystack.find(needle, start)
    if pos < 0:
        return None
    return pos + len(needle)


def find_login(buffer: str, start: int = 0) -> int | None:
    return find_marker(buffer, LOGIN_MARKER, start, ignore_case=True)


def find_password(buffer: str, start: int = 0) -> int | None:
    return find_marker(buffer, PASSWORD_MARKER, start, ignore_case=True)


def find_prompt(buffer: str, start: int = 0) -> int | None:
    return find_marker(buffer, COMMAND_PROMPT, start)


def find_login_retry(buffer: str, start: int = 0) -> int | None:
    """The device asks for the login again after rejecting credentials."""
    return find_marker(buffer, LOGIN_RETRY_MARKER, start, ignore_case=True)


# ---------------------------------------------------------------------------
# Transcript slicing
# ---------------------------------------------------------------------------


def command_response(raw: str, command: str) -> str:
    """Return the text the device printed in reply to *command*.

    The section starts after the last echo of the command and stops at the
    next command prompt.  Transcripts without an echo (or an empty command)
    are returned whole.
    """
    if not command:
        return raw
    echo = re.compile(
        rf"{re.escape(COMMAND_PROMPT)}\s*{re.escape(command)}[ \t]*\n",
    )
    matches = list(echo.finditer(raw))
    if not matches:
        return raw
    body = raw[matches[-1].end():]
    end = body.find(COMMAND_PROMPT)
    if end >= 0:
        body = body[:end]
    return body.strip("\n")
