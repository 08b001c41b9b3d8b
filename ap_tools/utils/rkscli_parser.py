"""Utilities for parsing Ruckus rkscli output.

Every parser takes the raw session transcript (banner, echo and result) and
returns a typed record.  Missing fields fall back to defaults; each parser
then runs a single evidence check and raises ParseError when the output
clearly isn't what the command produces.
"""

from __future__ import annotations

import re
from collections.abc import Mapping

from ap_tools.errors import ParseError
from ap_tools.models.records import (
    AdmissionControlInfo,
    AntennaInfo,
    ChannelInfo,
    ManagementStatus,
    RadioAdmissionControl,
    RadioAntenna,
    RadioChannel,
    SerialInfo,
)
from ap_tools.utils.prompts import command_response

UNKNOWN = "Unknown"


# ---------------------------------------------------------------------------
# Serial number / model (login banner)
# ---------------------------------------------------------------------------

# "Ruckus T670 Multimedia Hotzone Wireless AP: 952443000155"
_BANNER_RE = re.compile(r"Ruckus (.+) AP:\s*(\d+)")
_BARE_SERIAL_RE = re.compile(r":\s*(\d{12,})")

SERIAL_EXCERPT_LENGTH = 500


def parse_serial(raw: str) -> SerialInfo:
    """Parse model and serial from the banner printed before login."""
    m = _BANNER_RE.search(raw)
    if m:
        return SerialInfo(model=m.group(1).strip(), serial=m.group(2))

    m = _BARE_SERIAL_RE.search(raw)
    if m:
        return SerialInfo(model=UNKNOWN, serial=m.group(1))

    raise ParseError(
        "Serial number not found in output",
        raw,
        excerpt_length=SERIAL_EXCERPT_LENGTH,
    )


# ---------------------------------------------------------------------------
# get acx
# ---------------------------------------------------------------------------

_ACX_HEARTBEAT_RE = re.compile(r"ACX heartbeat intervals:\s*(\d+)", re.IGNORECASE)


def _line_value(text: str, label: str) -> str:
    """Value after ``label`` on a line that starts with it."""
    m = re.search(
        rf"^\s*{re.escape(label)}[ \t]*(.+)$",
        text,
        re.IGNORECASE | re.MULTILINE,
    )
    return m.group(1).strip() if m else ""


def parse_acx_status(raw: str, command: str = "get acx") -> ManagementStatus:
    text = command_response(raw, command)

    hm = _ACX_HEARTBEAT_RE.search(text)
    status = ManagementStatus(
        service_enabled="ACX Service is enabled" in text,
        managed="AP is managed by ACX" in text,
        state=_line_value(text, "State:"),
        connection_status=_line_value(text, "Connection status:"),
        server_list=_line_value(text, "Server List:"),
        config_update_state=_line_value(text, "Configuration Update State:"),
        heartbeat_interval_seconds=int(hm.group(1)) if hm else 0,
        cert_validation=_line_value(text, "Controller Cert Validation Result:"),
    )

    if not status.state and not status.connection_status:
        raise ParseError("Unable to parse ACX status", raw)
    return status


# ---------------------------------------------------------------------------
# get extant / get extantgain
# ---------------------------------------------------------------------------

_ANTENNA_MODE_RE = re.compile(r"External Antenna Mode:\s*(\w+)", re.IGNORECASE)
_ANTENNA_GAIN_RE = re.compile(r"External Antenna Gain:[ \t]*(.+)", re.IGNORECASE)


def parse_antenna_mode(raw: str, radio: str) -> str:
    m = _ANTENNA_MODE_RE.search(command_response(raw, f"get extant {radio}"))
    return m.group(1).strip() if m else UNKNOWN


def parse_antenna_gain(raw: str, radio: str) -> str:
    m = _ANTENNA_GAIN_RE.search(command_response(raw, f"get extantgain {radio}"))
    return m.group(1).strip() if m else UNKNOWN


def parse_antenna_info(
    mode_outputs: Mapping[str, str],
    gain_outputs: Mapping[str, str],
) -> AntennaInfo:
    """Combine per-radio ``get extant`` and ``get extantgain`` transcripts."""
    radios = {
        radio: RadioAntenna(
            mode=parse_antenna_mode(mode_outputs[radio], radio),
            gain=parse_antenna_gain(gain_outputs.get(radio, ""), radio),
        )
        for radio in mode_outputs
    }
    if all(r.mode == UNKNOWN for r in radios.values()):
        raw = "\n".join(mode_outputs.values())
        raise ParseError("Unable to parse external antenna information", raw)
    return AntennaInfo(radios=radios)


# ---------------------------------------------------------------------------
# get admctl
# ---------------------------------------------------------------------------

ADMCTL_MARKER = "Client Admission Control"

_ADMCTL_STATE_RE = re.compile(r"Client Admission Control:\s*(Enabled|Disabled)", re.IGNORECASE)
_RADIO_LOAD_RE = re.compile(r"Radio Load threshold:\s*(\d+)\s*%")
_CLIENT_COUNT_RE = re.compile(r"Client Count threshold:\s*(\d+)\s*clients")
_THROUGHPUT_RE = re.compile(r"Client throughput threshold:\s*(\d+(?:\.\d+)?)\s*Mbps")


def parse_admission_control(raw: str, radio: str = "") -> RadioAdmissionControl:
    text = command_response(raw, f"get admctl {radio}" if radio else "")

    sm = _ADMCTL_STATE_RE.search(text)
    lm = _RADIO_LOAD_RE.search(text)
    cm = _CLIENT_COUNT_RE.search(text)
    tm = _THROUGHPUT_RE.search(text)
    return RadioAdmissionControl(
        enabled=bool(sm) and sm.group(1).lower() == "enabled",
        radio_load_threshold_percent=int(lm.group(1)) if lm else 0,
        client_count_threshold=int(cm.group(1)) if cm else 0,
        client_throughput_threshold_mbps=float(tm.group(1)) if tm else 0.0,
    )


def parse_admission_control_info(outputs: Mapping[str, str]) -> AdmissionControlInfo:
    for raw in outputs.values():
        if ADMCTL_MARKER not in raw:
            raise ParseError("Unable to parse client admission control information", raw)
    return AdmissionControlInfo(
        radios={radio: parse_admission_control(raw, radio) for radio, raw in outputs.items()},
    )


# ---------------------------------------------------------------------------
# get channel
# ---------------------------------------------------------------------------

RADIO_OFF_MARKER = "Radio Off"
INVALID_RADIO_MARKER = "Invalid radio interface"

_CHANNEL_RE = re.compile(r"Channel[:\s]+(\d+)", re.IGNORECASE)
_FREQUENCY_RE = re.compile(r"\(\s*(\d{4})\s*MHz\s*\)", re.IGNORECASE)
_OK_RE = re.compile(r"^\s*OK\s*$", re.MULTILINE)

# Without a frequency the band follows the conventional radio order; the
# third radio is a 6GHz radio on tri-band models and a second 5GHz otherwise.
RADIO_BAND_CONVENTION: dict[str, str] = {
    "wifi0": "2.4GHz",
    "wifi1": "5GHz",
    "wifi2": "6GHz/5GHz",
}


def band_for_frequency(mhz: int) -> str:
    if 2400 <= mhz <= 2500:
        return "2.4GHz"
    if 5000 <= mhz <= 5900:
        return "5GHz"
    if 5925 <= mhz <= 7125:
        return "6GHz"
    return UNKNOWN


def parse_channel(raw: str, radio: str) -> RadioChannel | None:
    """Parse one radio's ``get channel`` reply.

    Returns None when the device doesn't have the radio at all.
    """
    text = command_response(raw, f"get channel {radio}")
    fallback_band = RADIO_BAND_CONVENTION.get(radio)

    if INVALID_RADIO_MARKER in text:
        return None

    if RADIO_OFF_MARKER in text:
        return RadioChannel(
            radio_enabled=False,
            status="Radio Off (no WLAN is enabled)",
            band=fallback_band,
        )

    m = _CHANNEL_RE.search(text)
    if m:
        fm = _FREQUENCY_RE.search(text)
        band = band_for_frequency(int(fm.group(1))) if fm else fallback_band
        return RadioChannel(
            radio_enabled=True,
            channel=int(m.group(1)),
            status="OK",
            band=band,
        )

    if _OK_RE.search(text):
        return RadioChannel(
            radio_enabled=True,
            status="OK - channel information not available",
            band=fallback_band,
        )

    return RadioChannel(radio_enabled=False, status="Unknown status", band=fallback_band)


def _has_channel_markers(text: str) -> bool:
    return (
        INVALID_RADIO_MARKER in text
        or RADIO_OFF_MARKER in text
        or _CHANNEL_RE.search(text) is not None
        or _OK_RE.search(text) is not None
    )


def parse_channel_info(outputs: Mapping[str, str]) -> ChannelInfo:
    recognised = [
        radio for radio, raw in outputs.items()
        if _has_channel_markers(command_response(raw, f"get channel {radio}"))
    ]
    if not recognised:
        raw = "\n".join(outputs.values())
        raise ParseError("Unable to parse WiFi channel information", raw)

    radios: dict[str, RadioChannel] = {}
    for radio, raw in outputs.items():
        parsed = parse_channel(raw, radio)
        if parsed is not None:
            radios[radio] = parsed
    return ChannelInfo(radios=radios)
