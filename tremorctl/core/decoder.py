"""Status code decoding for the tremor characteristic."""

from __future__ import annotations

import re

from tremorctl.core.errors import DecodeError, PayloadTooShortError
from tremorctl.core.model import TremorReading, TremorState

_HEX_RE = re.compile(r"^[0-9a-f]*$")

_STATES = {
    0x0001: TremorState.TREMOR,
    0x0200: TremorState.DYSKINESIA,
    0x0201: TremorState.TREMOR_AND_DYSKINESIA,
}


def decode(payload: bytes | bytearray) -> TremorReading:
    """Decode a little-endian u16 status code from the first two bytes.

    Bytes past index 1 are ignored. Every 16-bit value decodes; values
    outside the table map to ``TremorState.UNKNOWN``.
    """
    if len(payload) < 2:
        raise PayloadTooShortError(
            f"Payload must carry at least 2 bytes, got {len(payload)}"
        )
    raw_value = payload[0] | (payload[1] << 8)
    return TremorReading(raw_value=raw_value, state=_STATES.get(raw_value, TremorState.UNKNOWN))


def parse_hex_payload(text: str) -> bytes:
    normalized = text.strip().lower().replace(" ", "").replace(":", "")
    if normalized.startswith("0x"):
        normalized = normalized[2:]
    if len(normalized) % 2 != 0:
        raise DecodeError(f"Payload '{text}' must have even-length hex")
    if not _HEX_RE.match(normalized):
        raise DecodeError(f"Payload '{text}' must contain only [0-9a-f]")
    return bytes.fromhex(normalized)
