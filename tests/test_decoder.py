from __future__ import annotations

import pytest

from tremorctl.core.decoder import decode, parse_hex_payload
from tremorctl.core.errors import DecodeError, PayloadTooShortError
from tremorctl.core.model import TremorState


@pytest.mark.parametrize(
    ("payload", "state", "raw"),
    [
        (bytes([0x01, 0x00]), TremorState.TREMOR, 0x0001),
        (bytes([0x00, 0x02]), TremorState.DYSKINESIA, 0x0200),
        (bytes([0x01, 0x02]), TremorState.TREMOR_AND_DYSKINESIA, 0x0201),
        (bytes([0xFF, 0xFF]), TremorState.UNKNOWN, 0xFFFF),
    ],
)
def test_decode_is_little_endian(payload: bytes, state: TremorState, raw: int) -> None:
    reading = decode(payload)
    assert reading.state is state
    assert reading.raw_value == raw


def test_big_endian_reading_of_tremor_is_unknown() -> None:
    reading = decode(bytes([0x00, 0x01]))
    assert reading.state is TremorState.UNKNOWN
    assert reading.raw_value == 0x0100


@pytest.mark.parametrize("payload", [b"", b"\x01"])
def test_short_payload_rejected(payload: bytes) -> None:
    with pytest.raises(PayloadTooShortError):
        decode(payload)


def test_trailing_bytes_ignored() -> None:
    assert decode(bytes([0x01, 0x02, 0xAA, 0xBB])).state is TremorState.TREMOR_AND_DYSKINESIA


def test_decode_accepts_bytearray() -> None:
    assert decode(bytearray(b"\x01\x00")).state is TremorState.TREMOR


def test_decode_is_total_over_u16() -> None:
    known = {0x0001, 0x0200, 0x0201}
    for value in range(0x10000):
        reading = decode(value.to_bytes(2, "little"))
        assert reading.raw_value == value
        if value in known:
            assert reading.state is not TremorState.UNKNOWN
        else:
            assert reading.state is TremorState.UNKNOWN


def test_labels() -> None:
    assert decode(b"\x01\x00").label == "Tremor Detected"
    assert decode(b"\x00\x02").label == "Dyskinesia Detected"
    assert decode(b"\x01\x02").label == "Tremor and Dyskinesia Detected"
    assert decode(b"\x2a\x00").label == "Unknown State: 0x002A"


def test_parse_hex_payload_tolerates_prefix_and_spaces() -> None:
    assert parse_hex_payload("0x01 02") == b"\x01\x02"
    assert parse_hex_payload("01:02") == b"\x01\x02"


@pytest.mark.parametrize("text", ["012", "zz00"])
def test_parse_hex_payload_rejects_bad_input(text: str) -> None:
    with pytest.raises(DecodeError):
        parse_hex_payload(text)
