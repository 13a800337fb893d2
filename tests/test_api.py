from __future__ import annotations

import asyncio

import pytest

from tremorctl.api import Client, PayloadTooShortError, TremorState
from tremorctl.core.events import RadioStateChanged
from tremorctl.core.model import RadioState


class OffCentral:
    def __init__(self) -> None:
        self.closed = False

    def current_state(self) -> RadioState:
        return RadioState.UNSUPPORTED

    async def start(self, emit) -> None:
        emit(RadioStateChanged(RadioState.UNSUPPORTED))

    async def close(self) -> None:
        self.closed = True


class StoppingSink:
    def __init__(self) -> None:
        self.service = None
        self.radio: list[RadioState] = []

    def on_radio_unavailable(self, state: RadioState) -> None:
        self.radio.append(state)
        self.service.stop()

    def on_connection_state_changed(self, connection) -> None:
        pass

    def on_reading(self, reading) -> None:
        pass

    def on_error(self, kind, context) -> None:
        pass


def test_public_client_list_profiles() -> None:
    client = Client()
    profiles = client.list_profiles()
    assert any(p.id == "tremor_ble" for p in profiles)
    assert client.get_profile().target.peripheral_name == "TremorBLE"


def test_public_client_decode_bytes_and_hex() -> None:
    client = Client()
    assert client.decode(b"\x01\x00").state is TremorState.TREMOR
    assert client.decode("0x0002").state is TremorState.DYSKINESIA
    with pytest.raises(PayloadTooShortError):
        client.decode(b"\x01")


def test_public_client_create_service_applies_overrides() -> None:
    central = OffCentral()
    client = Client(central=central)
    sink = StoppingSink()

    service = client.create_service(sink, peripheral_name="TremorBLE-Right", scan_timeout_s=12.0)
    sink.service = service
    assert service.profile.target.peripheral_name == "TremorBLE-Right"
    assert service.profile.timeouts.scan_s == 12.0

    asyncio.run(service.run())
    assert sink.radio == [RadioState.UNSUPPORTED]
    assert central.closed
