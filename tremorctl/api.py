"""Stable public API for building tooling on top of tremorctl.

This module is the supported integration surface for third-party callers.
Avoid importing from private/internal modules unless intentionally depending on
non-stable internals.
"""

from __future__ import annotations

from tremorctl.core.decoder import decode, parse_hex_payload
from tremorctl.core.errors import (
    DecodeError,
    PayloadTooShortError,
    ProfileLoadError,
    ProfileSelectionError,
    ProfileValidationError,
    TransportConnectError,
    TransportError,
    TransportNotifyError,
    TremorctlError,
)
from tremorctl.core.machine import MachineState
from tremorctl.core.model import (
    Connection,
    ConnectionState,
    DiscoveredPeripheral,
    ErrorKind,
    Profile,
    RadioState,
    TargetSpec,
    Timeouts,
    TremorReading,
    TremorState,
)
from tremorctl.core.profile_loader import load_profiles
from tremorctl.core.service import TremorService, apply_overrides
from tremorctl.transports.base import Central, EventSink
from tremorctl.transports.ble_central import BleakCentral

__all__ = [
    "TremorctlError",
    "DecodeError",
    "PayloadTooShortError",
    "ProfileLoadError",
    "ProfileSelectionError",
    "ProfileValidationError",
    "TransportError",
    "TransportConnectError",
    "TransportNotifyError",
    "Connection",
    "ConnectionState",
    "DiscoveredPeripheral",
    "ErrorKind",
    "Profile",
    "RadioState",
    "TargetSpec",
    "Timeouts",
    "TremorReading",
    "TremorState",
    "MachineState",
    "Central",
    "EventSink",
    "BleakCentral",
    "Client",
]


class Client:
    """Public client for interacting with tremorctl core capabilities.

    A `Client` wraps profile loading, payload decoding, one-shot scans, and
    the monitoring state machine behind a stable API intended for
    third-party tools (GUI/TUI/services/scripts).
    """

    def __init__(self, *, central: Central | None = None) -> None:
        self._central = central
        loaded = load_profiles()
        self._profiles = loaded

    @property
    def load_warnings(self) -> tuple[str, ...]:
        return self._profiles.warnings

    def list_profiles(self) -> list[Profile]:
        return sorted(self._profiles.profiles.values(), key=lambda p: p.id)

    def get_profile(self, profile_id: str | None = None) -> Profile:
        return self._profiles.get(profile_id)

    def decode(self, payload: bytes | str) -> TremorReading:
        if isinstance(payload, str):
            payload = parse_hex_payload(payload)
        return decode(payload)

    async def discover(self, timeout_s: float = 5.0) -> list[DiscoveredPeripheral]:
        return await self.create_service().list_peripherals(timeout_s)

    def create_service(
        self,
        sink: EventSink | None = None,
        *,
        profile_id: str | None = None,
        peripheral_name: str | None = None,
        identity: str | None = None,
        scan_timeout_s: float | None = None,
        connect_timeout_s: float | None = None,
        discovery_timeout_s: float | None = None,
    ) -> TremorService:
        profile = apply_overrides(
            self.get_profile(profile_id),
            peripheral_name=peripheral_name,
            identity=identity,
            scan_timeout_s=scan_timeout_s,
            connect_timeout_s=connect_timeout_s,
            discovery_timeout_s=discovery_timeout_s,
        )
        return TremorService(profile=profile, central=self._central, sink=sink)

    async def monitor(self, sink: EventSink, *, profile_id: str | None = None) -> MachineState:
        """Run the state machine until the calling task is cancelled."""
        service = self.create_service(sink, profile_id=profile_id)
        return await service.run()
