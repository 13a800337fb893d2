"""Core data models used across the state machine, service, and CLI."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum


class RadioState(Enum):
    UNKNOWN = "unknown"
    UNSUPPORTED = "unsupported"
    UNAUTHORIZED = "unauthorized"
    POWERED_OFF = "powered_off"
    POWERED_ON = "powered_on"
    RESETTING = "resetting"


class ConnectionState(Enum):
    DISCONNECTED = "disconnected"
    CONNECTING = "connecting"
    CONNECTED = "connected"
    FAILED = "failed"


class TremorState(Enum):
    TREMOR = "tremor"
    DYSKINESIA = "dyskinesia"
    TREMOR_AND_DYSKINESIA = "tremor_and_dyskinesia"
    UNKNOWN = "unknown"


class ErrorKind(Enum):
    RADIO_UNAVAILABLE = "radio_unavailable"
    ALREADY_CONNECTING = "already_connecting"
    ALREADY_CONNECTED = "already_connected"
    CONNECT_FAILED = "connect_failed"
    SERVICE_NOT_FOUND = "service_not_found"
    CHARACTERISTIC_NOT_FOUND = "characteristic_not_found"
    PAYLOAD_TOO_SHORT = "payload_too_short"
    DISCONNECTED_UNEXPECTEDLY = "disconnected_unexpectedly"
    TIMEOUT = "timeout"
    TRANSPORT = "transport"


_LABELS = {
    TremorState.TREMOR: "Tremor Detected",
    TremorState.DYSKINESIA: "Dyskinesia Detected",
    TremorState.TREMOR_AND_DYSKINESIA: "Tremor and Dyskinesia Detected",
}


@dataclass(frozen=True)
class DiscoveredPeripheral:
    identity: str
    name: str | None
    rssi: int | None = None


@dataclass(frozen=True)
class TargetSpec:
    peripheral_name: str
    service_uuid: str
    characteristic_uuid: str
    peripheral_identity: str | None = None


@dataclass(frozen=True)
class Timeouts:
    scan_s: float | None = None
    connect_s: float | None = None
    discovery_s: float | None = None


@dataclass(frozen=True)
class Profile:
    id: str
    name: str
    target: TargetSpec
    timeouts: Timeouts = Timeouts()
    filter_by_service: bool = False
    rescan_on_disconnect: bool = False


@dataclass(frozen=True)
class Connection:
    identity: str
    state: ConnectionState
    reason: str | None = None

    @property
    def is_active(self) -> bool:
        return self.state in (ConnectionState.CONNECTING, ConnectionState.CONNECTED)


@dataclass(frozen=True)
class SubscribedCharacteristic:
    characteristic_uuid: str
    notifying: bool


@dataclass(frozen=True)
class TremorReading:
    """A decoded status code. ``raw_value`` is kept for every state."""

    raw_value: int
    state: TremorState

    @property
    def label(self) -> str:
        if self.state is TremorState.UNKNOWN:
            return f"Unknown State: 0x{self.raw_value:04X}"
        return _LABELS[self.state]
