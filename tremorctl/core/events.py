"""Events consumed and effects produced by the state machine.

Events are platform upcalls plus a few commands issued by the host.
Effects are platform downcalls, timer control, and event sink
notifications; the runtime executes them in order.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum

from tremorctl.core.model import (
    Connection,
    DiscoveredPeripheral,
    ErrorKind,
    RadioState,
    TremorReading,
)


class Operation(Enum):
    SCAN = "scan"
    CONNECT = "connect"
    DISCOVERY = "discovery"


# Upcalls


@dataclass(frozen=True)
class RadioStateChanged:
    state: RadioState


@dataclass(frozen=True)
class PeripheralDiscovered:
    peripheral: DiscoveredPeripheral


@dataclass(frozen=True)
class PeripheralConnected:
    identity: str


@dataclass(frozen=True)
class PeripheralDisconnected:
    identity: str
    reason: str | None = None


@dataclass(frozen=True)
class ConnectFailed:
    identity: str
    reason: str


@dataclass(frozen=True)
class ServicesDiscovered:
    identity: str
    service_uuids: tuple[str, ...]


@dataclass(frozen=True)
class CharacteristicsDiscovered:
    identity: str
    service_uuid: str
    characteristic_uuids: tuple[str, ...]


@dataclass(frozen=True)
class CharacteristicValueUpdated:
    identity: str
    characteristic_uuid: str
    payload: bytes


@dataclass(frozen=True)
class NotifyFailed:
    identity: str
    characteristic_uuid: str
    reason: str


# Commands


@dataclass(frozen=True)
class ScanRequested:
    pass


@dataclass(frozen=True)
class ConnectRequested:
    identity: str


@dataclass(frozen=True)
class EnableNotifyRequested:
    pass


@dataclass(frozen=True)
class DisconnectRequested:
    pass


@dataclass(frozen=True)
class TimerExpired:
    operation: Operation


Event = (
    RadioStateChanged
    | PeripheralDiscovered
    | PeripheralConnected
    | PeripheralDisconnected
    | ConnectFailed
    | ServicesDiscovered
    | CharacteristicsDiscovered
    | CharacteristicValueUpdated
    | NotifyFailed
    | ScanRequested
    | ConnectRequested
    | EnableNotifyRequested
    | DisconnectRequested
    | TimerExpired
)


# Downcalls


@dataclass(frozen=True)
class RefreshRadio:
    pass


@dataclass(frozen=True)
class StartScan:
    service_filter: tuple[str, ...] | None = None


@dataclass(frozen=True)
class StopScan:
    pass


@dataclass(frozen=True)
class Connect:
    identity: str


@dataclass(frozen=True)
class Disconnect:
    identity: str


@dataclass(frozen=True)
class DiscoverServices:
    identity: str
    service_uuids: tuple[str, ...]


@dataclass(frozen=True)
class DiscoverCharacteristics:
    identity: str
    characteristic_uuids: tuple[str, ...]
    service_uuid: str


@dataclass(frozen=True)
class SetNotify:
    identity: str
    service_uuid: str
    characteristic_uuid: str
    enabled: bool


# Timers


@dataclass(frozen=True)
class ArmTimer:
    operation: Operation
    seconds: float


@dataclass(frozen=True)
class CancelTimer:
    operation: Operation


# Event sink notifications


@dataclass(frozen=True)
class EmitRadioUnavailable:
    state: RadioState


@dataclass(frozen=True)
class EmitConnectionState:
    connection: Connection


@dataclass(frozen=True)
class EmitReading:
    reading: TremorReading


@dataclass(frozen=True)
class EmitError:
    kind: ErrorKind
    context: str


Effect = (
    RefreshRadio
    | StartScan
    | StopScan
    | Connect
    | Disconnect
    | DiscoverServices
    | DiscoverCharacteristics
    | SetNotify
    | ArmTimer
    | CancelTimer
    | EmitRadioUnavailable
    | EmitConnectionState
    | EmitReading
    | EmitError
)

SINK_EFFECTS = (EmitRadioUnavailable, EmitConnectionState, EmitReading, EmitError)
