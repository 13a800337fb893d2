"""Pure transition function for the BLE central state machine.

``transition(state, event, profile)`` never touches the platform. It
returns the next state and the ordered effects (downcalls, timers, sink
notifications) the runtime has to carry out.
"""

from __future__ import annotations

from dataclasses import dataclass, field, replace

from tremorctl.core import connection as connections
from tremorctl.core import resolver
from tremorctl.core.decoder import decode
from tremorctl.core.device_match import matches_target
from tremorctl.core.errors import DecodeError
from tremorctl.core.events import (
    ArmTimer,
    CancelTimer,
    CharacteristicsDiscovered,
    CharacteristicValueUpdated,
    Connect,
    ConnectFailed,
    ConnectRequested,
    Disconnect,
    DisconnectRequested,
    DiscoverServices,
    Effect,
    EmitConnectionState,
    EmitError,
    EmitRadioUnavailable,
    EmitReading,
    EnableNotifyRequested,
    Event,
    NotifyFailed,
    Operation,
    PeripheralConnected,
    PeripheralDisconnected,
    PeripheralDiscovered,
    RadioStateChanged,
    RefreshRadio,
    ScanRequested,
    ServicesDiscovered,
    StartScan,
    StopScan,
    TimerExpired,
)
from tremorctl.core.model import (
    Connection,
    ConnectionState,
    ErrorKind,
    Profile,
    RadioState,
    SubscribedCharacteristic,
)


@dataclass(frozen=True)
class MachineState:
    radio: RadioState = RadioState.UNKNOWN
    scanning: bool = False
    connection: Connection | None = None
    subscription: SubscribedCharacteristic | None = None
    discovering: bool = False
    disconnect_requested: bool = False

    @property
    def connected(self) -> bool:
        return self.connection is not None and self.connection.state is ConnectionState.CONNECTED


@dataclass(frozen=True)
class Transition:
    state: MachineState
    effects: list[Effect] = field(default_factory=list)


def transition(state: MachineState, event: Event, profile: Profile) -> Transition:
    handler = _HANDLERS.get(type(event))
    if handler is None:
        return Transition(state)
    effects: list[Effect] = []
    next_state = handler(state, event, profile, effects)
    return Transition(next_state, effects)


def _timeout_for(profile: Profile, operation: Operation) -> float | None:
    if operation is Operation.SCAN:
        return profile.timeouts.scan_s
    if operation is Operation.CONNECT:
        return profile.timeouts.connect_s
    return profile.timeouts.discovery_s


def _arm(profile: Profile, operation: Operation, effects: list[Effect]) -> None:
    seconds = _timeout_for(profile, operation)
    if seconds is not None:
        effects.append(ArmTimer(operation, seconds))


def _cancel(profile: Profile, operation: Operation, effects: list[Effect]) -> None:
    if _timeout_for(profile, operation) is not None:
        effects.append(CancelTimer(operation))


def _start_scan(state: MachineState, profile: Profile, effects: list[Effect]) -> MachineState:
    if state.radio is not RadioState.POWERED_ON:
        return state
    if state.scanning or state.connection is not None:
        return state
    service_filter = (profile.target.service_uuid,) if profile.filter_by_service else None
    effects.append(StartScan(service_filter=service_filter))
    _arm(profile, Operation.SCAN, effects)
    return replace(state, scanning=True)


def _stop_scan(state: MachineState, profile: Profile, effects: list[Effect]) -> MachineState:
    if not state.scanning:
        return state
    effects.append(StopScan())
    _cancel(profile, Operation.SCAN, effects)
    return replace(state, scanning=False)


def _connect(
    state: MachineState,
    identity: str,
    profile: Profile,
    effects: list[Effect],
) -> MachineState:
    if state.radio is not RadioState.POWERED_ON:
        effects.append(
            EmitError(
                ErrorKind.RADIO_UNAVAILABLE,
                f"Cannot connect to {identity} while radio is {state.radio.value}",
            )
        )
        return state

    outcome = connections.request_connect(state.connection, identity)
    if not outcome.accepted:
        current = state.connection
        effects.append(
            EmitError(
                outcome.error,
                f"Connect to {identity} rejected: {current.identity} is {current.state.value}",
            )
        )
        return state

    state = _stop_scan(state, profile, effects)
    effects.append(EmitConnectionState(outcome.connection))
    effects.append(Connect(identity))
    _arm(profile, Operation.CONNECT, effects)
    return replace(state, connection=outcome.connection, disconnect_requested=False)


def _end_connection(
    state: MachineState,
    snapshot: Connection,
    profile: Profile,
    effects: list[Effect],
) -> MachineState:
    """Drop the connection slot and every subscription that depended on it."""
    if state.connection is not None and state.connection.state is ConnectionState.CONNECTING:
        _cancel(profile, Operation.CONNECT, effects)
    if state.discovering:
        _cancel(profile, Operation.DISCOVERY, effects)
    effects.append(EmitConnectionState(snapshot))
    state = replace(
        state,
        connection=None,
        subscription=None,
        discovering=False,
        disconnect_requested=False,
    )
    if profile.rescan_on_disconnect and state.radio is RadioState.POWERED_ON:
        state = _start_scan(state, profile, effects)
    return state


def _on_radio_state(
    state: MachineState,
    event: RadioStateChanged,
    profile: Profile,
    effects: list[Effect],
) -> MachineState:
    previous = state.radio
    state = replace(state, radio=event.state)
    if event.state is RadioState.POWERED_ON:
        if previous is not RadioState.POWERED_ON and state.connection is None:
            state = _start_scan(state, profile, effects)
        return state

    effects.append(EmitRadioUnavailable(event.state))
    if state.scanning:
        _cancel(profile, Operation.SCAN, effects)
        state = replace(state, scanning=False)
    if state.connection is not None:
        reason = f"radio {event.state.value}"
        effects.append(EmitError(ErrorKind.DISCONNECTED_UNEXPECTEDLY, f"{state.connection.identity}: {reason}"))
        snapshot = Connection(state.connection.identity, ConnectionState.DISCONNECTED, reason)
        state = _end_connection(state, snapshot, profile, effects)
    return state


def _on_discovered(
    state: MachineState,
    event: PeripheralDiscovered,
    profile: Profile,
    effects: list[Effect],
) -> MachineState:
    if not state.scanning or state.connection is not None:
        return state
    if not matches_target(event.peripheral, profile.target):
        return state
    return _connect(state, event.peripheral.identity, profile, effects)


def _on_scan_requested(
    state: MachineState,
    event: ScanRequested,
    profile: Profile,
    effects: list[Effect],
) -> MachineState:
    if state.radio is not RadioState.POWERED_ON:
        # The central answers with RadioStateChanged; POWERED_ON resumes scanning.
        effects.append(RefreshRadio())
        return state
    return _start_scan(state, profile, effects)


def _on_connect_requested(
    state: MachineState,
    event: ConnectRequested,
    profile: Profile,
    effects: list[Effect],
) -> MachineState:
    return _connect(state, event.identity, profile, effects)


def _on_connected(
    state: MachineState,
    event: PeripheralConnected,
    profile: Profile,
    effects: list[Effect],
) -> MachineState:
    connected = connections.on_connected(state.connection, event.identity)
    if connected is None:
        return state
    _cancel(profile, Operation.CONNECT, effects)
    effects.append(EmitConnectionState(connected))
    effects.append(DiscoverServices(event.identity, (profile.target.service_uuid,)))
    _arm(profile, Operation.DISCOVERY, effects)
    return replace(state, connection=connected, subscription=None, discovering=True)


def _on_connect_failed(
    state: MachineState,
    event: ConnectFailed,
    profile: Profile,
    effects: list[Effect],
) -> MachineState:
    failed = connections.on_connect_failed(state.connection, event.identity, event.reason)
    if failed is None:
        return state
    effects.append(EmitConnectionState(failed))
    effects.append(EmitError(ErrorKind.CONNECT_FAILED, f"{event.identity}: {event.reason}"))
    snapshot = Connection(event.identity, ConnectionState.DISCONNECTED, event.reason)
    return _end_connection(state, snapshot, profile, effects)


def _on_disconnected(
    state: MachineState,
    event: PeripheralDisconnected,
    profile: Profile,
    effects: list[Effect],
) -> MachineState:
    snapshot = connections.on_disconnected(state.connection, event.identity, event.reason)
    if snapshot is None:
        return state
    if not state.disconnect_requested:
        effects.append(
            EmitError(
                ErrorKind.DISCONNECTED_UNEXPECTEDLY,
                f"{event.identity}: {event.reason or 'unknown reason'}",
            )
        )
    return _end_connection(state, snapshot, profile, effects)


def _on_disconnect_requested(
    state: MachineState,
    event: DisconnectRequested,
    profile: Profile,
    effects: list[Effect],
) -> MachineState:
    state = _stop_scan(state, profile, effects)
    current = state.connection
    if current is None:
        return state
    effects.append(Disconnect(current.identity))
    if current.state is ConnectionState.CONNECTING:
        snapshot = Connection(current.identity, ConnectionState.DISCONNECTED, "cancelled")
        return _end_connection(state, snapshot, profile, effects)
    return replace(state, disconnect_requested=True)


def _on_services(
    state: MachineState,
    event: ServicesDiscovered,
    profile: Profile,
    effects: list[Effect],
) -> MachineState:
    if not state.connected or not state.discovering:
        return state
    if not connections.is_tracked(state.connection, event.identity):
        return state
    step = resolver.on_services_discovered(
        event.identity,
        event.service_uuids,
        profile.target,
        state.subscription,
    )
    effects.extend(step.effects)
    if step.failed:
        _cancel(profile, Operation.DISCOVERY, effects)
        return replace(state, discovering=False)
    return state


def _on_characteristics(
    state: MachineState,
    event: CharacteristicsDiscovered,
    profile: Profile,
    effects: list[Effect],
) -> MachineState:
    if not state.connected or not connections.is_tracked(state.connection, event.identity):
        return state
    step = resolver.on_characteristics_discovered(
        event.identity,
        event.service_uuid,
        event.characteristic_uuids,
        profile.target,
        state.subscription,
    )
    effects.extend(step.effects)
    state = replace(state, subscription=step.subscription)
    if (step.resolved or step.failed) and state.discovering:
        _cancel(profile, Operation.DISCOVERY, effects)
        state = replace(state, discovering=False)
    return state


def _on_enable_notify(
    state: MachineState,
    event: EnableNotifyRequested,
    profile: Profile,
    effects: list[Effect],
) -> MachineState:
    if not state.connected:
        return state
    if state.subscription is None:
        effects.append(
            EmitError(
                ErrorKind.CHARACTERISTIC_NOT_FOUND,
                f"Characteristic {profile.target.characteristic_uuid} has not been resolved",
            )
        )
        return state
    step = resolver.enable_notify(state.connection.identity, profile.target, state.subscription)
    effects.extend(step.effects)
    return replace(state, subscription=step.subscription)


def _on_value(
    state: MachineState,
    event: CharacteristicValueUpdated,
    profile: Profile,
    effects: list[Effect],
) -> MachineState:
    if not state.connected or not connections.is_tracked(state.connection, event.identity):
        return state
    if event.characteristic_uuid != profile.target.characteristic_uuid:
        return state
    try:
        reading = decode(event.payload)
    except DecodeError as exc:
        effects.append(EmitError(ErrorKind.PAYLOAD_TOO_SHORT, f"{event.identity}: {exc}"))
        return state
    effects.append(EmitReading(reading))
    return state


def _on_notify_failed(
    state: MachineState,
    event: NotifyFailed,
    profile: Profile,
    effects: list[Effect],
) -> MachineState:
    subscription = state.subscription
    if not state.connected or not connections.is_tracked(state.connection, event.identity):
        return state
    if subscription is None or subscription.characteristic_uuid != event.characteristic_uuid:
        return state
    effects.append(
        EmitError(
            ErrorKind.TRANSPORT,
            f"{event.identity}: notifications on {event.characteristic_uuid} not enabled: {event.reason}",
        )
    )
    return replace(state, subscription=replace(subscription, notifying=False))


def _on_timer(
    state: MachineState,
    event: TimerExpired,
    profile: Profile,
    effects: list[Effect],
) -> MachineState:
    seconds = _timeout_for(profile, event.operation)

    if event.operation is Operation.SCAN:
        if not state.scanning:
            return state
        effects.append(StopScan())
        effects.append(
            EmitError(
                ErrorKind.TIMEOUT,
                f"No peripheral matching '{profile.target.peripheral_name}' found within {seconds}s",
            )
        )
        return replace(state, scanning=False)

    current = state.connection
    if event.operation is Operation.CONNECT:
        if current is None or current.state is not ConnectionState.CONNECTING:
            return state
        reason = f"connect timed out after {seconds}s"
        effects.append(Disconnect(current.identity))
        effects.append(EmitConnectionState(Connection(current.identity, ConnectionState.FAILED, reason)))
        effects.append(EmitError(ErrorKind.TIMEOUT, f"{current.identity}: {reason}"))
        # The timer already fired, so only the slot is cleared.
        state = replace(state, connection=Connection(current.identity, ConnectionState.FAILED, reason))
        snapshot = Connection(current.identity, ConnectionState.DISCONNECTED, reason)
        return _end_connection(state, snapshot, profile, effects)

    if not state.connected or not state.discovering:
        return state
    effects.append(
        EmitError(
            ErrorKind.TIMEOUT,
            f"{current.identity}: service discovery timed out after {seconds}s",
        )
    )
    effects.append(Disconnect(current.identity))
    return replace(state, discovering=False, disconnect_requested=True)


_HANDLERS = {
    RadioStateChanged: _on_radio_state,
    PeripheralDiscovered: _on_discovered,
    ScanRequested: _on_scan_requested,
    ConnectRequested: _on_connect_requested,
    PeripheralConnected: _on_connected,
    ConnectFailed: _on_connect_failed,
    PeripheralDisconnected: _on_disconnected,
    DisconnectRequested: _on_disconnect_requested,
    ServicesDiscovered: _on_services,
    CharacteristicsDiscovered: _on_characteristics,
    EnableNotifyRequested: _on_enable_notify,
    NotifyFailed: _on_notify_failed,
    CharacteristicValueUpdated: _on_value,
    TimerExpired: _on_timer,
}
