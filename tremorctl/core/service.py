"""Service layer used by the CLI and future UI frontends.

``TremorService`` owns the single event queue that serializes platform
upcalls, host commands, and timer expiries. Each event is fully applied
(transition plus every resulting effect) before the next one is taken.
Event sink notifications are handed to a separate dispatcher task so a
slow sink never stalls the state machine.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import replace

from tremorctl.core.events import (
    ArmTimer,
    CancelTimer,
    Connect,
    ConnectFailed,
    ConnectRequested,
    Disconnect,
    DisconnectRequested,
    DiscoverCharacteristics,
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
    RefreshRadio,
    ScanRequested,
    SetNotify,
    SINK_EFFECTS,
    StartScan,
    StopScan,
    TimerExpired,
)
from tremorctl.core.errors import TransportError
from tremorctl.core.machine import MachineState, transition
from tremorctl.core.model import (
    Connection,
    DiscoveredPeripheral,
    ErrorKind,
    Profile,
    RadioState,
    Timeouts,
    TremorReading,
)
from tremorctl.core.profile_loader import load_profiles
from tremorctl.transports.base import Central, EventSink
from tremorctl.transports.ble_central import BleakCentral, discover_peripherals

LOGGER = logging.getLogger(__name__)

_STOP = object()


class LoggingSink:
    """Default sink: report everything through the module logger."""

    def on_radio_unavailable(self, state: RadioState) -> None:
        LOGGER.warning("Bluetooth not available. State: %s", state.value)

    def on_connection_state_changed(self, connection: Connection) -> None:
        LOGGER.info("Connection %s: %s", connection.identity, connection.state.value)

    def on_reading(self, reading: TremorReading) -> None:
        LOGGER.info("Received raw value 0x%04X: %s", reading.raw_value, reading.label)

    def on_error(self, kind: ErrorKind, context: str) -> None:
        LOGGER.error("%s: %s", kind.value, context)


def apply_overrides(
    profile: Profile,
    *,
    peripheral_name: str | None = None,
    identity: str | None = None,
    scan_timeout_s: float | None = None,
    connect_timeout_s: float | None = None,
    discovery_timeout_s: float | None = None,
) -> Profile:
    """Return ``profile`` with any non-``None`` override applied."""
    target = profile.target
    if peripheral_name is not None:
        target = replace(target, peripheral_name=peripheral_name)
    if identity is not None:
        target = replace(target, peripheral_identity=identity)
    timeouts = Timeouts(
        scan_s=scan_timeout_s if scan_timeout_s is not None else profile.timeouts.scan_s,
        connect_s=connect_timeout_s if connect_timeout_s is not None else profile.timeouts.connect_s,
        discovery_s=(
            discovery_timeout_s if discovery_timeout_s is not None else profile.timeouts.discovery_s
        ),
    )
    return replace(profile, target=target, timeouts=timeouts)


class TremorService:
    def __init__(
        self,
        profile_id: str | None = None,
        *,
        profile: Profile | None = None,
        central: Central | None = None,
        sink: EventSink | None = None,
    ) -> None:
        loaded = load_profiles()
        self.profiles = loaded.profiles
        self.load_warnings = loaded.warnings
        self.profile = profile or loaded.get(profile_id)
        self.central = central or BleakCentral()
        self.sink = sink or LoggingSink()
        self._state = MachineState()
        self._events: asyncio.Queue[object] = asyncio.Queue()
        self._sink_queue: asyncio.Queue[object] = asyncio.Queue()
        self._timers: dict[Operation, asyncio.TimerHandle] = {}

    @property
    def state(self) -> MachineState:
        return self._state

    def list_profiles(self) -> list[Profile]:
        return sorted(self.profiles.values(), key=lambda p: p.id)

    async def list_peripherals(self, timeout_s: float = 5.0) -> list[DiscoveredPeripheral]:
        return await discover_peripherals(timeout_s)

    def submit(self, event: Event) -> None:
        self._events.put_nowait(event)

    def request_scan(self) -> None:
        self.submit(ScanRequested())

    def request_connect(self, identity: str) -> None:
        self.submit(ConnectRequested(identity))

    def enable_notify(self) -> None:
        self.submit(EnableNotifyRequested())

    def request_disconnect(self) -> None:
        self.submit(DisconnectRequested())

    def stop(self) -> None:
        self._events.put_nowait(_STOP)

    async def run(self) -> MachineState:
        """Process events until ``stop()``; return the final machine state."""
        dispatcher = asyncio.create_task(self._dispatch_sink())
        try:
            await self.central.start(self.submit)
            while True:
                event = await self._events.get()
                if event is _STOP:
                    break
                await self._handle(event)
        finally:
            for handle in self._timers.values():
                handle.cancel()
            self._timers.clear()
            try:
                await self.central.close()
            except TransportError as exc:
                LOGGER.warning("Closing BLE central failed: %s", exc)
            self._sink_queue.put_nowait(_STOP)
            await dispatcher
        return self._state

    async def _handle(self, event: Event) -> None:
        LOGGER.debug("Event %s", event)
        result = transition(self._state, event, self.profile)
        self._state = result.state
        for effect in result.effects:
            LOGGER.debug("Effect %s", effect)
            await self._execute(effect)

    async def _execute(self, effect: Effect) -> None:
        if isinstance(effect, SINK_EFFECTS):
            self._sink_queue.put_nowait(effect)
        elif isinstance(effect, ArmTimer):
            self._arm_timer(effect.operation, effect.seconds)
        elif isinstance(effect, CancelTimer):
            handle = self._timers.pop(effect.operation, None)
            if handle is not None:
                handle.cancel()
        else:
            try:
                await self._downcall(effect)
            except TransportError as exc:
                LOGGER.error("Downcall %s failed: %s", type(effect).__name__, exc)
                if isinstance(effect, Connect):
                    self.submit(ConnectFailed(effect.identity, str(exc)))
                elif isinstance(effect, SetNotify):
                    self.submit(NotifyFailed(effect.identity, effect.characteristic_uuid, str(exc)))
                else:
                    self._sink_queue.put_nowait(EmitError(ErrorKind.TRANSPORT, str(exc)))

    def _arm_timer(self, operation: Operation, seconds: float) -> None:
        previous = self._timers.pop(operation, None)
        if previous is not None:
            previous.cancel()
        loop = asyncio.get_running_loop()
        self._timers[operation] = loop.call_later(seconds, self._expire, operation)

    def _expire(self, operation: Operation) -> None:
        self._timers.pop(operation, None)
        self.submit(TimerExpired(operation))

    async def _downcall(self, effect: Effect) -> None:
        central = self.central
        if isinstance(effect, RefreshRadio):
            await central.refresh_radio()
        elif isinstance(effect, StartScan):
            await central.start_scan(effect.service_filter)
        elif isinstance(effect, StopScan):
            await central.stop_scan()
        elif isinstance(effect, Connect):
            await central.connect(effect.identity)
        elif isinstance(effect, Disconnect):
            await central.disconnect(effect.identity)
        elif isinstance(effect, DiscoverServices):
            await central.discover_services(effect.identity, effect.service_uuids)
        elif isinstance(effect, DiscoverCharacteristics):
            await central.discover_characteristics(
                effect.identity,
                effect.characteristic_uuids,
                effect.service_uuid,
            )
        elif isinstance(effect, SetNotify):
            await central.set_notify(
                effect.identity,
                effect.service_uuid,
                effect.characteristic_uuid,
                effect.enabled,
            )
        else:
            raise TypeError(f"Unsupported effect {effect!r}")

    async def _dispatch_sink(self) -> None:
        while True:
            item = await self._sink_queue.get()
            if item is _STOP:
                return
            try:
                self._notify_sink(item)
            except Exception:
                LOGGER.exception("Event sink failed handling %s", item)

    def _notify_sink(self, effect: object) -> None:
        if isinstance(effect, EmitRadioUnavailable):
            self.sink.on_radio_unavailable(effect.state)
        elif isinstance(effect, EmitConnectionState):
            self.sink.on_connection_state_changed(effect.connection)
        elif isinstance(effect, EmitReading):
            self.sink.on_reading(effect.reading)
        elif isinstance(effect, EmitError):
            self.sink.on_error(effect.kind, effect.context)
