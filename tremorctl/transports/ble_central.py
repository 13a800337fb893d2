"""BLE central implementation on top of bleak."""

from __future__ import annotations

import asyncio
import contextlib
import logging
from typing import Any

from tremorctl.core.errors import TransportConnectError, TransportError, TransportNotifyError
from tremorctl.core.events import (
    CharacteristicsDiscovered,
    CharacteristicValueUpdated,
    ConnectFailed,
    PeripheralConnected,
    PeripheralDisconnected,
    PeripheralDiscovered,
    RadioStateChanged,
    ServicesDiscovered,
)
from tremorctl.core.model import DiscoveredPeripheral, RadioState
from tremorctl.transports.base import Emit

LOGGER = logging.getLogger(__name__)


def _import_bleak() -> Any:
    try:
        import bleak  # type: ignore
    except Exception as exc:  # pragma: no cover - import failure path
        raise TransportConnectError(
            "BLE central requires 'bleak'. Install dependency and retry."
        ) from exc
    return bleak


def radio_state_for_error(exc: BaseException) -> RadioState | None:
    """Map a bleak adapter error to a radio state, or ``None`` if it is not adapter related."""
    message = str(exc).lower()
    if "turned off" in message or "powered off" in message or "poweredoff" in message:
        return RadioState.POWERED_OFF
    if "unauthorized" in message or "permission" in message or "not authorized" in message:
        return RadioState.UNAUTHORIZED
    if "no bluetooth adapter" in message or "not supported" in message or "unsupported" in message:
        return RadioState.UNSUPPORTED
    if "resetting" in message:
        return RadioState.RESETTING
    return None


class BleakCentral:
    def __init__(self, *, connect_timeout_s: float = 20.0) -> None:
        self._connect_timeout_s = connect_timeout_s
        self._emit: Emit | None = None
        self._radio = RadioState.UNKNOWN
        self._scanner: Any = None
        self._devices: dict[str, Any] = {}
        self._client: Any = None
        self._client_identity: str | None = None
        self._connect_task: asyncio.Task[None] | None = None
        self._closing: set[str] = set()

    def current_state(self) -> RadioState:
        return self._radio

    async def start(self, emit: Emit) -> None:
        _import_bleak()
        self._emit = emit
        # bleak has no adapter state query; scan failures report the real state.
        self._set_radio(RadioState.POWERED_ON)

    def _post(self, event: Any) -> None:
        if self._emit is None:
            LOGGER.debug("Dropping %s outside of start()/close()", event)
            return
        self._emit(event)

    def _set_radio(self, state: RadioState) -> None:
        if state is self._radio:
            return
        self._radio = state
        self._post(RadioStateChanged(state))

    def _on_detection(self, device: Any, advertisement_data: Any) -> None:
        identity = device.address
        self._devices[identity] = device
        self._post(
            PeripheralDiscovered(
                DiscoveredPeripheral(
                    identity=identity,
                    name=advertisement_data.local_name or device.name,
                    rssi=advertisement_data.rssi,
                )
            )
        )

    async def refresh_radio(self) -> None:
        bleak = _import_bleak()
        state = RadioState.POWERED_ON
        if self._scanner is None:
            scanner = bleak.BleakScanner()
            try:
                await scanner.start()
                await scanner.stop()
            except bleak.exc.BleakError as exc:
                state = radio_state_for_error(exc)
                if state is None:
                    raise TransportError(f"BLE adapter check failed: {exc}") from exc
        # Reported even when unchanged.
        self._radio = state
        self._post(RadioStateChanged(state))

    async def start_scan(self, service_filter: tuple[str, ...] | None = None) -> None:
        bleak = _import_bleak()
        if self._scanner is not None:
            return
        scanner = bleak.BleakScanner(
            detection_callback=self._on_detection,
            service_uuids=list(service_filter) if service_filter else None,
        )
        try:
            await scanner.start()
        except bleak.exc.BleakError as exc:
            state = radio_state_for_error(exc)
            if state is None:
                raise TransportError(f"BLE scan failed to start: {exc}") from exc
            self._set_radio(state)
            return
        self._scanner = scanner
        LOGGER.info("Scanning started (filter=%s)", service_filter)

    async def stop_scan(self) -> None:
        bleak = _import_bleak()
        scanner, self._scanner = self._scanner, None
        if scanner is None:
            return
        try:
            await scanner.stop()
        except bleak.exc.BleakError as exc:
            raise TransportError(f"BLE scan failed to stop: {exc}") from exc
        LOGGER.info("Scanning stopped")

    async def connect(self, identity: str) -> None:
        if self._connect_task is not None and not self._connect_task.done():
            raise TransportConnectError(f"Connect already pending for {self._client_identity}")
        self._client_identity = identity
        self._connect_task = asyncio.create_task(self._connect(identity))

    async def _connect(self, identity: str) -> None:
        bleak = _import_bleak()
        client = bleak.BleakClient(
            self._devices.get(identity, identity),
            disconnected_callback=lambda _: self._on_disconnect(identity),
            timeout=self._connect_timeout_s,
        )
        LOGGER.info("Connecting to %s", identity)
        try:
            await client.connect()
        except asyncio.CancelledError:
            with contextlib.suppress(bleak.exc.BleakError, asyncio.TimeoutError, OSError):
                await client.disconnect()
            raise
        except (bleak.exc.BleakError, asyncio.TimeoutError, OSError) as exc:
            self._client_identity = None
            self._post(ConnectFailed(identity, str(exc) or type(exc).__name__))
            return
        self._client = client
        self._post(PeripheralConnected(identity))

    def _on_disconnect(self, identity: str) -> None:
        if self._client_identity != identity or self._client is None:
            return
        requested = identity in self._closing
        self._closing.discard(identity)
        self._client = None
        self._client_identity = None
        self._post(PeripheralDisconnected(identity, None if requested else "link lost"))

    async def disconnect(self, identity: str) -> None:
        bleak = _import_bleak()
        task, self._connect_task = self._connect_task, None
        if task is not None and not task.done():
            task.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await task
            self._client_identity = None
            return

        client = self._client
        if client is None or self._client_identity != identity:
            return
        self._closing.add(identity)
        try:
            await client.disconnect()
        except bleak.exc.BleakError as exc:
            self._closing.discard(identity)
            raise TransportError(f"BLE disconnect failed for {identity}: {exc}") from exc

    def _require_client(self, identity: str) -> Any:
        if self._client is None or self._client_identity != identity:
            raise TransportError(f"No active BLE connection to {identity}")
        return self._client

    async def discover_services(self, identity: str, service_uuids: tuple[str, ...]) -> None:
        client = self._require_client(identity)
        # bleak resolves the GATT table during connect.
        found = tuple(service.uuid.lower() for service in client.services)
        LOGGER.debug("Services on %s: %s (wanted %s)", identity, found, service_uuids)
        self._post(ServicesDiscovered(identity, found))

    async def discover_characteristics(
        self,
        identity: str,
        characteristic_uuids: tuple[str, ...],
        service_uuid: str,
    ) -> None:
        client = self._require_client(identity)
        service = client.services.get_service(service_uuid)
        found: tuple[str, ...] = ()
        if service is not None:
            found = tuple(char.uuid.lower() for char in service.characteristics)
        LOGGER.debug("Characteristics in %s: %s (wanted %s)", service_uuid, found, characteristic_uuids)
        self._post(CharacteristicsDiscovered(identity, service_uuid, found))

    async def set_notify(
        self,
        identity: str,
        service_uuid: str,
        characteristic_uuid: str,
        enabled: bool,
    ) -> None:
        bleak = _import_bleak()
        client = self._require_client(identity)
        service = client.services.get_service(service_uuid)
        characteristic = service.get_characteristic(characteristic_uuid) if service else None
        if characteristic is None:
            raise TransportNotifyError(
                f"Characteristic {characteristic_uuid} not present in service {service_uuid}"
            )

        def _notify_handler(_: Any, data: bytearray) -> None:
            self._post(CharacteristicValueUpdated(identity, characteristic_uuid, bytes(data)))

        try:
            if enabled:
                await client.start_notify(characteristic, _notify_handler)
            else:
                await client.stop_notify(characteristic)
        except bleak.exc.BleakError as exc:
            raise TransportNotifyError(
                f"Could not {'enable' if enabled else 'disable'} notifications on {characteristic_uuid}: {exc}"
            ) from exc
        LOGGER.info("Notifications %s for %s", "enabled" if enabled else "disabled", characteristic_uuid)

    async def close(self) -> None:
        await self.stop_scan()
        if self._client_identity is not None:
            await self.disconnect(self._client_identity)
        self._emit = None


async def discover_peripherals(timeout_s: float = 5.0) -> list[DiscoveredPeripheral]:
    bleak = _import_bleak()
    try:
        found = await bleak.BleakScanner.discover(timeout=timeout_s, return_adv=True)
    except bleak.exc.BleakError as exc:
        raise TransportConnectError(f"BLE scan failed: {exc}") from exc

    peripherals = [
        DiscoveredPeripheral(
            identity=device.address,
            name=adv.local_name or device.name,
            rssi=adv.rssi,
        )
        for device, adv in found.values()
    ]
    return sorted(peripherals, key=lambda p: (p.rssi is None, -(p.rssi or 0)))
