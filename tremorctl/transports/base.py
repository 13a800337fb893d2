"""Transport and event sink interfaces."""

from __future__ import annotations

from collections.abc import Callable
from typing import Protocol

from tremorctl.core.events import Event
from tremorctl.core.model import Connection, ErrorKind, RadioState, TremorReading

Emit = Callable[[Event], None]


class Central(Protocol):
    """BLE central-role adapter.

    Downcalls return promptly. Their outcomes arrive later as events passed
    to the ``emit`` callback given to ``start``.
    """

    def current_state(self) -> RadioState:
        """Return the last known radio state."""

    async def start(self, emit: Emit) -> None:
        """Bind the upcall callback and report the initial radio state."""

    async def refresh_radio(self) -> None:
        """Query the adapter again and report the result as RadioStateChanged."""

    async def start_scan(self, service_filter: tuple[str, ...] | None = None) -> None: ...

    async def stop_scan(self) -> None: ...

    async def connect(self, identity: str) -> None: ...

    async def disconnect(self, identity: str) -> None: ...

    async def discover_services(self, identity: str, service_uuids: tuple[str, ...]) -> None: ...

    async def discover_characteristics(
        self,
        identity: str,
        characteristic_uuids: tuple[str, ...],
        service_uuid: str,
    ) -> None: ...

    async def set_notify(
        self,
        identity: str,
        service_uuid: str,
        characteristic_uuid: str,
        enabled: bool,
    ) -> None: ...

    async def close(self) -> None: ...


class EventSink(Protocol):
    def on_radio_unavailable(self, state: RadioState) -> None: ...

    def on_connection_state_changed(self, connection: Connection) -> None: ...

    def on_reading(self, reading: TremorReading) -> None: ...

    def on_error(self, kind: ErrorKind, context: str) -> None: ...
