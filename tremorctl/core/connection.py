"""Connection lifecycle for the single tracked peripheral.

Every function here is pure: it takes the current connection slot (``None``
when nothing is tracked) and returns the new slot plus what happened, so
the caller decides which effects to issue.

    DISCONNECTED -> CONNECTING -> CONNECTED -> DISCONNECTED
                    CONNECTING -> FAILED -> DISCONNECTED
"""

from __future__ import annotations

from dataclasses import dataclass

from tremorctl.core.model import Connection, ConnectionState, ErrorKind


@dataclass(frozen=True)
class ConnectOutcome:
    connection: Connection | None
    error: ErrorKind | None = None

    @property
    def accepted(self) -> bool:
        return self.error is None


def request_connect(current: Connection | None, identity: str) -> ConnectOutcome:
    if current is not None and current.state is ConnectionState.CONNECTING:
        return ConnectOutcome(connection=current, error=ErrorKind.ALREADY_CONNECTING)
    if current is not None and current.state is ConnectionState.CONNECTED:
        return ConnectOutcome(connection=current, error=ErrorKind.ALREADY_CONNECTED)
    return ConnectOutcome(
        connection=Connection(identity=identity, state=ConnectionState.CONNECTING)
    )


def is_tracked(current: Connection | None, identity: str) -> bool:
    return current is not None and current.identity == identity


def on_connected(current: Connection | None, identity: str) -> Connection | None:
    """Return the CONNECTED connection, or ``None`` if the upcall is stale."""
    if not is_tracked(current, identity) or current.state is not ConnectionState.CONNECTING:
        return None
    return Connection(identity=identity, state=ConnectionState.CONNECTED)


def on_connect_failed(current: Connection | None, identity: str, reason: str) -> Connection | None:
    """Return the FAILED snapshot to report; the slot itself becomes empty."""
    if not is_tracked(current, identity) or current.state is not ConnectionState.CONNECTING:
        return None
    return Connection(identity=identity, state=ConnectionState.FAILED, reason=reason)


def on_disconnected(
    current: Connection | None,
    identity: str,
    reason: str | None,
) -> Connection | None:
    """Return the DISCONNECTED snapshot to report; the slot itself becomes empty."""
    if not is_tracked(current, identity):
        return None
    return Connection(identity=identity, state=ConnectionState.DISCONNECTED, reason=reason)
