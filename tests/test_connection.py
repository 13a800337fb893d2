from __future__ import annotations

from tremorctl.core.connection import (
    on_connect_failed,
    on_connected,
    on_disconnected,
    request_connect,
)
from tremorctl.core.model import Connection, ConnectionState, ErrorKind


def test_request_connect_from_empty_slot() -> None:
    outcome = request_connect(None, "AA")
    assert outcome.accepted
    assert outcome.connection == Connection("AA", ConnectionState.CONNECTING)


def test_request_connect_rejected_while_connecting() -> None:
    current = Connection("AA", ConnectionState.CONNECTING)
    outcome = request_connect(current, "BB")
    assert outcome.error is ErrorKind.ALREADY_CONNECTING
    assert outcome.connection is current


def test_request_connect_rejected_while_connected() -> None:
    current = Connection("AA", ConnectionState.CONNECTED)
    outcome = request_connect(current, "AA")
    assert outcome.error is ErrorKind.ALREADY_CONNECTED
    assert outcome.connection is current


def test_connected_only_from_connecting_same_identity() -> None:
    connecting = Connection("AA", ConnectionState.CONNECTING)
    assert on_connected(connecting, "AA") == Connection("AA", ConnectionState.CONNECTED)
    assert on_connected(connecting, "BB") is None
    assert on_connected(None, "AA") is None
    assert on_connected(Connection("AA", ConnectionState.CONNECTED), "AA") is None


def test_connect_failed_reports_reason() -> None:
    failed = on_connect_failed(Connection("AA", ConnectionState.CONNECTING), "AA", "refused")
    assert failed == Connection("AA", ConnectionState.FAILED, "refused")
    assert on_connect_failed(Connection("AA", ConnectionState.CONNECTED), "AA", "refused") is None


def test_disconnected_ignores_other_identities() -> None:
    current = Connection("AA", ConnectionState.CONNECTED)
    assert on_disconnected(current, "BB", None) is None
    assert on_disconnected(current, "AA", "link lost") == Connection(
        "AA", ConnectionState.DISCONNECTED, "link lost"
    )
