from __future__ import annotations

from tremorctl.core.events import DiscoverCharacteristics, EmitError, SetNotify
from tremorctl.core.model import ErrorKind, SubscribedCharacteristic, TargetSpec
from tremorctl.core.resolver import (
    enable_notify,
    on_characteristics_discovered,
    on_services_discovered,
)

SERVICE = "e7810a71-73ae-499d-8c15-faa9aef0c3f2"
CHARACTERISTIC = "befc5c1c-a5d0-42db-a6c2-c0bfa020e50d"
TARGET = TargetSpec(peripheral_name="TremorBLE", service_uuid=SERVICE, characteristic_uuid=CHARACTERISTIC)


def test_matching_service_requests_characteristics() -> None:
    step = on_services_discovered("AA", ("0000180f-0000-1000-8000-00805f9b34fb", SERVICE), TARGET, None)
    assert step.effects == [DiscoverCharacteristics("AA", (CHARACTERISTIC,), SERVICE)]
    assert not step.failed


def test_missing_service_is_reported() -> None:
    step = on_services_discovered("AA", ("0000180f-0000-1000-8000-00805f9b34fb",), TARGET, None)
    assert step.failed
    assert len(step.effects) == 1
    assert isinstance(step.effects[0], EmitError)
    assert step.effects[0].kind is ErrorKind.SERVICE_NOT_FOUND


def test_matching_characteristic_enables_notify() -> None:
    step = on_characteristics_discovered("AA", SERVICE, (CHARACTERISTIC,), TARGET, None)
    assert step.resolved
    assert step.effects == [SetNotify("AA", SERVICE, CHARACTERISTIC, True)]
    assert step.subscription == SubscribedCharacteristic(CHARACTERISTIC, notifying=True)


def test_missing_characteristic_is_reported() -> None:
    step = on_characteristics_discovered("AA", SERVICE, ("00002a19-0000-1000-8000-00805f9b34fb",), TARGET, None)
    assert step.failed
    assert step.subscription is None
    assert step.effects[0].kind is ErrorKind.CHARACTERISTIC_NOT_FOUND


def test_characteristics_of_other_service_are_ignored() -> None:
    step = on_characteristics_discovered("AA", "0000180f-0000-1000-8000-00805f9b34fb", (CHARACTERISTIC,), TARGET, None)
    assert step.effects == []
    assert not step.resolved
    assert not step.failed


def test_enable_notify_is_idempotent() -> None:
    first = enable_notify("AA", TARGET, None)
    assert len(first.effects) == 1

    second = enable_notify("AA", TARGET, first.subscription)
    assert second.effects == []
    assert second.subscription == first.subscription
