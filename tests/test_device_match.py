from tremorctl.core.device_match import matches_target
from tremorctl.core.model import DiscoveredPeripheral, TargetSpec

SERVICE = "e7810a71-73ae-499d-8c15-faa9aef0c3f2"
CHARACTERISTIC = "befc5c1c-a5d0-42db-a6c2-c0bfa020e50d"


def _target(identity: str | None = None) -> TargetSpec:
    return TargetSpec(
        peripheral_name="TremorBLE",
        service_uuid=SERVICE,
        characteristic_uuid=CHARACTERISTIC,
        peripheral_identity=identity,
    )


def test_exact_name_match() -> None:
    assert matches_target(DiscoveredPeripheral(identity="AA", name="TremorBLE"), _target())


def test_name_match_is_exact() -> None:
    target = _target()
    assert not matches_target(DiscoveredPeripheral(identity="AA", name="tremorble"), target)
    assert not matches_target(DiscoveredPeripheral(identity="AA", name="TremorBLE 2"), target)
    assert not matches_target(DiscoveredPeripheral(identity="AA", name=None), target)


def test_pinned_identity_overrides_name() -> None:
    target = _target(identity="aa:bb:cc:dd:ee:ff")
    assert matches_target(DiscoveredPeripheral(identity="AA:BB:CC:DD:EE:FF", name="Other"), target)
    assert not matches_target(DiscoveredPeripheral(identity="11:22:33:44:55:66", name="TremorBLE"), target)
