from __future__ import annotations

from pathlib import Path

import pytest

from tremorctl.core.errors import ProfileSelectionError, ProfileValidationError
from tremorctl.core.profile_loader import load_profiles, normalize_uuid


def _write_profile(path: Path, content: str) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(content, encoding="utf-8")


def test_load_packaged_profile() -> None:
    loaded = load_profiles()
    profile = loaded.get()
    assert profile.id == "tremor_ble"
    assert profile.target.peripheral_name == "TremorBLE"
    assert profile.target.service_uuid == "e7810a71-73ae-499d-8c15-faa9aef0c3f2"
    assert profile.target.characteristic_uuid == "befc5c1c-a5d0-42db-a6c2-c0bfa020e50d"
    assert profile.target.peripheral_identity is None
    assert profile.timeouts.scan_s is None
    assert profile.filter_by_service is False
    assert profile.rescan_on_disconnect is False
    assert loaded.warnings == ()


def test_unknown_profile_lists_available() -> None:
    with pytest.raises(ProfileSelectionError) as exc:
        load_profiles().get("nope")
    assert "tremor_ble" in str(exc.value)


def test_short_uuids_expand_to_base_uuid() -> None:
    assert normalize_uuid("180F", context="x") == "0000180f-0000-1000-8000-00805f9b34fb"
    assert normalize_uuid("0x0000180f", context="x") == "0000180f-0000-1000-8000-00805f9b34fb"


def test_user_profile_with_options(tmp_path: Path) -> None:
    _write_profile(
        tmp_path / "data" / "tremorctl" / "profiles" / "bench.yaml",
        """
id: bench_rig
name: Bench rig
match:
  peripheral_name: TremorBLE-Bench
  identity: "AA:BB:CC:DD:EE:FF"
gatt:
  service_uuid: "180f"
  characteristic_uuid: "2a19"
scan:
  filter_by_service: true
  rescan_on_disconnect: "true"
timeouts:
  scan_s: 30
  connect_s: 2.5
""",
    )

    profile = load_profiles().get("bench_rig")
    assert profile.target.peripheral_identity == "AA:BB:CC:DD:EE:FF"
    assert profile.target.service_uuid == "0000180f-0000-1000-8000-00805f9b34fb"
    assert profile.target.characteristic_uuid == "00002a19-0000-1000-8000-00805f9b34fb"
    assert profile.filter_by_service is True
    assert profile.rescan_on_disconnect is True
    assert profile.timeouts.scan_s == 30.0
    assert profile.timeouts.connect_s == 2.5
    assert profile.timeouts.discovery_s is None


def test_invalid_uuid_rejected(tmp_path: Path) -> None:
    _write_profile(
        tmp_path / "cfg" / "tremorctl" / "profiles" / "bad.yaml",
        """
id: bad_uuid
name: Bad UUID
match:
  peripheral_name: Bad
gatt:
  service_uuid: "not-a-uuid"
  characteristic_uuid: "2a19"
""",
    )

    with pytest.raises(ProfileValidationError):
        load_profiles()


def test_missing_required_keys_rejected(tmp_path: Path) -> None:
    _write_profile(
        tmp_path / "cfg" / "tremorctl" / "profiles" / "missing.yaml",
        """
id: missing
name: Missing
match:
  peripheral_name: Missing
""",
    )

    with pytest.raises(ProfileValidationError):
        load_profiles()


def test_non_positive_timeout_rejected(tmp_path: Path) -> None:
    _write_profile(
        tmp_path / "cfg" / "tremorctl" / "profiles" / "zero.yaml",
        """
id: zero
name: Zero timeout
match:
  peripheral_name: Zero
gatt:
  service_uuid: "180f"
  characteristic_uuid: "2a19"
timeouts:
  connect_s: 0
""",
    )

    with pytest.raises(ProfileValidationError):
        load_profiles()


def test_bad_boolean_rejected(tmp_path: Path) -> None:
    _write_profile(
        tmp_path / "cfg" / "tremorctl" / "profiles" / "bool.yaml",
        """
id: bad_bool
name: Bad bool
match:
  peripheral_name: Bool
gatt:
  service_uuid: "180f"
  characteristic_uuid: "2a19"
scan:
  filter_by_service: "maybe"
""",
    )

    with pytest.raises(ProfileValidationError):
        load_profiles()


def test_user_profile_override_packaged(tmp_path: Path) -> None:
    _write_profile(
        tmp_path / "cfg" / "tremorctl" / "profiles" / "override.yaml",
        """
id: tremor_ble
name: User Override
match:
  peripheral_name: TremorBLE-Left
gatt:
  service_uuid: "E7810A71-73AE-499D-8C15-FAA9AEF0C3F2"
  characteristic_uuid: "BEFC5C1C-A5D0-42DB-A6C2-C0BFA020E50D"
""",
    )

    loaded = load_profiles()
    assert loaded.profiles["tremor_ble"].name == "User Override"
    assert loaded.profiles["tremor_ble"].target.peripheral_name == "TremorBLE-Left"
    assert any("overrides" in warning for warning in loaded.warnings)


def test_duplicate_yaml_keys_rejected(tmp_path: Path) -> None:
    _write_profile(
        tmp_path / "cfg" / "tremorctl" / "profiles" / "dup.yaml",
        """
id: dup
name: Duplicate
match:
  peripheral_name: Duplicate
  peripheral_name: Again
gatt:
  service_uuid: "180f"
  characteristic_uuid: "2a19"
""",
    )

    with pytest.raises(ProfileValidationError):
        load_profiles()
