"""Peripheral-to-target matching logic."""

from __future__ import annotations

from tremorctl.core.model import DiscoveredPeripheral, TargetSpec


def _identity_match(peripheral: DiscoveredPeripheral, identity: str) -> bool:
    return peripheral.identity.upper() == identity.upper()


def _name_match(peripheral: DiscoveredPeripheral, name: str) -> bool:
    return peripheral.name is not None and peripheral.name == name


def matches_target(peripheral: DiscoveredPeripheral, target: TargetSpec) -> bool:
    """Exact advertised-name match, or identity match when the target is pinned."""
    if target.peripheral_identity:
        return _identity_match(peripheral, target.peripheral_identity)
    return _name_match(peripheral, target.peripheral_name)
