"""Service/characteristic resolution and notification enablement."""

from __future__ import annotations

from dataclasses import dataclass, field

from tremorctl.core.events import (
    DiscoverCharacteristics,
    Effect,
    EmitError,
    SetNotify,
)
from tremorctl.core.model import ErrorKind, SubscribedCharacteristic, TargetSpec


@dataclass(frozen=True)
class ResolverStep:
    subscription: SubscribedCharacteristic | None
    effects: list[Effect] = field(default_factory=list)
    resolved: bool = False
    failed: bool = False


def on_services_discovered(
    identity: str,
    service_uuids: tuple[str, ...],
    target: TargetSpec,
    subscription: SubscribedCharacteristic | None,
) -> ResolverStep:
    if target.service_uuid not in service_uuids:
        found = ", ".join(service_uuids) or "<none>"
        return ResolverStep(
            subscription=subscription,
            effects=[
                EmitError(
                    ErrorKind.SERVICE_NOT_FOUND,
                    f"Service {target.service_uuid} not found on {identity}. Found: {found}",
                )
            ],
            failed=True,
        )
    return ResolverStep(
        subscription=subscription,
        effects=[
            DiscoverCharacteristics(
                identity=identity,
                characteristic_uuids=(target.characteristic_uuid,),
                service_uuid=target.service_uuid,
            )
        ],
    )


def on_characteristics_discovered(
    identity: str,
    service_uuid: str,
    characteristic_uuids: tuple[str, ...],
    target: TargetSpec,
    subscription: SubscribedCharacteristic | None,
) -> ResolverStep:
    if service_uuid != target.service_uuid:
        return ResolverStep(subscription=subscription)
    if target.characteristic_uuid not in characteristic_uuids:
        found = ", ".join(characteristic_uuids) or "<none>"
        return ResolverStep(
            subscription=subscription,
            effects=[
                EmitError(
                    ErrorKind.CHARACTERISTIC_NOT_FOUND,
                    f"Characteristic {target.characteristic_uuid} not found in service "
                    f"{service_uuid} on {identity}. Found: {found}",
                )
            ],
            failed=True,
        )
    return enable_notify(identity, target, subscription)


def enable_notify(
    identity: str,
    target: TargetSpec,
    subscription: SubscribedCharacteristic | None,
) -> ResolverStep:
    """Subscribe to the target characteristic; a no-op when already notifying."""
    if subscription is not None and subscription.notifying:
        return ResolverStep(subscription=subscription, resolved=True)
    return ResolverStep(
        subscription=SubscribedCharacteristic(
            characteristic_uuid=target.characteristic_uuid,
            notifying=True,
        ),
        effects=[
            SetNotify(
                identity=identity,
                service_uuid=target.service_uuid,
                characteristic_uuid=target.characteristic_uuid,
                enabled=True,
            )
        ],
        resolved=True,
    )
