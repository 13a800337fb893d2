"""Typer CLI entrypoint."""

from __future__ import annotations

import asyncio
import logging

import typer

from tremorctl.core.decoder import decode, parse_hex_payload
from tremorctl.core.device_match import matches_target
from tremorctl.core.errors import TremorctlError
from tremorctl.core.model import Connection, ErrorKind, RadioState, TremorReading
from tremorctl.core.service import TremorService, apply_overrides

app = typer.Typer(help="Monitor a BLE tremor sensor and decode its status codes")


class ConsoleSink:
    def on_radio_unavailable(self, state: RadioState) -> None:
        typer.echo(f"Bluetooth not available. State: {state.value}", err=True)

    def on_connection_state_changed(self, connection: Connection) -> None:
        reason = f" ({connection.reason})" if connection.reason else ""
        typer.echo(f"{connection.identity}: {connection.state.value}{reason}")

    def on_reading(self, reading: TremorReading) -> None:
        typer.echo(f"0x{reading.raw_value:04X} {reading.label}")

    def on_error(self, kind: ErrorKind, context: str) -> None:
        typer.echo(f"Error [{kind.value}]: {context}", err=True)


def _build_service(profile_id: str | None = None) -> TremorService:
    service = TremorService(profile_id, sink=ConsoleSink())
    for warning in getattr(service, "load_warnings", ()):
        typer.echo(f"Warning: {warning}", err=True)
    return service


@app.callback()
def main(
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable debug logging"),
) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


@app.command("profiles")
def list_profiles() -> None:
    """List available target profiles."""
    try:
        service = _build_service()
        profiles = service.list_profiles()
        if not profiles:
            typer.echo("No profiles loaded")
            raise typer.Exit(code=1)

        for profile in profiles:
            typer.echo(f"{profile.id}: {profile.name}")
            typer.echo(f"  peripheral: {profile.target.peripheral_name}")
            if profile.target.peripheral_identity:
                typer.echo(f"  identity: {profile.target.peripheral_identity}")
            typer.echo(f"  service: {profile.target.service_uuid}")
            typer.echo(f"  characteristic: {profile.target.characteristic_uuid}")
    except TremorctlError as exc:
        typer.echo(f"Error: {exc}", err=True)
        raise typer.Exit(code=1) from None


@app.command("decode")
def decode_payload(payload: str) -> None:
    """Decode a hex characteristic payload, e.g. '0102'."""
    try:
        reading = decode(parse_hex_payload(payload))
        typer.echo(f"0x{reading.raw_value:04X} {reading.state.value}: {reading.label}")
    except TremorctlError as exc:
        typer.echo(f"Error: {exc}", err=True)
        raise typer.Exit(code=1) from None


@app.command("scan")
def scan(
    duration: float = typer.Option(5.0, "--duration", help="Scan duration in seconds"),
    profile: str | None = typer.Option(None, "--profile", help="Profile ID"),
) -> None:
    """List advertising peripherals and mark the ones matching the profile target."""
    try:
        service = _build_service(profile)
        peripherals = asyncio.run(service.list_peripherals(duration))
        if not peripherals:
            typer.echo("No BLE peripherals found")
            return

        for peripheral in peripherals:
            marker = " <- match" if matches_target(peripheral, service.profile.target) else ""
            rssi = peripheral.rssi if peripheral.rssi is not None else "?"
            typer.echo(f"{peripheral.identity} {peripheral.name or '<unnamed>'} rssi={rssi}{marker}")
    except TremorctlError as exc:
        typer.echo(f"Error: {exc}", err=True)
        raise typer.Exit(code=1) from None


@app.command("monitor")
def monitor(
    profile: str | None = typer.Option(None, "--profile", help="Profile ID"),
    name: str | None = typer.Option(None, "--name", help="Advertised peripheral name"),
    identity: str | None = typer.Option(None, "--identity", help="Pin a peripheral address/identity"),
    scan_timeout: float | None = typer.Option(None, "--scan-timeout", help="Seconds"),
    connect_timeout: float | None = typer.Option(None, "--connect-timeout", help="Seconds"),
    discovery_timeout: float | None = typer.Option(None, "--discovery-timeout", help="Seconds"),
) -> None:
    """Connect to the target peripheral and print decoded readings until interrupted."""
    try:
        service = _build_service(profile)
        service.profile = apply_overrides(
            service.profile,
            peripheral_name=name,
            identity=identity,
            scan_timeout_s=scan_timeout,
            connect_timeout_s=connect_timeout,
            discovery_timeout_s=discovery_timeout,
        )
        target = service.profile.target
        typer.echo(f"Scanning for {target.peripheral_identity or target.peripheral_name}...")
        asyncio.run(service.run())
    except KeyboardInterrupt:
        typer.echo("Stopped")
    except TremorctlError as exc:
        typer.echo(f"Error: {exc}", err=True)
        raise typer.Exit(code=1) from None


def run() -> None:
    app()


if __name__ == "__main__":
    run()
