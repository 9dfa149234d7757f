from __future__ import annotations

import time
from dataclasses import dataclass
from typing import Any, Dict, Optional

import typer

from cli.client import ApiClient
from cli.config import CLIConfig, load_config
from cli.render import render_alerts, render_reading
from cli.simulator import build_state


@dataclass
class CLIState:
    config: CLIConfig
    client: ApiClient


app = typer.Typer(
    help="Device-side utilities for the fleet telemetry intake service.",
    context_settings={"help_option_names": ["-h", "--help"]},
)


def _get_state(ctx: typer.Context) -> CLIState:
    state = ctx.obj
    if not isinstance(state, CLIState):
        typer.secho("CLI state is uninitialized.", fg=typer.colors.RED, err=True)
        raise typer.Exit(code=1)
    return state


@app.callback()
def main(
    ctx: typer.Context,
    base_url: Optional[str] = typer.Option(
        None,
        "--base-url",
        "-b",
        help="Service base URL (defaults to API_BASE_URL env or http://localhost:8000).",
    ),
    api_key: Optional[str] = typer.Option(
        None,
        "--api-key",
        "-k",
        help="Device API key (defaults to DEVICE_API_KEY env).",
    ),
    timeout: Optional[float] = typer.Option(
        None,
        "--timeout",
        help="HTTP timeout in seconds.",
    ),
) -> None:
    """Entry point for the CLI."""
    config = load_config(base_url=base_url, api_key=api_key, timeout=timeout)
    client = ApiClient(config)
    ctx.obj = CLIState(config=config, client=client)
    ctx.call_on_close(client.close)


@app.command("send")
def send_command(
    ctx: typer.Context,
    gps_lat: float = typer.Option(..., "--lat", help="Latitude in degrees."),
    gps_lng: float = typer.Option(..., "--lng", help="Longitude in degrees."),
    fuel_level: float = typer.Option(..., "--fuel", help="Fuel level percent (0-100)."),
    engine_rpm: float = typer.Option(0.0, "--rpm", help="Engine RPM."),
    speed: float = typer.Option(0.0, "--speed", help="Speed in km/h."),
    engine_hours: float = typer.Option(..., "--engine-hours", help="Cumulative engine hours."),
    timestamp: Optional[str] = typer.Option(
        None,
        "--timestamp",
        help="ISO-8601 reading time; the server uses its own clock when omitted.",
    ),
) -> None:
    """Send a single reading as the configured device."""
    state = _get_state(ctx)
    payload: Dict[str, Any] = {
        "gpsLat": gps_lat,
        "gpsLng": gps_lng,
        "fuelLevel": fuel_level,
        "engineRpm": engine_rpm,
        "speed": speed,
        "engineHours": engine_hours,
    }
    if timestamp:
        payload["timestamp"] = timestamp
    state.client.send_reading(payload)
    typer.secho("Reading accepted.", fg=typer.colors.GREEN)


@app.command("simulate")
def simulate_command(
    ctx: typer.Context,
    count: int = typer.Option(10, "--count", "-n", min=1, help="Number of readings to send."),
    step_minutes: float = typer.Option(
        10.0, "--step-minutes", help="Simulated minutes between readings."
    ),
    delay: float = typer.Option(0.0, "--delay", min=0.0, help="Real seconds to wait between sends."),
    siphon_at: Optional[int] = typer.Option(
        None, "--siphon-at", help="Reading index (1-based) at which fuel is siphoned."
    ),
    siphon_percent: float = typer.Option(
        10.0, "--siphon-percent", help="Fuel percentage points removed by the siphon."
    ),
    fuel_level: float = typer.Option(90.0, "--fuel", help="Starting fuel level percent."),
    seed: Optional[int] = typer.Option(None, "--seed", help="Random seed for repeatable runs."),
) -> None:
    """Stream a sequence of simulated readings as the configured device."""
    state = _get_state(ctx)
    machine = build_state(seed=seed, fuel_level=fuel_level)
    typer.echo(f"Sending {count} readings to {state.config.base_url} ...")
    for index in range(1, count + 1):
        if index > 1:
            machine.step(step_minutes)
        if siphon_at is not None and index == siphon_at:
            machine.siphon(siphon_percent)
        payload = machine.to_payload()
        state.client.send_reading(payload)
        typer.echo(
            f"[{index}/{count}] {payload['timestamp']} fuel={payload['fuelLevel']} rpm={payload['engineRpm']}"
        )
        if delay and index < count:
            time.sleep(delay)
    typer.secho("Simulation complete.", fg=typer.colors.GREEN)


@app.command("latest")
def latest_command(
    ctx: typer.Context,
    device_id: str = typer.Argument(..., help="Device identifier."),
) -> None:
    """Show the most recent stored reading for a device."""
    state = _get_state(ctx)
    render_reading(state.client.latest_reading(device_id))


@app.command("alerts")
def alerts_command(
    ctx: typer.Context,
    device_id: Optional[str] = typer.Option(None, "--device-id", help="Only show this device."),
) -> None:
    """List recorded fuel anomalies."""
    state = _get_state(ctx)
    render_alerts(state.client.list_alerts(device_id))
