from __future__ import annotations

from typing import Any, Dict, Iterable, List

import typer


def echo_heading(text: str) -> None:
    typer.secho(text, bold=True)


def echo_key_values(pairs: Iterable[tuple[str, Any]]) -> None:
    for key, value in pairs:
        typer.echo(f"{key}: {value}")


def render_reading(payload: Dict[str, Any]) -> None:
    echo_heading("Latest Reading")
    echo_key_values(
        [
            ("device_id", payload.get("device_id")),
            ("timestamp", payload.get("timestamp")),
            ("position", f"{payload.get('gps_lat')}, {payload.get('gps_lng')}"),
            ("fuel_level_percent", payload.get("fuel_level_percent")),
            ("engine_rpm", payload.get("engine_rpm")),
            ("speed_kmh", payload.get("speed_kmh")),
            ("engine_hours_total", payload.get("engine_hours_total")),
            ("is_ignition_on", payload.get("is_ignition_on")),
        ]
    )


def render_alerts(alerts: List[Dict[str, Any]]) -> None:
    echo_heading("Fuel Alerts")
    if not alerts:
        typer.echo("No anomalies recorded.")
        return
    for alert in alerts:
        typer.echo(
            f"  - {alert.get('triggering_reading_timestamp')} device={alert.get('device_id')} "
            f"drop={alert.get('fuel_drop_percent')}% "
            f"({alert.get('previous_fuel_level_percent')} -> {alert.get('current_fuel_level_percent')})"
        )
