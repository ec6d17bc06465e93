from __future__ import annotations

from typing import Any, Dict, Iterable

import typer

_STATE_COLOURS = {
    "ok": typer.colors.GREEN,
    "getting_full": typer.colors.YELLOW,
    "full": typer.colors.RED,
}


def echo_heading(text: str) -> None:
    typer.secho(text, bold=True)


def echo_key_values(pairs: Iterable[tuple[str, Any]]) -> None:
    for key, value in pairs:
        typer.echo(f"{key}: {value if value is not None else '-'}")


def render_event(payload: Dict[str, Any]) -> None:
    event = payload.get("event") or {}
    echo_heading("Stored Event")
    echo_key_values(
        [
            ("id", event.get("id")),
            ("kind", event.get("kind")),
            ("bin_id", event.get("bin_id")),
            ("timestamp", event.get("timestamp")),
        ]
    )
    if event.get("kind") == "sensors":
        state = event.get("state")
        typer.secho(
            f"fill: {event.get('percent_full', '-')}% ({state})",
            fg=_STATE_COLOURS.get(state),
        )
    else:
        echo_key_values(
            [
                ("label", event.get("label")),
                ("recyclable", event.get("recyclable")),
                ("confidence", event.get("confidence")),
                ("override", event.get("override")),
            ]
        )


def render_series(payload: Dict[str, Any]) -> None:
    points = payload.get("points") or []
    echo_heading(f"Series for {payload.get('bin_id')} (last {payload.get('hours')}h)")
    if not points:
        typer.echo("No samples recorded.")
        return
    for point in points:
        typer.echo(
            f"  {point.get('timestamp')}  {point.get('distance_cm')} cm  {point.get('percent_full')}%"
        )


def render_prediction(payload: Dict[str, Any]) -> None:
    echo_heading(f"Forecast for {payload.get('bin_id')}")
    echo_key_values(
        [
            ("method", payload.get("method")),
            ("current_percent", payload.get("current_percent")),
            ("state", payload.get("state")),
            ("slope_per_hr", payload.get("slope_per_hr")),
            ("eta90", payload.get("eta90")),
            ("eta100", payload.get("eta100")),
        ]
    )
    if payload.get("slope_per_hr") is None:
        typer.echo("Trend undetermined: not enough samples.")


def render_pickups(payload: Dict[str, Any]) -> None:
    items = payload.get("items") or []
    echo_heading(f"Pickup order (horizon {payload.get('horizon_hours')}h)")
    if not items:
        typer.echo("No bins are projected to fill within the horizon.")
        return
    for item in items:
        typer.echo(
            f"  {item.get('rank')}. {item.get('bin_id')}  "
            f"{item.get('current_percent')}% -> full at {item.get('eta100')} "
            f"({item.get('hours_to_full'):.1f}h)"
        )
