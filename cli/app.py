from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, Optional

import typer

from cli.client import ApiClient
from cli.config import CLIConfig, load_config
from cli.render import render_event, render_pickups, render_prediction, render_series


@dataclass
class CLIState:
    config: CLIConfig
    client: ApiClient


app = typer.Typer(
    help="Utilities for interacting with the smart bin telemetry service.",
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
    timeout: Optional[float] = typer.Option(
        None,
        "--timeout",
        help="HTTP timeout in seconds.",
    ),
) -> None:
    """Entry point for the CLI."""
    config = load_config(base_url=base_url, timeout=timeout)
    client = ApiClient(config)
    ctx.obj = CLIState(config=config, client=client)
    ctx.call_on_close(client.close)


@app.command("send")
def send_command(
    ctx: typer.Context,
    bin_id: str = typer.Argument(..., help="Bin identifier."),
    recycle: Optional[float] = typer.Option(None, "--recycle", help="Recycle compartment distance (cm)."),
    general: Optional[float] = typer.Option(None, "--general", help="General compartment distance (cm)."),
    weight: Optional[float] = typer.Option(None, "--weight", help="Recycle compartment weight."),
) -> None:
    """Send a sensor reading as a bin device would."""
    state = _get_state(ctx)
    sensors: Dict[str, Any] = {}
    if recycle is not None or weight is not None:
        sensors["recycle"] = {"ultrasonic": recycle, "weight": weight}
    if general is not None:
        sensors["general"] = {"ultrasonic": general}
    if not sensors:
        raise typer.BadParameter("Provide at least one of --recycle, --general or --weight.")
    payload = state.client.send_update({"bin_id": bin_id, "sensors": sensors})
    render_event(payload)


@app.command("classify")
def classify_command(
    ctx: typer.Context,
    label: str = typer.Argument(..., help="Classifier label, e.g. plastic."),
    recyclable: Optional[str] = typer.Option(None, "--recyclable", help="yes, no or contaminated."),
    confidence: Optional[float] = typer.Option(None, "--confidence", help="Classifier confidence 0..1."),
    bin_id: Optional[str] = typer.Option(None, "--bin-id", help="Bin identifier."),
) -> None:
    """Send a classification result."""
    state = _get_state(ctx)
    body: Dict[str, Any] = {"label": label}
    if recyclable is not None:
        body["recyclable"] = recyclable
    if confidence is not None:
        body["confidence"] = confidence
    if bin_id is not None:
        body["bin_id"] = bin_id
    render_event(state.client.send_update(body))


@app.command("series")
def series_command(
    ctx: typer.Context,
    bin_id: str = typer.Argument(..., help="Bin identifier."),
    hours: float = typer.Option(24.0, "--hours", help="Window size in hours."),
) -> None:
    """Show recent distance samples for a bin."""
    state = _get_state(ctx)
    render_series(state.client.get_series(bin_id, hours))


@app.command("predict")
def predict_command(
    ctx: typer.Context,
    bin_id: str = typer.Argument(..., help="Bin identifier."),
    hours: int = typer.Option(24, "--hours", help="Forecast horizon in hours."),
    method: str = typer.Option("regression", "--method", help="regression or moving_average."),
) -> None:
    """Forecast a bin's fill level and threshold ETAs."""
    state = _get_state(ctx)
    render_prediction(state.client.predict(bin_id, hours, method))


@app.command("pickups")
def pickups_command(
    ctx: typer.Context,
    horizon: Optional[float] = typer.Option(None, "--horizon", help="Only bins full within this many hours."),
) -> None:
    """List bins in pickup order."""
    state = _get_state(ctx)
    render_pickups(state.client.pickups(horizon))


@app.command("ack")
def ack_command(
    ctx: typer.Context,
    event_id: str = typer.Argument(..., help="Event id to remove from history."),
) -> None:
    """Acknowledge (remove) an event from history."""
    state = _get_state(ctx)
    payload = state.client.acknowledge(event_id)
    if payload.get("found"):
        typer.secho(f"Removed {payload.get('removed')}", fg=typer.colors.GREEN)
    else:
        typer.echo(f"No event {payload.get('removed')} in history; nothing to remove.")


@app.command("export")
def export_command(
    ctx: typer.Context,
    output: Optional[Path] = typer.Option(None, "--output", "-o", dir_okay=False, help="Write CSV to this file."),
) -> None:
    """Download the event history as CSV."""
    state = _get_state(ctx)
    content = state.client.export_csv()
    if output is None:
        typer.echo(content, nl=False)
        return
    output.write_text(content, encoding="utf-8")
    typer.secho(f"Wrote {output}", fg=typer.colors.GREEN)
