from __future__ import annotations

import json
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, Optional

import typer

from app.schemas import ComplianceStatus
from cli.client import ApiClient
from cli.config import CLIConfig, load_config
from cli.render import render_check, render_dashboard, render_page
from logging_config import configure_logging
from models.records import EnvironmentalReading
from services.compliance import compute_status, failing_parameters
from services.container import build_default_container
from services.seed import DEMO_ADMIN_EMAIL, DEMO_ADMIN_PASSWORD, seed_demo_data


@dataclass
class CLIState:
    config: CLIConfig
    client: ApiClient


app = typer.Typer(
    help="Utilities for recording and reviewing indoor air-quality measurements.",
    context_settings={"help_option_names": ["-h", "--help"]},
)


def _get_state(ctx: typer.Context) -> CLIState:
    state = ctx.obj
    if not isinstance(state, CLIState):
        typer.secho("CLI state is uninitialized.", fg=typer.colors.RED, err=True)
        raise typer.Exit(code=1)
    return state


def _load_json(path: Path) -> Dict[str, Any]:
    try:
        data = json.loads(path.read_text(encoding="utf-8"))
    except (OSError, json.JSONDecodeError) as exc:
        raise typer.BadParameter(f"Could not read JSON from {path}: {exc}") from exc
    if not isinstance(data, dict):
        raise typer.BadParameter(f"{path} must contain a JSON object.")
    return data


def _load_reading(data: Dict[str, Any]) -> EnvironmentalReading:
    try:
        return EnvironmentalReading.from_mapping(data)
    except ValueError as exc:
        raise typer.BadParameter(str(exc)) from exc


def _filters(
    institution: Optional[str],
    sector: Optional[str],
    date_from: Optional[str],
    date_to: Optional[str],
) -> Dict[str, Any]:
    return {"institution_id": institution, "sector_id": sector, "from": date_from, "to": date_to}


@app.callback()
def main(
    ctx: typer.Context,
    base_url: Optional[str] = typer.Option(
        None,
        "--base-url",
        "-b",
        help="API base URL (defaults to API_BASE_URL env or http://localhost:8000).",
    ),
    token: Optional[str] = typer.Option(
        None,
        "--token",
        "-t",
        help="Bearer token (defaults to AIRWATCH_TOKEN env).",
    ),
) -> None:
    """Entry point for the CLI."""
    config = load_config(base_url=base_url, token=token)
    client = ApiClient(config)
    ctx.obj = CLIState(config=config, client=client)
    ctx.call_on_close(client.close)


@app.command("login")
def login_command(
    ctx: typer.Context,
    email: str = typer.Option(..., "--email", "-e", prompt=True),
    password: str = typer.Option(..., "--password", "-p", prompt=True, hide_input=True),
) -> None:
    """Print a bearer token for use with --token or AIRWATCH_TOKEN."""
    state = _get_state(ctx)
    typer.echo(state.client.login(email, password))


@app.command("measurements")
def measurements_command(
    ctx: typer.Context,
    institution: Optional[str] = typer.Option(None, "--institution", help="Institution id."),
    sector: Optional[str] = typer.Option(None, "--sector", help="Sector id."),
    date_from: Optional[str] = typer.Option(None, "--from", help="ISO date lower bound."),
    date_to: Optional[str] = typer.Option(None, "--to", help="ISO date upper bound."),
    page: int = typer.Option(1, "--page", min=1),
    page_size: int = typer.Option(10, "--page-size", min=1, max=200),
) -> None:
    """List stored measurements, newest first."""
    state = _get_state(ctx)
    params = _filters(institution, sector, date_from, date_to)
    params.update(page=page, page_size=page_size)
    render_page(state.client.list_measurements(params))


@app.command("submit")
def submit_command(
    ctx: typer.Context,
    file: Path = typer.Argument(..., exists=True, dir_okay=False, readable=True, help="Measurement JSON."),
    institution: Optional[str] = typer.Option(None, "--institution", help="Overrides institution_id."),
    sector: Optional[str] = typer.Option(None, "--sector", help="Overrides sector_id."),
) -> None:
    """Record a measurement from a JSON file and show its verdict."""
    state = _get_state(ctx)
    data = _load_json(file)
    reading = _load_reading(data)
    institution_id = institution or data.get("institution_id") or data.get("institutionId")
    sector_id = sector or data.get("sector_id") or data.get("sectorId")
    if not institution_id or not sector_id:
        raise typer.BadParameter("Both an institution and a sector are required.")
    payload = {
        **reading.as_dict(),
        "date": data.get("date") or datetime.now(timezone.utc).isoformat(),
        "institution_id": institution_id,
        "sector_id": sector_id,
    }
    measurement_id = state.client.create_measurement(payload)
    typer.secho(f"Measurement recorded. id={measurement_id}", fg=typer.colors.GREEN)
    checks = state.client.get_checks(measurement_id)
    render_check(checks.get("status", ""), checks.get("failing") or [])


@app.command("check")
def check_command(
    file: Path = typer.Argument(..., exists=True, dir_okay=False, readable=True, help="Reading JSON."),
    strict: bool = typer.Option(False, "--strict", help="Exit with code 2 when non-compliant."),
) -> None:
    """Evaluate a reading locally against the regulatory limits."""
    reading = _load_reading(_load_json(file))
    status = compute_status(reading)
    render_check(status.value, failing_parameters(reading))
    if strict and status is not ComplianceStatus.compliant:
        raise typer.Exit(code=2)


@app.command("dashboard")
def dashboard_command(
    ctx: typer.Context,
    institution: Optional[str] = typer.Option(None, "--institution"),
    sector: Optional[str] = typer.Option(None, "--sector"),
    date_from: Optional[str] = typer.Option(None, "--from"),
    date_to: Optional[str] = typer.Option(None, "--to"),
) -> None:
    """Show compliance KPIs for the selected measurements."""
    state = _get_state(ctx)
    render_dashboard(state.client.dashboard(_filters(institution, sector, date_from, date_to)))


@app.command("report")
def report_command(
    ctx: typer.Context,
    output: Path = typer.Option(..., "--output", "-o", dir_okay=False, help="Destination file."),
    report_format: str = typer.Option("pdf", "--format", "-f", help="pdf or excel."),
    institution: Optional[str] = typer.Option(None, "--institution"),
    sector: Optional[str] = typer.Option(None, "--sector"),
    date_from: Optional[str] = typer.Option(None, "--from"),
    date_to: Optional[str] = typer.Option(None, "--to"),
    limit: Optional[int] = typer.Option(None, "--limit", min=1),
) -> None:
    """Download a PDF or Excel report of measurements."""
    if report_format not in {"pdf", "excel"}:
        raise typer.BadParameter("Format must be 'pdf' or 'excel'.")
    state = _get_state(ctx)
    params = _filters(institution, sector, date_from, date_to)
    params.update(format=report_format, limit=limit)
    content = state.client.download_report(params)
    output.write_bytes(content)
    typer.secho(f"Saved {len(content)} bytes to {output}", fg=typer.colors.GREEN)


@app.command("seed")
def seed_command(
    days: int = typer.Option(60, "--days", min=1, help="Days of readings per sector."),
) -> None:
    """Populate the local datastore with demo institutions and readings."""
    configure_logging()
    result = seed_demo_data(build_default_container(), days=days)
    typer.secho(
        f"Seeded {result.measurements} measurements across {result.sectors} sectors.",
        fg=typer.colors.GREEN,
    )
    typer.echo(f"Admin login: {DEMO_ADMIN_EMAIL} / {DEMO_ADMIN_PASSWORD}")
