from __future__ import annotations

from typing import Any, Dict, Iterable, Sequence

import typer

from models.records import PARAMETER_LABELS

_STATUS_COLORS = {
    "compliant": typer.colors.GREEN,
    "non_compliant": typer.colors.RED,
}


def echo_heading(text: str) -> None:
    typer.secho(text, bold=True)


def echo_key_values(pairs: Iterable[tuple[str, Any]]) -> None:
    for key, value in pairs:
        typer.echo(f"{key}: {value}")


def echo_status(status: str) -> None:
    typer.secho(status, fg=_STATUS_COLORS.get(status), bold=True)


def render_page(payload: Dict[str, Any]) -> None:
    items = payload.get("items") or []
    echo_heading(
        f"Measurements (page {payload.get('page')}, {len(items)} of {payload.get('total')})"
    )
    if not items:
        typer.echo("No measurements found.")
        return
    for item in items:
        typer.echo(
            f"  - {str(item.get('date', ''))[:16]} | {item.get('id')} | "
            f"T={item.get('temperature')} RH={item.get('humidity')} | {item.get('status')}"
        )


def render_dashboard(payload: Dict[str, Any]) -> None:
    kpis = payload.get("kpis") or {}
    echo_heading("Dashboard")
    echo_key_values(
        [
            ("temperature_avg", round(kpis.get("temperature_avg", 0.0), 2)),
            ("humidity_avg", round(kpis.get("humidity_avg", 0.0), 2)),
            ("compliant_count", kpis.get("compliant_count")),
            ("non_compliant_count", kpis.get("non_compliant_count")),
        ]
    )
    typer.echo(f"series points: {len(payload.get('series') or [])}")


def render_check(status: str, failing: Sequence[str]) -> None:
    echo_heading("Compliance")
    echo_status(status)
    if not failing:
        typer.echo("All parameters within limits.")
        return
    typer.echo("Out of range:")
    for name in failing:
        typer.echo(f"  - {PARAMETER_LABELS.get(name, name)}")
