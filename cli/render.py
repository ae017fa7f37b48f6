from __future__ import annotations

from typing import Any, Dict, Iterable

import typer

from models.messages import SerializableParseResults
from models.records import ALL_LOCATIONS, ParseResults


def echo_heading(text: str) -> None:
    typer.secho(text, bold=True)


def echo_key_values(pairs: Iterable[tuple[str, Any]]) -> None:
    for key, value in pairs:
        typer.echo(f"{key}: {value}")


def render_parse_results(results: ParseResults) -> None:
    """Print locations and their average water temperature, ordered by location ID."""
    locations = results.monitoring_locations
    echo_heading("Monitoring Locations")
    typer.echo(f"Found {len(locations)} monitoring locations:")
    for location_id in sorted(locations):
        typer.echo(f"  {location_id}: {locations[location_id]}")

    typer.echo()
    echo_heading("Water Temperature Results")
    location_results = results.monitoring_location_results
    if not location_results:
        typer.echo("No water temperature readings found.")
        return
    for location_id in sorted(location_results):
        result = location_results[location_id]
        if location_id == ALL_LOCATIONS:
            label = "ALL LOCATIONS"
        else:
            label = locations.get(location_id, location_id)
        typer.echo(f"{label} ({location_id}):")
        typer.echo(f"  Average: {result.average:.2f}°C ({result.count} readings)")


def render_result(payload: Dict[str, Any]) -> None:
    """Print a processing record fetched from the upload service."""
    echo_heading("Processing Result")
    echo_key_values(
        [
            ("file_id", payload.get("file_id")),
            ("filename", payload.get("filename")),
            ("status", payload.get("status")),
            ("uploaded_at", payload.get("uploaded_at")),
            ("processed_at", payload.get("processed_at")),
            ("processing_ms", payload.get("processing_ms")),
        ]
    )

    error = payload.get("error")
    if error:
        typer.echo()
        echo_heading("Error")
        echo_key_values([("kind", error.get("kind")), ("message", error.get("message"))])

    results = payload.get("results")
    if results:
        typer.echo()
        render_parse_results(SerializableParseResults.model_validate(results).to_results())
