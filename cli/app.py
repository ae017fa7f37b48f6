from __future__ import annotations

from pathlib import Path
from typing import Optional

import typer

from cli.client import ApiClient
from cli.config import CLIConfig, load_config
from cli.render import render_parse_results, render_result
from logging_config import configure_logging
from services.errors import CancellationError, IngestionError
from services.worker import parse_csv_file


class CLIState:
    """Per-invocation state; the HTTP client is only built for remote commands."""

    def __init__(self, config: CLIConfig) -> None:
        self.config = config
        self._client: ApiClient | None = None

    @property
    def client(self) -> ApiClient:
        if self._client is None:
            self._client = ApiClient(self.config)
        return self._client

    def close(self) -> None:
        if self._client is not None:
            self._client.close()


app = typer.Typer(
    help="Average water temperatures from water-quality CSV files.",
    context_settings={"help_option_names": ["-h", "--help"]},
)


def _get_state(ctx: typer.Context) -> CLIState:
    state = ctx.obj
    if not isinstance(state, CLIState):
        raise typer.Exit(code=1)
    return state


@app.callback()
def main(
    ctx: typer.Context,
    base_url: Optional[str] = typer.Option(
        None,
        "--base-url",
        "-b",
        help="Service base URL for remote commands (defaults to API_BASE_URL or http://localhost:8000).",
    ),
    poll_interval: Optional[float] = typer.Option(
        None,
        "--poll-interval",
        help="Seconds between status checks when waiting for completion.",
    ),
    timeout: Optional[float] = typer.Option(
        None,
        "--timeout",
        help="Maximum seconds to wait when polling for results.",
    ),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Log ingestion progress to stderr."),
) -> None:
    """Entry point for the CLI."""
    configure_logging("DEBUG" if verbose else "WARNING")
    state = CLIState(
        load_config(base_url=base_url, poll_interval=poll_interval, poll_timeout=timeout)
    )
    ctx.obj = state
    ctx.call_on_close(state.close)


@app.command("parse")
def parse_command(
    ctx: typer.Context,
    file: Path = typer.Argument(..., exists=True, dir_okay=False, readable=True, help="Path to CSV file."),
) -> None:
    """Parse a CSV file locally and print average water temperature per location."""
    state = _get_state(ctx)
    typer.echo(f"Parsing CSV file: {file}")
    typer.echo()
    operation = parse_csv_file(file, grace_period=state.config.cancel_grace)
    try:
        results = operation.result()
    except KeyboardInterrupt:
        operation.cancel()
        typer.secho("Cancelled.", fg=typer.colors.YELLOW, err=True)
        raise typer.Exit(code=130)
    except CancellationError:
        typer.secho("Cancelled.", fg=typer.colors.YELLOW, err=True)
        raise typer.Exit(code=130)
    except IngestionError as exc:
        typer.secho(f"Error: {exc}", fg=typer.colors.RED, err=True)
        raise typer.Exit(code=1)
    render_parse_results(results)


@app.command("upload")
def upload_command(
    ctx: typer.Context,
    file: Path = typer.Argument(..., exists=True, dir_okay=False, readable=True, help="Path to CSV file."),
    wait: bool = typer.Option(
        False,
        "--wait/--no-wait",
        help="Wait for processing to finish and display the result.",
    ),
) -> None:
    """Upload a CSV file to the service for asynchronous processing."""
    state = _get_state(ctx)
    typer.echo(f"Uploading {file} to {state.config.base_url} ...")
    file_id = state.client.upload_file(file)
    typer.secho(f"Upload accepted. file_id={file_id}", fg=typer.colors.GREEN)

    if not wait:
        return

    config = state.config
    typer.echo(
        f"Waiting for processing (interval={config.poll_interval}s, timeout={config.poll_timeout}s)..."
    )
    result = state.client.poll_result(
        file_id, interval=config.poll_interval, timeout=config.poll_timeout
    )
    typer.echo()
    render_result(result)
    if result.get("status") == "failed":
        raise typer.Exit(code=1)


@app.command("result")
def result_command(
    ctx: typer.Context,
    file_id: str = typer.Argument(..., help="Identifier returned from the upload command."),
) -> None:
    """Fetch processing status and temperature averages for an uploaded file."""
    state = _get_state(ctx)
    render_result(state.client.get_result(file_id))


@app.command("cancel")
def cancel_command(
    ctx: typer.Context,
    file_id: str = typer.Argument(..., help="Identifier returned from the upload command."),
) -> None:
    """Ask the service to stop processing an uploaded file."""
    state = _get_state(ctx)
    payload = state.client.cancel(file_id)
    typer.echo(f"Cancellation requested. file_id={file_id} status={payload.get('status')}")
