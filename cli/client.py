from __future__ import annotations

import time
from pathlib import Path
from typing import Any, Dict, NoReturn

import httpx
import typer

from app.schemas import PENDING_STATUSES
from cli.config import CLIConfig

_PENDING = {status.value for status in PENDING_STATUSES}


class ApiClient:
    """Minimal HTTP client for the upload service."""

    def __init__(self, config: CLIConfig) -> None:
        self._config = config
        self._client = httpx.Client(base_url=config.base_url, timeout=30.0)

    def close(self) -> None:
        self._client.close()

    def upload_file(self, path: Path) -> str:
        try:
            with path.open("rb") as handle:
                response = self._client.post(
                    "/files",
                    files={"file": (path.name, handle, "text/csv")},
                )
            response.raise_for_status()
        except httpx.HTTPStatusError as exc:
            self._handle_http_error(exc)
        file_id = response.json().get("file_id")
        if not isinstance(file_id, str):
            raise typer.BadParameter("Unexpected response payload when uploading file.")
        return file_id

    def get_result(self, file_id: str) -> Dict[str, Any]:
        return self._request("GET", f"/files/{file_id}", file_id)

    def cancel(self, file_id: str) -> Dict[str, Any]:
        return self._request("POST", f"/files/{file_id}/cancel", file_id)

    def poll_result(self, file_id: str, interval: float, timeout: float) -> Dict[str, Any]:
        deadline = time.monotonic() + timeout
        last_payload: Dict[str, Any] | None = None
        while time.monotonic() <= deadline:
            last_payload = self.get_result(file_id)
            if last_payload.get("status") not in _PENDING:
                return last_payload
            time.sleep(interval)
        last_status = last_payload.get("status") if last_payload else "unknown"
        typer.secho(
            f"Timed out waiting for processing of {file_id}. Last status: {last_status}",
            fg=typer.colors.RED,
            err=True,
        )
        raise typer.Exit(code=1)

    def _request(self, method: str, url: str, file_id: str) -> Dict[str, Any]:
        try:
            response = self._client.request(method, url)
            if response.status_code == 404:
                raise typer.BadParameter(f"File {file_id} was not found.")
            response.raise_for_status()
        except httpx.HTTPStatusError as exc:
            self._handle_http_error(exc)
        return response.json()

    @staticmethod
    def _handle_http_error(exc: httpx.HTTPStatusError) -> NoReturn:
        try:
            detail = exc.response.json().get("detail")
        except ValueError:
            detail = exc.response.text.strip()
        typer.secho(
            f"Request failed with status {exc.response.status_code}: {detail or 'no detail provided.'}",
            fg=typer.colors.RED,
            err=True,
        )
        raise typer.Exit(code=1)
