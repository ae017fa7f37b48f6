from __future__ import annotations

from pathlib import Path
from typing import Any, Dict, List

import pytest
from typer.testing import CliRunner

from cli.app import app

CSV_BODY = (
    "MonitoringLocationID,MonitoringLocationName,CharacteristicName,ResultValue\n"
    'B,Site B,"Temperature, water",20.0\n'
    'A,Site A,"Temperature, water",10.0\n'
)


class StubClient:
    def __init__(self, config, upload_response: str = "file-123") -> None:
        self.config = config
        self.upload_response = upload_response
        self.uploaded_path: Path | None = None
        self.poll_calls: List[tuple[str, float, float]] = []
        self.cancelled: List[str] = []
        self.result_payload: Dict[str, Any] = {
            "file_id": upload_response,
            "filename": "data.csv",
            "status": "completed",
            "uploaded_at": "2024-01-01T00:00:00Z",
            "processed_at": "2024-01-01T00:00:01Z",
            "processing_ms": 123,
            "results": {
                "monitoring_locations": [["A", "Site A"]],
                "monitoring_location_results": [
                    ["A", {"average": 12.5, "count": 2}],
                    ["-ALL-", {"average": 12.5, "count": 2}],
                ],
            },
            "error": None,
        }
        self.closed = False

    def upload_file(self, path: Path) -> str:
        self.uploaded_path = path
        return self.upload_response

    def poll_result(self, file_id: str, interval: float, timeout: float) -> Dict[str, Any]:
        self.poll_calls.append((file_id, interval, timeout))
        return self.result_payload

    def get_result(self, file_id: str) -> Dict[str, Any]:
        payload = self.result_payload.copy()
        payload["file_id"] = file_id
        return payload

    def cancel(self, file_id: str) -> Dict[str, Any]:
        self.cancelled.append(file_id)
        return {**self.result_payload, "file_id": file_id, "status": "processing"}

    def close(self) -> None:
        self.closed = True


@pytest.fixture()
def runner() -> CliRunner:
    return CliRunner()


def _install_stub(monkeypatch, stub: StubClient) -> None:
    def factory(config):
        stub.config = config
        return stub

    monkeypatch.setattr("cli.app.ApiClient", factory)


def test_parse_prints_sorted_averages(runner: CliRunner, tmp_path) -> None:
    csv_path = tmp_path / "data.csv"
    csv_path.write_text(CSV_BODY, encoding="utf-8")

    result = runner.invoke(app, ["parse", str(csv_path)])

    assert result.exit_code == 0, result.output
    assert "Found 2 monitoring locations:" in result.stdout
    assert "ALL LOCATIONS (-ALL-):" in result.stdout
    assert "Average: 15.00°C (2 readings)" in result.stdout
    assert result.stdout.index("Site A (A):") < result.stdout.index("Site B (B):")


def test_parse_without_argument_shows_usage(runner: CliRunner) -> None:
    result = runner.invoke(app, ["parse"])

    assert result.exit_code != 0
    assert "Usage" in result.output


def test_parse_reports_ingestion_errors(runner: CliRunner, tmp_path) -> None:
    csv_path = tmp_path / "bad.csv"
    csv_path.write_text("MonitoringLocationID,ResultValue\nA,1\n", encoding="utf-8")

    result = runner.invoke(app, ["parse", str(csv_path)])

    assert result.exit_code == 1
    assert "Missing required column: CharacteristicName" in result.output


def test_parse_reports_missing_header(runner: CliRunner, tmp_path) -> None:
    csv_path = tmp_path / "empty.csv"
    csv_path.write_text("", encoding="utf-8")

    result = runner.invoke(app, ["parse", str(csv_path)])

    assert result.exit_code == 1
    assert "CSV file must have a header line" in result.output


def test_upload_without_wait(monkeypatch, runner: CliRunner, tmp_path) -> None:
    stub = StubClient(config=None)
    _install_stub(monkeypatch, stub)
    csv_path = tmp_path / "data.csv"
    csv_path.write_text(CSV_BODY)

    result = runner.invoke(app, ["upload", str(csv_path)])

    assert result.exit_code == 0
    assert "Upload accepted" in result.stdout
    assert stub.uploaded_path == csv_path
    assert not stub.poll_calls
    assert stub.closed is True


def test_upload_with_wait(monkeypatch, runner: CliRunner, tmp_path) -> None:
    stub = StubClient(config=None)
    _install_stub(monkeypatch, stub)
    csv_path = tmp_path / "data.csv"
    csv_path.write_text(CSV_BODY)

    result = runner.invoke(
        app, ["--poll-interval", "0.1", "--timeout", "5", "upload", str(csv_path), "--wait"]
    )

    assert result.exit_code == 0
    assert "Processing Result" in result.stdout
    assert "Average: 12.50°C (2 readings)" in result.stdout
    assert stub.poll_calls == [("file-123", 0.1, 5.0)]
    assert stub.closed is True


def test_result_command(monkeypatch, runner: CliRunner) -> None:
    stub = StubClient(config=None)
    _install_stub(monkeypatch, stub)

    result = runner.invoke(app, ["result", "file-999"])

    assert result.exit_code == 0
    assert "file_id: file-999" in result.stdout
    assert "Water Temperature Results" in result.stdout
    assert stub.closed is True


def test_cancel_command(monkeypatch, runner: CliRunner) -> None:
    stub = StubClient(config=None)
    _install_stub(monkeypatch, stub)

    result = runner.invoke(app, ["cancel", "file-999"])

    assert result.exit_code == 0
    assert stub.cancelled == ["file-999"]
    assert "status=processing" in result.stdout
