import io
from datetime import date
from pathlib import Path

import pytest
from fastapi.testclient import TestClient

from erp_automation import api
from erp_automation import config as config_module
from erp_automation.bateo_ventas import settings as settings_module
from erp_automation.bateo_ventas.export import ExportArtifact, build_export_filename
from erp_automation.bateo_ventas.ingest import BatchInfo
from erp_automation.bateo_ventas.workflow import WorkflowResult
from erp_automation.common.date_utils import compute_date_range
from erp_automation.common.json_logger import JsonLogger
from erp_automation.config import Config

XLSX_BYTES = b"PK\x03\x04bateo-xlsx"
XLSX_TYPE = "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet"


@pytest.fixture
def downloads_dir(tmp_path) -> Path:
    return tmp_path / "downloads"


@pytest.fixture
def client(monkeypatch, downloads_dir):
    cfg = Config.load_from_env(
        {
            "ERP_BASE_URL": "http://erp.example.com",
            "ERP_USER": "env-user",
            "ERP_PASS": "env-pass",
            "DOWNLOADS_DIR": str(downloads_dir),
        }
    )
    monkeypatch.setattr(settings_module, "config", cfg)
    monkeypatch.setattr(config_module, "_config", cfg)
    monkeypatch.setattr(
        api,
        "get_logger",
        lambda run_id: JsonLogger(run_id=run_id, stream=io.StringIO(), log_file_path=None),
    )
    return TestClient(api.app)


def install_workflow(monkeypatch, *, ok=True, batch=True, ingest_error=None, save_dir=None, error_type=None):
    calls: list = []

    async def fake_run_workflow(*, settings, logger):
        calls.append(settings)
        date_range = compute_date_range(settings.query_date)
        result = WorkflowResult(date_range=date_range)
        if not ok:
            result.error = "Login failed: Usuario o contraseña incorrectos"
            result.error_type = error_type or "LoginFailed"
            return result
        target_dir = save_dir or settings.downloads_dir
        target_dir.mkdir(parents=True, exist_ok=True)
        saved_path = target_dir / build_export_filename("reporte.xlsx", date_range)
        saved_path.write_bytes(XLSX_BYTES)
        result.artifact = ExportArtifact("reporte.xlsx", saved_path, len(XLSX_BYTES))
        result.ok = True
        if batch:
            result.batch = BatchInfo(
                id=7,
                range_start=date_range.start_str,
                range_end=date_range.end_str,
                filename=saved_path.name,
                rows=12,
                stored_rows=11,
            )
        result.ingest_error = ingest_error
        return result

    monkeypatch.setattr(api, "run_workflow", fake_run_workflow)
    return calls


def test_health(client):
    response = client.get("/health")

    assert response.status_code == 200
    assert response.json() == {"ok": True}


def test_export_streams_file_with_ingest_headers(client, monkeypatch, downloads_dir):
    calls = install_workflow(monkeypatch)

    response = client.get("/bateo/ventas/export", params={"date": "2024-06-15"})

    assert response.status_code == 200
    assert response.content == XLSX_BYTES
    assert response.headers["content-type"] == XLSX_TYPE
    assert "reporte_2024-06-01_a_2024-06-14.xlsx" in response.headers["content-disposition"]
    assert response.headers["x-ingest-ok"] == "true"
    assert response.headers["x-ingest-batch-id"] == "7"
    assert response.headers["x-ingest-rows"] == "12"
    assert response.headers["x-ingest-range-start"] == "2024-06-01"
    assert response.headers["x-ingest-range-end"] == "2024-06-14"
    assert response.headers["x-run-id"]

    (settings,) = calls
    assert settings.query_date == date(2024, 6, 15)
    assert settings.credentials.username == "env-user"
    assert settings.downloads_dir == downloads_dir


def test_export_query_overrides_credentials(client, monkeypatch):
    calls = install_workflow(monkeypatch)

    response = client.get(
        "/bateo/ventas/export",
        params={"date": "2024-06-15", "baseUrl": "http://other-erp/", "user": "u2", "pass": "p2"},
    )

    assert response.status_code == 200
    credentials = calls[0].credentials
    assert (credentials.base_url, credentials.username, credentials.password) == ("http://other-erp/", "u2", "p2")


def test_export_without_date_uses_today(client, monkeypatch):
    calls = install_workflow(monkeypatch)

    response = client.get("/bateo/ventas/export")

    assert response.status_code == 200
    assert calls[0].query_date == date.today()


def test_ingest_failure_still_streams_file(client, monkeypatch):
    install_workflow(monkeypatch, batch=False, ingest_error="no such table: ingest_batches")

    response = client.get("/bateo/ventas/export", params={"date": "2024-06-15"})

    assert response.status_code == 200
    assert response.content == XLSX_BYTES
    assert response.headers["x-ingest-ok"] == "false"
    assert response.headers["x-ingest-error"] == "no such table: ingest_batches"
    assert "x-ingest-batch-id" not in response.headers


def test_workflow_failure_returns_400(client, monkeypatch):
    install_workflow(monkeypatch, ok=False)

    response = client.get("/bateo/ventas/export", params={"date": "2024-06-15"})

    assert response.status_code == 400
    payload = response.json()
    assert payload["ok"] is False
    assert payload["error_type"] == "LoginFailed"
    assert payload["range_start"] == "2024-06-01"
    assert payload["range_end"] == "2024-06-14"


def test_file_outside_downloads_dir_is_refused(client, monkeypatch, tmp_path):
    install_workflow(monkeypatch, save_dir=tmp_path / "elsewhere")

    response = client.get("/bateo/ventas/export", params={"date": "2024-06-15"})

    assert response.status_code == 403
    assert response.json()["error"] == "download path outside allowed directory"


def test_invalid_date_is_rejected(client, monkeypatch):
    calls = install_workflow(monkeypatch)

    response = client.get("/bateo/ventas/export", params={"date": "15/06/2024"})

    assert response.status_code == 400
    assert "YYYY-MM-DD" in response.json()["error"]
    assert calls == []


def test_missing_credentials_are_rejected(client, monkeypatch):
    monkeypatch.setattr(settings_module, "config", Config.load_from_env({}))
    calls = install_workflow(monkeypatch)

    response = client.get("/bateo/ventas/export")

    assert response.status_code == 400
    assert "credentials" in response.json()["error"]
    assert calls == []


def test_fecha_rango_accepts_json_credentials(client, monkeypatch):
    calls = install_workflow(monkeypatch)

    response = client.post(
        "/bateo/ventas/fecha-rango",
        json={"baseUrl": "http://erp2.example.com", "user": "body-user", "pass": "body-pass"},
    )

    assert response.status_code == 200
    assert response.content == XLSX_BYTES
    credentials = calls[0].credentials
    assert credentials.base_url == "http://erp2.example.com"
    assert credentials.username == "body-user"
    assert credentials.password == "body-pass"
    assert calls[0].query_date == date.today()


def test_fecha_rango_without_body_uses_config(client, monkeypatch):
    calls = install_workflow(monkeypatch)

    response = client.post("/bateo/ventas/fecha-rango")

    assert response.status_code == 200
    assert calls[0].credentials.username == "env-user"


def test_fecha_rango_rejects_get(client):
    assert client.get("/bateo/ventas/fecha-rango").status_code == 405


def test_cors_headers_are_sent(client, monkeypatch):
    install_workflow(monkeypatch)

    response = client.get("/health", headers={"Origin": "http://localhost:5173"})

    assert response.headers["access-control-allow-origin"] == "*"


@pytest.mark.parametrize(
    ("name", "expected"),
    [
        ("a.xlsx", XLSX_TYPE),
        ("a.XLS", "application/vnd.ms-excel"),
        ("a.csv", "text/csv"),
        ("a.bin", "application/octet-stream"),
    ],
)
def test_content_type_for(name, expected):
    assert api.content_type_for(Path(name)) == expected


def test_is_within(tmp_path):
    root = tmp_path / "downloads"
    root.mkdir()

    assert api.is_within(root / "a.xlsx", root)
    assert not api.is_within(root / ".." / "a.xlsx", root)
    assert not api.is_within(tmp_path / "downloads-other" / "a.xlsx", root)
