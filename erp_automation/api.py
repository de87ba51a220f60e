"""HTTP surface that runs the Bateo de ventas export on demand.

Each request runs one full workflow (login, export, ingestion when a database
is configured) and streams the saved file back. Ingestion results travel in
``X-Ingest-*`` headers so a failed ingest never blocks the download.
"""
from __future__ import annotations

from datetime import date
from pathlib import Path
from typing import Dict, Optional

from fastapi import FastAPI, Query
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import FileResponse, JSONResponse, Response
from pydantic import BaseModel, ConfigDict, Field

from erp_automation.bateo_ventas.settings import load_settings
from erp_automation.bateo_ventas.workflow import WorkflowResult, run_workflow
from erp_automation.common.date_utils import parse_ymd
from erp_automation.common.json_logger import get_logger, log_event, new_run_id
from erp_automation.config import ConfigError

CONTENT_TYPES = {
    ".xlsx": "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet",
    ".xls": "application/vnd.ms-excel",
    ".csv": "text/csv",
}
DEFAULT_CONTENT_TYPE = "application/octet-stream"


class FechaRangoRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    base_url: Optional[str] = Field(default=None, alias="baseUrl")
    user: Optional[str] = None
    password: Optional[str] = Field(default=None, alias="pass")


app = FastAPI(
    title="ERP automation",
    description="Runs the Bateo de ventas export and streams the downloaded report",
    version="0.1.0",
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_methods=["GET", "POST", "OPTIONS"],
    allow_headers=["Content-Type"],
)


def content_type_for(path: Path) -> str:
    return CONTENT_TYPES.get(path.suffix.lower(), DEFAULT_CONTENT_TYPE)


def is_within(path: Path, root: Path) -> bool:
    try:
        path.resolve().relative_to(root.resolve())
    except ValueError:
        return False
    return True


def _header_value(value: object) -> str:
    text = " ".join(str(value).split())
    return text.encode("latin-1", "replace").decode("latin-1")


def ingest_headers(result: WorkflowResult) -> Dict[str, str]:
    batch = result.batch
    if batch is None:
        return {
            "X-Ingest-OK": "false",
            "X-Ingest-Error": _header_value(result.ingest_error or "ingestion disabled"),
        }
    return {
        "X-Ingest-OK": "true",
        "X-Ingest-Batch-Id": str(batch.id),
        "X-Ingest-Rows": str(batch.rows),
        "X-Ingest-Range-Start": batch.range_start,
        "X-Ingest-Range-End": batch.range_end,
    }


def _error(status_code: int, message: str, **extra: object) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"ok": False, "error": message, **extra})


async def run_export(
    *,
    query_date: Optional[date],
    base_url: Optional[str],
    username: Optional[str],
    password: Optional[str],
) -> Response:
    run_id = new_run_id()
    logger = get_logger(run_id=run_id)
    try:
        try:
            settings = load_settings(
                run_id=run_id,
                base_url=base_url,
                username=username,
                password=password,
                query_date=query_date,
            )
        except (ValueError, ConfigError) as exc:
            log_event(logger=logger, phase="prereq", status="error", message=str(exc), surface="api")
            return _error(400, str(exc), run_id=run_id)
        result = await run_workflow(settings=settings, logger=logger)
    finally:
        logger.close()

    if not result.ok or result.artifact is None:
        return _error(
            400,
            result.error or "export did not produce a file",
            error_type=result.error_type,
            run_id=run_id,
            range_start=result.date_range.start_str,
            range_end=result.date_range.end_str,
        )

    saved_path = result.artifact.saved_path
    if not is_within(saved_path, settings.downloads_dir):
        return _error(403, "download path outside allowed directory", run_id=run_id)
    if not saved_path.is_file():
        return _error(500, f"downloaded file not found: {saved_path.name}", run_id=run_id)

    headers = ingest_headers(result)
    headers["X-Run-Id"] = run_id
    return FileResponse(
        saved_path,
        media_type=content_type_for(saved_path),
        filename=saved_path.name,
        headers=headers,
    )


@app.get("/health")
async def health():
    return {"ok": True}


@app.get("/bateo/ventas/export")
async def export_bateo_ventas(
    query_date: Optional[str] = Query(default=None, alias="date"),
    base_url: Optional[str] = Query(default=None, alias="baseUrl"),
    user: Optional[str] = None,
    password: Optional[str] = Query(default=None, alias="pass"),
):
    """Run the export for ``date`` (default today) and stream the file."""

    parsed_date: Optional[date] = None
    if query_date and query_date.strip():
        try:
            parsed_date = parse_ymd(query_date)
        except ValueError:
            return _error(400, f"Invalid date {query_date!r}; expected YYYY-MM-DD")
    return await run_export(query_date=parsed_date, base_url=base_url, username=user, password=password)


@app.post("/bateo/ventas/fecha-rango")
async def export_fecha_rango(body: Optional[FechaRangoRequest] = None):
    body = body or FechaRangoRequest()
    return await run_export(query_date=None, base_url=body.base_url, username=body.user, password=body.password)
