"""Bateo de ventas export workflow.

One run owns one browser context/page pair: log in, open the Bateo de ventas
screen, apply the computed date range, consult, export and persist the file,
then check the date inputs still hold the requested range. Any step failing
aborts the run; diagnostics are captured and the browser is always closed.
"""
from __future__ import annotations

import contextlib
from dataclasses import dataclass
from pathlib import Path
from typing import Any

from playwright.async_api import Browser, BrowserContext, Page, async_playwright

from erp_automation.common.date_utils import DateRange, compute_date_range
from erp_automation.common.json_logger import JsonLogger, log_event, timed_event

from .browser import launch_browser, new_download_context
from .diagnostics import capture_failure_diagnostics
from .export import ExportArtifact, trigger_export
from .filters import consultar, set_date_range, verify_date_range
from .ingest import BatchInfo, ingest_export
from .login import login
from .navigation import open_direct, open_via_dashboard_menu
from .settings import WorkflowSettings

WORKFLOW_NAME = "bateo/fecha_rango"


@dataclass
class WorkflowResult:
    date_range: DateRange
    ok: bool = False
    artifact: ExportArtifact | None = None
    batch: BatchInfo | None = None
    error: str | None = None
    error_type: str | None = None
    ingest_error: str | None = None
    diagnostics: tuple[Path, Path] | None = None

    @property
    def exit_code(self) -> int:
        return 0 if self.ok else 1


async def run_bateo_steps(
    page: Page, *, settings: WorkflowSettings, date_range: DateRange, logger: JsonLogger
) -> ExportArtifact:
    with timed_event(logger=logger, phase="login", message="Login"):
        await login(page, settings.credentials, logger=logger, timeout_ms=settings.login_timeout_ms)

    with timed_event(logger=logger, phase="navigation", message="Open Bateo de ventas", open_mode=settings.open_mode):
        if settings.open_mode == "direct":
            await open_direct(page, settings.credentials.base_url, logger=logger)
        else:
            await open_via_dashboard_menu(page, logger=logger)

    await set_date_range(page, date_range, logger=logger)
    await consultar(page, logger=logger)

    with timed_event(logger=logger, phase="export", message="Export report"):
        artifact = await trigger_export(
            page,
            date_range,
            settings.downloads_dir,
            logger=logger,
            timeout_ms=settings.download_timeout_ms,
        )
    print(f"[DOWNLOAD] saved to: {artifact.saved_path} ({artifact.size_bytes} bytes)", flush=True)

    await verify_date_range(page, date_range, logger=logger)
    return artifact


async def _close_context(context: BrowserContext | None) -> None:
    if context is None:
        return
    with contextlib.suppress(Exception):
        await context.close()


async def _close_browser(browser: Browser | None) -> None:
    if browser is None:
        return
    with contextlib.suppress(Exception):
        await browser.close()


def _record_failure(exc: Exception, *, result: WorkflowResult, logger: JsonLogger, page: Page | None) -> None:
    result.ok = False
    result.error = str(exc)
    result.error_type = type(exc).__name__
    print(f"[FAIL] {WORKFLOW_NAME}: {exc}", flush=True)
    log_event(
        logger=logger,
        phase="orchestrator",
        status="error",
        message="Bateo de ventas workflow failed",
        error=str(exc),
        exc_type=type(exc).__name__,
        final_url=getattr(page, "url", None),
    )


async def _run_session(
    playwright: Any, *, settings: WorkflowSettings, result: WorkflowResult, logger: JsonLogger
) -> None:
    browser: Browser | None = None
    context: BrowserContext | None = None
    page: Page | None = None
    try:
        browser = await launch_browser(
            playwright=playwright,
            logger=logger,
            headless=settings.headless,
            executable_path=settings.chrome_executable,
        )
        context = await new_download_context(browser)
        page = await context.new_page()
        result.artifact = await run_bateo_steps(
            page, settings=settings, date_range=result.date_range, logger=logger
        )
        result.ok = True
    except Exception as exc:
        _record_failure(exc, result=result, logger=logger, page=page)
        result.diagnostics = await capture_failure_diagnostics(page, settings.downloads_dir, logger=logger)
    finally:
        await _close_context(context)
        await _close_browser(browser)


async def _ingest_artifact(*, settings: WorkflowSettings, result: WorkflowResult, logger: JsonLogger) -> None:
    if result.artifact is None:
        return
    if settings.skip_ingest or not settings.database_url:
        log_event(
            logger=logger,
            phase="ingest",
            status="warn",
            message="skipping ingestion (disabled or missing database)",
            skip_ingest=settings.skip_ingest,
        )
        return
    try:
        result.batch = await ingest_export(
            export_path=result.artifact.saved_path,
            date_range=result.date_range,
            database_url=settings.database_url,
            logger=logger,
            run_id=settings.run_id,
        )
    except Exception as exc:
        result.ingest_error = str(exc)
        log_event(
            logger=logger,
            phase="ingest",
            status="error",
            message="Export ingestion failed; keeping downloaded file",
            error=str(exc),
            exc_type=type(exc).__name__,
            download_path=str(result.artifact.saved_path),
        )


async def run_workflow(*, settings: WorkflowSettings, logger: JsonLogger) -> WorkflowResult:
    logger = logger.bind(workflow=WORKFLOW_NAME)
    date_range = compute_date_range(settings.query_date)
    result = WorkflowResult(date_range=date_range)
    log_event(
        logger=logger,
        phase="init",
        message="Starting Bateo de ventas export",
        base_url=settings.credentials.base_url,
        username=settings.credentials.username,
        headless=settings.headless,
        query_date=settings.query_date,
        range_start=date_range.start_str,
        range_end=date_range.end_str,
    )

    try:
        async with async_playwright() as playwright:
            await _run_session(playwright, settings=settings, result=result, logger=logger)
    except Exception as exc:
        # Raised by the Playwright driver itself while starting or stopping.
        if result.ok:
            log_event(
                logger=logger,
                phase="orchestrator",
                status="warn",
                message="Playwright shutdown failed after a completed export",
                error=str(exc),
            )
        elif result.error is None:
            _record_failure(exc, result=result, logger=logger, page=None)

    if result.ok:
        await _ingest_artifact(settings=settings, result=result, logger=logger)
        print(f"[PASS] {WORKFLOW_NAME}", flush=True)
        log_event(logger=logger, phase="orchestrator", message="Bateo de ventas workflow complete")
    return result
