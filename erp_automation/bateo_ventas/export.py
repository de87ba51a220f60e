from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path

from playwright.async_api import Page, TimeoutError

from erp_automation.common.date_utils import DateRange
from erp_automation.common.json_logger import JsonLogger, log_event

from . import page_selectors as sel
from .errors import ExportTimeout, NavigationError

DOWNLOAD_TIMEOUT_MS = 60_000
EXPORT_BUTTON_TIMEOUT_MS = 15_000
DEFAULT_EXTENSION = ".xlsx"
DEFAULT_BASENAME = "export"


@dataclass(frozen=True)
class ExportArtifact:
    suggested_name: str
    saved_path: Path
    size_bytes: int


def build_export_filename(suggested_name: str, date_range: DateRange) -> str:
    """``reporte.xlsx`` -> ``reporte_<start>_a_<end>.xlsx``."""

    name = Path(suggested_name or "").name
    ext = Path(name).suffix
    base = Path(name).stem if ext else name
    return f"{base or DEFAULT_BASENAME}_{date_range.start_str}_a_{date_range.end_str}{ext or DEFAULT_EXTENSION}"


async def trigger_export(
    page: Page,
    date_range: DateRange,
    target_dir: Path,
    *,
    logger: JsonLogger,
    timeout_ms: int = DOWNLOAD_TIMEOUT_MS,
    button_timeout_ms: int = EXPORT_BUTTON_TIMEOUT_MS,
) -> ExportArtifact:
    """Click Export and persist the download under a range-stamped name.

    The download expectation is registered before the click so a download
    that starts while the click is still resolving is not missed.
    """

    try:
        await page.wait_for_selector(sel.EXPORT_BUTTON, state="visible", timeout=button_timeout_ms)
    except TimeoutError as exc:
        raise NavigationError(f"Export button not visible after {button_timeout_ms}ms") from exc

    clicked = False
    try:
        async with page.expect_download(timeout=timeout_ms) as download_info:
            await page.click(sel.EXPORT_BUTTON)
            clicked = True
        download = await download_info.value
    except TimeoutError as exc:
        if not clicked:
            raise NavigationError(f"Export button click did not complete: {exc}") from exc
        raise ExportTimeout(f"No download started within {timeout_ms}ms of clicking Export") from exc

    suggested = download.suggested_filename
    log_event(logger=logger, phase="export", message="Download started", suggested_filename=suggested)

    target_dir.mkdir(parents=True, exist_ok=True)
    saved_path = target_dir / build_export_filename(suggested, date_range)
    if saved_path.exists():
        log_event(
            logger=logger,
            phase="export",
            status="warn",
            message="Replacing existing export with the same range",
            download_path=str(saved_path),
        )
    await download.save_as(str(saved_path))
    size_bytes = saved_path.stat().st_size

    log_event(
        logger=logger,
        phase="export",
        message="Export saved",
        download_path=str(saved_path),
        size_bytes=size_bytes,
        range_start=date_range.start_str,
        range_end=date_range.end_str,
    )
    return ExportArtifact(suggested_name=suggested, saved_path=saved_path, size_bytes=size_bytes)
