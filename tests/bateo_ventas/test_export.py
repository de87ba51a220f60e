import asyncio
import io
from datetime import date
from pathlib import Path

import pytest
from playwright.async_api import TimeoutError as PWTimeoutError

from erp_automation.bateo_ventas import export
from erp_automation.bateo_ventas import page_selectors as sel
from erp_automation.bateo_ventas.errors import ExportTimeout, NavigationError
from erp_automation.common.date_utils import DateRange
from erp_automation.common.json_logger import JsonLogger

MAY = DateRange(start=date(2024, 5, 1), end=date(2024, 5, 31))


class FakeDownload:
    def __init__(self, suggested_filename: str, payload: bytes) -> None:
        self.suggested_filename = suggested_filename
        self.payload = payload

    async def save_as(self, path: str) -> None:
        Path(path).write_bytes(self.payload)


class FakeDownloadInfo:
    def __init__(self, future: asyncio.Future) -> None:
        self._future = future

    @property
    def value(self) -> asyncio.Future:
        return self._future


class FakeExpectDownload:
    def __init__(self, page: "FakeExportPage", timeout: float) -> None:
        self.page = page
        self.timeout = timeout
        self.info: FakeDownloadInfo | None = None

    async def __aenter__(self) -> FakeDownloadInfo:
        future = asyncio.get_running_loop().create_future()
        self.page.pending = future
        self.info = FakeDownloadInfo(future)
        return self.info

    async def __aexit__(self, exc_type, exc, tb) -> bool:
        if exc_type is not None:
            return False
        try:
            await asyncio.wait_for(asyncio.shield(self.info.value), self.timeout / 1000)
        except asyncio.TimeoutError:
            raise PWTimeoutError(f"Timeout {self.timeout}ms exceeded while waiting for event \"download\"")
        return False


class FakeExportPage:
    def __init__(self, download: FakeDownload | None, *, button_visible: bool = True) -> None:
        self.download = download
        self.button_visible = button_visible
        self.pending: asyncio.Future | None = None
        self.clicks: list[str] = []

    async def wait_for_selector(self, selector: str, state: str | None = None, timeout: int | None = None):
        if not self.button_visible:
            raise PWTimeoutError(f"Timeout {timeout}ms exceeded.")
        return object()

    def expect_download(self, timeout: float | None = None) -> FakeExpectDownload:
        return FakeExpectDownload(self, timeout or 30_000)

    async def click(self, selector: str, timeout: int | None = None) -> None:
        self.clicks.append(selector)
        # The download event arrives before the click call itself resolves.
        if self.download is not None and self.pending is not None:
            self.pending.set_result(self.download)
        await asyncio.sleep(0)


@pytest.fixture
def logger() -> JsonLogger:
    return JsonLogger(run_id="export", stream=io.StringIO(), log_file_path=None)


@pytest.mark.parametrize(
    ("suggested", "expected"),
    [
        ("reporte.xlsx", "reporte_2024-05-01_a_2024-05-31.xlsx"),
        ("BateoVentas.csv", "BateoVentas_2024-05-01_a_2024-05-31.csv"),
        ("reporte", "reporte_2024-05-01_a_2024-05-31.xlsx"),
        ("", "export_2024-05-01_a_2024-05-31.xlsx"),
        ("../../etc/reporte.xlsx", "reporte_2024-05-01_a_2024-05-31.xlsx"),
    ],
)
def test_build_export_filename(suggested, expected):
    assert export.build_export_filename(suggested, MAY) == expected


@pytest.mark.asyncio
async def test_download_started_during_click_is_saved(tmp_path, logger):
    page = FakeExportPage(FakeDownload("reporte.xlsx", b"PK\x03\x04fake-xlsx"))

    artifact = await export.trigger_export(page, MAY, tmp_path / "downloads", logger=logger)

    assert page.clicks == [sel.EXPORT_BUTTON]
    assert artifact.suggested_name == "reporte.xlsx"
    assert artifact.saved_path == tmp_path / "downloads" / "reporte_2024-05-01_a_2024-05-31.xlsx"
    assert artifact.saved_path.read_bytes() == b"PK\x03\x04fake-xlsx"
    assert artifact.size_bytes == len(b"PK\x03\x04fake-xlsx")


@pytest.mark.asyncio
async def test_existing_file_is_replaced(tmp_path, logger):
    target = tmp_path / "reporte_2024-05-01_a_2024-05-31.xlsx"
    target.write_bytes(b"old")
    stream = io.StringIO()
    logger = JsonLogger(run_id="export", stream=stream, log_file_path=None)
    page = FakeExportPage(FakeDownload("reporte.xlsx", b"new-bytes"))

    artifact = await export.trigger_export(page, MAY, tmp_path, logger=logger)

    assert artifact.saved_path.read_bytes() == b"new-bytes"
    assert "Replacing existing export" in stream.getvalue()


@pytest.mark.asyncio
async def test_no_download_raises_export_timeout(tmp_path, logger):
    page = FakeExportPage(None)

    with pytest.raises(ExportTimeout):
        await export.trigger_export(page, MAY, tmp_path, logger=logger, timeout_ms=20)

    assert page.clicks == [sel.EXPORT_BUTTON]
    assert list(tmp_path.iterdir()) == []


@pytest.mark.asyncio
async def test_hidden_export_button_raises_navigation_error(tmp_path, logger):
    page = FakeExportPage(FakeDownload("reporte.xlsx", b"x"), button_visible=False)

    with pytest.raises(NavigationError, match="Export button"):
        await export.trigger_export(page, MAY, tmp_path, logger=logger, button_timeout_ms=10)

    assert page.clicks == []
