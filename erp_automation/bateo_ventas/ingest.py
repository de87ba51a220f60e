"""Load a Bateo de ventas export into the ingest tables.

Each export becomes one ``ingest_batches`` row keyed by its date range, and
every non-blank data row is stored as a JSON object keyed by the normalized
header names of the sheet.
"""
from __future__ import annotations

import csv
import io
import re
from dataclasses import dataclass
from datetime import date, datetime, timezone
from pathlib import Path
from typing import Any, Dict, Iterable, Iterator, List, Tuple

import openpyxl
import xlrd

from erp_automation.common.date_utils import DateRange, format_ymd
from erp_automation.common.db import get_engine, session_scope
from erp_automation.common.json_logger import JsonLogger, log_event

from .models import BateoVentasRow, Base, IngestBatch

SUPPORTED_EXTENSIONS = {".xlsx", ".xls", ".csv"}
_NON_ALNUM = re.compile(r"[^a-z0-9]")


@dataclass(frozen=True)
class BatchInfo:
    """Summary of one ingested export.

    ``rows`` counts the data rows read from the file, blank ones included;
    ``stored_rows`` counts the rows written to ``bateo_ventas_rows``.
    """

    id: int
    range_start: str
    range_end: str
    filename: str
    rows: int
    stored_rows: int


def normalize_header(value: Any, index: int) -> str:
    text = str(value).strip() if value is not None else ""
    if not text:
        return f"col_{index + 1}"
    return _NON_ALNUM.sub("_", text.lower())


def _cell_text(value: Any) -> str:
    if value is None:
        return ""
    if isinstance(value, datetime):
        if (value.hour, value.minute, value.second, value.microsecond) == (0, 0, 0, 0):
            return format_ymd(value.date())
        return value.isoformat(sep=" ")
    if isinstance(value, date):
        return format_ymd(value)
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return str(value).strip()


def _iter_xlsx_rows(path: Path) -> Iterator[List[str]]:
    workbook = openpyxl.load_workbook(path, read_only=True, data_only=True)
    try:
        if not workbook.worksheets:
            raise ValueError("xlsx has no sheets")
        for values in workbook.worksheets[0].iter_rows(values_only=True):
            yield [_cell_text(value) for value in values]
    finally:
        workbook.close()


def _xls_cell_text(cell: xlrd.sheet.Cell, datemode: int) -> str:
    if cell.ctype in (xlrd.XL_CELL_EMPTY, xlrd.XL_CELL_BLANK):
        return ""
    if cell.ctype == xlrd.XL_CELL_DATE:
        return _cell_text(xlrd.xldate_as_datetime(cell.value, datemode))
    if cell.ctype == xlrd.XL_CELL_BOOLEAN:
        return "TRUE" if cell.value else "FALSE"
    return _cell_text(cell.value)


def _iter_xls_rows(path: Path) -> Iterator[List[str]]:
    book = xlrd.open_workbook(str(path), on_demand=True)
    try:
        if book.nsheets == 0:
            raise ValueError("xls has no sheets")
        sheet = book.sheet_by_index(0)
        for row_idx in range(sheet.nrows):
            yield [_xls_cell_text(cell, book.datemode) for cell in sheet.row(row_idx)]
    finally:
        book.release_resources()


def _decode_csv(raw: bytes) -> str:
    try:
        return raw.decode("utf-8-sig")
    except UnicodeDecodeError:
        # ERP builds that export with the Windows code page.
        return raw.decode("latin-1")


def _iter_csv_rows(path: Path) -> Iterator[List[str]]:
    text = _decode_csv(path.read_bytes())
    for record in csv.reader(io.StringIO(text, newline="")):
        yield [value.strip() for value in record]


def _iter_raw_rows(path: Path) -> Iterable[List[str]]:
    ext = path.suffix.lower()
    if ext not in SUPPORTED_EXTENSIONS:
        raise ValueError(f"unsupported export extension: {ext or '<none>'}")
    if ext == ".xlsx":
        return _iter_xlsx_rows(path)
    if ext == ".xls":
        return _iter_xls_rows(path)
    return _iter_csv_rows(path)


@dataclass(frozen=True)
class ExportRows:
    """Data rows of one export.

    ``data_rows`` counts every row after the header, blank ones included;
    ``rows`` holds only the non-blank ones as ``(row_index, data)`` pairs.
    """

    data_rows: int
    rows: List[Tuple[int, Dict[str, str]]]


def scan_export(path: Path) -> ExportRows:
    headers: List[str] | None = None
    row_index = 0
    rows: List[Tuple[int, Dict[str, str]]] = []
    for raw in _iter_raw_rows(path):
        if headers is None:
            headers = [normalize_header(value, idx) for idx, value in enumerate(raw)]
            continue
        row_index += 1
        data = {header: (raw[idx] if idx < len(raw) else "") for idx, header in enumerate(headers)}
        if not any(value.strip() for value in data.values()):
            continue
        rows.append((row_index, data))
    return ExportRows(data_rows=row_index, rows=rows)


def read_export_rows(path: Path) -> List[Tuple[int, Dict[str, str]]]:
    """Return ``(row_index, data)`` pairs for every non-blank data row.

    ``row_index`` counts data rows from 1 and keeps advancing over blank rows,
    so indices stay aligned with the sheet.
    """

    return scan_export(path).rows


async def create_schema(database_url: str) -> None:
    engine = get_engine(database_url)
    async with engine.begin() as connection:
        await connection.run_sync(Base.metadata.create_all)


async def ingest_export(
    *,
    export_path: Path,
    date_range: DateRange,
    database_url: str,
    logger: JsonLogger,
    run_id: str | None = None,
) -> BatchInfo:
    export = scan_export(export_path)

    async with session_scope(database_url) as session:
        async with session.begin():
            batch = IngestBatch(
                range_start=date_range.start,
                range_end=date_range.end,
                filename=export_path.name,
                run_id=run_id,
                created_at=datetime.now(timezone.utc),
            )
            session.add(batch)
            await session.flush()
            session.add_all(
                [
                    BateoVentasRow(batch_id=batch.id, row_index=idx, data_json=data)
                    for idx, data in export.rows
                ]
            )
        batch_id = batch.id

    info = BatchInfo(
        id=batch_id,
        range_start=date_range.start_str,
        range_end=date_range.end_str,
        filename=export_path.name,
        rows=export.data_rows,
        stored_rows=len(export.rows),
    )
    log_event(
        logger=logger,
        phase="ingest",
        message="Export ingested",
        batch_id=info.id,
        rows=info.rows,
        stored_rows=info.stored_rows,
        filename=info.filename,
        range_start=info.range_start,
        range_end=info.range_end,
    )
    return info
