from __future__ import annotations

import asyncio
import contextlib

from playwright.async_api import Page, TimeoutError

from erp_automation.common.date_utils import DateRange
from erp_automation.common.json_logger import JsonLogger, log_event

from . import page_selectors as sel
from .errors import FilterMismatchError, NavigationError

FILTER_TIMEOUT_MS = 15_000

# The screen binds its state to input/change events, so the value is also
# written in-page and both events are fired after the regular fill.
DISPATCH_VALUE_SCRIPT = """
(el, value) => {
    el.value = value;
    el.dispatchEvent(new Event('input', { bubbles: true }));
    el.dispatchEvent(new Event('change', { bubbles: true }));
    if (document.activeElement === el) el.blur();
}
"""


async def apply_date_value(page: Page, selector: str, value: str, *, timeout_ms: int = FILTER_TIMEOUT_MS) -> None:
    try:
        await page.wait_for_selector(selector, state="visible", timeout=timeout_ms)
    except TimeoutError as exc:
        raise NavigationError(f"Date input {selector} not visible after {timeout_ms}ms") from exc

    with contextlib.suppress(Exception):
        await page.focus(selector)
    await page.fill(selector, value)
    await page.eval_on_selector(selector, DISPATCH_VALUE_SCRIPT, value)


async def set_date_range(
    page: Page, date_range: DateRange, *, logger: JsonLogger, timeout_ms: int = FILTER_TIMEOUT_MS
) -> None:
    log_event(
        logger=logger,
        phase="filter",
        message=f"Setting range: {date_range.start_str} a {date_range.end_str}",
        start=date_range.start_str,
        end=date_range.end_str,
    )
    await apply_date_value(page, sel.FECHA_INICIO, date_range.start_str, timeout_ms=timeout_ms)
    await apply_date_value(page, sel.FECHA_FIN, date_range.end_str, timeout_ms=timeout_ms)


async def consultar(page: Page, *, logger: JsonLogger, timeout_ms: int = FILTER_TIMEOUT_MS) -> None:
    """Submit the filter and wait for the result set to settle."""

    try:
        await page.wait_for_selector(sel.CONSULTAR_BUTTON, state="visible", timeout=timeout_ms)
    except TimeoutError as exc:
        raise NavigationError(f"Consultar button not visible after {timeout_ms}ms") from exc

    async def _network_idle() -> None:
        with contextlib.suppress(Exception):
            await page.wait_for_load_state("networkidle")

    await asyncio.gather(_network_idle(), page.click(sel.CONSULTAR_BUTTON))
    log_event(logger=logger, phase="consult", message="Consulted results for selected range")


async def read_date_range(page: Page) -> tuple[str, str]:
    start_value = await page.input_value(sel.FECHA_INICIO)
    end_value = await page.input_value(sel.FECHA_FIN)
    return start_value, end_value


async def verify_date_range(page: Page, date_range: DateRange, *, logger: JsonLogger) -> None:
    start_value, end_value = await read_date_range(page)
    expected = (date_range.start_str, date_range.end_str)
    matched = (start_value, end_value) == expected
    log_event(
        logger=logger,
        phase="verify",
        status="ok" if matched else "error",
        message="Read back date inputs",
        start_value=start_value,
        end_value=end_value,
        expected_start=expected[0],
        expected_end=expected[1],
    )
    if start_value != expected[0]:
        raise FilterMismatchError(f"start date not set correctly: {start_value!r} != {expected[0]!r}")
    if end_value != expected[1]:
        raise FilterMismatchError(f"end date not set correctly: {end_value!r} != {expected[1]!r}")
