from __future__ import annotations

from dataclasses import dataclass
from urllib.parse import urljoin

from playwright.async_api import Page, TimeoutError

from erp_automation.common.json_logger import JsonLogger, log_event

from . import page_selectors as sel
from .errors import NavigationError
from .waits import settle_page

NAV_TIMEOUT_MS = 15_000

IS_EXPANDED_SCRIPT = "(el, cls) => el.classList.contains(cls)"
EXPANDED_PREDICATE = """
([selector, cls]) => {
    const el = document.querySelector(selector);
    return !!el && el.classList.contains(cls);
}
"""


@dataclass(frozen=True)
class MenuNode:
    """A collapsible ``<li>`` in the ERP's left-nav tree."""

    selector: str
    label: str = ""

    @property
    def toggle_selector(self) -> str:
        return f"{self.selector}{sel.MENU_TOGGLE_SUFFIX}"


VENTAS_MODULE = MenuNode(selector=sel.MENU_MODULO_VENTAS, label="Ventas")
VENTAS_REPORTES = MenuNode(selector=sel.MENU_CATEGORIA_REPORTES, label="Reportes")
BATEO_MENU_PATH = (VENTAS_MODULE, VENTAS_REPORTES)


async def _wait_visible(page: Page, selector: str, *, timeout_ms: int, what: str) -> None:
    try:
        await page.wait_for_selector(selector, state="visible", timeout=timeout_ms)
    except TimeoutError as exc:
        raise NavigationError(f"{what} ({selector}) not visible after {timeout_ms}ms") from exc


async def is_expanded(page: Page, node: MenuNode) -> bool:
    try:
        return bool(await page.eval_on_selector(node.selector, IS_EXPANDED_SCRIPT, sel.MENU_OPEN_CLASS))
    except Exception:
        return False


async def ensure_expanded(page: Page, node: MenuNode, *, logger: JsonLogger, timeout_ms: int = NAV_TIMEOUT_MS) -> None:
    """Open ``node`` unless it is already open.

    Clicking the toggle of an open node collapses it, so the current state is
    read first and an open node is left untouched.
    """

    try:
        await page.wait_for_selector(node.selector, state="attached", timeout=timeout_ms)
    except TimeoutError as exc:
        raise NavigationError(f"Menu node {node.selector} not found after {timeout_ms}ms") from exc

    if await is_expanded(page, node):
        log_event(
            logger=logger,
            phase="navigation",
            message="Menu node already expanded",
            node=node.selector,
            label=node.label,
            clicked=False,
        )
        return

    try:
        await page.click(node.toggle_selector, timeout=timeout_ms)
        await page.wait_for_function(
            EXPANDED_PREDICATE, arg=[node.selector, sel.MENU_OPEN_CLASS], timeout=timeout_ms
        )
    except TimeoutError as exc:
        raise NavigationError(f"Menu node {node.selector} did not expand within {timeout_ms}ms") from exc

    log_event(
        logger=logger,
        phase="navigation",
        message="Expanded menu node",
        node=node.selector,
        label=node.label,
        clicked=True,
    )


async def wait_for_bateo_inputs(page: Page, *, timeout_ms: int = NAV_TIMEOUT_MS) -> None:
    await _wait_visible(page, sel.FECHA_INICIO, timeout_ms=timeout_ms, what="Start date input")
    await _wait_visible(page, sel.FECHA_FIN, timeout_ms=timeout_ms, what="End date input")


async def click_ventas_button(page: Page, *, logger: JsonLogger, timeout_ms: int = NAV_TIMEOUT_MS) -> None:
    await _wait_visible(page, sel.VENTAS_CARD_BUTTON, timeout_ms=timeout_ms, what="Ventas dashboard card")
    await page.click(sel.VENTAS_CARD_BUTTON)
    await settle_page(page)
    log_event(logger=logger, phase="navigation", message="Opened Ventas module from dashboard")


async def open_via_dashboard_menu(page: Page, *, logger: JsonLogger, timeout_ms: int = NAV_TIMEOUT_MS) -> None:
    """Dashboard "Ventas" card, then Ventas > Reportes > Bateo de ventas."""

    await click_ventas_button(page, logger=logger, timeout_ms=timeout_ms)
    for node in BATEO_MENU_PATH:
        await ensure_expanded(page, node, logger=logger, timeout_ms=timeout_ms)

    await _wait_visible(page, sel.MENU_BATEO_LINK, timeout_ms=timeout_ms, what="Bateo de ventas menu item")
    await page.click(sel.MENU_BATEO_LINK)
    await settle_page(page)
    await wait_for_bateo_inputs(page, timeout_ms=timeout_ms)
    log_event(logger=logger, phase="navigation", message="Bateo de ventas screen ready", final_url=page.url)


async def open_direct(page: Page, base_url: str, *, logger: JsonLogger, timeout_ms: int = NAV_TIMEOUT_MS) -> None:
    url = urljoin(base_url, sel.BATEO_VENTAS_PATH)
    await page.goto(url, wait_until="domcontentloaded")
    await wait_for_bateo_inputs(page, timeout_ms=timeout_ms)
    log_event(logger=logger, phase="navigation", message="Opened Bateo de ventas by URL", final_url=page.url)
