from __future__ import annotations

import contextlib
import time
from pathlib import Path

from playwright.async_api import Page

from erp_automation.common.json_logger import JsonLogger, log_event


async def capture_failure_diagnostics(
    page: Page | None, target_dir: Path, *, logger: JsonLogger
) -> tuple[Path, Path] | None:
    """Save a full-page screenshot and the page markup; never raises."""

    if page is None:
        return None
    try:
        target_dir.mkdir(parents=True, exist_ok=True)
        stamp = int(time.time() * 1000)
        png_path = target_dir / f"error-{stamp}.png"
        html_path = target_dir / f"error-{stamp}.html"

        with contextlib.suppress(Exception):
            await page.screenshot(path=str(png_path), full_page=True)
        content = ""
        with contextlib.suppress(Exception):
            content = await page.content()
        if content:
            html_path.write_text(content, encoding="utf-8")
    except Exception as exc:  # pragma: no cover - diagnostics best effort
        log_event(
            logger=logger,
            phase="diagnostics",
            status="warn",
            message="Failed to capture failure diagnostics",
            error=str(exc),
        )
        return None

    log_event(
        logger=logger,
        phase="diagnostics",
        message=f"Saved diagnostics to {png_path} and {html_path}",
        screenshot_path=str(png_path),
        html_path=str(html_path),
        screenshot_saved=png_path.exists(),
        html_saved=html_path.exists(),
    )
    return png_path, html_path
